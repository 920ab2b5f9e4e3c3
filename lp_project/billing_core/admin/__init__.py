from .actions import send_selected_invoices
from .firm import (ClientAdmin, ExpenseAdmin, FirmAdmin, FirmMembershipAdmin,
                   MatterAdmin, TimeEntryAdmin)
from .inlines import InvoiceLineItemInline, PaymentInline
from .invoice import InvoiceAdmin, PaymentAdmin
from .mixins import TenantAdminMixin
from .ReadOnly import ReadOnlyAdmin
from .trust import TrustAccountAdmin, TrustTransactionAdmin
