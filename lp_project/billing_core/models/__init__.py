from .firm import Client, Firm, FirmMembership, Matter
from .invoice import Invoice, InvoiceLineItem, Payment
from .timekeeping import Expense, TimeEntry
from .trust import TrustAccount, TrustTransaction
