from django.contrib import admin

from ..models import TrustAccount, TrustTransaction
from .mixins import TenantAdminMixin
from .ReadOnly import ReadOnlyAdmin


@admin.register(TrustAccount)
class TrustAccountAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "firm", "account_name", "bank_name",
                    "account_number_last4", "currency", "current_balance")
    search_fields = ("account_name", "bank_name")
    # Balance only moves through ledger entries
    readonly_fields = ("current_balance",)

    # Accounts with history are never deleted (PROTECT also blocks it)
    def has_delete_permission(self, request, obj=None):
        if obj and obj.transactions.exists():
            return False
        return super().has_delete_permission(request, obj)


@admin.register(TrustTransaction)
class TrustTransactionAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = ("id", "firm", "trust_account", "client", "matter",
                    "transaction_type", "amount", "balance_after",
                    "transaction_date")
    list_filter = ("transaction_type", "transaction_date")
    search_fields = ("client__name", "reference_number", "description")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related(
            "firm", "trust_account", "client", "matter")
