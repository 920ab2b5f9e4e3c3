from django.contrib import admin

from ..models import (Client, Expense, Firm, FirmMembership, Matter,
                      TimeEntry)
from .mixins import TenantAdminMixin


# Register `Firm` model in admin with this custom config
@admin.register(Firm)
class FirmAdmin(admin.ModelAdmin):
    """a clean admin table for browsing firms"""

    list_display = ("id", "name", "slug", "province", "currency_code",
                    "invoice_due_days")
    search_fields = ("name", "slug")
    ordering = ("name",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        # Staff only see the firms they are members of
        return qs.filter(memberships__user=request.user,
                         memberships__is_active=True).distinct()


@admin.register(FirmMembership)
class FirmMembershipAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("user", "firm", "role", "is_active", "created_at")
    list_filter = ("role", "is_active")
    search_fields = ("user__username", "user__email", "firm__name")


@admin.register(Client)
class ClientAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "firm", "name", "email", "client_type")
    search_fields = ("name", "email")


@admin.register(Matter)
class MatterAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "firm", "matter_number", "name", "client", "status")
    list_filter = ("status",)
    search_fields = ("matter_number", "name", "client__name")


@admin.register(TimeEntry)
class TimeEntryAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "matter", "user", "entry_date", "hours", "rate",
                    "billable", "billed")
    list_filter = ("billable", "billed")
    # billed/invoice are set when an invoice consumes the entry
    readonly_fields = ("billed", "invoice")


@admin.register(Expense)
class ExpenseAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "matter", "expense_date", "amount", "tax_treatment",
                    "billable", "billed")
    list_filter = ("tax_treatment", "billable", "billed")
    readonly_fields = ("billed", "invoice")
