from django.contrib import admin

from ..models import Invoice, InvoiceLineItem, Payment


class InvoiceLineItemInline(admin.TabularInline):
    model = InvoiceLineItem
    extra = 0
    fields = ("sort_order", "line_type", "description", "quantity", "rate",
              "amount", "taxable")
    # quantity x rate, filled in by InvoiceAdmin.save_formset
    readonly_fields = ("amount",)
    ordering = ("sort_order", "id")

    # Lines can only change while the invoice is still a draft
    def _locked(self, obj):
        return obj is not None and obj.status != Invoice.Status.DRAFT

    def has_change_permission(self, request, obj=None):
        if self._locked(obj):
            return False
        return super().has_change_permission(request, obj)

    def has_add_permission(self, request, obj=None):
        if self._locked(obj):
            return False
        return super().has_add_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if self._locked(obj):
            return False
        return super().has_delete_permission(request, obj)


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("payment_date", "amount", "payment_method", "payment_source",
              "trust_transaction")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False
