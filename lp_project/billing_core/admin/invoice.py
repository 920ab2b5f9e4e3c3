from django.contrib import admin

from ..models import Invoice, InvoiceLineItem, Payment
from ..money import round_money
from ..services import recalculate_totals
from .actions import send_selected_invoices
from .inlines import InvoiceLineItemInline, PaymentInline
from .mixins import TenantAdminMixin
from .ReadOnly import ReadOnlyAdmin


# Register `Invoice` model
@admin.register(Invoice)
class InvoiceAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "firm",
        "invoice_number",
        "client",
        "invoice_date",
        "due_date",
        "status",
        "total",
        "balance_due",
    )
    list_filter = ("status", "province", "invoice_date")
    actions = [send_selected_invoices]
    search_fields = ("invoice_number", "client__name")
    inlines = [InvoiceLineItemInline, PaymentInline]

    # Totals are derived from the lines and payments
    readonly_fields = ("subtotal", "tax_gst", "tax_pst", "tax_hst", "tax_qst",
                       "total", "amount_paid", "balance_due")

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        # Use a SQL join so it fetches firm & client
        # in the same query as Invoice
        return qs.select_related("firm", "client")

    """ Enforce immutability at admin level """

    def get_readonly_fields(self, request, obj=None):
        # If there is an invoice with "paid" status
        if obj and obj.status == Invoice.Status.PAID:
            # Every field becomes read-only
            return [f.name for f in self.model._meta.fields]
        return super().get_readonly_fields(request, obj)

    def has_delete_permission(self, request, obj=None):
        # Paid invoices, and invoices with payments, stay on record
        if obj and (obj.status == Invoice.Status.PAID
                    or obj.payments.exists()):
            return False
        return super().has_delete_permission(request, obj)

    def save_formset(self, request, form, formset, change):
        if formset.model is not InvoiceLineItem:
            return super().save_formset(request, form, formset, change)
        lines = formset.save(commit=False)
        for line in formset.deleted_objects:
            line.delete()
        for line in lines:
            line.amount = round_money(line.quantity * line.rate)
            line.save()
        formset.save_m2m()

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        # Stored totals follow the edited lines
        invoice = form.instance
        if invoice.status != Invoice.Status.PAID:
            recalculate_totals(invoice.firm_id, invoice.pk)


@admin.register(Payment)
class PaymentAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = ("id", "firm", "invoice", "payment_date", "amount",
                    "payment_method", "payment_source")
    list_filter = ("payment_method", "payment_source")
    search_fields = ("invoice__invoice_number",)

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("firm", "invoice")
