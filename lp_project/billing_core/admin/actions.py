from django.contrib import admin, messages
from django.core.exceptions import PermissionDenied, ValidationError

from ..services import send_invoice

# ---------- Admin actions ----------


""" Send goes through the service so admins cannot bypass its rules """


@admin.action(description="Send selected invoices")
def send_selected_invoices(modeladmin, request, queryset):
    sent = 0
    for inv in queryset:
        try:
            send_invoice(inv.firm_id, inv.pk, user=request.user)
            sent += 1
        except (ValidationError, PermissionDenied) as e:
            modeladmin.message_user(
                request, f"{inv}: {e}", level=messages.ERROR)
    modeladmin.message_user(
        request, f"Sent {sent} of {len(queryset)} invoices.",
        level=messages.SUCCESS if sent == len(queryset) else messages.WARNING)
