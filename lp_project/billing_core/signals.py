from django.db.models.signals import pre_delete
from django.dispatch import Signal, receiver

from .exceptions import InvalidState
from .models import Invoice, Payment, TrustTransaction

# ---------------------------------------------------------
# Domain facts for external subscribers (audit, compliance).
# Sent only after the surrounding transaction commits.
# Every signal passes firm= and user= plus the objects named below.
# ---------------------------------------------------------
invoice_created = Signal()             # invoice=
invoice_sent = Signal()                # invoice=
payment_recorded = Signal()            # payment=, invoice=
trust_transaction_recorded = Signal()  # transaction=
trust_transfer_applied = Signal()      # transaction=, payment=, invoice=


""" Ledger rows are append-only, even through queryset.delete()."""


@receiver(pre_delete, sender=TrustTransaction)
def prevent_delete_trust_transaction(sender, instance, **kwargs):
    raise InvalidState("Trust transactions cannot be deleted.")


@receiver(pre_delete, sender=Payment)
def prevent_delete_payment(sender, instance, **kwargs):
    raise InvalidState("Payments cannot be deleted.")


""" Block invoice deletion if any payments are applied."""


@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice_with_payments(sender, instance, **kwargs):
    if Payment.objects.filter(invoice=instance).exists():
        raise InvalidState("Cannot delete invoice with applied payments.")
