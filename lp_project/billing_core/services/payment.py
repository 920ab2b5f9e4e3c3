import logging
from dataclasses import dataclass

from django.db import transaction

from ..exceptions import (AlreadyPaid, ExceedsInvoiceBalance,
                          InsufficientFunds, InvalidState, NotFound)
from ..models import Invoice, Payment, TrustTransaction
from ..signals import payment_recorded, trust_transfer_applied
from .events import emit
from .trust import client_balance, record_transaction
from .validation import (ensure_member, get_firm, load_invoice,
                         parse_payment, to_date, validate_participants)

logger = logging.getLogger(__name__)


# ----------------------------
# Payment-related workflows
# ----------------------------
def _check_payable(invoice, amount):
    if invoice.status == Invoice.Status.PAID:
        raise AlreadyPaid(f"Invoice {invoice.invoice_number} is already paid")
    if invoice.status not in Invoice.PAYABLE_STATUSES:
        raise InvalidState(
            f"Cannot record a payment on a {invoice.get_status_display()} "
            f"invoice")
    if amount > invoice.balance_due:
        raise ExceedsInvoiceBalance(
            f"Payment amount ({amount}) exceeds balance due "
            f"({invoice.balance_due})")


def _linked_transfer(firm, invoice, amount, trust_transaction_id):
    """The transfer_to_fees entry a trust-sourced payment settles against."""
    if not trust_transaction_id:
        raise InvalidState("Trust payments must reference a trust transaction")
    try:
        tx = TrustTransaction.objects.for_firm(firm).get(
            pk=trust_transaction_id)
    except TrustTransaction.DoesNotExist:
        raise NotFound("Trust transaction not found")

    if (tx.transaction_type != TrustTransaction.Type.TRANSFER_TO_FEES
            or tx.related_invoice_id != invoice.pk):
        raise InvalidState(
            "Trust transaction is not a transfer to fees for this invoice")
    if tx.amount != amount:
        raise InvalidState(
            f"Trust transaction amount ({tx.amount}) does not match "
            f"payment amount ({amount})")
    if Payment.objects.filter(trust_transaction=tx).exists():
        raise InvalidState("Trust transaction is already linked to a payment")
    return tx


def record_payment(firm_id, invoice_id, amount, *, payment_method,
                   payment_source=Payment.Source.EXTERNAL, payment_date=None,
                   trust_transaction_id=None, notes=None,
                   user=None) -> Payment:
    """
    Record money received against an invoice.
    The invoice row is locked until the payment and the new
    balance are both written.
    """
    amount = parse_payment(amount, payment_method, payment_source)
    payment_date = to_date(payment_date, "payment_date")

    # Everything inside either succeeds
    # as one unit or rolls back if something fails
    with transaction.atomic():
        firm = get_firm(firm_id)
        ensure_member(user, firm)
        invoice = load_invoice(firm, invoice_id, lock=True)
        _check_payable(invoice, amount)

        trust_tx = None
        if payment_source == Payment.Source.TRUST:
            trust_tx = _linked_transfer(
                firm, invoice, amount, trust_transaction_id)

        payment = Payment.objects.create(
            firm=firm,
            invoice=invoice,
            payment_date=payment_date,
            amount=amount,
            payment_method=payment_method,
            payment_source=payment_source,
            trust_transaction=trust_tx,
            notes=notes,
        )
        invoice.apply_payment(amount)

        emit(payment_recorded, firm=firm, user=user, payment=payment,
             invoice=invoice)

    logger.info(
        "payment recorded firm=%s invoice=%s amount=%s source=%s "
        "balance_due=%s status=%s",
        firm.pk, invoice.pk, amount, payment_source, invoice.balance_due,
        invoice.status)
    return payment


@dataclass
class TrustTransfer:
    transaction: TrustTransaction
    payment: Payment
    invoice: Invoice


def transfer_trust_to_fees(firm_id, user, account_id, client_id, invoice_id,
                           amount, transaction_date=None, *, matter_id=None,
                           description=None) -> TrustTransfer:
    """
    Pay an invoice out of the client's trust funds.
    The ledger debit, the payment and the invoice balance are written
    together or not at all. Locks the trust account, then the invoice.
    """
    amount = parse_payment(amount, Payment.Method.TRUST_TRANSFER,
                           Payment.Source.TRUST)
    transaction_date = to_date(transaction_date, "transaction_date")

    with transaction.atomic():
        firm = get_firm(firm_id)
        ensure_member(user, firm)
        parts = validate_participants(
            firm, account_id, client_id, matter_id, lock_account=True)
        invoice = load_invoice(firm, invoice_id, client=parts.client,
                               lock=True)

        available = client_balance(firm, parts.account, parts.client)
        if amount > available:
            logger.warning(
                "trust transfer rejected firm=%s account=%s client=%s "
                "invoice=%s amount=%s balance=%s",
                firm.pk, parts.account.pk, parts.client.pk, invoice.pk,
                amount, available)
            raise InsufficientFunds(
                f"Insufficient trust funds. Available: {available}, "
                f"Requested: {amount}")
        _check_payable(invoice, amount)

        tx = record_transaction(
            firm, parts.account, parts.client,
            TrustTransaction.Type.TRANSFER_TO_FEES, amount, transaction_date,
            user=user,
            matter=parts.matter,
            related_invoice=invoice,
            description=description
            or f"Payment for Invoice {invoice.invoice_number}",
        )
        payment = Payment.objects.create(
            firm=firm,
            invoice=invoice,
            payment_date=transaction_date,
            amount=amount,
            payment_method=Payment.Method.TRUST_TRANSFER,
            payment_source=Payment.Source.TRUST,
            trust_transaction=tx,
        )
        invoice.apply_payment(amount)

        emit(payment_recorded, firm=firm, user=user, payment=payment,
             invoice=invoice)
        emit(trust_transfer_applied, firm=firm, user=user, transaction=tx,
             payment=payment, invoice=invoice)

    logger.info(
        "trust transfer applied firm=%s account=%s client=%s invoice=%s "
        "amount=%s trust_balance=%s invoice_balance=%s",
        firm.pk, parts.account.pk, parts.client.pk, invoice.pk, amount,
        tx.balance_after, invoice.balance_due)
    return TrustTransfer(transaction=tx, payment=payment, invoice=invoice)
