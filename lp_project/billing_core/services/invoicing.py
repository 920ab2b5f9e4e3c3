import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from ..exceptions import Conflict, InvalidState, NotFound
from ..models import Expense, Invoice, InvoiceLineItem, TimeEntry
from ..money import ZERO, round_money
from ..signals import invoice_created, invoice_sent
from ..tax import resolve_province
from .events import emit
from .validation import (ensure_member, get_client, get_firm, load_invoice,
                         parse_choice, parse_due_days, parse_ids,
                         parse_limit, parse_manual_lines, to_date)

logger = logging.getLogger(__name__)

OPEN_STATUSES = (Invoice.Status.SENT, Invoice.Status.VIEWED,
                 Invoice.Status.PARTIAL)
CLOSED_STATUSES = (Invoice.Status.PAID, Invoice.Status.WRITTEN_OFF)


# ----------------------------
# Numbering
# ----------------------------
def generate_invoice_number(firm_id, year=None) -> str:
    """Next INV-<year>-<seq> for the firm; sequences restart every year."""
    year = year or timezone.localdate().year
    prefix = f"INV-{year}-"
    numbers = (Invoice.objects.for_firm(getattr(firm_id, "pk", firm_id))
               .filter(invoice_number__startswith=prefix)
               .values_list("invoice_number", flat=True))

    last = 0
    for number in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            last = max(last, int(suffix))
    return f"{prefix}{last + 1:04d}"


# ----------------------------
# Line generation
# ----------------------------
def _unique(ids, field):
    seen = []
    for pk in parse_ids(ids, field):
        if pk not in seen:
            seen.append(pk)
    return seen


def _consume(model, firm, client, ids, label, field):
    """Lock the selected unbilled rows, in the order the caller gave them."""
    ids = _unique(ids, field)
    if not ids:
        return []
    rows = {
        row.pk: row
        for row in model.objects.for_firm(firm)
        .select_for_update().filter(pk__in=ids)
    }
    consumed = []
    for pk in ids:
        row = rows.get(pk)
        if row is None:
            raise NotFound(f"{label} {pk} not found")
        if not row.billable:
            raise InvalidState(f"{label} {pk} is not billable")
        if row.billed:
            raise InvalidState(f"{label} {pk} has already been billed")
        if row.matter.client_id != client.pk:
            raise ValidationError(
                f"{label} {pk} belongs to another client's matter")
        consumed.append(row)
    return consumed


def _staff_name(user):
    if user is None:
        return ""
    return user.get_full_name() or user.get_username()


def _time_line(entry, sort_order):
    name = _staff_name(entry.user)
    return InvoiceLineItem(
        line_type=InvoiceLineItem.LineType.TIME,
        description=f"{name}: {entry.description}" if name
        else entry.description,
        quantity=entry.hours,
        rate=entry.rate,
        amount=entry.amount,
        taxable=True,
        time_entry=entry,
        sort_order=sort_order,
    )


def _expense_line(expense, sort_order):
    return InvoiceLineItem(
        line_type=InvoiceLineItem.LineType.EXPENSE,
        description=f"Expense: {expense.description}",
        quantity=Decimal("1.00"),
        rate=expense.amount,
        amount=round_money(expense.amount),
        taxable=expense.is_taxable,
        expense=expense,
        sort_order=sort_order,
    )


# ----------------------------
# Invoice workflows
# ----------------------------
def create_invoice(firm_id, client_id, *, time_entry_ids=None,
                   expense_ids=None, manual_lines=None, invoice_date=None,
                   due_days=None, province=None, notes=None,
                   invoice_number=None, user=None) -> Invoice:
    """
    Bill unbilled time entries, expenses and manual lines in one invoice.
    Invoice, lines and the billed flags are written as one unit.
    """
    invoice_date = to_date(invoice_date, "invoice_date")
    manual = parse_manual_lines(manual_lines)
    if invoice_number is not None:
        invoice_number = invoice_number.strip()
        if not invoice_number:
            raise ValidationError({"invoice_number": "Invalid invoice number"})

    with transaction.atomic():
        # Serializes numbering for the firm until commit
        firm = get_firm(firm_id, lock=True)
        ensure_member(user, firm)
        client = get_client(firm, client_id)

        if invoice_number and Invoice.objects.for_firm(firm).filter(
                invoice_number=invoice_number).exists():
            raise Conflict(f"Invoice number {invoice_number} already exists")

        entries = _consume(TimeEntry, firm, client, time_entry_ids,
                           "Time entry", "time_entry_ids")
        expenses = _consume(Expense, firm, client, expense_ids, "Expense",
                            "expense_ids")

        lines = []
        for entry in entries:
            lines.append(_time_line(entry, len(lines)))
        for expense in expenses:
            lines.append(_expense_line(expense, len(lines)))
        for item in manual:
            lines.append(InvoiceLineItem(
                line_type=item.line_type,
                description=item.description,
                quantity=item.quantity,
                rate=item.rate,
                amount=item.amount,
                taxable=item.taxable,
                sort_order=len(lines),
            ))
        if not lines:
            raise ValidationError("An invoice needs at least one line item")

        invoice = Invoice(
            firm=firm,
            client=client,
            invoice_date=invoice_date,
            due_date=invoice_date + datetime.timedelta(
                days=parse_due_days(due_days, _default_due_days(firm))),
            province=resolve_province(province, firm),
            notes=notes,
        )
        invoice.recalc_totals(lines=lines)
        if invoice.total <= ZERO:
            raise ValidationError("Invoice total must be greater than zero")
        _save_numbered(invoice, firm, invoice_number)

        for line in lines:
            line.invoice = invoice
        InvoiceLineItem.objects.bulk_create(lines)

        if entries:
            TimeEntry.objects.filter(pk__in=[e.pk for e in entries]).update(
                billed=True, invoice=invoice)
        if expenses:
            Expense.objects.filter(pk__in=[e.pk for e in expenses]).update(
                billed=True, invoice=invoice)

        emit(invoice_created, firm=firm, user=user, invoice=invoice)

    logger.info(
        "invoice created firm=%s invoice=%s number=%s lines=%s total=%s",
        firm.pk, invoice.pk, invoice.invoice_number, len(lines), invoice.total)
    return invoice


def _default_due_days(firm):
    if firm.invoice_due_days is not None:
        return firm.invoice_due_days
    return getattr(settings, "BILLING_DEFAULT_DUE_DAYS", 30)


def _save_numbered(invoice, firm, invoice_number):
    """Insert the invoice, retrying auto-numbering on a unique collision."""
    attempts = 1 if invoice_number else max(
        1, getattr(settings, "BILLING_INVOICE_NUMBER_RETRIES", 3))
    for attempt in range(1, attempts + 1):
        invoice.invoice_number = invoice_number or generate_invoice_number(
            firm, year=invoice.invoice_date.year)
        try:
            with transaction.atomic():
                invoice.save()
            return invoice
        except IntegrityError:
            logger.warning("invoice number collision firm=%s number=%s "
                           "attempt=%s", firm.pk, invoice.invoice_number,
                           attempt)
    raise Conflict(
        f"Invoice number {invoice.invoice_number} is already taken")


def recalculate_totals(firm_id, invoice_id) -> Invoice:
    with transaction.atomic():
        invoice = load_invoice(get_firm(firm_id), invoice_id, lock=True)
        if invoice.status == Invoice.Status.PAID:
            raise InvalidState("Cannot recalculate a paid invoice")
        invoice.recalc_totals()
        if invoice.amount_paid > ZERO and invoice.balance_due <= ZERO:
            invoice.transition_to(Invoice.Status.PAID, save=False)
        invoice.save(update_fields=[
            "subtotal", "tax_gst", "tax_pst", "tax_hst", "tax_qst", "total",
            "balance_due", "status", "updated_at"])
    return invoice


def get_invoice(firm_id, invoice_id) -> Invoice:
    firm = get_firm(firm_id)
    try:
        return (Invoice.objects.for_firm(firm)
                .select_related("client")
                .prefetch_related("line_items")
                .get(pk=invoice_id))
    except Invoice.DoesNotExist:
        raise NotFound("Invoice not found")


@dataclass
class InvoicePage:
    items: List[Invoice]
    total: int
    page: int
    limit: int
    total_outstanding: Decimal


def list_invoices(firm_id, *, client_id=None, status=None, page=1,
                  limit=20) -> InvoicePage:
    firm = get_firm(firm_id)
    qs = (Invoice.objects.for_firm(firm)
          .select_related("client")
          .order_by("-invoice_date", "-id"))
    if client_id is not None:
        qs = qs.filter(client_id=client_id)
    if status:
        qs = qs.filter(status=parse_choice(status, Invoice.Status, "status"))

    limit = parse_limit(limit, 20)
    paginator = Paginator(qs, limit)
    page_obj = paginator.get_page(page)

    outstanding = (Invoice.objects.for_firm(firm)
                   .exclude(status__in=CLOSED_STATUSES)
                   .aggregate(total=Sum("balance_due"))["total"])
    return InvoicePage(
        items=list(page_obj.object_list),
        total=paginator.count,
        page=page_obj.number,
        limit=limit,
        total_outstanding=round_money(outstanding or ZERO),
    )


def send_invoice(firm_id, invoice_id, user=None) -> Invoice:
    with transaction.atomic():
        firm = get_firm(firm_id)
        ensure_member(user, firm)
        invoice = load_invoice(firm, invoice_id, lock=True)
        if invoice.status != Invoice.Status.DRAFT:
            raise InvalidState("Only draft invoices can be sent")
        invoice.transition_to(Invoice.Status.SENT)
        emit(invoice_sent, firm=firm, user=user, invoice=invoice)

    logger.info("invoice sent firm=%s invoice=%s", firm.pk, invoice.pk)
    return invoice


def update_invoice(firm_id, invoice_id, *, invoice_date=None, due_date=None,
                   notes=None, user=None) -> Invoice:
    with transaction.atomic():
        firm = get_firm(firm_id)
        ensure_member(user, firm)
        invoice = load_invoice(firm, invoice_id, lock=True)
        if invoice.status == Invoice.Status.PAID:
            raise InvalidState("Cannot modify a paid invoice")

        fields = ["updated_at"]
        if invoice_date is not None:
            invoice.invoice_date = to_date(invoice_date, "invoice_date")
            fields.append("invoice_date")
        if due_date is not None:
            invoice.due_date = to_date(due_date, "due_date")
            fields.append("due_date")
        if notes is not None:
            invoice.notes = notes
            fields.append("notes")
        invoice.save(update_fields=fields)
    return invoice


def mark_overdue_invoices(today=None) -> int:
    """Move unpaid invoices past their due date to overdue, across firms."""
    today = to_date(today, "today")
    count = (Invoice.objects
             .filter(status__in=OPEN_STATUSES, due_date__lt=today)
             .update(status=Invoice.Status.OVERDUE,
                     updated_at=timezone.now()))
    logger.info("marked %s invoice(s) overdue as of %s", count, today)
    return count
