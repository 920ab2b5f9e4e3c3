import datetime
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.core.exceptions import PermissionDenied, ValidationError
from django.utils import timezone

from ..exceptions import NotFound
from ..models import (Client, Firm, FirmMembership, Invoice, InvoiceLineItem,
                      Matter, Payment, TrustAccount)
from ..money import ZERO, require_positive, round_money


# ------------------------------------
# Firm ownership lookups
# ------------------------------------
def get_firm(firm_id, *, lock=False) -> Firm:
    qs = Firm.objects.select_for_update() if lock else Firm.objects
    try:
        return qs.get(pk=getattr(firm_id, "pk", firm_id))
    except Firm.DoesNotExist:
        raise NotFound("Firm not found")


def ensure_member(user, firm):
    """The caller must hold an active membership in the firm."""
    if user is None or getattr(user, "is_superuser", False):
        return
    if not FirmMembership.objects.active(firm).filter(user=user).exists():
        raise PermissionDenied(f"User is not a member of {firm}")


def get_client(firm, client_id) -> Client:
    try:
        return Client.objects.for_firm(firm).get(pk=client_id)
    except Client.DoesNotExist:
        raise NotFound("Client not found")


def get_trust_account(firm, account_id, *, lock=False) -> TrustAccount:
    qs = TrustAccount.objects.for_firm(firm)
    if lock:
        # Serializes every balance-check-then-write on this account
        qs = qs.select_for_update()
    try:
        return qs.get(pk=account_id)
    except TrustAccount.DoesNotExist:
        raise NotFound("Trust account not found")


def load_invoice(firm, invoice_id, *, client=None, lock=False) -> Invoice:
    qs = Invoice.objects.for_firm(firm)
    if client is not None:
        qs = qs.filter(client=client)
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=invoice_id)
    except Invoice.DoesNotExist:
        if client is not None:
            raise NotFound(
                "Invoice not found or does not belong to this client")
        raise NotFound("Invoice not found")


@dataclass
class Participants:
    account: TrustAccount
    client: Client
    matter: Optional[Matter] = None


def validate_participants(firm, account_id, client_id, matter_id=None, *,
                          lock_account=False) -> Participants:
    """Account, client and (optional) matter must all belong to the firm."""
    account = get_trust_account(firm, account_id, lock=lock_account)
    client = get_client(firm, client_id)
    matter = None
    if matter_id:
        try:
            matter = Matter.objects.for_firm(firm).get(
                pk=matter_id, client=client)
        except Matter.DoesNotExist:
            raise NotFound(
                "Matter not found or does not belong to this client")
    return Participants(account=account, client=client, matter=matter)


# ------------------------------------
# Input parsing
# ------------------------------------
def to_date(value, field="date") -> datetime.date:
    if value is None:
        return timezone.localdate()
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError({field: f"Invalid date: {value!r}"})


def parse_choice(value, choices, field):
    if value not in choices.values:
        raise ValidationError(
            {field: f"{value!r} is not one of {', '.join(choices.values)}"})
    return value


def parse_ids(values, field) -> List[int]:
    """Coerce primary keys (JSON ints or form strings) to ints."""
    if values is None or values == "":
        return []
    if isinstance(values, (str, int)):
        values = [values]
    ids = []
    for value in values:
        try:
            if isinstance(value, bool):
                raise ValueError(value)
            pk = int(str(value).strip())
        except (TypeError, ValueError):
            raise ValidationError({field: f"Invalid id: {value!r}"})
        if pk <= 0:
            raise ValidationError({field: f"Invalid id: {value!r}"})
        ids.append(pk)
    return ids


TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def parse_bool(value, field, default=False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValidationError({field: f"Invalid boolean: {value!r}"})


def parse_due_days(value, default) -> int:
    if value is None:
        return default
    try:
        days = int(value)
    except (TypeError, ValueError):
        raise ValidationError({"due_days": f"Invalid due days: {value!r}"})
    if days < 0:
        raise ValidationError({"due_days": "due_days cannot be negative"})
    return days


@dataclass(frozen=True)
class ManualLine:
    line_type: str
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    taxable: bool = True


def parse_manual_lines(lines) -> List[ManualLine]:
    """Validate caller-supplied invoice lines (dicts), keeping their order."""
    if lines and not isinstance(lines, (list, tuple)):
        raise ValidationError({"manual_lines": "Expected a list of lines"})
    parsed = []
    for idx, raw in enumerate(lines or []):
        if not isinstance(raw, dict):
            raise ValidationError(
                {f"manual_lines[{idx}]": "Expected an object"})
        line_type = raw.get("line_type", InvoiceLineItem.LineType.CUSTOM)
        parse_choice(line_type, InvoiceLineItem.LineType,
                     f"manual_lines[{idx}].line_type")
        description = (raw.get("description") or "").strip()
        if not description:
            raise ValidationError(
                {f"manual_lines[{idx}].description": "Description required"})
        quantity = round_money(raw.get("quantity", 1))
        rate = round_money(raw.get("rate", 0))
        if quantity < ZERO or rate < ZERO:
            raise ValidationError(
                {f"manual_lines[{idx}]": "Quantity and rate must be >= 0"})
        amount = round_money(quantity * rate)
        if raw.get("amount") is not None:
            # an explicit amount may only restate quantity x rate
            given = round_money(raw["amount"])
            if given < ZERO:
                raise ValidationError(
                    {f"manual_lines[{idx}].amount": "Amount must be >= 0"})
            if given != amount:
                raise ValidationError({
                    f"manual_lines[{idx}].amount":
                        f"Amount {given} does not match quantity x rate "
                        f"({amount})"})
        parsed.append(ManualLine(
            line_type=line_type,
            description=description,
            quantity=quantity,
            rate=rate,
            amount=amount,
            taxable=parse_bool(raw.get("taxable"),
                               f"manual_lines[{idx}].taxable", default=True),
        ))
    return parsed


def parse_payment(amount, payment_method, payment_source):
    amount = require_positive(amount)
    parse_choice(payment_method, Payment.Method, "payment_method")
    parse_choice(payment_source, Payment.Source, "payment_source")
    return amount


def parse_bank_balance(value) -> Decimal:
    return round_money(value)


def parse_limit(value, default, maximum=200) -> int:
    try:
        limit = int(value or default)
    except (TypeError, ValueError):
        raise ValidationError({"limit": f"Invalid page size: {value!r}"})
    return max(1, min(limit, maximum))
