import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.db import IntegrityError, transaction

from ..exceptions import Conflict, InsufficientFunds
from ..models import TrustAccount, TrustTransaction
from ..money import ZERO, require_positive, round_money
from ..signals import trust_transaction_recorded
from .events import emit
from .validation import (ensure_member, get_client, get_firm,
                         get_trust_account, parse_limit, to_date,
                         validate_participants)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


# ----------------------------
# Trust accounts
# ----------------------------
def create_trust_account(firm_id, account_name, *, bank_name=None,
                         account_number_last4=None, currency="CAD",
                         user=None) -> TrustAccount:
    firm = get_firm(firm_id)
    ensure_member(user, firm)

    account_name = _account_name(account_name)
    _check_last4(account_number_last4)

    try:
        with transaction.atomic():
            account = TrustAccount.objects.create(
                firm=firm,
                account_name=account_name,
                bank_name=bank_name,
                account_number_last4=account_number_last4,
                currency=(currency or "CAD").upper(),
            )
    except IntegrityError:
        raise Conflict(f"Trust account {account_name!r} already exists")

    logger.info("trust account created firm=%s account=%s",
                firm.pk, account.pk)
    return account


def _account_name(value):
    value = (value or "").strip()
    if not value:
        raise ValidationError({"account_name": "Account name required"})
    return value


def _check_last4(value):
    if value and not (len(value) == 4 and value.isdigit()):
        raise ValidationError(
            {"account_number_last4": "Expected the last 4 digits"})


def list_trust_accounts(firm_id) -> List[TrustAccount]:
    firm = get_firm(firm_id)
    return list(TrustAccount.objects.for_firm(firm)
                .order_by("account_name", "id"))


def get_account(firm_id, account_id) -> TrustAccount:
    return get_trust_account(get_firm(firm_id), account_id)


def update_trust_account(firm_id, account_id, *, account_name=None,
                         bank_name=None, account_number_last4=None,
                         user=None) -> TrustAccount:
    """Rename or re-describe an account; the balance is ledger-owned."""
    firm = get_firm(firm_id)
    ensure_member(user, firm)

    fields = ["updated_at"]
    try:
        with transaction.atomic():
            account = get_trust_account(firm, account_id, lock=True)
            if account_name is not None:
                account.account_name = _account_name(account_name)
                fields.append("account_name")
            if bank_name is not None:
                account.bank_name = bank_name or None
                fields.append("bank_name")
            if account_number_last4 is not None:
                _check_last4(account_number_last4)
                account.account_number_last4 = account_number_last4 or None
                fields.append("account_number_last4")
            account.save(update_fields=fields)
    except IntegrityError:
        raise Conflict(
            f"Trust account {account_name.strip()!r} already exists")

    logger.info("trust account updated firm=%s account=%s fields=%s",
                firm.pk, account.pk, ",".join(fields[1:]))
    return account


# ----------------------------
# Balances (always computed from the ledger)
# ----------------------------
def client_balance(firm, account, client) -> Decimal:
    """Sum of the client's signed transactions in one account."""
    return TrustTransaction.objects.for_client(firm, account, client).balance()


def get_client_balance(firm_id, client_id, account_id=None) -> Decimal:
    firm = get_firm(firm_id)
    client = get_client(firm, client_id)
    qs = TrustTransaction.objects.for_firm(firm).filter(client=client)
    if account_id is not None:
        qs = qs.filter(trust_account=get_trust_account(firm, account_id))
    return qs.balance()


@dataclass
class MatterBalance:
    matter_id: int
    matter_number: str
    matter_name: str
    balance: Decimal


@dataclass
class ClientTrustBalance:
    client_id: int
    client_name: str
    balance: Decimal
    matter_balances: List[MatterBalance] = field(default_factory=list)


def get_client_trust_balance(firm_id, client_id,
                             account_id=None) -> ClientTrustBalance:
    firm = get_firm(firm_id)
    client = get_client(firm, client_id)
    qs = TrustTransaction.objects.for_firm(firm).filter(client=client)
    if account_id is not None:
        qs = qs.filter(trust_account=get_trust_account(firm, account_id))

    rows = qs.filter(matter__isnull=False).balances_by(
        "matter_id", "matter__matter_number", "matter__name")
    return ClientTrustBalance(
        client_id=client.pk,
        client_name=client.name,
        balance=qs.balance(),
        matter_balances=[
            MatterBalance(
                matter_id=row["matter_id"],
                matter_number=row["matter__matter_number"],
                matter_name=row["matter__name"],
                balance=round_money(row["balance"] or ZERO),
            )
            for row in rows
        ],
    )


@dataclass
class TransactionPage:
    items: List[TrustTransaction]
    total: int
    page: int
    limit: int


def list_transactions(firm_id, *, account_id=None, client_id=None,
                      matter_id=None, page=1, limit=50) -> TransactionPage:
    firm = get_firm(firm_id)
    qs = (TrustTransaction.objects.for_firm(firm)
          .select_related("client", "matter", "related_invoice")
          .order_by("-transaction_date", "-id"))
    if account_id is not None:
        qs = qs.filter(trust_account_id=account_id)
    if client_id is not None:
        qs = qs.filter(client_id=client_id)
    if matter_id is not None:
        qs = qs.filter(matter_id=matter_id)

    limit = parse_limit(limit, 50, MAX_PAGE_SIZE)
    paginator = Paginator(qs, limit)
    page_obj = paginator.get_page(page)
    return TransactionPage(
        items=list(page_obj.object_list),
        total=paginator.count,
        page=page_obj.number,
        limit=limit,
    )


# ----------------------------
# Ledger writes
# ----------------------------
def record_transaction(firm, account, client, transaction_type, amount,
                       transaction_date, *, user=None, matter=None,
                       related_invoice=None, description=None,
                       reference_number=None) -> TrustTransaction:
    """
    Append one entry to the client's ledger in this account.
    The account row stays locked from the balance read to the
    balance update, so concurrent debits cannot both pass the check.
    """
    amount = require_positive(amount)
    with transaction.atomic():
        account = TrustAccount.objects.select_for_update().get(pk=account.pk)

        current = client_balance(firm, account, client)
        is_credit = transaction_type in TrustTransaction.CREDIT_TYPES
        if not is_credit and amount > current:
            logger.warning(
                "trust debit rejected firm=%s account=%s client=%s "
                "type=%s amount=%s balance=%s",
                firm.pk, account.pk, client.pk, transaction_type,
                amount, current)
            raise InsufficientFunds(
                f"Insufficient trust funds. Available: {current}, "
                f"Requested: {amount}")

        signed = amount if is_credit else -amount
        tx = TrustTransaction.objects.create(
            firm=firm,
            trust_account=account,
            client=client,
            matter=matter,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=round_money(current + signed),
            description=description,
            reference_number=reference_number,
            related_invoice=related_invoice,
            transaction_date=transaction_date,
            created_by=user,
        )

        account.current_balance = round_money(account.current_balance + signed)
        account.save(update_fields=["current_balance", "updated_at"])

        emit(trust_transaction_recorded, firm=firm, user=user, transaction=tx)

    logger.info(
        "trust %s recorded firm=%s account=%s client=%s amount=%s "
        "balance_after=%s",
        transaction_type, firm.pk, account.pk, client.pk, amount,
        tx.balance_after)
    return tx


def _record(transaction_type, firm_id, user, account_id, client_id, amount,
            transaction_date=None, *, matter_id=None, description=None,
            reference_number=None) -> TrustTransaction:
    amount = require_positive(amount)
    transaction_date = to_date(transaction_date, "transaction_date")
    with transaction.atomic():
        firm = get_firm(firm_id)
        ensure_member(user, firm)
        parts = validate_participants(
            firm, account_id, client_id, matter_id, lock_account=True)
        return record_transaction(
            firm, parts.account, parts.client, transaction_type, amount,
            transaction_date,
            user=user,
            matter=parts.matter,
            description=description,
            reference_number=reference_number,
        )


def record_deposit(firm_id, user, account_id, client_id, amount,
                   transaction_date=None, **kwargs) -> TrustTransaction:
    return _record(TrustTransaction.Type.DEPOSIT, firm_id, user, account_id,
                   client_id, amount, transaction_date, **kwargs)


def record_refund(firm_id, user, account_id, client_id, amount,
                  transaction_date=None, **kwargs) -> TrustTransaction:
    """Return trust money to the client. No invoice is involved."""
    return _record(TrustTransaction.Type.REFUND, firm_id, user, account_id,
                   client_id, amount, transaction_date, **kwargs)


def record_interest(firm_id, user, account_id, client_id, amount,
                    transaction_date=None, **kwargs) -> TrustTransaction:
    return _record(TrustTransaction.Type.INTEREST, firm_id, user, account_id,
                   client_id, amount, transaction_date, **kwargs)


def record_bank_charge(firm_id, user, account_id, client_id, amount,
                       transaction_date=None, **kwargs) -> TrustTransaction:
    return _record(TrustTransaction.Type.BANK_CHARGE, firm_id, user,
                   account_id, client_id, amount, transaction_date, **kwargs)
