"""
Trust reconciliation reports.

A trust account is in balance when three figures agree: the bank
statement balance, the ledger balance (every signed transaction on the
account) and the total of the individual client ledgers. Regulators ask
for this comparison every month. Nothing here writes to the database.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from ..models import TrustTransaction
from ..money import ZERO, round_money, sum_money
from .validation import get_firm, get_trust_account, parse_bank_balance

logger = logging.getLogger(__name__)


@dataclass
class ClientLedgerBalance:
    client_id: int
    client_name: str
    balance: Decimal


@dataclass
class ThreeWayReconciliation:
    trust_account_id: int
    account_name: str
    bank_balance: Decimal
    ledger_balance: Decimal
    client_total_balance: Decimal
    is_balanced: bool
    difference: Decimal
    client_balances: List[ClientLedgerBalance] = field(default_factory=list)


def three_way_reconciliation(firm_id, account_id,
                             bank_balance) -> ThreeWayReconciliation:
    firm = get_firm(firm_id)
    account = get_trust_account(firm, account_id)
    bank = parse_bank_balance(bank_balance)

    txs = TrustTransaction.objects.for_firm(firm).filter(trust_account=account)
    ledger = txs.balance()
    client_balances = [
        ClientLedgerBalance(
            client_id=row["client_id"],
            client_name=row["client__name"],
            balance=round_money(row["balance"] or ZERO),
        )
        for row in txs.balances_by("client_id", "client__name")
    ]
    client_total = sum_money(cb.balance for cb in client_balances)

    if ledger != client_total:
        logger.error(
            "trust ledger defect firm=%s account=%s ledger=%s clients=%s",
            firm.pk, account.pk, ledger, client_total)
    if round_money(account.current_balance) != ledger:
        logger.error(
            "trust account balance drift firm=%s account=%s stored=%s "
            "ledger=%s", firm.pk, account.pk, account.current_balance, ledger)

    is_balanced = bank == ledger == client_total
    difference = ZERO
    if not is_balanced:
        difference = max(abs(bank - ledger), abs(ledger - client_total),
                         abs(bank - client_total))

    return ThreeWayReconciliation(
        trust_account_id=account.pk,
        account_name=account.account_name,
        bank_balance=bank,
        ledger_balance=ledger,
        client_total_balance=client_total,
        is_balanced=is_balanced,
        difference=round_money(difference),
        client_balances=client_balances,
    )


@dataclass
class BalanceDiscrepancy:
    transaction_id: int
    client_id: int
    expected_balance: Decimal
    recorded_balance: Decimal


def verify_running_balances(firm_id, account_id) -> List[BalanceDiscrepancy]:
    """Replay each client's entries in insertion order against balance_after."""
    firm = get_firm(firm_id)
    account = get_trust_account(firm, account_id)

    running = defaultdict(lambda: ZERO)
    problems = []
    txs = (TrustTransaction.objects.for_firm(firm)
           .filter(trust_account=account)
           .in_ledger_order())
    for tx in txs.iterator():
        running[tx.client_id] = round_money(
            running[tx.client_id] + tx.signed_amount)
        expected = running[tx.client_id]
        if expected != tx.balance_after or expected < ZERO:
            problems.append(BalanceDiscrepancy(
                transaction_id=tx.pk,
                client_id=tx.client_id,
                expected_balance=expected,
                recorded_balance=tx.balance_after,
            ))

    if problems:
        logger.error("trust running balance mismatch firm=%s account=%s "
                     "entries=%s", firm.pk, account.pk, len(problems))
    return problems
