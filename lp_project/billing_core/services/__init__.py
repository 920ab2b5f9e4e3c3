from .invoicing import (create_invoice, generate_invoice_number, get_invoice,
                        list_invoices, mark_overdue_invoices,
                        recalculate_totals, send_invoice, update_invoice)
from .payment import TrustTransfer, record_payment, transfer_trust_to_fees
from .reconciliation import three_way_reconciliation, verify_running_balances
from .trust import (ClientTrustBalance, client_balance, create_trust_account,
                    get_account, get_client_balance, get_client_trust_balance,
                    list_transactions, list_trust_accounts,
                    record_bank_charge, record_deposit, record_interest,
                    record_refund, record_transaction, update_trust_account)

__all__ = [
    "create_invoice",
    "generate_invoice_number",
    "get_invoice",
    "list_invoices",
    "mark_overdue_invoices",
    "recalculate_totals",
    "send_invoice",
    "update_invoice",
    "record_payment",
    "transfer_trust_to_fees",
    "TrustTransfer",
    "record_refund",
    "three_way_reconciliation",
    "verify_running_balances",
    "create_trust_account",
    "list_trust_accounts",
    "get_account",
    "update_trust_account",
    "record_transaction",
    "record_deposit",
    "record_interest",
    "record_bank_charge",
    "client_balance",
    "get_client_balance",
    "get_client_trust_balance",
    "ClientTrustBalance",
    "list_transactions",
]
