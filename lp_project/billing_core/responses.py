"""Explicit model -> JSON-ready dict mapping. Money goes out as strings."""


def _money(value):
    return None if value is None else f"{value:.2f}"


def _date(value):
    return value.isoformat() if value else None


def line_item_to_dict(line):
    return {
        "id": line.pk,
        "line_type": line.line_type,
        "description": line.description,
        "quantity": _money(line.quantity),
        "rate": _money(line.rate),
        "amount": _money(line.amount),
        "taxable": line.taxable,
        "time_entry_id": line.time_entry_id,
        "expense_id": line.expense_id,
        "sort_order": line.sort_order,
    }


def invoice_to_dict(invoice, include_lines=False):
    data = {
        "id": invoice.pk,
        "firm_id": invoice.firm_id,
        "client_id": invoice.client_id,
        "client_name": invoice.client.name,
        "invoice_number": invoice.invoice_number,
        "invoice_date": _date(invoice.invoice_date),
        "due_date": _date(invoice.due_date),
        "status": invoice.status,
        "province": invoice.province,
        "subtotal": _money(invoice.subtotal),
        "tax_gst": _money(invoice.tax_gst),
        "tax_pst": _money(invoice.tax_pst),
        "tax_hst": _money(invoice.tax_hst),
        "tax_qst": _money(invoice.tax_qst),
        "total": _money(invoice.total),
        "amount_paid": _money(invoice.amount_paid),
        "balance_due": _money(invoice.balance_due),
        "taxes": [
            {"label": row["label"], "amount": _money(row["amount"])}
            for row in invoice.tax_breakdown()
        ],
        "notes": invoice.notes,
    }
    if include_lines:
        data["line_items"] = [
            line_item_to_dict(line) for line in invoice.line_items.all()]
    return data


def invoice_page_to_dict(page):
    return {
        "data": [invoice_to_dict(inv) for inv in page.items],
        "total": page.total,
        "page": page.page,
        "limit": page.limit,
        "total_outstanding": _money(page.total_outstanding),
    }


def payment_to_dict(payment):
    return {
        "id": payment.pk,
        "invoice_id": payment.invoice_id,
        "payment_date": _date(payment.payment_date),
        "amount": _money(payment.amount),
        "payment_method": payment.payment_method,
        "payment_source": payment.payment_source,
        "trust_transaction_id": payment.trust_transaction_id,
        "notes": payment.notes,
    }


def trust_account_to_dict(account):
    return {
        "id": account.pk,
        "account_name": account.account_name,
        "bank_name": account.bank_name,
        "account_number_last4": account.account_number_last4,
        "currency": account.currency,
        "current_balance": _money(account.current_balance),
    }


def trust_transaction_to_dict(tx):
    return {
        "id": tx.pk,
        "trust_account_id": tx.trust_account_id,
        "client_id": tx.client_id,
        "matter_id": tx.matter_id,
        "transaction_type": tx.transaction_type,
        "amount": _money(tx.amount),
        "balance_after": _money(tx.balance_after),
        "description": tx.description,
        "reference_number": tx.reference_number,
        "related_invoice_id": tx.related_invoice_id,
        "transaction_date": _date(tx.transaction_date),
    }


def trust_transfer_to_dict(transfer):
    return {
        "transaction": trust_transaction_to_dict(transfer.transaction),
        "payment": payment_to_dict(transfer.payment),
        "invoice": invoice_to_dict(transfer.invoice),
    }


def client_balance_to_dict(balance):
    return {
        "client_id": balance.client_id,
        "client_name": balance.client_name,
        "balance": _money(balance.balance),
        "matter_balances": [
            {
                "matter_id": mb.matter_id,
                "matter_number": mb.matter_number,
                "matter_name": mb.matter_name,
                "balance": _money(mb.balance),
            }
            for mb in balance.matter_balances
        ],
    }


def reconciliation_to_dict(rec):
    return {
        "trust_account_id": rec.trust_account_id,
        "account_name": rec.account_name,
        "bank_balance": _money(rec.bank_balance),
        "ledger_balance": _money(rec.ledger_balance),
        "client_total_balance": _money(rec.client_total_balance),
        "is_balanced": rec.is_balanced,
        "difference": _money(rec.difference),
        "client_balances": [
            {
                "client_id": cb.client_id,
                "client_name": cb.client_name,
                "balance": _money(cb.balance),
            }
            for cb in rec.client_balances
        ],
    }
