import json
from functools import wraps

from django.core.exceptions import (ObjectDoesNotExist, PermissionDenied,
                                    ValidationError)
from django.http import JsonResponse, QueryDict
from django.views.decorators.http import (require_GET, require_http_methods,
                                          require_POST)

from . import responses
from .exceptions import Conflict
from .services import (create_invoice, create_trust_account,
                       generate_invoice_number, get_account,
                       get_client_trust_balance, get_invoice, list_invoices,
                       list_transactions, list_trust_accounts, record_deposit,
                       record_payment, record_refund, send_invoice,
                       three_way_reconciliation, transfer_trust_to_fees,
                       update_invoice, update_trust_account)


def _error(message, status):
    return JsonResponse({"ok": False, "error": message}, status=status)


def json_errors(view):
    """Translate billing errors into JSON responses with HTTP status codes."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ObjectDoesNotExist as e:
            return _error(str(e) or "Not found", 404)
        except PermissionDenied as e:
            return _error(str(e) or "Forbidden", 403)
        except Conflict as e:
            return _error("; ".join(e.messages), 409)
        except ValidationError as e:
            if hasattr(e, "error_dict"):
                return JsonResponse(
                    {"ok": False, "error": e.message_dict}, status=400)
            return _error("; ".join(e.messages), 400)
    return wrapper


def _firm(request):
    # Set by CurrentFirmMiddleware
    firm = getattr(request, "firm", None)
    if firm is None:
        raise PermissionDenied("No active firm for this user")
    return firm


def _payload(request):
    if request.content_type == "application/json":
        try:
            return json.loads(request.body or b"{}")
        except ValueError:
            raise ValidationError("Malformed JSON body")
    if request.method == "POST":
        return request.POST
    # Django only parses form bodies for POST
    return QueryDict(request.body)


def _id_list(data, key):
    if isinstance(data, QueryDict):
        return data.getlist(key)
    return data.get(key)


# ----------------------------
# Invoices
# ----------------------------
@require_http_methods(["GET", "POST"])
@json_errors
def invoice_list_view(request):
    firm = _firm(request)
    if request.method == "POST":
        data = _payload(request)
        invoice = create_invoice(
            firm.pk,
            data.get("client_id"),
            time_entry_ids=_id_list(data, "time_entry_ids"),
            expense_ids=_id_list(data, "expense_ids"),
            manual_lines=data.get("manual_lines"),
            invoice_date=data.get("invoice_date"),
            due_days=data.get("due_days"),
            province=data.get("province"),
            notes=data.get("notes"),
            invoice_number=data.get("invoice_number"),
            user=request.user,
        )
        return JsonResponse(
            responses.invoice_to_dict(invoice, include_lines=True),
            status=201)

    page = list_invoices(
        firm.pk,
        client_id=request.GET.get("client_id") or None,
        status=request.GET.get("status") or None,
        page=request.GET.get("page", 1),
        limit=request.GET.get("limit", 20),
    )
    return JsonResponse(responses.invoice_page_to_dict(page))


@require_http_methods(["GET", "PUT", "PATCH"])
@json_errors
def invoice_detail_view(request, invoice_id):
    firm = _firm(request)
    if request.method in ("PUT", "PATCH"):
        data = _payload(request)
        update_invoice(
            firm.pk,
            invoice_id,
            invoice_date=data.get("invoice_date"),
            due_date=data.get("due_date"),
            notes=data.get("notes"),
            user=request.user,
        )
    invoice = get_invoice(firm.pk, invoice_id)
    return JsonResponse(responses.invoice_to_dict(invoice, include_lines=True))


@require_GET
@json_errors
def invoice_next_number_view(request):
    year = request.GET.get("year") or None
    if year is not None:
        try:
            year = int(year)
        except ValueError:
            raise ValidationError({"year": f"Invalid year: {year!r}"})
    return JsonResponse({
        "invoice_number": generate_invoice_number(_firm(request).pk, year)})


@require_POST
@json_errors
def send_invoice_view(request, invoice_id):
    invoice = send_invoice(_firm(request).pk, invoice_id, user=request.user)
    return JsonResponse(responses.invoice_to_dict(invoice))


@require_POST
@json_errors
def record_payment_view(request, invoice_id):
    data = _payload(request)
    payment = record_payment(
        _firm(request).pk,
        invoice_id,
        data.get("amount"),
        payment_method=data.get("payment_method"),
        payment_source=data.get("payment_source", "external"),
        payment_date=data.get("payment_date"),
        trust_transaction_id=data.get("trust_transaction_id"),
        notes=data.get("notes"),
        user=request.user,
    )
    return JsonResponse(responses.payment_to_dict(payment), status=201)


# ----------------------------
# Trust
# ----------------------------
@require_http_methods(["GET", "POST"])
@json_errors
def trust_account_list_view(request):
    firm = _firm(request)
    if request.method == "POST":
        data = _payload(request)
        account = create_trust_account(
            firm.pk,
            data.get("account_name"),
            bank_name=data.get("bank_name"),
            account_number_last4=data.get("account_number_last4"),
            currency=data.get("currency") or "CAD",
            user=request.user,
        )
        return JsonResponse(
            responses.trust_account_to_dict(account), status=201)

    return JsonResponse({"data": [
        responses.trust_account_to_dict(account)
        for account in list_trust_accounts(firm.pk)
    ]})


@require_http_methods(["GET", "PUT", "PATCH"])
@json_errors
def trust_account_detail_view(request, account_id):
    firm = _firm(request)
    if request.method == "GET":
        account = get_account(firm.pk, account_id)
    else:
        data = _payload(request)
        account = update_trust_account(
            firm.pk,
            account_id,
            account_name=data.get("account_name"),
            bank_name=data.get("bank_name"),
            account_number_last4=data.get("account_number_last4"),
            user=request.user,
        )
    return JsonResponse(responses.trust_account_to_dict(account))


@require_POST
@json_errors
def trust_deposit_view(request, account_id):
    data = _payload(request)
    tx = record_deposit(
        _firm(request).pk,
        request.user,
        account_id,
        data.get("client_id"),
        data.get("amount"),
        data.get("transaction_date"),
        matter_id=data.get("matter_id"),
        description=data.get("description"),
        reference_number=data.get("reference_number"),
    )
    return JsonResponse(responses.trust_transaction_to_dict(tx), status=201)


@require_POST
@json_errors
def trust_refund_view(request, account_id):
    data = _payload(request)
    tx = record_refund(
        _firm(request).pk,
        request.user,
        account_id,
        data.get("client_id"),
        data.get("amount"),
        data.get("transaction_date"),
        matter_id=data.get("matter_id"),
        description=data.get("description"),
        reference_number=data.get("reference_number"),
    )
    return JsonResponse(responses.trust_transaction_to_dict(tx), status=201)


@require_POST
@json_errors
def trust_transfer_view(request, account_id):
    data = _payload(request)
    transfer = transfer_trust_to_fees(
        _firm(request).pk,
        request.user,
        account_id,
        data.get("client_id"),
        data.get("invoice_id"),
        data.get("amount"),
        data.get("transaction_date"),
        matter_id=data.get("matter_id"),
        description=data.get("description"),
    )
    return JsonResponse(
        responses.trust_transfer_to_dict(transfer), status=201)


@require_GET
@json_errors
def trust_transactions_view(request, account_id):
    page = list_transactions(
        _firm(request).pk,
        account_id=account_id,
        client_id=request.GET.get("client_id") or None,
        matter_id=request.GET.get("matter_id") or None,
        page=request.GET.get("page", 1),
        limit=request.GET.get("limit", 50),
    )
    return JsonResponse({
        "data": [responses.trust_transaction_to_dict(tx) for tx in page.items],
        "total": page.total,
        "page": page.page,
        "limit": page.limit,
    })


@require_GET
@json_errors
def client_trust_balance_view(request, client_id):
    balance = get_client_trust_balance(
        _firm(request).pk, client_id,
        account_id=request.GET.get("account_id") or None)
    return JsonResponse(responses.client_balance_to_dict(balance))


@require_GET
@json_errors
def reconciliation_view(request, account_id):
    if "bank_balance" not in request.GET:
        raise ValidationError({"bank_balance": "bank_balance is required"})
    rec = three_way_reconciliation(
        _firm(request).pk, account_id, request.GET["bank_balance"])
    return JsonResponse(responses.reconciliation_to_dict(rec))
