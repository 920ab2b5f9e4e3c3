from decimal import Decimal
from io import StringIO
from unittest import mock

import pytest
from django.contrib import messages
from django.contrib.admin.sites import AdminSite
from django.core.exceptions import PermissionDenied
from django.core.management import call_command
from django.test import RequestFactory, TestCase

from ..admin import (InvoiceAdmin, InvoiceLineItemInline, TrustAccountAdmin,
                     TrustTransactionAdmin, send_selected_invoices)
from ..models import (Client, Firm, Invoice, InvoiceLineItem, Payment,
                      TrustAccount, TrustTransaction)
from ..services import (client_balance, create_invoice, record_deposit,
                        record_payment, send_invoice)
from ..tasks import mark_overdue_invoices
from .factories import DAY, make_account, make_client, make_firm, make_user


def fees(firm, client, rate="100.00"):
    return create_invoice(
        firm.pk, client.pk, invoice_date=DAY,
        manual_lines=[{"description": "Fees", "rate": rate}])


# ----------------------------
# Celery task
# ----------------------------
@pytest.mark.django_db
def test_overdue_task_sweeps_open_invoices():
    firm = make_firm()
    client = make_client(firm)
    invoice = fees(firm, client)
    send_invoice(firm.pk, invoice.pk)

    assert mark_overdue_invoices("2025-05-01") == 1
    invoice.refresh_from_db()
    assert invoice.status == Invoice.Status.OVERDUE

    # nothing left to sweep
    assert mark_overdue_invoices("2025-05-01") == 0


# ----------------------------
# Management commands
# ----------------------------
@pytest.mark.django_db
def test_seed_demo_builds_a_consistent_tenant():
    out = StringIO()
    call_command("seed_demo", stdout=out)

    firm = Firm.objects.get(slug="demo-law-llp")
    assert firm.memberships.get().user.username == "demo"

    invoice = Invoice.objects.for_firm(firm).get()
    # 2.5h @ 250 + 45 expense, 13% HST
    assert invoice.subtotal == Decimal("670.00")
    assert invoice.tax_hst == Decimal("87.10")
    assert invoice.total == Decimal("757.10")
    assert invoice.balance_due == Decimal("257.10")
    assert invoice.status == Invoice.Status.PARTIAL

    account = TrustAccount.objects.for_firm(firm).get()
    client = Client.objects.for_firm(firm).get()
    assert client_balance(firm, account, client) == Decimal("4500.00")
    assert account.current_balance == Decimal("4500.00")
    assert "Demo data seeded successfully!" in out.getvalue()


@pytest.mark.django_db
def test_seed_demo_is_a_no_op_the_second_time():
    call_command("seed_demo", stdout=StringIO())
    out = StringIO()
    call_command("seed_demo", stdout=out)

    assert "already exists" in out.getvalue()
    assert Invoice.objects.count() == 1
    assert TrustTransaction.objects.count() == 2


@pytest.mark.django_db
def test_demo_tenant_in_another_province():
    call_command("create_demo_tenant", firm_name="Prairie Law",
                 province="AB", username="prairie", stdout=StringIO())

    invoice = Invoice.objects.get(firm__slug="prairie-law")
    assert invoice.province == "AB"
    assert invoice.tax_gst == Decimal("33.50")
    assert invoice.total == Decimal("703.50")


# ----------------------------
# Admin
# ----------------------------
class AdminTests(TestCase):
    def setUp(self):
        self.site = AdminSite()
        self.firm = make_firm("Firm A")
        self.other_firm = make_firm("Firm B")
        self.user = make_user("alice", firm=self.firm, is_staff=True)
        self.client_obj = make_client(self.firm)

        self.request = RequestFactory().get("/admin/")
        self.request.user = self.user
        self.request.firm = self.firm

    def test_ledger_admin_is_read_only(self):
        account = make_account(self.firm)
        tx = record_deposit(self.firm.pk, self.user, account.pk,
                            self.client_obj.pk, "10.00", DAY)
        ma = TrustTransactionAdmin(TrustTransaction, self.site)

        self.assertFalse(ma.has_add_permission(self.request))
        self.assertFalse(ma.has_delete_permission(self.request, tx))
        self.assertTrue(ma.has_change_permission(self.request, tx))
        self.assertEqual(ma.get_actions(self.request), {})
        self.assertIn("amount", ma.get_readonly_fields(self.request, tx))
        self.assertIn("balance_after",
                      ma.get_readonly_fields(self.request, tx))
        with self.assertRaises(PermissionDenied):
            ma.save_model(self.request, tx, None, True)

    def test_admin_querysets_are_firm_scoped(self):
        mine = make_account(self.firm)
        make_account(self.other_firm)
        ma = TrustAccountAdmin(TrustAccount, self.site)

        self.assertEqual(list(ma.get_queryset(self.request)), [mine])

        self.request.firm = None
        self.assertFalse(ma.get_queryset(self.request).exists())

    def test_trust_account_with_history_cannot_be_deleted(self):
        account = make_account(self.firm)
        ma = TrustAccountAdmin(TrustAccount, self.site)
        self.assertIn("current_balance",
                      ma.get_readonly_fields(self.request, account))

        record_deposit(self.firm.pk, self.user, account.pk,
                       self.client_obj.pk, "10.00", DAY)
        self.assertFalse(ma.has_delete_permission(self.request, account))

    def test_paid_invoice_is_frozen_in_admin(self):
        invoice = fees(self.firm, self.client_obj)
        ma = InvoiceAdmin(Invoice, self.site)
        self.assertIn("total", ma.get_readonly_fields(self.request, invoice))
        self.assertNotIn("notes",
                         ma.get_readonly_fields(self.request, invoice))

        record_payment(self.firm.pk, invoice.pk, "113.00",
                       payment_method=Payment.Method.CASH)
        invoice.refresh_from_db()
        readonly = ma.get_readonly_fields(self.request, invoice)
        self.assertIn("notes", readonly)
        self.assertIn("due_date", readonly)
        self.assertFalse(ma.has_delete_permission(self.request, invoice))

    def test_send_action_goes_through_the_service(self):
        draft = fees(self.firm, self.client_obj)
        already_sent = fees(self.firm, self.client_obj)
        send_invoice(self.firm.pk, already_sent.pk)
        ma = InvoiceAdmin(Invoice, self.site)

        with mock.patch.object(ma, "message_user") as message_user:
            send_selected_invoices(
                ma, self.request,
                Invoice.objects.filter(pk__in=[draft.pk, already_sent.pk])
                .order_by("pk"))

        draft.refresh_from_db()
        self.assertEqual(draft.status, Invoice.Status.SENT)

        levels = [call.kwargs["level"] for call in
                  message_user.call_args_list]
        self.assertEqual(levels, [messages.ERROR, messages.WARNING])
        self.assertIn("Sent 1 of 2",
                      message_user.call_args_list[-1].args[1])

    def test_line_edits_refresh_the_stored_totals(self):
        invoice = fees(self.firm, self.client_obj)
        ma = InvoiceAdmin(Invoice, self.site)
        form = mock.Mock(instance=invoice)

        # inline row: the typed amount is replaced by quantity x rate
        added = InvoiceLineItem(
            invoice=invoice, line_type="custom", description="Extra",
            quantity=Decimal("3"), rate=Decimal("10.00"),
            amount=Decimal("999.00"), taxable=True, sort_order=1)
        formset = mock.Mock(model=InvoiceLineItem, deleted_objects=[])
        formset.save.return_value = [added]

        ma.save_related(self.request, form, [formset], True)

        form.save_m2m.assert_called_once_with()
        formset.save.assert_called_once_with(commit=False)
        added.refresh_from_db()
        self.assertEqual(added.amount, Decimal("30.00"))
        invoice.refresh_from_db()
        self.assertEqual(invoice.subtotal, Decimal("130.00"))
        self.assertEqual(invoice.tax_hst, Decimal("16.90"))
        self.assertEqual(invoice.total, Decimal("146.90"))
        self.assertEqual(invoice.balance_due, Decimal("146.90"))

        # deleting a row through the inline
        formset = mock.Mock(model=InvoiceLineItem, deleted_objects=[added])
        formset.save.return_value = []
        ma.save_related(self.request, form, [formset], True)
        invoice.refresh_from_db()
        self.assertEqual(invoice.total, Decimal("113.00"))

    def test_invoice_lines_lock_once_sent(self):
        root = make_user("root", is_staff=True, is_superuser=True)
        self.request.user = root
        inline = InvoiceLineItemInline(Invoice, self.site)
        invoice = fees(self.firm, self.client_obj)

        self.assertTrue(inline.has_change_permission(self.request, invoice))
        self.assertTrue(inline.has_add_permission(self.request, invoice))
        self.assertIn("amount", inline.get_readonly_fields(self.request))

        send_invoice(self.firm.pk, invoice.pk)
        invoice.refresh_from_db()
        self.assertFalse(inline.has_change_permission(self.request, invoice))
        self.assertFalse(inline.has_add_permission(self.request, invoice))
        self.assertFalse(inline.has_delete_permission(self.request, invoice))
