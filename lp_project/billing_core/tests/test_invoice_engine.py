import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase, override_settings

from ..exceptions import Conflict, InvalidState, NotFound
from ..models import Expense, Invoice, InvoiceLineItem, Payment, TimeEntry
from ..services import (create_invoice, generate_invoice_number, get_invoice,
                        list_invoices, mark_overdue_invoices, record_payment,
                        recalculate_totals, send_invoice, update_invoice)
from ..services import invoicing
from .factories import (DAY, make_client, make_expense, make_firm,
                        make_matter, make_time_entry, make_user)


class InvoiceEngineTestCase(TestCase):
    def setUp(self):
        self.firm = make_firm(province="ON")
        self.lawyer = make_user("alice", firm=self.firm, first_name="Alice",
                                last_name="Smith")
        self.client_obj = make_client(self.firm)
        self.matter = make_matter(self.firm, self.client_obj)

    def manual(self, rate="100.00", **extra):
        line = {"description": "Flat fee", "rate": rate}
        line.update(extra)
        return line


class CreateInvoiceTests(InvoiceEngineTestCase):
    def test_single_time_entry_in_ontario(self):
        entry = make_time_entry(self.firm, self.matter, hours="2.0",
                                rate="250", user=self.lawyer,
                                description="Drafted agreement")

        invoice = create_invoice(self.firm.pk, self.client_obj.pk,
                                 time_entry_ids=[entry.pk],
                                 invoice_date=DAY, user=self.lawyer)

        self.assertEqual(invoice.status, Invoice.Status.DRAFT)
        self.assertEqual(invoice.province, "ON")
        self.assertEqual(invoice.subtotal, Decimal("500.00"))
        self.assertEqual(invoice.tax_hst, Decimal("65.00"))
        self.assertEqual(invoice.tax_gst + invoice.tax_pst + invoice.tax_qst,
                         Decimal("0.00"))
        self.assertEqual(invoice.total, Decimal("565.00"))
        self.assertEqual(invoice.balance_due, Decimal("565.00"))
        self.assertEqual(invoice.due_date, DAY + datetime.timedelta(days=30))

        line = invoice.line_items.get()
        self.assertEqual(line.line_type, InvoiceLineItem.LineType.TIME)
        self.assertEqual(line.description, "Alice Smith: Drafted agreement")
        self.assertEqual(line.quantity, Decimal("2.00"))
        self.assertEqual(line.rate, Decimal("250.00"))
        self.assertTrue(line.taxable)

        entry.refresh_from_db()
        self.assertTrue(entry.billed)
        self.assertEqual(entry.invoice, invoice)

    def test_lines_keep_source_then_caller_order(self):
        entry = make_time_entry(self.firm, self.matter, hours="1", rate="100")
        exempt = make_expense(self.firm, self.matter, amount="40.00",
                              tax_treatment="exempt", description="Filing")
        taxable = make_expense(self.firm, self.matter, amount="60.00")

        invoice = create_invoice(
            self.firm.pk, self.client_obj.pk,
            time_entry_ids=[entry.pk],
            expense_ids=[exempt.pk, taxable.pk],
            manual_lines=[self.manual("10.00", description="Second"),
                          self.manual("20.00", description="Third",
                                      taxable=False)],
            invoice_date=DAY,
        )

        lines = list(invoice.line_items.all())
        self.assertEqual(
            [(line.line_type, line.description, line.taxable)
             for line in lines],
            [
                ("time", "Research", True),
                ("expense", "Expense: Filing", False),
                ("expense", "Expense: Courier", True),
                ("custom", "Second", True),
                ("custom", "Third", False),
            ],
        )
        self.assertEqual([line.sort_order for line in lines], [0, 1, 2, 3, 4])
        # 100 + 40 + 60 + 10 + 20, HST on 100 + 60 + 10 only
        self.assertEqual(invoice.subtotal, Decimal("230.00"))
        self.assertEqual(invoice.tax_hst, Decimal("22.10"))
        self.assertEqual(invoice.total, Decimal("252.10"))

    def test_manual_line_amount_defaults_to_quantity_times_rate(self):
        invoice = create_invoice(
            self.firm.pk, self.client_obj.pk,
            manual_lines=[self.manual("33.333", quantity="3")],
            province="AB",
        )
        line = invoice.line_items.get()
        self.assertEqual(line.rate, Decimal("33.33"))
        self.assertEqual(line.amount, Decimal("99.99"))
        self.assertEqual(invoice.tax_gst, Decimal("5.00"))

    def test_province_override_and_due_days(self):
        invoice = create_invoice(
            self.firm.pk, self.client_obj.pk,
            manual_lines=[self.manual()], province="bc", due_days=15,
            invoice_date=DAY)
        self.assertEqual(invoice.province, "BC")
        self.assertEqual(invoice.tax_gst, Decimal("5.00"))
        self.assertEqual(invoice.tax_pst, Decimal("7.00"))
        self.assertEqual(invoice.due_date, DAY + datetime.timedelta(days=15))

    @override_settings(BILLING_DEFAULT_DUE_DAYS=45)
    def test_firm_terms_then_project_default(self):
        invoice = create_invoice(self.firm.pk, self.client_obj.pk,
                                 manual_lines=[self.manual()],
                                 invoice_date=DAY)
        self.assertEqual(invoice.due_date, DAY + datetime.timedelta(days=45))

        self.firm.invoice_due_days = 10
        self.firm.save()
        invoice = create_invoice(self.firm.pk, self.client_obj.pk,
                                 manual_lines=[self.manual()],
                                 invoice_date=DAY)
        self.assertEqual(invoice.due_date, DAY + datetime.timedelta(days=10))

    def test_empty_invoice_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk)
        self.assertFalse(Invoice.objects.exists())

    def test_billed_entry_cannot_be_billed_twice(self):
        entry = make_time_entry(self.firm, self.matter)
        create_invoice(self.firm.pk, self.client_obj.pk,
                       time_entry_ids=[entry.pk])

        with self.assertRaises(InvalidState):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           time_entry_ids=[entry.pk])
        self.assertEqual(Invoice.objects.count(), 1)

    def test_non_billable_entry_is_rejected(self):
        entry = make_time_entry(self.firm, self.matter, billable=False)
        with self.assertRaises(InvalidState):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           time_entry_ids=[entry.pk])

    def test_entry_from_another_clients_matter_is_rejected(self):
        other = make_client(self.firm, "Other Client")
        other_matter = make_matter(self.firm, other, number="M-2")
        entry = make_time_entry(self.firm, other_matter)
        good = make_time_entry(self.firm, self.matter)

        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           time_entry_ids=[good.pk, entry.pk])

        # nothing was consumed
        good.refresh_from_db()
        self.assertFalse(good.billed)
        self.assertFalse(Invoice.objects.exists())

    def test_entries_of_other_firms_are_not_found(self):
        other_firm = make_firm("Other LLP")
        other_client = make_client(other_firm)
        other_matter = make_matter(other_firm, other_client)
        expense = make_expense(other_firm, other_matter)

        with self.assertRaises(NotFound):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           expense_ids=[expense.pk])
        with self.assertRaises(NotFound):
            create_invoice(self.firm.pk, other_client.pk,
                           manual_lines=[self.manual()])

    def test_manual_line_validation(self):
        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           manual_lines=[{"description": "", "rate": "1"}])
        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           manual_lines=[self.manual(line_type="bogus")])
        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           manual_lines=[self.manual("-1")])

    def test_explicit_amount_cannot_disagree_with_quantity_and_rate(self):
        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           manual_lines=[self.manual(amount="-500.00")])
        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           manual_lines=[self.manual(amount="5.00")])
        self.assertFalse(Invoice.objects.exists())

        invoice = create_invoice(
            self.firm.pk, self.client_obj.pk,
            manual_lines=[self.manual(quantity="2", amount="200.00")])
        self.assertEqual(invoice.subtotal, Decimal("200.00"))

    def test_credit_lines_cannot_drive_the_total_negative(self):
        entry = make_time_entry(self.firm, self.matter, hours="1",
                                rate="100")
        with self.assertRaises(ValidationError):
            create_invoice(
                self.firm.pk, self.client_obj.pk,
                time_entry_ids=[entry.pk],
                manual_lines=[self.manual("100.00", amount="-1000.00")])

        entry.refresh_from_db()
        self.assertFalse(entry.billed)
        self.assertFalse(Invoice.objects.exists())

    def test_zero_total_invoice_is_rejected(self):
        entry = make_time_entry(self.firm, self.matter, hours="0",
                                rate="250")
        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           time_entry_ids=[entry.pk])
        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           manual_lines=[self.manual("0")])

        entry.refresh_from_db()
        self.assertFalse(entry.billed)
        self.assertFalse(Invoice.objects.exists())

    def test_taxable_flag_accepts_form_strings(self):
        invoice = create_invoice(
            self.firm.pk, self.client_obj.pk,
            manual_lines=[
                self.manual(description="Exempt", taxable="false"),
                self.manual(description="Off", taxable="0"),
                self.manual(description="Taxed", taxable="Yes"),
            ])
        self.assertEqual(
            [line.taxable for line in invoice.line_items.all()],
            [False, False, True])
        self.assertEqual(invoice.tax_hst, Decimal("13.00"))

        with self.assertRaises(ValidationError):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           manual_lines=[self.manual(taxable="maybe")])

    def test_ids_may_arrive_as_strings(self):
        entry = make_time_entry(self.firm, self.matter)
        expense = make_expense(self.firm, self.matter)

        invoice = create_invoice(
            self.firm.pk, self.client_obj.pk,
            time_entry_ids=[str(entry.pk), entry.pk],
            expense_ids=f" {expense.pk} ")

        self.assertEqual(invoice.line_items.count(), 2)
        entry.refresh_from_db()
        expense.refresh_from_db()
        self.assertTrue(entry.billed)
        self.assertTrue(expense.billed)

    def test_garbage_ids_are_rejected(self):
        for bad in (["abc"], [None], ["1.5"], [0], [True]):
            with self.subTest(ids=bad):
                with self.assertRaises(ValidationError):
                    create_invoice(self.firm.pk, self.client_obj.pk,
                                   time_entry_ids=bad,
                                   manual_lines=[self.manual()])
        self.assertFalse(Invoice.objects.exists())


class TimekeepingTests(InvoiceEngineTestCase):
    def test_work_must_sit_on_a_matter_of_the_same_firm(self):
        other_firm = make_firm("Other LLP")
        foreign_matter = make_matter(other_firm, make_client(other_firm))

        with self.assertRaises(ValidationError):
            make_time_entry(self.firm, foreign_matter)
        with self.assertRaises(ValidationError):
            make_expense(self.firm, foreign_matter)
        self.assertFalse(TimeEntry.objects.exists())
        self.assertFalse(Expense.objects.exists())

    def test_unknown_tax_treatment_is_rejected(self):
        with self.assertRaises(ValidationError):
            make_expense(self.firm, self.matter, tax_treatment="sometimes")


class InvoiceNumberTests(InvoiceEngineTestCase):
    def test_first_number_of_the_year(self):
        self.assertEqual(generate_invoice_number(self.firm.pk, 2025),
                         "INV-2025-0001")

    def test_numbers_increment_per_firm_and_year(self):
        first = create_invoice(self.firm.pk, self.client_obj.pk,
                               manual_lines=[self.manual()],
                               invoice_date=DAY)
        second = create_invoice(self.firm.pk, self.client_obj.pk,
                                manual_lines=[self.manual()],
                                invoice_date=DAY)
        next_year = create_invoice(self.firm.pk, self.client_obj.pk,
                                   manual_lines=[self.manual()],
                                   invoice_date=datetime.date(2026, 1, 2))

        self.assertEqual(first.invoice_number, "INV-2025-0001")
        self.assertEqual(second.invoice_number, "INV-2025-0002")
        self.assertEqual(next_year.invoice_number, "INV-2026-0001")

        other_firm = make_firm("Other LLP")
        self.assertEqual(generate_invoice_number(other_firm, 2025),
                         "INV-2025-0001")

    def test_numbering_follows_the_highest_suffix(self):
        create_invoice(self.firm.pk, self.client_obj.pk,
                       manual_lines=[self.manual()], invoice_date=DAY,
                       invoice_number="INV-2025-0041")
        create_invoice(self.firm.pk, self.client_obj.pk,
                       manual_lines=[self.manual()], invoice_date=DAY,
                       invoice_number="INV-2025-X")
        self.assertEqual(generate_invoice_number(self.firm.pk, 2025),
                         "INV-2025-0042")

    def test_supplied_duplicate_number_conflicts(self):
        create_invoice(self.firm.pk, self.client_obj.pk,
                       manual_lines=[self.manual()], invoice_number="A-1")
        with self.assertRaises(Conflict):
            create_invoice(self.firm.pk, self.client_obj.pk,
                           manual_lines=[self.manual()],
                           invoice_number="A-1")
        self.assertEqual(Invoice.objects.count(), 1)

    def test_number_collision_retries_with_a_fresh_number(self):
        create_invoice(self.firm.pk, self.client_obj.pk,
                       manual_lines=[self.manual()], invoice_date=DAY)

        # a concurrent writer took 0001 between generation and insert
        with mock.patch.object(
                invoicing, "generate_invoice_number",
                side_effect=["INV-2025-0001", "INV-2025-0002"]) as generate:
            invoice = create_invoice(self.firm.pk, self.client_obj.pk,
                                     manual_lines=[self.manual()],
                                     invoice_date=DAY)

        self.assertEqual(generate.call_count, 2)
        self.assertEqual(invoice.invoice_number, "INV-2025-0002")
        self.assertEqual(invoice.line_items.count(), 1)
        self.assertEqual(Invoice.objects.count(), 2)

    @override_settings(BILLING_INVOICE_NUMBER_RETRIES=2)
    def test_number_collisions_give_up_with_conflict(self):
        entry = make_time_entry(self.firm, self.matter)
        create_invoice(self.firm.pk, self.client_obj.pk,
                       manual_lines=[self.manual()], invoice_date=DAY)

        with mock.patch.object(invoicing, "generate_invoice_number",
                               return_value="INV-2025-0001") as generate:
            with self.assertRaises(Conflict):
                create_invoice(self.firm.pk, self.client_obj.pk,
                               time_entry_ids=[entry.pk], invoice_date=DAY)

        self.assertEqual(generate.call_count, 2)
        self.assertEqual(Invoice.objects.count(), 1)
        entry.refresh_from_db()
        self.assertFalse(entry.billed)


class InvoiceWorkflowTests(InvoiceEngineTestCase):
    def setUp(self):
        super().setUp()
        self.invoice = create_invoice(
            self.firm.pk, self.client_obj.pk,
            manual_lines=[self.manual("500.00")], invoice_date=DAY)

    def test_recalculate_is_idempotent(self):
        before = Invoice.objects.filter(pk=self.invoice.pk).values().get()
        recalculate_totals(self.firm.pk, self.invoice.pk)
        recalculate_totals(self.firm.pk, self.invoice.pk)
        after = Invoice.objects.filter(pk=self.invoice.pk).values().get()
        for field in ("subtotal", "tax_gst", "tax_pst", "tax_hst", "tax_qst",
                      "total", "balance_due", "status"):
            self.assertEqual(before[field], after[field])

    def test_recalculate_picks_up_new_lines(self):
        InvoiceLineItem.objects.create(
            invoice=self.invoice, line_type="custom", description="Extra",
            quantity=Decimal("1"), rate=Decimal("100"),
            amount=Decimal("100.00"), taxable=False, sort_order=1)

        invoice = recalculate_totals(self.firm.pk, self.invoice.pk)
        self.assertEqual(invoice.subtotal, Decimal("600.00"))
        self.assertEqual(invoice.tax_hst, Decimal("65.00"))
        self.assertEqual(invoice.total, Decimal("665.00"))
        self.assertEqual(invoice.total,
                         invoice.subtotal + invoice.tax_total)
        self.assertEqual(invoice.balance_due,
                         invoice.total - invoice.amount_paid)

    def test_paid_invoice_is_frozen(self):
        record_payment(self.firm.pk, self.invoice.pk, "565.00",
                       payment_method=Payment.Method.CHEQUE)
        with self.assertRaises(InvalidState):
            recalculate_totals(self.firm.pk, self.invoice.pk)
        with self.assertRaises(InvalidState):
            update_invoice(self.firm.pk, self.invoice.pk, notes="late edit")

    def test_send_moves_draft_to_sent_once(self):
        invoice = send_invoice(self.firm.pk, self.invoice.pk,
                               user=self.lawyer)
        self.assertEqual(invoice.status, Invoice.Status.SENT)
        with self.assertRaises(InvalidState):
            send_invoice(self.firm.pk, self.invoice.pk, user=self.lawyer)

    def test_illegal_transitions(self):
        self.invoice.transition_to(Invoice.Status.WRITTEN_OFF)
        for status in Invoice.Status.values:
            with self.assertRaises(InvalidState):
                self.invoice.transition_to(status)

        with self.assertRaises(InvalidState):
            Invoice(status=Invoice.Status.DRAFT).transition_to(
                Invoice.Status.OVERDUE, save=False)

    def test_update_invoice_dates_and_notes(self):
        invoice = update_invoice(
            self.firm.pk, self.invoice.pk, due_date="2025-05-01",
            notes="Net 45")
        invoice.refresh_from_db()
        self.assertEqual(invoice.due_date, datetime.date(2025, 5, 1))
        self.assertEqual(invoice.notes, "Net 45")

        with self.assertRaises(ValidationError), transaction.atomic():
            update_invoice(self.firm.pk, self.invoice.pk,
                           due_date="2025-01-01")

    def test_get_invoice_is_firm_scoped(self):
        invoice = get_invoice(self.firm.pk, self.invoice.pk)
        self.assertEqual(len(invoice.line_items.all()), 1)

        other_firm = make_firm("Other LLP")
        with self.assertRaises(NotFound):
            get_invoice(other_firm.pk, self.invoice.pk)

    def test_list_invoices_reports_outstanding(self):
        second = create_invoice(self.firm.pk, self.client_obj.pk,
                                manual_lines=[self.manual("100.00")],
                                invoice_date=DAY)
        record_payment(self.firm.pk, second.pk, "113.00",
                       payment_method=Payment.Method.CASH)

        page = list_invoices(self.firm.pk)
        self.assertEqual(page.total, 2)
        self.assertEqual(page.total_outstanding, Decimal("565.00"))

        page = list_invoices(self.firm.pk, status="paid")
        self.assertEqual([inv.pk for inv in page.items], [second.pk])

        with self.assertRaises(ValidationError):
            list_invoices(self.firm.pk, status="unknown")

    def test_mark_overdue_only_touches_open_invoices_past_due(self):
        send_invoice(self.firm.pk, self.invoice.pk)
        draft = create_invoice(self.firm.pk, self.client_obj.pk,
                               manual_lines=[self.manual()],
                               invoice_date=DAY)
        due = self.invoice.due_date

        self.assertEqual(mark_overdue_invoices(today=due), 0)
        self.assertEqual(
            mark_overdue_invoices(today=due + datetime.timedelta(days=1)), 1)

        self.invoice.refresh_from_db()
        draft.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.OVERDUE)
        self.assertEqual(draft.status, Invoice.Status.DRAFT)

        # overdue invoices still accept payments
        record_payment(self.firm.pk, self.invoice.pk, "100.00",
                       payment_method=Payment.Method.BANK_TRANSFER)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PARTIAL)
