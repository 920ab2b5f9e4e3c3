from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..exceptions import InvalidState
from ..managers import TenantManager
from ..money import ZERO, round_money, sum_money
from ..tax import Province, calculate_taxes, tax_breakdown
from .firm import Client, Firm
from .timekeeping import Expense, TimeEntry


class Invoice(models.Model):  # Represents a client invoice

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        VIEWED = "viewed", "Viewed"
        PARTIAL = "partial", "Partially paid"
        PAID = "paid", "Paid"
        OVERDUE = "overdue", "Overdue"
        WRITTEN_OFF = "written_off", "Written off"

    # Current state vs. allowed next states
    TRANSITIONS = {
        Status.DRAFT: {Status.SENT, Status.PARTIAL, Status.PAID,
                       Status.WRITTEN_OFF},
        Status.SENT: {Status.VIEWED, Status.PARTIAL, Status.PAID,
                      Status.OVERDUE, Status.WRITTEN_OFF},
        Status.VIEWED: {Status.PARTIAL, Status.PAID, Status.OVERDUE,
                        Status.WRITTEN_OFF},
        Status.PARTIAL: {Status.PAID, Status.OVERDUE, Status.WRITTEN_OFF},
        Status.OVERDUE: {Status.PARTIAL, Status.PAID, Status.WRITTEN_OFF},
        Status.PAID: set(),
        Status.WRITTEN_OFF: set(),
    }
    PAYABLE_STATUSES = frozenset({Status.DRAFT, Status.SENT, Status.VIEWED,
                                  Status.PARTIAL, Status.OVERDUE})

    firm = models.ForeignKey(
        Firm, on_delete=models.CASCADE, related_name="invoices")
    client = models.ForeignKey(
        Client, on_delete=models.PROTECT, related_name="invoices")

    # human-readable (e.g. "INV-2025-0001")
    invoice_number = models.CharField(max_length=50)
    invoice_date = models.DateField()
    due_date = models.DateField()
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.DRAFT
    )

    # Tax regime the totals were computed under
    province = models.CharField(
        max_length=2, choices=Province.choices, default=Province.ON
    )

    subtotal = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"))
    tax_gst = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    # Also carries QST when BILLING_QST_IN_PST is on
    tax_pst = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_hst = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_qst = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"))
    amount_paid = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"))
    balance_due = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"))
    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["firm", "client"],
                         name="invoice_firm_client_idx"),
            models.Index(fields=["firm", "status"],
                         name="invoice_firm_status_idx"),
        ]
        constraints = [
            # Within one firm, each invoice number must be unique
            models.UniqueConstraint(
                fields=["firm", "invoice_number"],
                name="uq_invoice_firm_number"
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number or self.pk}"

    @property
    def tax_total(self) -> Decimal:
        return round_money(
            self.tax_gst + self.tax_pst + self.tax_hst + self.tax_qst)

    """ Keep stored totals in sync with the line items """

    def recalc_totals(self, lines=None):
        """Recompute subtotal, taxes, total and balance due in memory."""
        if lines is None:
            lines = list(self.line_items.all()) if self.pk else []

        self.subtotal = sum_money(line.amount for line in lines)
        taxable = sum_money(line.amount for line in lines if line.taxable)

        calc = calculate_taxes(taxable, self.province)
        self.tax_gst = calc.gst
        self.tax_pst = calc.pst
        self.tax_hst = calc.hst
        self.tax_qst = calc.qst
        if calc.qst and getattr(settings, "BILLING_QST_IN_PST", False):
            # Stored data from the legacy schema keeps QST in the PST column
            self.tax_pst = calc.qst
            self.tax_qst = ZERO

        self.total = round_money(
            self.subtotal + self.tax_gst + self.tax_pst
            + self.tax_hst + self.tax_qst
        )
        self.balance_due = round_money(self.total - self.amount_paid)
        return self

    def tax_breakdown(self):
        return tax_breakdown(
            province=self.province,
            gst=self.tax_gst,
            pst=self.tax_pst,
            hst=self.tax_hst,
            qst=self.tax_qst,
        )

    def transition_to(self, new_status, save=True):
        # Look up what states are allowed from current self.status
        if new_status not in self.TRANSITIONS.get(self.status, set()):
            raise InvalidState(
                f"Cannot go from {self.status} to {new_status}")
        self.status = new_status
        if save:
            self.save(update_fields=["status", "updated_at"])
        return self

    def apply_payment(self, amount):
        """Add a payment to amount_paid and move status to partial/paid."""
        if self.status == self.Status.PAID:
            raise InvalidState("Invoice is already fully paid")
        self.amount_paid = round_money(self.amount_paid + amount)
        self.balance_due = round_money(self.total - self.amount_paid)
        new_status = (self.Status.PAID if self.balance_due <= ZERO
                      else self.Status.PARTIAL)
        if new_status != self.status:
            self.transition_to(new_status, save=False)
        self.save(update_fields=[
            "amount_paid", "balance_due", "status", "updated_at"])
        return self

    def clean(self):
        if self.client_id and self.client.firm_id != self.firm_id:
            raise ValidationError("Client must belong to the same firm.")
        if self.due_date and self.invoice_date and (
                self.due_date < self.invoice_date):
            raise ValidationError("Due date cannot be before invoice date.")

    def save(self, *args, **kwargs):
        # invoice_number uniqueness is left to the database so concurrent
        # creators get an IntegrityError the caller can retry on
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)


class InvoiceLineItem(models.Model):  # One billed unit of work or cost

    class LineType(models.TextChoices):
        TIME = "time", "Time"
        EXPENSE = "expense", "Expense"
        FLAT_FEE = "flat_fee", "Flat fee"
        CUSTOM = "custom", "Custom"

    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="line_items")
    line_type = models.CharField(max_length=20, choices=LineType.choices)
    description = models.TextField()
    # quantity × rate = amount
    quantity = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("1.00"))
    rate = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    taxable = models.BooleanField(default=True)

    # Source record, if the line was generated
    time_entry = models.ForeignKey(
        TimeEntry, null=True, blank=True, on_delete=models.PROTECT)
    expense = models.ForeignKey(
        Expense, null=True, blank=True, on_delete=models.PROTECT)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]
        indexes = [
            models.Index(fields=["invoice", "sort_order"],
                         name="line_item_invoice_sort_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0) & models.Q(rate__gte=0),
                name="line_item_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.invoice} - {self.description} ({self.amount})"


class Payment(models.Model):  # Money received against an invoice

    class Method(models.TextChoices):
        BANK_TRANSFER = "bank_transfer", "Bank transfer"
        CREDIT_CARD = "credit_card", "Credit card"
        CHEQUE = "cheque", "Cheque"
        CASH = "cash", "Cash"
        TRUST_TRANSFER = "trust_transfer", "Trust transfer"

    class Source(models.TextChoices):
        EXTERNAL = "external", "External"
        TRUST = "trust", "Trust"

    firm = models.ForeignKey(Firm, on_delete=models.CASCADE)
    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="payments")
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=Method.choices)
    payment_source = models.CharField(
        max_length=10, choices=Source.choices, default=Source.EXTERNAL)
    # Set iff payment_source == trust
    trust_transaction = models.OneToOneField(
        "TrustTransaction",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payment",
    )
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["firm", "invoice"],
                         name="payment_firm_invoice_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_positive_amount",
            ),
        ]

    def __str__(self):
        return f"{self.invoice} {self.payment_date} {self.amount}"

    def clean(self):
        if self.invoice_id and self.invoice.firm_id != self.firm_id:
            raise ValidationError("Invoice must belong to the same firm.")
        from_trust = self.payment_source == self.Source.TRUST
        if from_trust != bool(self.trust_transaction_id):
            raise ValidationError(
                "Trust payments must reference exactly one trust transaction.")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvalidState("Payments are immutable.")
        self.full_clean()
        return super().save(*args, **kwargs)
