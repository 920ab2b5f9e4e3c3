from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from ..money import round_money
from .firm import Firm, Matter


# ---------- Unbilled work ----------
class TimeEntry(models.Model):  # Hours recorded by a staff member on a matter
    firm = models.ForeignKey(Firm, on_delete=models.CASCADE)
    matter = models.ForeignKey(
        Matter, on_delete=models.PROTECT, related_name="time_entries")
    # Staff member who did the work (name appears on the invoice line)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="time_entries",
    )
    entry_date = models.DateField()
    hours = models.DecimalField(max_digits=7, decimal_places=2)
    rate = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.TextField()

    # billable = chargeable to the client, billed = already on an invoice
    billable = models.BooleanField(default=True)
    billed = models.BooleanField(default=False)
    invoice = models.ForeignKey(
        "Invoice",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="time_entries",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name_plural = "time entries"
        indexes = [
            models.Index(fields=["firm", "matter"],
                         name="time_entry_firm_matter_idx"),
            models.Index(fields=["firm", "billed"],
                         name="time_entry_firm_billed_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(hours__gte=0) & models.Q(rate__gte=0),
                name="time_entry_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.entry_date} {self.hours}h @ {self.rate}"

    @property
    def amount(self) -> Decimal:
        return round_money(self.hours * self.rate)

    def clean(self):
        if self.matter_id and self.matter.firm_id != self.firm_id:
            raise ValidationError("Matter must belong to the same firm.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class Expense(models.Model):  # Disbursement recoverable from the client

    class TaxTreatment(models.TextChoices):
        TAXABLE = "taxable", "Taxable"
        EXEMPT = "exempt", "Exempt"
        ZERO_RATED = "zero_rated", "Zero rated"

    firm = models.ForeignKey(Firm, on_delete=models.CASCADE)
    matter = models.ForeignKey(
        Matter, on_delete=models.PROTECT, related_name="expenses")
    expense_date = models.DateField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.TextField()
    billable = models.BooleanField(default=True)
    billed = models.BooleanField(default=False)
    tax_treatment = models.CharField(
        max_length=20,
        choices=TaxTreatment.choices,
        default=TaxTreatment.TAXABLE,
    )
    invoice = models.ForeignKey(
        "Invoice",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="expenses",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["firm", "matter"],
                         name="expense_firm_matter_idx"),
            models.Index(fields=["firm", "billed"],
                         name="expense_firm_billed_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="expense_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.expense_date} {self.description} ({self.amount})"

    @property
    def is_taxable(self) -> bool:
        return self.tax_treatment == self.TaxTreatment.TAXABLE

    def clean(self):
        if self.matter_id and self.matter.firm_id != self.firm_id:
            raise ValidationError("Matter must belong to the same firm.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
