from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..exceptions import InvalidState
from ..managers import TenantManager, TrustTransactionManager
from .firm import Client, Firm, Matter


# ---------- Trust (client funds held by the firm) ----------


class TrustAccount(models.Model):  # Bank account holding client money
    firm = models.ForeignKey(
        Firm, on_delete=models.CASCADE, related_name="trust_accounts")
    account_name = models.CharField(max_length=255)
    bank_name = models.CharField(max_length=255, null=True, blank=True)
    # Partial account number for display/security
    account_number_last4 = models.CharField(
        max_length=4, null=True, blank=True)
    currency = models.CharField(max_length=3, default="CAD")

    # Denormalized sum of every signed transaction on the account.
    # Only the trust ledger service writes it, under a row lock.
    current_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["firm", "account_name"],
                name="uq_firm_trust_account_name"
            ),
        ]
        indexes = [
            models.Index(fields=["firm", "account_name"],
                         name="trust_account_firm_name_idx"),
        ]

    def __str__(self):
        if self.account_number_last4:
            return f"{self.account_name} (****{self.account_number_last4})"
        return self.account_name


class TrustTransaction(models.Model):  # Append-only ledger entry

    class Type(models.TextChoices):
        DEPOSIT = "deposit", "Deposit"
        TRANSFER_TO_FEES = "transfer_to_fees", "Transfer to fees"
        REFUND = "refund", "Refund"
        INTEREST = "interest", "Interest"
        BANK_CHARGE = "bank_charge", "Bank charge"

    # Types that increase the client's trust balance; everything else debits
    CREDIT_TYPES = frozenset({Type.DEPOSIT, Type.INTEREST})

    firm = models.ForeignKey(Firm, on_delete=models.CASCADE)
    # prevent TrustAccount deletion if transactions exist
    trust_account = models.ForeignKey(
        TrustAccount, on_delete=models.PROTECT, related_name="transactions")
    client = models.ForeignKey(
        Client, on_delete=models.PROTECT, related_name="trust_transactions")
    matter = models.ForeignKey(
        Matter,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="trust_transactions",
    )
    transaction_type = models.CharField(max_length=20, choices=Type.choices)
    # Always positive, the type carries the sign
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    # Client's running balance in this account right after this entry
    balance_after = models.DecimalField(max_digits=14, decimal_places=2)
    description = models.TextField(null=True, blank=True)
    reference_number = models.CharField(max_length=100, null=True, blank=True)
    related_invoice = models.ForeignKey(
        "Invoice",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="trust_transactions",
    )
    transaction_date = models.DateField()
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TrustTransactionManager()

    class Meta:
        indexes = [
            models.Index(fields=["firm", "trust_account", "client"],
                         name="trust_tx_firm_acct_client_idx"),
            models.Index(fields=["firm", "transaction_date"],
                         name="trust_tx_firm_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="trust_tx_positive_amount",
            ),
            models.CheckConstraint(
                condition=models.Q(balance_after__gte=0),
                name="trust_tx_non_negative_balance",
            ),
        ]

    def __str__(self):
        return (f"{self.transaction_date} {self.get_transaction_type_display()}"
                f" {self.amount} (bal {self.balance_after})")

    @property
    def is_credit(self) -> bool:
        return self.transaction_type in self.CREDIT_TYPES

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_credit else -self.amount

    def clean(self):
        # Tenancy checks
        if self.trust_account_id and self.trust_account.firm_id != self.firm_id:
            raise ValidationError(
                "Trust account must belong to the same firm.")
        if self.client_id and self.client.firm_id != self.firm_id:
            raise ValidationError("Client must belong to the same firm.")
        if self.matter_id and self.matter.client_id != self.client_id:
            raise ValidationError("Matter must belong to the same client.")
        if self.related_invoice_id and (
                self.related_invoice.firm_id != self.firm_id):
            raise ValidationError("Invoice must belong to the same firm.")

    def save(self, *args, **kwargs):
        # Ledger rows are never edited; corrections are new entries
        if not self._state.adding:
            raise InvalidState("Trust transactions are immutable.")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidState("Trust transactions cannot be deleted.")
