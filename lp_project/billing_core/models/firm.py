from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from ..tax import Province


# ---------- Tenant / Firm ----------
class Firm(models.Model):

    """Tenant / law firm"""
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two firms can have the same slug
    )

    # Home province drives the default tax regime on new invoices
    province = models.CharField(
        max_length=2, choices=Province.choices, default=Province.ON
    )
    currency_code = models.CharField(max_length=3, default="CAD")

    # Default payment terms for new invoices, None = BILLING_DEFAULT_DUE_DAYS
    invoice_due_days = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


# ---------- FirmMembership ----------
class FirmMembership(
    models.Model
):  # Join model between User and Firm

    class Role(models.TextChoices):
        OWNER = "owner", "Owner"
        LAWYER = "lawyer", "Lawyer"
        BOOKKEEPER = "bookkeeper", "Bookkeeper"
        VIEWER = "viewer", "Viewer"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="firm_memberships",
    )
    firm = models.ForeignKey(
        Firm, on_delete=models.CASCADE, related_name="memberships"
    )
    role = models.CharField(
        max_length=20, choices=Role.choices, default=Role.VIEWER
    )

    # Suspend access without deleting the record
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # one membership per user per firm
        constraints = [
            models.UniqueConstraint(
                fields=["user", "firm"], name="uq_user_firm_membership"
            ),
        ]
        indexes = [
            models.Index(fields=["firm", "user"],
                         name="membership_firm_user_idx"),
        ]

    def __str__(self):
        return f"{self.user} @ {self.firm} ({self.role})"


# ---------- Client ----------
class Client(models.Model):

    class ClientType(models.TextChoices):
        INDIVIDUAL = "individual", "Individual"
        ORGANIZATION = "organization", "Organization"

    firm = models.ForeignKey(
        Firm, on_delete=models.CASCADE, related_name="clients")
    name = models.CharField(max_length=255)
    email = models.EmailField(null=True, blank=True)
    client_type = models.CharField(
        max_length=20,
        choices=ClientType.choices,
        default=ClientType.INDIVIDUAL,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["firm", "name"],
                         name="client_firm_name_idx"),
        ]

    def __str__(self):
        return self.name


# ---------- Matter ----------
class Matter(models.Model):

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        PENDING = "pending", "Pending"
        CLOSED = "closed", "Closed"
        ARCHIVED = "archived", "Archived"

    firm = models.ForeignKey(
        Firm, on_delete=models.CASCADE, related_name="matters")
    client = models.ForeignKey(
        Client, on_delete=models.PROTECT, related_name="matters")
    matter_number = models.CharField(max_length=50)
    name = models.CharField(max_length=255)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        constraints = [
            # Matter numbers are unique inside a firm only
            models.UniqueConstraint(
                fields=["firm", "matter_number"],
                name="uq_matter_firm_number"
            ),
        ]

    def __str__(self):
        return f"{self.matter_number} {self.name}"

    def clean(self):
        # Prevent cross-firm contamination
        if self.client_id and self.client.firm_id != self.firm_id:
            raise ValidationError("Client must belong to the same firm.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
