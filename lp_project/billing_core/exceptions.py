from django.core.exceptions import ObjectDoesNotExist, ValidationError


class NotFound(ObjectDoesNotExist):
    """Raised when an entity is missing or belongs to another firm."""
    pass


class BillingError(ValidationError):
    """Base for business-rule violations detected by the billing core."""

    default_message = "Billing rule violated"

    def __init__(self, message=None, *args, **kwargs):
        super().__init__(message or self.default_message, *args, **kwargs)


class Conflict(BillingError):
    """Raised on duplicate invoice numbers and other uniqueness races.
    Safe for the caller to retry."""
    default_message = "Conflicting update, retry the operation"


class InvalidState(BillingError):
    """Raised when an entity is not in a state that allows the operation."""
    default_message = "Operation not allowed in the current state"


class AlreadyPaid(InvalidState):
    default_message = "Invoice is already fully paid"


class InsufficientFunds(BillingError):
    """Raised when a trust debit would take a client balance below zero."""
    default_message = "Insufficient trust funds"


class ExceedsInvoiceBalance(BillingError):
    """Raised when a payment or transfer is larger than the balance due."""
    default_message = "Amount exceeds invoice balance due"


AmountExceedsBalance = ExceedsInvoiceBalance


class UnsupportedProvince(BillingError):
    default_message = "Unsupported province"
