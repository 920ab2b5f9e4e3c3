from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Convert int/str/float/Decimal to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        # str() first so 0.1 becomes Decimal("0.1"), not its float expansion
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")


def round_money(value) -> Decimal:
    """Round to cents, half-up (0.005 -> 0.01)."""
    amount = to_decimal(value)
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def require_positive(value, field="amount") -> Decimal:
    amount = round_money(value)
    if amount <= ZERO:
        raise ValidationError({field: f"{field} must be greater than zero"})
    return amount


def sum_money(values) -> Decimal:
    return round_money(sum((to_decimal(v) for v in values), ZERO))
