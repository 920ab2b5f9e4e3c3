from django.db import models
from django.db.models import Case, F, Sum, When

from .money import ZERO, round_money

# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a firm
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_firm(self, firm):
        # accepts a Firm instance or its pk
        return self.filter(firm=firm)

    def active(self, firm):
        return self.filter(firm=firm, is_active=True)
    # Enables query:
    # FirmMembership.objects.active(request.firm)


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


def signed_amount():
    """+amount for deposit/interest, -amount for every debit type."""
    from .models import TrustTransaction  # avoid cyc import
    return Case(
        When(transaction_type__in=TrustTransaction.CREDIT_TYPES,
             then=F("amount")),
        default=-F("amount"),
        output_field=models.DecimalField(max_digits=14, decimal_places=2),
    )


class TrustTransactionQuerySet(TenantQuerySet):
    def for_client(self, firm, account, client):
        return self.filter(firm=firm, trust_account=account, client=client)

    def in_ledger_order(self):
        # balance_after chains follow insertion order, not transaction_date
        return self.order_by("id")

    def balance(self):
        total = self.aggregate(balance=Sum(signed_amount()))["balance"]
        return round_money(total or ZERO)

    def balances_by(self, *fields):
        # One row per group, e.g. balances_by("client_id", "client__name")
        return (self.order_by()
                .values(*fields)
                .annotate(balance=Sum(signed_amount()))
                .order_by(*fields))


class TrustTransactionManager(
        models.Manager.from_queryset(TrustTransactionQuerySet)):
    pass
