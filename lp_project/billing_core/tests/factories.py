import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model

from ..models import (Client, Expense, Firm, FirmMembership, Matter,
                      TimeEntry, TrustAccount)

DAY = datetime.date(2025, 3, 14)


def make_firm(name="Test LLP", slug=None, province="ON"):
    return Firm.objects.create(
        name=name, slug=slug or name.lower().replace(" ", "-"),
        province=province)


def make_user(username="alice", firm=None, **extra):
    user = get_user_model().objects.create_user(
        username=username, password="pw", **extra)
    if firm is not None:
        FirmMembership.objects.create(
            user=user, firm=firm, role=FirmMembership.Role.LAWYER)
    return user


def make_client(firm, name="Jane Client"):
    return Client.objects.create(firm=firm, name=name)


def make_matter(firm, client, number="M-1", name="General"):
    return Matter.objects.create(
        firm=firm, client=client, matter_number=number, name=name)


def make_time_entry(firm, matter, hours="2.00", rate="250.00", user=None,
                    description="Research", **extra):
    return TimeEntry.objects.create(
        firm=firm, matter=matter, user=user, entry_date=DAY,
        hours=Decimal(hours), rate=Decimal(rate), description=description,
        **extra)


def make_expense(firm, matter, amount="100.00", tax_treatment="taxable",
                 description="Courier", **extra):
    return Expense.objects.create(
        firm=firm, matter=matter, expense_date=DAY, amount=Decimal(amount),
        tax_treatment=tax_treatment, description=description, **extra)


def make_account(firm, name="General Trust"):
    return TrustAccount.objects.create(firm=firm, account_name=name)
