import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import (ObjectDoesNotExist, PermissionDenied,
                                    ValidationError)
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from billing_core.models import (Client, Expense, Firm, FirmMembership,
                                 Matter, TimeEntry)
from billing_core.services import (create_invoice, create_trust_account,
                                   record_deposit, send_invoice,
                                   transfer_trust_to_fees)

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo firm, user, and a sample trust ledger and invoice."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--firm-name",  # Define flag
            default="Demo Law LLP",
            help="Name of the demo firm to create.",
        )
        parser.add_argument(
            "--province", default="ON", help="Home province of the firm."
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        firm_name = options["firm_name"]
        username = options["username"]
        password = options["password"]

        # 1. Create firm
        slug = slugify(firm_name) or "firm"
        firm, created = Firm.objects.get_or_create(
            slug=slug,
            defaults={"name": firm_name, "province": options["province"]},
        )
        if not created:
            self.stdout.write(self.style.WARNING(
                f"Firm {firm} already exists, nothing to do"))
            return
        self.stdout.write(self.style.SUCCESS(f"Created firm: {firm}"))

        # 2. Create user + membership
        user, created = User.objects.get_or_create(
            username=username,
            defaults={
                "email": f"{username}@example.com",
                "first_name": "Demo",
                "last_name": "Lawyer",
            },
        )
        if created:  # if user newly created
            user.set_password(password)
            user.save()
        FirmMembership.objects.get_or_create(
            user=user, firm=firm,
            defaults={"role": FirmMembership.Role.OWNER})
        self.stdout.write(
            self.style.SUCCESS(f"Created user: {user.username} (pw={password})")
        )

        # 3. Client, matter and unbilled work
        client = Client.objects.create(firm=firm, name="Jane Client",
                                       email="jane@example.com")
        matter = Matter.objects.create(firm=firm, client=client,
                                       matter_number="M-0001",
                                       name="Estate of J. Client")
        today = timezone.localdate()
        entries = [
            TimeEntry.objects.create(
                firm=firm, matter=matter, user=user,
                entry_date=today - datetime.timedelta(days=2),
                hours=Decimal("2.00"), rate=Decimal("250.00"),
                description="Drafted will"),
            TimeEntry.objects.create(
                firm=firm, matter=matter, user=user,
                entry_date=today - datetime.timedelta(days=1),
                hours=Decimal("0.50"), rate=Decimal("250.00"),
                description="Client call"),
        ]
        expense = Expense.objects.create(
            firm=firm, matter=matter, expense_date=today,
            amount=Decimal("45.00"), description="Land registry search")
        self.stdout.write(self.style.SUCCESS(f"Created client: {client}"))

        # 4. Trust account with a retainer
        try:
            account = create_trust_account(
                firm.pk, "Mixed Trust Account", bank_name="Demo Bank",
                account_number_last4="1234", user=user)
            record_deposit(firm.pk, user, account.pk, client.pk,
                           Decimal("5000.00"), today, matter_id=matter.pk,
                           description="Retainer")

            # 5. Invoice the work and pay part of it from trust
            invoice = create_invoice(
                firm.pk, client.pk,
                time_entry_ids=[e.pk for e in entries],
                expense_ids=[expense.pk],
                invoice_date=today,
                user=user,
            )
            send_invoice(firm.pk, invoice.pk, user=user)
            transfer_trust_to_fees(firm.pk, user, account.pk, client.pk,
                                   invoice.pk, Decimal("500.00"), today,
                                   matter_id=matter.pk)
        except (ObjectDoesNotExist, PermissionDenied, ValidationError) as exc:
            raise CommandError(f"Demo data failed: {exc}") from exc

        invoice.refresh_from_db()
        self.stdout.write(self.style.SUCCESS(
            f"Created invoice: {invoice.invoice_number} total={invoice.total} "
            f"balance_due={invoice.balance_due}"))
