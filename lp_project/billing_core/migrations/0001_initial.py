import django.db.models.deletion
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models

PROVINCES = [
    ("AB", "Alberta"),
    ("BC", "British Columbia"),
    ("MB", "Manitoba"),
    ("NB", "New Brunswick"),
    ("NL", "Newfoundland and Labrador"),
    ("NS", "Nova Scotia"),
    ("NT", "Northwest Territories"),
    ("NU", "Nunavut"),
    ("ON", "Ontario"),
    ("PE", "Prince Edward Island"),
    ("QC", "Quebec"),
    ("SK", "Saskatchewan"),
    ("YT", "Yukon"),
]


def money(max_digits, default=True):
    if default:
        return models.DecimalField(
            decimal_places=2, default=Decimal("0.00"), max_digits=max_digits)
    return models.DecimalField(decimal_places=2, max_digits=max_digits)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Firm",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("province", models.CharField(choices=PROVINCES, default="ON",
                                              max_length=2)),
                ("currency_code", models.CharField(default="CAD", max_length=3)),
                ("invoice_due_days", models.PositiveIntegerField(
                    blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, max_length=254,
                                            null=True)),
                ("client_type", models.CharField(
                    choices=[("individual", "Individual"),
                             ("organization", "Organization")],
                    default="individual", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="clients", to="billing_core.firm")),
            ],
            options={
                "indexes": [models.Index(fields=["firm", "name"],
                                         name="client_firm_name_idx")],
            },
        ),
        migrations.CreateModel(
            name="Matter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("matter_number", models.CharField(max_length=50)),
                ("name", models.CharField(max_length=255)),
                ("status", models.CharField(
                    choices=[("active", "Active"), ("pending", "Pending"),
                             ("closed", "Closed"), ("archived", "Archived")],
                    default="active", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("client", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="matters", to="billing_core.client")),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="matters", to="billing_core.firm")),
            ],
            options={
                "constraints": [models.UniqueConstraint(
                    fields=("firm", "matter_number"),
                    name="uq_matter_firm_number")],
            },
        ),
        migrations.CreateModel(
            name="FirmMembership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("role", models.CharField(
                    choices=[("owner", "Owner"), ("lawyer", "Lawyer"),
                             ("bookkeeper", "Bookkeeper"),
                             ("viewer", "Viewer")],
                    default="viewer", max_length=20)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="memberships", to="billing_core.firm")),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="firm_memberships",
                    to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [models.Index(fields=["firm", "user"],
                                         name="membership_firm_user_idx")],
                "constraints": [models.UniqueConstraint(
                    fields=("user", "firm"), name="uq_user_firm_membership")],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=50)),
                ("invoice_date", models.DateField()),
                ("due_date", models.DateField()),
                ("status", models.CharField(
                    choices=[("draft", "Draft"), ("sent", "Sent"),
                             ("viewed", "Viewed"),
                             ("partial", "Partially paid"), ("paid", "Paid"),
                             ("overdue", "Overdue"),
                             ("written_off", "Written off")],
                    default="draft", max_length=20)),
                ("province", models.CharField(choices=PROVINCES, default="ON",
                                              max_length=2)),
                ("subtotal", money(14)),
                ("tax_gst", money(12)),
                ("tax_pst", money(12)),
                ("tax_hst", money(12)),
                ("tax_qst", money(12)),
                ("total", money(14)),
                ("amount_paid", money(14)),
                ("balance_due", money(14)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="invoices", to="billing_core.client")),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="invoices", to="billing_core.firm")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["firm", "client"],
                                 name="invoice_firm_client_idx"),
                    models.Index(fields=["firm", "status"],
                                 name="invoice_firm_status_idx"),
                ],
                "constraints": [models.UniqueConstraint(
                    fields=("firm", "invoice_number"),
                    name="uq_invoice_firm_number")],
            },
        ),
        migrations.CreateModel(
            name="TimeEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("entry_date", models.DateField()),
                ("hours", models.DecimalField(decimal_places=2, max_digits=7)),
                ("rate", money(12, default=False)),
                ("description", models.TextField()),
                ("billable", models.BooleanField(default=True)),
                ("billed", models.BooleanField(default=False)),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    to="billing_core.firm")),
                ("invoice", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="time_entries", to="billing_core.invoice")),
                ("matter", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="time_entries", to="billing_core.matter")),
                ("user", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="time_entries",
                    to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name_plural": "time entries",
                "indexes": [
                    models.Index(fields=["firm", "matter"],
                                 name="time_entry_firm_matter_idx"),
                    models.Index(fields=["firm", "billed"],
                                 name="time_entry_firm_billed_idx"),
                ],
                "constraints": [models.CheckConstraint(
                    condition=models.Q(("hours__gte", 0), ("rate__gte", 0)),
                    name="time_entry_non_negative")],
            },
        ),
        migrations.CreateModel(
            name="Expense",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("expense_date", models.DateField()),
                ("amount", money(12, default=False)),
                ("description", models.TextField()),
                ("billable", models.BooleanField(default=True)),
                ("billed", models.BooleanField(default=False)),
                ("tax_treatment", models.CharField(
                    choices=[("taxable", "Taxable"), ("exempt", "Exempt"),
                             ("zero_rated", "Zero rated")],
                    default="taxable", max_length=20)),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    to="billing_core.firm")),
                ("invoice", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="expenses", to="billing_core.invoice")),
                ("matter", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="expenses", to="billing_core.matter")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["firm", "matter"],
                                 name="expense_firm_matter_idx"),
                    models.Index(fields=["firm", "billed"],
                                 name="expense_firm_billed_idx"),
                ],
                "constraints": [models.CheckConstraint(
                    condition=models.Q(("amount__gte", 0)),
                    name="expense_non_negative")],
            },
        ),
        migrations.CreateModel(
            name="InvoiceLineItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("line_type", models.CharField(
                    choices=[("time", "Time"), ("expense", "Expense"),
                             ("flat_fee", "Flat fee"), ("custom", "Custom")],
                    max_length=20)),
                ("description", models.TextField()),
                ("quantity", models.DecimalField(
                    decimal_places=2, default=Decimal("1.00"), max_digits=10)),
                ("rate", money(12)),
                ("amount", money(14, default=False)),
                ("taxable", models.BooleanField(default=True)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("expense", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    to="billing_core.expense")),
                ("invoice", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="line_items", to="billing_core.invoice")),
                ("time_entry", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    to="billing_core.timeentry")),
            ],
            options={
                "ordering": ["sort_order", "id"],
                "indexes": [models.Index(fields=["invoice", "sort_order"],
                                         name="line_item_invoice_sort_idx")],
                "constraints": [models.CheckConstraint(
                    condition=models.Q(("quantity__gte", 0), ("rate__gte", 0)),
                    name="line_item_non_negative")],
            },
        ),
        migrations.CreateModel(
            name="TrustAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("account_name", models.CharField(max_length=255)),
                ("bank_name", models.CharField(blank=True, max_length=255,
                                               null=True)),
                ("account_number_last4", models.CharField(
                    blank=True, max_length=4, null=True)),
                ("currency", models.CharField(default="CAD", max_length=3)),
                ("current_balance", money(14)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="trust_accounts", to="billing_core.firm")),
            ],
            options={
                "indexes": [models.Index(fields=["firm", "account_name"],
                                         name="trust_account_firm_name_idx")],
                "constraints": [models.UniqueConstraint(
                    fields=("firm", "account_name"),
                    name="uq_firm_trust_account_name")],
            },
        ),
        migrations.CreateModel(
            name="TrustTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("transaction_type", models.CharField(
                    choices=[("deposit", "Deposit"),
                             ("transfer_to_fees", "Transfer to fees"),
                             ("refund", "Refund"), ("interest", "Interest"),
                             ("bank_charge", "Bank charge")],
                    max_length=20)),
                ("amount", money(14, default=False)),
                ("balance_after", money(14, default=False)),
                ("description", models.TextField(blank=True, null=True)),
                ("reference_number", models.CharField(
                    blank=True, max_length=100, null=True)),
                ("transaction_date", models.DateField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("client", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="trust_transactions",
                    to="billing_core.client")),
                ("created_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    to=settings.AUTH_USER_MODEL)),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    to="billing_core.firm")),
                ("matter", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="trust_transactions",
                    to="billing_core.matter")),
                ("related_invoice", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="trust_transactions",
                    to="billing_core.invoice")),
                ("trust_account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="transactions",
                    to="billing_core.trustaccount")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["firm", "trust_account", "client"],
                                 name="trust_tx_firm_acct_client_idx"),
                    models.Index(fields=["firm", "transaction_date"],
                                 name="trust_tx_firm_date_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="trust_tx_positive_amount"),
                    models.CheckConstraint(
                        condition=models.Q(("balance_after__gte", 0)),
                        name="trust_tx_non_negative_balance"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("payment_date", models.DateField()),
                ("amount", money(14, default=False)),
                ("payment_method", models.CharField(
                    choices=[("bank_transfer", "Bank transfer"),
                             ("credit_card", "Credit card"),
                             ("cheque", "Cheque"), ("cash", "Cash"),
                             ("trust_transfer", "Trust transfer")],
                    max_length=20)),
                ("payment_source", models.CharField(
                    choices=[("external", "External"), ("trust", "Trust")],
                    default="external", max_length=10)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("firm", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    to="billing_core.firm")),
                ("invoice", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="payments", to="billing_core.invoice")),
                ("trust_transaction", models.OneToOneField(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="payment",
                    to="billing_core.trusttransaction")),
            ],
            options={
                "indexes": [models.Index(fields=["firm", "invoice"],
                                         name="payment_firm_invoice_idx")],
                "constraints": [models.CheckConstraint(
                    condition=models.Q(("amount__gt", 0)),
                    name="payment_positive_amount")],
            },
        ),
    ]
