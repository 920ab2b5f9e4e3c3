from django.core.management import call_command
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = "Seeds the database with demo data (wraps create_demo_tenant)."

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "--firm",  # Define flag
            type=str,
            default="Demo Law LLP",
            help="Name of the demo firm (default: Demo Law LLP)",
        )
        parser.add_argument("--province", type=str, default="ON")

    def handle(self, *args, **options):
        firm_name = options["firm"]  # Read argument from add_arguments()

        self.stdout.write(self.style.NOTICE(
            f"Seeding demo data for {firm_name}..."))
        call_command("create_demo_tenant", firm_name=firm_name,
                     province=options["province"], stdout=self.stdout)
        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))
