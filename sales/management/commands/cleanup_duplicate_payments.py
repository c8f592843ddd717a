from django.core.management.base import BaseCommand

from sales.payments import cleanup_duplicate_payments, find_duplicate_payment_groups


class Command(BaseCommand):
    help = "Detect and optionally remove payments sharing a payment number, keeping the earliest."

    def add_arguments(self, parser):
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Delete every duplicate except the earliest created payment. Balances are not reversed.",
        )

    def handle(self, *args, **options):
        groups = find_duplicate_payment_groups()
        if not groups:
            self.stdout.write(self.style.SUCCESS("No duplicate payment numbers found."))
            return

        self.stdout.write(self.style.WARNING(f"Found {len(groups)} duplicate payment number group(s)."))
        for group in groups:
            self.stdout.write(f"- {group['payment_no']}: {group['count']} payments")

        if not options["apply"]:
            self.stdout.write(self.style.WARNING("Dry run only. Re-run with --apply to remove duplicates."))
            return

        result = cleanup_duplicate_payments()
        self.stdout.write(
            self.style.SUCCESS(
                f"Removed {result['cleaned_count']} duplicate payment(s) across {result['duplicate_groups']} group(s)."
            )
        )
