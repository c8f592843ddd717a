from django.core.management.base import BaseCommand

from parties.models import Party
from parties.services import update_balance
from sales.reports import expected_party_balances


class Command(BaseCommand):
    help = "Compare stored party balances with the balance implied by their sales, purchases and payments."

    def add_arguments(self, parser):
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Overwrite drifted balances with the recomputed value.",
        )

    def handle(self, *args, **options):
        drifted = [(party, expected) for party, expected in expected_party_balances() if party.balance != expected]

        if not drifted:
            self.stdout.write(self.style.SUCCESS("All party balances match their transactions."))
            return

        self.stdout.write(self.style.WARNING(f"Found {len(drifted)} party balance(s) out of step."))
        for party, expected in drifted:
            self.stdout.write(f"- {party.name} ({party.phone_number}): stored {party.balance}, expected {expected}")

        if not options["apply"]:
            self.stdout.write(self.style.WARNING("Dry run only. Re-run with --apply to repair balances."))
            return

        for party, expected in drifted:
            update_balance(party.pk, expected, Party.BalanceOperation.SET)
        self.stdout.write(self.style.SUCCESS(f"Repaired {len(drifted)} party balance(s)."))
