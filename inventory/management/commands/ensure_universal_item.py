from django.core.management.base import BaseCommand

from inventory.services import ensure_universal_item


class Command(BaseCommand):
    help = "Create the universal Bardana item when it does not exist yet."

    def handle(self, *args, **options):
        item, created = ensure_universal_item()
        if created:
            self.stdout.write(self.style.SUCCESS(f"Created universal item {item.product_name} ({item.pk})."))
        else:
            self.stdout.write(f"Universal item {item.product_name} already exists ({item.pk}).")
