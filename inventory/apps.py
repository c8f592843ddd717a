import logging

from django.apps import AppConfig
from django.db.models.signals import post_migrate

logger = logging.getLogger("ledger.stock")


def ensure_universal_item_after_migrate(sender, **kwargs):
    from inventory.services import ensure_universal_item

    try:
        ensure_universal_item()
    except Exception:
        logger.exception("universal_item_bootstrap_failed")


class InventoryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"

    def ready(self):
        post_migrate.connect(ensure_universal_item_after_migrate, sender=self)
