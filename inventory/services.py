import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone
from rest_framework.exceptions import NotFound

from common.utils import MONEY_QUANT, to_decimal
from inventory.models import Item, StockDirection

logger = logging.getLogger("ledger.stock")

STOCK_QUANT = Decimal("0.0001")


def kg_to_bags(quantity_kg):
    return (to_decimal(quantity_kg) / settings.LEDGER_KG_PER_BAG).quantize(STOCK_QUANT, rounding=ROUND_HALF_UP)


def reverse_direction(direction):
    if direction == StockDirection.INCREASE:
        return StockDirection.DECREASE
    return StockDirection.INCREASE


def universal_item_queryset():
    return Item.objects.filter(is_universal=True, product_name=settings.LEDGER_UNIVERSAL_ITEM_NAME)


def get_universal_item():
    return universal_item_queryset().first()


def ensure_universal_item():
    """Find or create the universal packaging item. Returns ``(item, created)``."""
    item, created = Item.objects.get_or_create(
        is_universal=True,
        product_name=settings.LEDGER_UNIVERSAL_ITEM_NAME,
        defaults={
            "category": Item.Category.PRIMARY,
            "purchase_price": Decimal("0"),
            "sale_price": Decimal("0"),
            "opening_stock": Decimal("0"),
            "low_stock_alert": Decimal("10"),
            "as_of_date": timezone.localdate(),
        },
    )
    if created:
        logger.info("universal_item_created", extra={"item_id": item.pk})
    return item, created


def _apply_bags(item_id, bags, direction):
    with transaction.atomic():
        item = Item.objects.select_for_update().filter(pk=item_id).first()
        if item is None:
            return None
        if direction == StockDirection.INCREASE:
            item.opening_stock = item.opening_stock + bags
        else:
            item.opening_stock = max(item.opening_stock - bags, Decimal("0"))
        item.save(update_fields=["opening_stock", "updated_at"])
    return item


class StockAdjuster:
    """Moves item stock in bags for kg quantities on transaction lines.

    Every adjustment is independent: a failure on one item is logged and the
    remaining items are still processed.
    """

    def __init__(self, universal_item_id=None):
        self.universal_item_id = universal_item_id

    @classmethod
    def for_universal_item(cls):
        try:
            item, _ = ensure_universal_item()
        except Exception:
            logger.exception("universal_item_unavailable")
            return cls()
        return cls(universal_item_id=item.pk)

    def adjust(self, item_ref, quantity_kg, direction):
        bags = kg_to_bags(quantity_kg)
        extra = {"item_id": item_ref, "quantity_kg": quantity_kg, "bags": bags, "direction": direction}
        try:
            item = _apply_bags(item_ref, bags, direction)
        except (DjangoValidationError, ValueError):
            logger.warning("stock_item_ref_invalid", extra=extra)
            return False
        except Exception:
            logger.exception("stock_adjustment_failed", extra=extra)
            return False

        if item is None:
            logger.warning("stock_item_missing", extra=extra)
            return False
        logger.info("stock_adjusted current=%s", item.opening_stock, extra=extra)
        return True

    def adjust_universal(self, quantity_kg, direction):
        if self.universal_item_id is None:
            logger.warning("universal_item_missing", extra={"quantity_kg": quantity_kg, "direction": direction})
            return False
        return self.adjust(self.universal_item_id, quantity_kg, direction)

    def apply_lines(self, lines, direction, *, include_universal=True):
        """Adjust each line's item, then the universal item once by the summed kg."""
        lines = list(lines)
        adjusted = 0
        for line in lines:
            if not line.item_id:
                logger.warning("stock_item_ref_missing", extra={"direction": direction})
                continue
            if self.adjust(line.item_id, line.quantity, direction):
                adjusted += 1

        if include_universal and lines:
            total_kg = sum((to_decimal(line.quantity) for line in lines), Decimal("0"))
            self.adjust_universal(total_kg, direction)
        return adjusted


def override_universal_stock(operation, quantity_kg):
    """Manually add or subtract kg on the universal item, rounded to 2 places and floored at 0."""
    bags = to_decimal(quantity_kg) / settings.LEDGER_KG_PER_BAG
    with transaction.atomic():
        item = universal_item_queryset().select_for_update().first()
        if item is None:
            raise NotFound("Bardana item not found.")
        current = item.opening_stock + bags if operation == "add" else item.opening_stock - bags
        item.opening_stock = max(current.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP), Decimal("0"))
        item.save(update_fields=["opening_stock", "updated_at"])

    logger.info(
        "universal_stock_overridden current=%s",
        item.opening_stock,
        extra={"item_id": item.pk, "operation": operation, "quantity_kg": quantity_kg},
    )
    return item


def summarize_items():
    by_category = {
        row["category"]: row["count"]
        for row in Item.objects.values("category").annotate(count=Count("id")).order_by()
    }
    kg_per_bag = settings.LEDGER_KG_PER_BAG

    total_value = Decimal("0")
    for item in Item.objects.only("opening_stock", "purchase_price"):
        total_value += item.opening_stock * kg_per_bag * item.purchase_price

    low_stock = [
        {
            "id": str(item.pk),
            "product_name": item.product_name,
            "opening_stock": str(item.opening_stock),
            "stock_in_kg": str((item.opening_stock * kg_per_bag).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)),
            "low_stock_alert": str(item.low_stock_alert),
        }
        for item in Item.objects.filter(opening_stock__lte=F("low_stock_alert")).order_by("product_name")
    ]

    return {
        "total_items": sum(by_category.values()),
        "primary_items": by_category.get(Item.Category.PRIMARY, 0),
        "kirana_items": by_category.get(Item.Category.KIRANA, 0),
        "universal_items": Item.objects.filter(is_universal=True).count(),
        "total_stock_value": int(total_value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        "low_stock_count": len(low_stock),
        "low_stock_items": low_stock,
    }
