import uuid

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class StockDirection(models.TextChoices):
    INCREASE = "increase", "Increase"
    DECREASE = "decrease", "Decrease"


class Item(models.Model):
    """A stocked product. ``opening_stock`` is the current on-hand quantity in bags."""

    class Category(models.TextChoices):
        PRIMARY = "Primary", "Primary"
        KIRANA = "Kirana", "Kirana"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product_name = models.CharField(max_length=255, unique=True)
    category = models.CharField(max_length=16, choices=Category.choices)
    purchase_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    sale_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    opening_stock = models.DecimalField(max_digits=14, decimal_places=4, validators=[MinValueValidator(0)])
    as_of_date = models.DateField(default=timezone.localdate)
    low_stock_alert = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    is_universal = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["category"], name="item_category_idx"),
            models.Index(fields=["is_universal"], name="item_universal_idx"),
        ]

    def __str__(self):
        return self.product_name

    def save(self, *args, **kwargs):
        self.product_name = (self.product_name or "").strip()
        super().save(*args, **kwargs)
