from decimal import Decimal

from django.conf import settings
from rest_framework import serializers

from inventory.models import Item


class ItemSerializer(serializers.ModelSerializer):
    stock_in_kg = serializers.SerializerMethodField()

    class Meta:
        model = Item
        fields = [
            "id",
            "product_name",
            "category",
            "purchase_price",
            "sale_price",
            "opening_stock",
            "stock_in_kg",
            "as_of_date",
            "low_stock_alert",
            "is_universal",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "is_universal", "created_at", "updated_at"]
        # uniqueness is checked case-insensitively in validate_product_name
        extra_kwargs = {"product_name": {"validators": []}}

    def get_stock_in_kg(self, obj):
        return str((obj.opening_stock * settings.LEDGER_KG_PER_BAG).quantize(Decimal("0.01")))

    def validate_product_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Product name is required.")
        if self.instance is not None and self.instance.is_universal and value != self.instance.product_name:
            raise serializers.ValidationError("The universal item cannot be renamed.")
        qs = Item.objects.filter(product_name__iexact=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("A product with this name already exists.")
        return value


class UniversalStockSerializer(serializers.Serializer):
    operation = serializers.ChoiceField(choices=["add", "subtract"])
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3, min_value=Decimal("0"))
