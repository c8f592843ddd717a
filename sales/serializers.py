from decimal import Decimal

from rest_framework import serializers

from common.utils import BUSINESS_DATE_PATTERN
from parties.serializers import PartySummarySerializer, validate_phone
from sales.models import Payment, Purchase, PurchaseLine, Sale, SaleLine

BILL_NO_PATTERN = r"^[A-Za-z0-9\-_]+$"


def validate_business_date(value):
    if not BUSINESS_DATE_PATTERN.match(value):
        raise serializers.ValidationError("Date must be in MM/DD/YYYY format.")
    return value


class LineItemInputSerializer(serializers.Serializer):
    item_id = serializers.CharField(max_length=64)
    item_name = serializers.CharField(max_length=255)
    quantity = serializers.DecimalField(max_digits=14, decimal_places=4)
    rate = serializers.DecimalField(max_digits=12, decimal_places=2)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be a positive number.")
        return value

    def validate_rate(self, value):
        if value <= 0:
            raise serializers.ValidationError("Rate must be a positive number.")
        return value


class DocumentWriteSerializer(serializers.Serializer):
    party_name = serializers.CharField(max_length=100)
    phone_number = serializers.CharField(max_length=20)
    items = LineItemInputSerializer(many=True, allow_empty=False)
    date = serializers.CharField(max_length=10)
    pdf_uri = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_phone_number(self, value):
        return validate_phone(value)

    def validate_date(self, value):
        return validate_business_date(value)


class PurchaseWriteSerializer(DocumentWriteSerializer):
    bill_no = serializers.RegexField(BILL_NO_PATTERN, max_length=50, error_messages={"invalid": "Bill number may only contain letters, numbers, hyphens and underscores."})


class SaleLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = SaleLine
        fields = ["item_id", "item_name", "quantity", "rate", "total"]


class PurchaseLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = PurchaseLine
        fields = ["item_id", "item_name", "quantity", "rate", "total"]


DOCUMENT_FIELDS = ["id", "party", "party_name", "phone_number", "items", "total_amount", "date", "pdf_uri", "created_at", "updated_at"]


class SaleSerializer(serializers.ModelSerializer):
    items = SaleLineSerializer(source="lines", many=True, read_only=True)
    party = PartySummarySerializer(read_only=True)

    class Meta:
        model = Sale
        fields = ["invoice_no"] + DOCUMENT_FIELDS
        read_only_fields = fields


class PurchaseSerializer(serializers.ModelSerializer):
    items = PurchaseLineSerializer(source="lines", many=True, read_only=True)
    party = PartySummarySerializer(read_only=True)

    class Meta:
        model = Purchase
        fields = ["bill_no"] + DOCUMENT_FIELDS
        read_only_fields = fields


class PurchaseBulkDeleteSerializer(serializers.Serializer):
    purchase_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class PaymentWriteSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=Payment.Type.choices)
    party_name = serializers.CharField(max_length=100)
    phone_number = serializers.CharField(max_length=20)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"), required=False)
    date = serializers.CharField(max_length=10)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    payment_method = serializers.ChoiceField(choices=Payment.Method.choices, required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate_phone_number(self, value):
        return validate_phone(value)

    def validate_date(self, value):
        return validate_business_date(value)


class PaymentSerializer(serializers.ModelSerializer):
    party = PartySummarySerializer(read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "payment_no",
            "type",
            "party",
            "party_name",
            "phone_number",
            "amount",
            "total_amount",
            "date",
            "description",
            "payment_method",
            "reference",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
