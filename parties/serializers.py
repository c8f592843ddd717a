from rest_framework import serializers

from common.utils import is_valid_phone_number, sanitize_phone_number
from parties.models import Party


def validate_phone(value):
    if not is_valid_phone_number(value):
        raise serializers.ValidationError("Invalid phone number format.")
    return value


class PartySerializer(serializers.ModelSerializer):
    balance = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)

    class Meta:
        model = Party
        fields = ["id", "name", "phone_number", "balance", "address", "email", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Party name is required.")
        return value

    def validate_phone_number(self, value):
        return validate_phone(value)

    def find_conflict(self, attrs):
        name = attrs.get("name", getattr(self.instance, "name", ""))
        phone_number = sanitize_phone_number(attrs.get("phone_number", getattr(self.instance, "phone_number", "")))
        qs = Party.objects.filter(name=name, phone_number=phone_number)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        return qs.first()


class PartySummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Party
        fields = ["id", "name", "phone_number", "balance"]


class FindOrCreatePartySerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    phone_number = serializers.CharField(max_length=20)
    address = serializers.CharField(max_length=500, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)

    def validate_phone_number(self, value):
        return validate_phone(value)


class BalanceUpdateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    operation = serializers.ChoiceField(choices=Party.BalanceOperation.choices)
