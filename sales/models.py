import uuid

from django.core.validators import MinValueValidator
from django.db import models

from common.utils import sanitize_phone_number
from parties.models import Party


class LedgerDocument(models.Model):
    """Fields shared by sales and purchases. ``total_amount`` is derived from the lines."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    party = models.ForeignKey(Party, on_delete=models.SET_NULL, null=True, blank=True, related_name="%(class)ss")
    party_name = models.CharField(max_length=100)
    phone_number = models.CharField(max_length=20)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    date = models.CharField(max_length=10)
    pdf_uri = models.CharField(max_length=500, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        self.party_name = (self.party_name or "").strip()
        self.phone_number = sanitize_phone_number(self.phone_number)
        super().save(*args, **kwargs)


class LineItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    position = models.PositiveIntegerField(default=0)
    item_id = models.CharField(max_length=64)
    item_name = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=14, decimal_places=4, validators=[MinValueValidator(0)])
    rate = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    total = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    class Meta:
        abstract = True
        ordering = ["position"]


class Sale(LedgerDocument):
    invoice_no = models.CharField(max_length=50, unique=True)

    class Meta(LedgerDocument.Meta):
        indexes = [
            models.Index(fields=["party_name", "phone_number"], name="sale_party_idx"),
            models.Index(fields=["created_at"], name="sale_created_idx"),
        ]

    def __str__(self):
        return f"Sale {self.invoice_no}"


class SaleLine(LineItem):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="lines")


class Purchase(LedgerDocument):
    bill_no = models.CharField(max_length=50, unique=True)

    class Meta(LedgerDocument.Meta):
        indexes = [
            models.Index(fields=["party_name", "phone_number"], name="purchase_party_idx"),
            models.Index(fields=["created_at"], name="purchase_created_idx"),
        ]

    def __str__(self):
        return f"Purchase {self.bill_no}"


class PurchaseLine(LineItem):
    purchase = models.ForeignKey(Purchase, on_delete=models.CASCADE, related_name="lines")


class Payment(models.Model):
    class Type(models.TextChoices):
        PAYMENT_IN = "payment-in", "Payment in"
        PAYMENT_OUT = "payment-out", "Payment out"

    class Method(models.TextChoices):
        CASH = "cash", "Cash"
        BANK_TRANSFER = "bank_transfer", "Bank transfer"
        CHEQUE = "cheque", "Cheque"
        UPI = "upi", "UPI"
        CARD = "card", "Card"
        OTHER = "other", "Other"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment_no = models.CharField(max_length=64, db_index=True)
    type = models.CharField(max_length=16, choices=Type.choices, default=Type.PAYMENT_IN)
    party = models.ForeignKey(Party, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments")
    party_name = models.CharField(max_length=100)
    phone_number = models.CharField(max_length=20)
    amount = models.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(0)])
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    date = models.CharField(max_length=10)
    description = models.CharField(max_length=500, blank=True, default="")
    payment_method = models.CharField(max_length=16, choices=Method.choices, default=Method.CASH)
    reference = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["type", "created_at"], name="payment_type_created_idx"),
            models.Index(fields=["party_name", "phone_number"], name="payment_party_idx"),
        ]

    def __str__(self):
        return self.payment_no

    def save(self, *args, **kwargs):
        self.party_name = (self.party_name or "").strip()
        self.phone_number = sanitize_phone_number(self.phone_number)
        if self.total_amount is None:
            self.total_amount = self.amount
        super().save(*args, **kwargs)
