import uuid

from django.db import models

from common.utils import sanitize_phone_number


class Party(models.Model):
    class BalanceOperation(models.TextChoices):
        ADD = "add", "Add"
        SUBTRACT = "subtract", "Subtract"
        SET = "set", "Set"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    phone_number = models.CharField(max_length=20)
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    address = models.CharField(max_length=500, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["name"], name="party_name_idx"),
            models.Index(fields=["phone_number"], name="party_phone_idx"),
            models.Index(fields=["name", "phone_number"], name="party_name_phone_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.phone_number})"

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        self.phone_number = sanitize_phone_number(self.phone_number)
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)
