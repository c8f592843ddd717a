import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("parties", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("party_name", models.CharField(max_length=100)),
                ("phone_number", models.CharField(max_length=20)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("date", models.CharField(max_length=10)),
                ("pdf_uri", models.CharField(blank=True, default="", max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("invoice_no", models.CharField(max_length=50, unique=True)),
                ("party", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sales", to="parties.party")),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["party_name", "phone_number"], name="sale_party_idx"),
                    models.Index(fields=["created_at"], name="sale_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Purchase",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("party_name", models.CharField(max_length=100)),
                ("phone_number", models.CharField(max_length=20)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("date", models.CharField(max_length=10)),
                ("pdf_uri", models.CharField(blank=True, default="", max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("bill_no", models.CharField(max_length=50, unique=True)),
                ("party", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="purchases", to="parties.party")),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["party_name", "phone_number"], name="purchase_party_idx"),
                    models.Index(fields=["created_at"], name="purchase_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SaleLine",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("position", models.PositiveIntegerField(default=0)),
                ("item_id", models.CharField(max_length=64)),
                ("item_name", models.CharField(max_length=255)),
                ("quantity", models.DecimalField(decimal_places=4, max_digits=14, validators=[django.core.validators.MinValueValidator(0)])),
                ("rate", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("total", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("sale", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="sales.sale")),
            ],
            options={
                "ordering": ["position"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="PurchaseLine",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("position", models.PositiveIntegerField(default=0)),
                ("item_id", models.CharField(max_length=64)),
                ("item_name", models.CharField(max_length=255)),
                ("quantity", models.DecimalField(decimal_places=4, max_digits=14, validators=[django.core.validators.MinValueValidator(0)])),
                ("rate", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("total", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("purchase", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="sales.purchase")),
            ],
            options={
                "ordering": ["position"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("payment_no", models.CharField(db_index=True, max_length=64)),
                ("type", models.CharField(choices=[("payment-in", "Payment in"), ("payment-out", "Payment out")], default="payment-in", max_length=16)),
                ("party_name", models.CharField(max_length=100)),
                ("phone_number", models.CharField(max_length=20)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14, validators=[django.core.validators.MinValueValidator(0)])),
                ("total_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("date", models.CharField(max_length=10)),
                ("description", models.CharField(blank=True, default="", max_length=500)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("cash", "Cash"),
                            ("bank_transfer", "Bank transfer"),
                            ("cheque", "Cheque"),
                            ("upi", "UPI"),
                            ("card", "Card"),
                            ("other", "Other"),
                        ],
                        default="cash",
                        max_length=16,
                    ),
                ),
                ("reference", models.CharField(blank=True, default="", max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("party", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payments", to="parties.party")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["type", "created_at"], name="payment_type_created_idx"),
                    models.Index(fields=["party_name", "phone_number"], name="payment_party_idx"),
                ],
            },
        ),
    ]
