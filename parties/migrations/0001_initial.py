import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Party",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100)),
                ("phone_number", models.CharField(max_length=20)),
                ("balance", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("address", models.CharField(blank=True, default="", max_length=500)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["name"], name="party_name_idx"),
                    models.Index(fields=["phone_number"], name="party_phone_idx"),
                    models.Index(fields=["name", "phone_number"], name="party_name_phone_idx"),
                ],
            },
        ),
    ]
