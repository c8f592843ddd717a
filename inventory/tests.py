import uuid
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient

from inventory.models import Item, StockDirection
from inventory.services import StockAdjuster, ensure_universal_item, get_universal_item, kg_to_bags


def make_item(name, stock="10", **overrides):
    values = {
        "product_name": name,
        "category": Item.Category.PRIMARY,
        "purchase_price": Decimal("20.00"),
        "sale_price": Decimal("25.00"),
        "opening_stock": Decimal(stock),
        "low_stock_alert": Decimal("2"),
    }
    values.update(overrides)
    return Item.objects.create(**values)


class UniversalItemTests(TestCase):
    def test_universal_item_exists_after_migrate(self):
        item = get_universal_item()

        self.assertIsNotNone(item)
        self.assertTrue(item.is_universal)
        self.assertEqual(item.product_name, "Bardana")

    def test_ensure_universal_item_is_idempotent(self):
        Item.objects.filter(is_universal=True).delete()

        item, created = ensure_universal_item()
        again, created_again = ensure_universal_item()

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(item.pk, again.pk)
        self.assertEqual(item.low_stock_alert, Decimal("10"))
        self.assertEqual(item.opening_stock, Decimal("0"))
        self.assertEqual(Item.objects.filter(is_universal=True).count(), 1)

    def test_command_reports_existing_item(self):
        out = StringIO()

        call_command("ensure_universal_item", stdout=out)

        self.assertIn("already exists", out.getvalue())


class StockAdjusterTests(TestCase):
    def setUp(self):
        self.bardana, _ = ensure_universal_item()
        Item.objects.filter(pk=self.bardana.pk).update(opening_stock=Decimal("100"))
        self.rice = make_item("Rice", stock="10")
        self.adjuster = StockAdjuster.for_universal_item()

    def test_kg_converts_to_bags(self):
        self.assertEqual(kg_to_bags(Decimal("30")), Decimal("1.0000"))
        self.assertEqual(kg_to_bags(Decimal("10")), Decimal("0.3333"))

    def test_decrease_clamps_at_zero(self):
        self.adjuster.adjust(self.rice.pk, Decimal("600"), StockDirection.DECREASE)

        self.rice.refresh_from_db()
        self.assertEqual(self.rice.opening_stock, Decimal("0"))

    def test_unknown_and_invalid_refs_are_skipped(self):
        with self.assertLogs("ledger.stock", level="WARNING") as cm:
            missing = self.adjuster.adjust(uuid.uuid4(), Decimal("30"), StockDirection.INCREASE)
            invalid = self.adjuster.adjust("not-a-uuid", Decimal("30"), StockDirection.INCREASE)

        self.assertFalse(missing)
        self.assertFalse(invalid)
        self.assertTrue(any("stock_item_missing" in message for message in cm.output))
        self.assertTrue(any("stock_item_ref_invalid" in message for message in cm.output))

    def test_apply_lines_adjusts_universal_item_once_by_total_kg(self):
        wheat = make_item("Wheat", stock="5")
        lines = [
            _Line(self.rice.pk, Decimal("30")),
            _Line(wheat.pk, Decimal("60")),
            _Line("missing-item", Decimal("30")),
        ]

        adjusted = self.adjuster.apply_lines(lines, StockDirection.INCREASE)

        self.assertEqual(adjusted, 2)
        self.rice.refresh_from_db()
        wheat.refresh_from_db()
        self.bardana.refresh_from_db()
        self.assertEqual(self.rice.opening_stock, Decimal("11"))
        self.assertEqual(wheat.opening_stock, Decimal("7"))
        self.assertEqual(self.bardana.opening_stock, Decimal("104"))

    def test_missing_universal_item_does_not_block_named_items(self):
        adjuster = StockAdjuster()

        with self.assertLogs("ledger.stock", level="WARNING") as cm:
            adjuster.apply_lines([_Line(self.rice.pk, Decimal("30"))], StockDirection.DECREASE)

        self.rice.refresh_from_db()
        self.assertEqual(self.rice.opening_stock, Decimal("9"))
        self.assertTrue(any("universal_item_missing" in message for message in cm.output))


class _Line:
    def __init__(self, item_id, quantity):
        self.item_id = str(item_id)
        self.quantity = quantity


class ItemApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        user_model = get_user_model()
        self.clerk = user_model.objects.create_user(username="item-clerk", password="pass1234")
        self.supervisor = user_model.objects.create_user(username="item-supervisor", password="pass1234", is_staff=True)
        self.bardana, _ = ensure_universal_item()

    def _payload(self, **overrides):
        payload = {
            "product_name": "Sugar",
            "category": "Kirana",
            "purchase_price": "40.00",
            "sale_price": "45.00",
            "opening_stock": "3",
            "low_stock_alert": "5",
        }
        payload.update(overrides)
        return payload

    def test_create_item_rejects_case_insensitive_duplicate(self):
        self.client.force_authenticate(user=self.clerk)
        first = self.client.post("/api/v1/items/", self._payload(), format="json")
        second = self.client.post("/api/v1/items/", self._payload(product_name="SUGAR"), format="json")

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 400)
        self.assertIn("product_name", second.json()["errors"])

    def test_create_item_cannot_mark_itself_universal(self):
        self.client.force_authenticate(user=self.clerk)

        response = self.client.post("/api/v1/items/", self._payload(is_universal=True), format="json")

        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.json()["is_universal"])

    def test_universal_item_cannot_be_deleted(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.delete(f"/api/v1/items/{self.bardana.id}/")

        self.assertEqual(response.status_code, 400)
        self.assertTrue(Item.objects.filter(pk=self.bardana.pk).exists())

    def test_clerk_cannot_delete_items(self):
        item = make_item("Dal")
        self.client.force_authenticate(user=self.clerk)

        response = self.client.delete(f"/api/v1/items/{item.id}/")

        self.assertEqual(response.status_code, 403)

    def test_filter_by_category(self):
        make_item("Oil", category=Item.Category.KIRANA)
        self.client.force_authenticate(user=self.clerk)

        response = self.client.get("/api/v1/items/", {"category": "Kirana"})

        self.assertEqual(response.status_code, 200)
        names = [row["product_name"] for row in response.json()["results"]]
        self.assertEqual(names, ["Oil"])

    def test_summary_counts_and_low_stock(self):
        make_item("Low Rice", stock="1", low_stock_alert=Decimal("2"), purchase_price=Decimal("10"))
        make_item("Full Oil", stock="50", category=Item.Category.KIRANA, purchase_price=Decimal("1"))
        Item.objects.filter(pk=self.bardana.pk).update(opening_stock=Decimal("20"))
        self.client.force_authenticate(user=self.clerk)

        response = self.client.get("/api/v1/items/summary/")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total_items"], 3)
        self.assertEqual(body["primary_items"], 2)
        self.assertEqual(body["kirana_items"], 1)
        self.assertEqual(body["universal_items"], 1)
        # 1 bag * 30 kg * 10 + 50 bags * 30 kg * 1
        self.assertEqual(body["total_stock_value"], 1800)
        self.assertEqual([row["product_name"] for row in body["low_stock_items"]], ["Low Rice"])
        self.assertEqual(body["low_stock_items"][0]["stock_in_kg"], "30.00")

    def test_bardana_get_returns_404_when_absent(self):
        Item.objects.filter(is_universal=True).delete()
        self.client.force_authenticate(user=self.clerk)

        response = self.client.get("/api/v1/items/bardana/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_bardana_initialize(self):
        self.client.force_authenticate(user=self.clerk)
        existing = self.client.post("/api/v1/items/bardana/initialize/", {}, format="json")

        Item.objects.filter(is_universal=True).delete()
        created = self.client.post("/api/v1/items/bardana/initialize/", {}, format="json")

        self.assertEqual(existing.status_code, 200)
        self.assertEqual(created.status_code, 201)
        self.assertTrue(created.json()["is_universal"])

    def test_bardana_stock_override_rounds_and_floors(self):
        Item.objects.filter(pk=self.bardana.pk).update(opening_stock=Decimal("1"))
        self.client.force_authenticate(user=self.supervisor)

        added = self.client.put("/api/v1/items/bardana/stock/", {"operation": "add", "quantity": "10"}, format="json")
        self.assertEqual(added.status_code, 200)
        self.assertEqual(Decimal(added.json()["opening_stock"]), Decimal("1.33"))

        floored = self.client.put("/api/v1/items/bardana/stock/", {"operation": "subtract", "quantity": "300"}, format="json")
        self.assertEqual(floored.status_code, 200)
        self.assertEqual(Decimal(floored.json()["opening_stock"]), Decimal("0"))

    def test_bardana_stock_override_requires_supervisor(self):
        self.client.force_authenticate(user=self.clerk)

        response = self.client.put("/api/v1/items/bardana/stock/", {"operation": "add", "quantity": "10"}, format="json")

        self.assertEqual(response.status_code, 403)
