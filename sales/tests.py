from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.models import AuditLog
from inventory.models import Item
from inventory.services import ensure_universal_item
from parties.models import Party
from sales.models import Payment, Purchase, Sale
from sales.payments import cleanup_duplicate_payments, generate_payment_number
from sales.services import LineSpec, PurchaseLifecycle, SaleLifecycle


class LedgerTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.clerk = get_user_model().objects.create_user(username="ledger-clerk", password="pass1234")
        self.client.force_authenticate(user=self.clerk)

        self.bardana, _ = ensure_universal_item()
        Item.objects.filter(pk=self.bardana.pk).update(opening_stock=Decimal("100"))
        self.rice = Item.objects.create(
            product_name="Rice",
            category=Item.Category.PRIMARY,
            purchase_price=Decimal("30.00"),
            sale_price=Decimal("35.00"),
            opening_stock=Decimal("10"),
            low_stock_alert=Decimal("1"),
        )

    def stock(self, item):
        item.refresh_from_db()
        return item.opening_stock

    def line(self, quantity, rate="10.00", item=None, **overrides):
        item = item or self.rice
        payload = {"item_id": str(item.id), "item_name": item.product_name, "quantity": str(quantity), "rate": rate}
        payload.update(overrides)
        return payload

    def document_payload(self, items, **overrides):
        payload = {
            "party_name": "Ravi Traders",
            "phone_number": "9876543210",
            "items": items,
            "date": "10/18/2026",
        }
        payload.update(overrides)
        return payload

    def party(self):
        return Party.objects.get(name="Ravi Traders", phone_number="+919876543210")


class SaleLifecycleApiTests(LedgerTestCase):
    def test_total_is_derived_from_lines(self):
        response = self.client.post(
            "/api/v1/sales/",
            self.document_payload([self.line(30, "12.50"), self.line(15, "4.00")], total_amount="1.00"),
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(Decimal(body["total_amount"]), Decimal("435.00"))
        self.assertEqual([Decimal(row["total"]) for row in body["items"]], [Decimal("375.00"), Decimal("60.00")])
        self.assertEqual(body["invoice_no"], "1")
        self.assertEqual(self.party().balance, Decimal("435.00"))

    def test_total_rounds_the_sum_of_unrounded_line_amounts(self):
        response = self.client.post(
            "/api/v1/sales/",
            self.document_payload([self.line("0.333", "0.05") for _ in range(3)]),
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(Decimal(body["total_amount"]), Decimal("0.05"))
        self.assertEqual([Decimal(row["total"]) for row in body["items"]], [Decimal("0.02")] * 3)
        self.assertEqual(self.party().balance, Decimal("0.05"))

    def test_quantity_accepts_four_decimal_places(self):
        response = self.client.post(
            "/api/v1/sales/",
            self.document_payload([self.line("1.2345", "10.00")]),
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(Decimal(body["items"][0]["quantity"]), Decimal("1.2345"))
        self.assertEqual(Decimal(body["total_amount"]), Decimal("12.35"))

    def test_sale_decreases_item_and_bardana_stock(self):
        response = self.client.post("/api/v1/sales/", self.document_payload([self.line(90)]), format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.stock(self.rice), Decimal("7"))
        self.assertEqual(self.stock(self.bardana), Decimal("97"))

    def test_sale_stock_clamps_while_bardana_takes_full_quantity(self):
        Item.objects.filter(pk=self.rice.pk).update(opening_stock=Decimal("2"))

        response = self.client.post("/api/v1/sales/", self.document_payload([self.line(90)]), format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.stock(self.rice), Decimal("0"))
        self.assertEqual(self.stock(self.bardana), Decimal("97"))

    def test_create_then_delete_restores_stock_and_balance(self):
        party = Party.objects.create(name="Ravi Traders", phone_number="9876543210", balance=Decimal("50.00"))

        created = self.client.post("/api/v1/sales/", self.document_payload([self.line(45, "8.00")]), format="json")
        self.assertEqual(created.status_code, 201)
        party.refresh_from_db()
        self.assertEqual(party.balance, Decimal("410.00"))

        deleted = self.client.delete(f"/api/v1/sales/{created.json()['id']}/")

        self.assertEqual(deleted.status_code, 204)
        party.refresh_from_db()
        self.assertEqual(party.balance, Decimal("50.00"))
        self.assertEqual(self.stock(self.rice), Decimal("10"))
        self.assertEqual(self.stock(self.bardana), Decimal("100"))
        self.assertFalse(Sale.objects.exists())

    def test_update_quantity_reverses_then_reapplies(self):
        created = self.client.post("/api/v1/sales/", self.document_payload([self.line(30)]), format="json")
        self.assertEqual(self.stock(self.rice), Decimal("9"))

        response = self.client.put(
            f"/api/v1/sales/{created.json()['id']}/",
            {"items": [self.line(60)]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.stock(self.rice), Decimal("8"))
        self.assertEqual(self.stock(self.bardana), Decimal("98"))
        self.assertEqual(Decimal(response.json()["total_amount"]), Decimal("600.00"))
        self.assertEqual(self.party().balance, Decimal("600.00"))

    def test_update_with_same_lines_leaves_stock_alone(self):
        created = self.client.post("/api/v1/sales/", self.document_payload([self.line(30)]), format="json")

        response = self.client.patch(
            f"/api/v1/sales/{created.json()['id']}/",
            {"items": [self.line("30.000")], "date": "10/19/2026"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["date"], "10/19/2026")
        self.assertEqual(self.stock(self.rice), Decimal("9"))
        self.assertEqual(self.stock(self.bardana), Decimal("99"))

    def test_invoice_numbers_increment(self):
        first = self.client.post("/api/v1/sales/", self.document_payload([self.line(30)]), format="json")
        second = self.client.post("/api/v1/sales/", self.document_payload([self.line(30)]), format="json")

        self.assertEqual(first.json()["invoice_no"], "1")
        self.assertEqual(second.json()["invoice_no"], "2")

    def test_validation_rejects_bad_lines_and_dates(self):
        response = self.client.post(
            "/api/v1/sales/",
            self.document_payload([self.line(0)], date="2026-10-18"),
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        errors = response.json()["errors"]
        self.assertIn("items", errors)
        self.assertIn("date", errors)
        self.assertFalse(Sale.objects.exists())

    def test_empty_items_are_rejected(self):
        response = self.client.post("/api/v1/sales/", self.document_payload([]), format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("items", response.json()["errors"])

    def test_unknown_item_is_skipped_but_bardana_moves(self):
        response = self.client.post(
            "/api/v1/sales/",
            self.document_payload([self.line(30, item_id="no-such-item")]),
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.stock(self.rice), Decimal("10"))
        self.assertEqual(self.stock(self.bardana), Decimal("99"))

    def test_sale_create_writes_audit_log(self):
        response = self.client.post(
            "/api/v1/sales/",
            self.document_payload([self.line(30)]),
            format="json",
            HTTP_X_REQUEST_ID="sale-req-1",
        )

        self.assertTrue(
            AuditLog.objects.filter(action="sale.create", entity_id=response.json()["id"], request_id="sale-req-1").exists()
        )

    def test_by_party_and_date_range(self):
        self.client.post("/api/v1/sales/", self.document_payload([self.line(30)]), format="json")
        self.client.post(
            "/api/v1/sales/",
            self.document_payload([self.line(30)], party_name="Other Party", phone_number="9000000009"),
            format="json",
        )

        by_party = self.client.get("/api/v1/sales/by-party/", {"party_name": "Ravi Traders", "phone_number": "9876543210"})
        today = timezone.localdate()
        in_range = self.client.get("/api/v1/sales/date-range/", {"start_date": str(today), "end_date": str(today)})
        out_of_range = self.client.get(
            "/api/v1/sales/date-range/",
            {"start_date": str(today - timedelta(days=10)), "end_date": str(today - timedelta(days=5))},
        )
        missing = self.client.get("/api/v1/sales/date-range/", {"start_date": str(today)})

        self.assertEqual(by_party.json()["count"], 1)
        self.assertEqual(in_range.json()["count"], 2)
        self.assertEqual(out_of_range.json()["count"], 0)
        self.assertEqual(missing.status_code, 400)


class PurchaseLifecycleApiTests(LedgerTestCase):
    def test_purchase_increases_stock_and_subtracts_balance(self):
        response = self.client.post(
            "/api/v1/purchases/",
            self.document_payload([self.line(60, "20.00")], bill_no="BILL-001"),
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.stock(self.rice), Decimal("12"))
        self.assertEqual(self.stock(self.bardana), Decimal("102"))
        self.assertEqual(self.party().balance, Decimal("-1200.00"))

    def test_duplicate_bill_number_conflicts_without_side_effects(self):
        first = self.client.post(
            "/api/v1/purchases/",
            self.document_payload([self.line(30)], bill_no="BILL-002"),
            format="json",
        )
        balance_after_first = self.party().balance

        second = self.client.post(
            "/api/v1/purchases/",
            self.document_payload([self.line(90)], bill_no="BILL-002", party_name="Someone Else"),
            format="json",
        )

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.json()["code"], "conflict")
        self.assertEqual(Purchase.objects.count(), 1)
        self.assertEqual(self.party().balance, balance_after_first)
        self.assertFalse(Party.objects.filter(name="Someone Else").exists())
        self.assertEqual(self.stock(self.rice), Decimal("11"))
        self.assertEqual(self.stock(self.bardana), Decimal("101"))

    def test_bill_number_format_is_validated(self):
        response = self.client.post(
            "/api/v1/purchases/",
            self.document_payload([self.line(30)], bill_no="BILL 003!"),
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("bill_no", response.json()["errors"])

    def test_update_reconciles_bardana_by_net_difference(self):
        created = self.client.post(
            "/api/v1/purchases/",
            self.document_payload([self.line(60)], bill_no="BILL-004"),
            format="json",
        )
        self.assertEqual(self.stock(self.bardana), Decimal("102"))

        response = self.client.put(
            f"/api/v1/purchases/{created.json()['id']}/",
            {"items": [self.line(30)]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.stock(self.rice), Decimal("11"))
        self.assertEqual(self.stock(self.bardana), Decimal("101"))
        self.assertEqual(self.party().balance, Decimal("-300.00"))

    def test_update_to_existing_bill_number_conflicts(self):
        self.client.post("/api/v1/purchases/", self.document_payload([self.line(30)], bill_no="BILL-005"), format="json")
        other = self.client.post("/api/v1/purchases/", self.document_payload([self.line(30)], bill_no="BILL-006"), format="json")

        response = self.client.patch(f"/api/v1/purchases/{other.json()['id']}/", {"bill_no": "BILL-005"}, format="json")

        self.assertEqual(response.status_code, 409)

    def test_delete_clamps_stock_and_adds_balance_back(self):
        created = self.client.post(
            "/api/v1/purchases/",
            self.document_payload([self.line(60)], bill_no="BILL-007"),
            format="json",
        )
        Item.objects.filter(pk=self.rice.pk).update(opening_stock=Decimal("1"))

        response = self.client.delete(f"/api/v1/purchases/{created.json()['id']}/")

        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.stock(self.rice), Decimal("0"))
        self.assertEqual(self.stock(self.bardana), Decimal("100"))
        self.assertEqual(self.party().balance, Decimal("0.00"))

    def test_bulk_delete(self):
        first = self.client.post("/api/v1/purchases/", self.document_payload([self.line(30)], bill_no="BULK-1"), format="json")
        second = self.client.post("/api/v1/purchases/", self.document_payload([self.line(30)], bill_no="BULK-2"), format="json")

        response = self.client.post(
            "/api/v1/purchases/bulk-delete/",
            {"purchase_ids": [first.json()["id"], second.json()["id"]]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"deleted_count": 2})
        self.assertFalse(Purchase.objects.exists())
        self.assertEqual(self.stock(self.rice), Decimal("10"))
        self.assertEqual(self.stock(self.bardana), Decimal("100"))
        self.assertEqual(self.party().balance, Decimal("0.00"))

    def test_bulk_delete_rejects_empty_and_unknown_ids(self):
        empty = self.client.post("/api/v1/purchases/bulk-delete/", {"purchase_ids": []}, format="json")
        unknown = self.client.post(
            "/api/v1/purchases/bulk-delete/",
            {"purchase_ids": ["00000000-0000-0000-0000-000000000001"]},
            format="json",
        )

        self.assertEqual(empty.status_code, 400)
        self.assertEqual(unknown.status_code, 404)


class CompensationFailureTests(LedgerTestCase):
    def test_balance_failure_is_logged_and_sale_persists(self):
        with patch("sales.services.update_balance", side_effect=RuntimeError("balance store down")):
            with self.assertLogs("ledger.transactions", level="ERROR") as cm:
                sale = SaleLifecycle().create(
                    party_name="Ravi Traders",
                    phone_number="9876543210",
                    items=[LineSpec(str(self.rice.id), "Rice", Decimal("30"), Decimal("10"))],
                    date="10/18/2026",
                )

        self.assertTrue(Sale.objects.filter(pk=sale.pk).exists())
        self.assertEqual(self.party().balance, Decimal("0"))
        self.assertEqual(self.stock(self.rice), Decimal("9"))
        self.assertTrue(any("compensation_failed" in message for message in cm.output))

    def test_party_deleted_after_purchase_skips_balance_reversal(self):
        purchase = PurchaseLifecycle().create(
            party_name="Ravi Traders",
            phone_number="9876543210",
            items=[LineSpec(str(self.rice.id), "Rice", Decimal("30"), Decimal("10"))],
            date="10/18/2026",
            bill_no="ORPHAN-1",
        )
        self.party().delete()
        purchase.refresh_from_db()

        PurchaseLifecycle().delete(purchase)

        self.assertFalse(Purchase.objects.exists())
        self.assertEqual(self.stock(self.rice), Decimal("10"))


class PaymentApiTests(LedgerTestCase):
    def payment_payload(self, **overrides):
        payload = {
            "type": "payment-in",
            "party_name": "Ravi Traders",
            "phone_number": "9876543210",
            "amount": "150.00",
            "date": "10/18/2026",
        }
        payload.update(overrides)
        return payload

    def test_payment_in_subtracts_and_payment_out_adds(self):
        party = Party.objects.create(name="Ravi Traders", phone_number="9876543210", balance=Decimal("500.00"))

        payment_in = self.client.post("/api/v1/payments/", self.payment_payload(), format="json")
        party.refresh_from_db()
        self.assertEqual(party.balance, Decimal("350.00"))

        payment_out = self.client.post("/api/v1/payments/", self.payment_payload(type="payment-out", amount="40.00"), format="json")
        party.refresh_from_db()
        self.assertEqual(party.balance, Decimal("390.00"))

        self.assertEqual(payment_in.status_code, 201)
        self.assertTrue(payment_in.json()["payment_no"].startswith("PAY-IN-"))
        self.assertEqual(Decimal(payment_in.json()["total_amount"]), Decimal("150.00"))
        self.assertEqual(payment_in.json()["payment_method"], "cash")
        self.assertTrue(payment_out.json()["payment_no"].startswith("PAY-OUT-"))

    def test_update_amount_reverses_with_add_then_reapplies(self):
        party = Party.objects.create(name="Ravi Traders", phone_number="9876543210", balance=Decimal("500.00"))
        created = self.client.post("/api/v1/payments/", self.payment_payload(amount="100.00"), format="json")

        response = self.client.patch(
            f"/api/v1/payments/{created.json()['id']}/",
            {"amount": "60.00", "type": "payment-out"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["type"], "payment-in")
        party.refresh_from_db()
        # 500 - 100 on create, then + 100 reversal and - 60 reapply
        self.assertEqual(party.balance, Decimal("440.00"))

    def test_delete_reverses_with_add(self):
        party = Party.objects.create(name="Ravi Traders", phone_number="9876543210", balance=Decimal("0.00"))
        created = self.client.post("/api/v1/payments/", self.payment_payload(type="payment-out", amount="25.00"), format="json")
        party.refresh_from_db()
        self.assertEqual(party.balance, Decimal("25.00"))

        response = self.client.delete(f"/api/v1/payments/{created.json()['id']}/")

        self.assertEqual(response.status_code, 204)
        party.refresh_from_db()
        self.assertEqual(party.balance, Decimal("50.00"))

    def test_validation(self):
        response = self.client.post(
            "/api/v1/payments/",
            self.payment_payload(amount="0", payment_method="barter", type="refund"),
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        errors = response.json()["errors"]
        self.assertIn("amount", errors)
        self.assertIn("payment_method", errors)
        self.assertIn("type", errors)

    def test_party_failure_does_not_block_payment(self):
        with patch("sales.payments.find_or_create_party", side_effect=RuntimeError("party store down")):
            with self.assertLogs("ledger.payments", level="ERROR"):
                response = self.client.post("/api/v1/payments/", self.payment_payload(), format="json")

        self.assertEqual(response.status_code, 201)
        self.assertIsNone(response.json()["party"])

    def test_type_filter_summary_and_type_route(self):
        self.client.post("/api/v1/payments/", self.payment_payload(amount="10.00"), format="json")
        self.client.post("/api/v1/payments/", self.payment_payload(amount="15.00"), format="json")
        self.client.post("/api/v1/payments/", self.payment_payload(type="payment-out", amount="7.00"), format="json")

        filtered = self.client.get("/api/v1/payments/", {"type": "payment-in"})
        everything = self.client.get("/api/v1/payments/", {"type": "all"})
        summary = self.client.get("/api/v1/payments/summary/")
        by_type = self.client.get("/api/v1/payments/type/payment-out/")
        bad_type = self.client.get("/api/v1/payments/type/refund/")

        self.assertEqual(filtered.json()["count"], 2)
        self.assertEqual(everything.json()["count"], 3)
        totals = {row["type"]: (Decimal(row["total_amount"]), row["total_count"]) for row in summary.json()}
        self.assertEqual(totals["payment-in"], (Decimal("25.00"), 2))
        self.assertEqual(totals["payment-out"], (Decimal("7.00"), 1))
        self.assertEqual(by_type.json()["count"], 1)
        self.assertEqual(bad_type.status_code, 400)

    def test_party_transactions(self):
        self.client.post("/api/v1/sales/", self.document_payload([self.line(30)]), format="json")
        self.client.post("/api/v1/payments/", self.payment_payload(amount="50.00"), format="json")

        response = self.client.get(f"/api/v1/parties/{self.party().id}/transactions/")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["sales"]), 1)
        self.assertEqual(len(body["purchases"]), 0)
        self.assertEqual(len(body["payments"]), 1)
        self.assertEqual(Decimal(body["party"]["balance"]), Decimal("250.00"))


class PaymentNumberTests(TestCase):
    def test_format(self):
        payment_no = generate_payment_number(Payment.Type.PAYMENT_IN)

        prefix, pay, timestamp, suffix = payment_no.split("-")
        self.assertEqual(f"{prefix}-{pay}", "PAY-IN")
        self.assertEqual(len(timestamp), 8)
        self.assertEqual(len(suffix), 4)

    def test_falls_back_after_repeated_collisions(self):
        with patch("sales.payments.time.time", return_value=1712345678.5), patch(
            "sales.payments.random.randint", return_value=42
        ), patch("sales.payments.random.randrange", return_value=777):
            with patch("sales.payments.Payment.objects.filter") as mock_filter:
                mock_filter.return_value.exists.return_value = True
                payment_no = generate_payment_number(Payment.Type.PAYMENT_OUT)

        self.assertEqual(mock_filter.call_count, 10)
        self.assertEqual(payment_no, "PAY-OUT-1712345678500-777")


class DuplicatePaymentCleanupTests(TestCase):
    def setUp(self):
        self.party = Party.objects.create(name="Dup Party", phone_number="9000000001", balance=Decimal("0"))
        self.base_time = timezone.now()

    def make_payment(self, payment_no, offset_seconds):
        payment = Payment.objects.create(
            payment_no=payment_no,
            type=Payment.Type.PAYMENT_IN,
            party=self.party,
            party_name=self.party.name,
            phone_number=self.party.phone_number,
            amount=Decimal("10.00"),
            date="10/18/2026",
        )
        Payment.objects.filter(pk=payment.pk).update(created_at=self.base_time + timedelta(seconds=offset_seconds))
        return payment

    def test_cleanup_keeps_earliest_payment_per_number(self):
        later = self.make_payment("PAY-IN-00000001-0001", 5)
        earliest = self.make_payment("PAY-IN-00000001-0001", 0)
        self.make_payment("PAY-IN-00000001-0001", 9)
        unique = self.make_payment("PAY-IN-00000002-0001", 0)

        result = cleanup_duplicate_payments()

        self.assertEqual(result, {"cleaned_count": 2, "duplicate_groups": 1})
        remaining = set(Payment.objects.values_list("id", flat=True))
        self.assertEqual(remaining, {earliest.pk, unique.pk})
        self.assertNotIn(later.pk, remaining)
        self.party.refresh_from_db()
        self.assertEqual(self.party.balance, Decimal("0"))

    def test_many_payments_in_one_millisecond_collapse_to_unique_numbers(self):
        """A frozen clock and fixed random suffix force every number to collide, as concurrent writers would."""
        with patch("sales.payments.time.time", return_value=1712345678.5), patch(
            "sales.payments.random.randint", side_effect=lambda a, b: 7
        ):
            numbers = [generate_payment_number(Payment.Type.PAYMENT_IN) for _ in range(1000)]
        self.assertEqual(set(numbers), {"PAY-IN-45678500-0007"})
        for offset, payment_no in enumerate(numbers):
            self.make_payment(payment_no, offset)

        cleanup_duplicate_payments()

        payment_numbers = list(Payment.objects.values_list("payment_no", flat=True))
        self.assertEqual(len(payment_numbers), len(set(payment_numbers)))
        self.assertEqual(Payment.objects.count(), 1)

    def test_command_dry_run_and_apply(self):
        self.make_payment("PAY-IN-00000003-0001", 0)
        self.make_payment("PAY-IN-00000003-0001", 1)

        dry_out = StringIO()
        call_command("cleanup_duplicate_payments", stdout=dry_out)
        self.assertIn("Dry run only", dry_out.getvalue())
        self.assertEqual(Payment.objects.count(), 2)

        apply_out = StringIO()
        call_command("cleanup_duplicate_payments", "--apply", stdout=apply_out)
        self.assertIn("Removed 1 duplicate payment(s)", apply_out.getvalue())
        self.assertEqual(Payment.objects.count(), 1)


class ReconcilePartyBalancesCommandTests(LedgerTestCase):
    def test_reports_and_repairs_drift(self):
        self.client.post("/api/v1/sales/", self.document_payload([self.line(30, "10.00")]), format="json")
        self.client.post(
            "/api/v1/payments/",
            {
                "type": "payment-in",
                "party_name": "Ravi Traders",
                "phone_number": "9876543210",
                "amount": "100.00",
                "date": "10/18/2026",
            },
            format="json",
        )
        party = self.party()
        self.assertEqual(party.balance, Decimal("200.00"))
        Party.objects.filter(pk=party.pk).update(balance=Decimal("999.00"))

        dry_out = StringIO()
        call_command("reconcile_party_balances", stdout=dry_out)
        party.refresh_from_db()
        self.assertIn("stored 999.00, expected 200.00", dry_out.getvalue())
        self.assertEqual(party.balance, Decimal("999.00"))

        apply_out = StringIO()
        call_command("reconcile_party_balances", "--apply", stdout=apply_out)
        party.refresh_from_db()
        self.assertEqual(party.balance, Decimal("200.00"))
        self.assertIn("Repaired 1 party balance(s).", apply_out.getvalue())
