import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from parties.models import Party
from parties.services import PartyNotFound, find_or_create_party, update_balance


class PartyModelTests(TestCase):
    def test_phone_number_is_sanitized_on_save(self):
        party = Party.objects.create(name=" Ravi Traders ", phone_number="98765 43210", email="Ravi@Example.COM")

        self.assertEqual(party.name, "Ravi Traders")
        self.assertEqual(party.phone_number, "+919876543210")
        self.assertEqual(party.email, "ravi@example.com")

    def test_international_phone_number_is_kept(self):
        party = Party.objects.create(name="Gulf Exports", phone_number="+971-50-123-4567")

        self.assertEqual(party.phone_number, "+971501234567")


class UpdateBalanceTests(TestCase):
    def setUp(self):
        self.party = Party.objects.create(name="Balance Co", phone_number="9000000001", balance=Decimal("100.00"))

    def test_add_subtract_and_set(self):
        update_balance(self.party.pk, Decimal("50"), Party.BalanceOperation.ADD)
        self.party.refresh_from_db()
        self.assertEqual(self.party.balance, Decimal("150.00"))

        update_balance(self.party.pk, Decimal("200"), Party.BalanceOperation.SUBTRACT)
        self.party.refresh_from_db()
        self.assertEqual(self.party.balance, Decimal("-50.00"))

        update_balance(self.party.pk, Decimal("12.5"), Party.BalanceOperation.SET)
        self.party.refresh_from_db()
        self.assertEqual(self.party.balance, Decimal("12.50"))

    def test_missing_party_raises_not_found(self):
        with self.assertRaises(PartyNotFound):
            update_balance(uuid.uuid4(), Decimal("10"), Party.BalanceOperation.ADD)

    def test_unparsable_party_id_raises_not_found(self):
        with self.assertRaises(PartyNotFound):
            update_balance("not-a-uuid", Decimal("10"), Party.BalanceOperation.ADD)

    def test_unknown_operation_is_rejected(self):
        with self.assertRaises(ValueError):
            update_balance(self.party.pk, Decimal("10"), "multiply")

    def test_balance_update_is_logged(self):
        with self.assertLogs("ledger.balance", level="INFO") as cm:
            update_balance(self.party.pk, Decimal("1"), Party.BalanceOperation.ADD)

        self.assertTrue(any("balance_updated" in message for message in cm.output))


class FindOrCreatePartyTests(TestCase):
    def test_creates_party_with_zero_balance(self):
        party, created = find_or_create_party("New Party", "9111111111", address="Market Road")

        self.assertTrue(created)
        self.assertEqual(party.balance, Decimal("0"))
        self.assertEqual(party.address, "Market Road")

    def test_lookup_uses_sanitized_phone_number(self):
        existing, _ = find_or_create_party("Same Party", "9111111112")

        party, created = find_or_create_party("Same Party", "+91 91111 11112")

        self.assertFalse(created)
        self.assertEqual(party.pk, existing.pk)
        self.assertEqual(Party.objects.filter(name="Same Party").count(), 1)


class PartyApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        user_model = get_user_model()
        self.clerk = user_model.objects.create_user(username="party-clerk", password="pass1234")
        self.supervisor = user_model.objects.create_user(username="party-supervisor", password="pass1234", is_staff=True)
        self.party = Party.objects.create(name="Api Party", phone_number="9222222222", balance=Decimal("10.00"))

    def test_create_ignores_supplied_balance(self):
        self.client.force_authenticate(user=self.clerk)

        response = self.client.post(
            "/api/v1/parties/",
            {"name": "Fresh Party", "phone_number": "9333333333", "balance": "500.00"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(Decimal(response.json()["balance"]), Decimal("0"))

    def test_create_existing_party_conflicts(self):
        self.client.force_authenticate(user=self.clerk)

        response = self.client.post(
            "/api/v1/parties/",
            {"name": "Api Party", "phone_number": "+919222222222"},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "conflict")

    def test_put_balance_routes_through_balance_update(self):
        self.client.force_authenticate(user=self.clerk)

        response = self.client.put(
            f"/api/v1/parties/{self.party.id}/",
            {"name": "Api Party", "phone_number": "9222222222", "balance": "75.00", "address": "New Address"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.party.refresh_from_db()
        self.assertEqual(self.party.balance, Decimal("75.00"))
        self.assertEqual(self.party.address, "New Address")
        self.assertEqual(Decimal(response.json()["balance"]), Decimal("75.00"))

    def test_find_or_create_endpoint(self):
        self.client.force_authenticate(user=self.clerk)

        created = self.client.post(
            "/api/v1/parties/find-or-create/",
            {"name": "Walk In", "phone_number": "9444444444"},
            format="json",
        )
        found = self.client.post(
            "/api/v1/parties/find-or-create/",
            {"name": "Walk In", "phone_number": "9444444444"},
            format="json",
        )

        self.assertEqual(created.status_code, 201)
        self.assertEqual(found.status_code, 200)
        self.assertEqual(created.json()["id"], found.json()["id"])

    def test_balance_patch_requires_supervisor(self):
        self.client.force_authenticate(user=self.clerk)
        denied = self.client.patch(
            f"/api/v1/parties/{self.party.id}/balance/",
            {"amount": "5.00", "operation": "add"},
            format="json",
        )
        self.assertEqual(denied.status_code, 403)

        self.client.force_authenticate(user=self.supervisor)
        response = self.client.patch(
            f"/api/v1/parties/{self.party.id}/balance/",
            {"amount": "5.00", "operation": "subtract"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.json()["balance"]), Decimal("5.00"))

    def test_balance_patch_rejects_unknown_operation(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.patch(
            f"/api/v1/parties/{self.party.id}/balance/",
            {"amount": "5.00", "operation": "double"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("operation", response.json()["errors"])

    def test_search_matches_name_or_phone(self):
        Party.objects.create(name="Other Party", phone_number="9555555555")
        self.client.force_authenticate(user=self.clerk)

        response = self.client.get("/api/v1/parties/", {"search": "92222"})

        self.assertEqual(response.status_code, 200)
        names = [row["name"] for row in response.json()["results"]]
        self.assertEqual(names, ["Api Party"])
