from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import AuditLog


class HealthCheckTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_healthz_is_public_and_echoes_request_id(self):
        response = self.client.get("/api/v1/healthz/", HTTP_X_REQUEST_ID="health-1")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertEqual(response["X-Request-ID"], "health-1")

    def test_readyz_checks_database(self):
        response = self.client.get("/api/v1/readyz/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ready")


class ErrorEnvelopeTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.clerk = get_user_model().objects.create_user(username="envelope-clerk", password="pass1234")

    def test_unauthenticated_request_uses_error_envelope(self):
        response = self.client.get("/api/v1/parties/")

        self.assertEqual(response.status_code, 401)
        body = response.json()
        self.assertEqual(body["code"], "not_authenticated")
        self.assertEqual(body["status"], 401)
        self.assertIsNone(body["errors"])

    def test_validation_errors_are_listed_per_field(self):
        self.client.force_authenticate(user=self.clerk)

        response = self.client.post("/api/v1/parties/", {"name": "", "phone_number": "abc"}, format="json")

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["code"], "validation_error")
        self.assertEqual(body["message"], "Validation failed.")
        self.assertIn("name", body["errors"])
        self.assertIn("phone_number", body["errors"])


class RolePermissionTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        user_model = get_user_model()
        self.clerk = user_model.objects.create_user(username="perm-clerk", password="pass1234")
        self.supervisor = user_model.objects.create_user(username="perm-supervisor", password="pass1234", is_staff=True)

    def test_clerk_cannot_run_payment_cleanup_and_denial_is_logged(self):
        self.client.force_authenticate(user=self.clerk)
        with self.assertLogs("security.authorization", level="WARNING") as cm:
            response = self.client.post("/api/v1/payments/cleanup/", {}, format="json")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "permission_denied")
        self.assertTrue(any("permission_denied" in message for message in cm.output))

    def test_supervisor_can_run_payment_cleanup(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post("/api/v1/payments/cleanup/", {}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"cleaned_count": 0, "duplicate_groups": 0})


class AuditLogTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        user_model = get_user_model()
        self.admin = user_model.objects.create_superuser(username="audit-admin", password="pass1234", email="admin@example.com")
        self.clerk = user_model.objects.create_user(username="audit-clerk", password="pass1234")

    def test_party_create_writes_audit_log(self):
        self.client.force_authenticate(user=self.clerk)
        response = self.client.post(
            "/api/v1/parties/",
            {"name": "Audit Traders", "phone_number": "9876543210"},
            format="json",
            HTTP_X_REQUEST_ID="req-123",
        )

        self.assertEqual(response.status_code, 201)
        log = AuditLog.objects.get(action="party.create", request_id="req-123")
        self.assertEqual(log.entity, "party")
        self.assertEqual(log.entity_id, response.json()["id"])
        self.assertEqual(log.actor, self.clerk)
        self.assertEqual(log.after_snapshot["name"], "Audit Traders")

    def test_audit_logs_are_admin_only(self):
        self.client.force_authenticate(user=self.clerk)

        response = self.client.get("/api/v1/admin/audit-logs/")

        self.assertEqual(response.status_code, 403)

    def test_audit_logs_are_read_only(self):
        self.client.force_authenticate(user=self.admin)
        log = AuditLog.objects.create(action="test.action", entity="test", actor=self.admin)

        patch_res = self.client.patch(f"/api/v1/admin/audit-logs/{log.id}/", {"action": "changed"}, format="json")
        delete_res = self.client.delete(f"/api/v1/admin/audit-logs/{log.id}/")

        self.assertEqual(patch_res.status_code, 405)
        self.assertEqual(delete_res.status_code, 405)

    def test_audit_logs_filter_by_entity(self):
        self.client.force_authenticate(user=self.admin)
        AuditLog.objects.create(action="sale.create", entity="sale", entity_id="1")
        AuditLog.objects.create(action="payment.create", entity="payment", entity_id="2")

        response = self.client.get("/api/v1/admin/audit-logs/", {"entity": "sale"})

        self.assertEqual(response.status_code, 200)
        actions = [row["action"] for row in response.json()["results"]]
        self.assertEqual(actions, ["sale.create"])
