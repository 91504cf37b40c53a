from decimal import Decimal
from unittest import mock

from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User
from apps.khairat.models import KhairatContribution
from apps.mosques.models import Mosque

from .models import PaymentLog, PaymentProvider
from .test_services import billplz_signature, gateway_response


class PaymentProviderApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            email="bendahari@masjid.test", password="pass12345", full_name="Bendahari", role="mosque_admin"
        )
        self.member = User.objects.create_user(email="ahmad@masjid.test", password="pass12345", full_name="Ahmad")
        self.mosque = Mosque.objects.create(name="Masjid Ar-Rahman", user=self.admin)

    @mock.patch("apps.payments.providers.requests.request")
    def test_activate_and_list_masks_secrets(self, request):
        request.return_value = gateway_response({"id": "col_abc"})
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            "/api/payments/providers/",
            {
                "mosque": str(self.mosque.pk),
                "provider_type": "billplz",
                "credentials": {"api_key": "billplz-key-1234", "x_signature_key": "", "collection_id": "col_abc"},
                "is_sandbox": True,
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertTrue(response.data["is_active"])
        self.assertEqual(response.data["credentials"]["api_key"], "****1234")
        self.assertEqual(response.data["credentials"]["collection_id"], "col_abc")

        response = self.client.get("/api/payments/providers/", {"mosque": str(self.mosque.pk)})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertNotIn("billplz-key-1234", str(response.data))

    @mock.patch("apps.payments.providers.requests.request")
    def test_incomplete_credentials_are_rejected_before_network(self, request):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            "/api/payments/providers/",
            {
                "mosque": str(self.mosque.pk),
                "provider_type": "toyyibpay",
                "credentials": {"secret_key": "", "category_code": "X"},
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("secret_key", response.data)
        request.assert_not_called()
        self.assertFalse(PaymentProvider.objects.exists())

    def test_save_draft_without_activation(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            "/api/payments/providers/",
            {
                "mosque": str(self.mosque.pk),
                "provider_type": "toyyibpay",
                "credentials": {"secret_key": "abc"},
                "activate": False,
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertFalse(response.data["is_active"])
        self.assertFalse(response.data["is_configured"])

    def test_member_cannot_manage_providers(self):
        self.client.force_authenticate(self.member)
        response = self.client.get("/api/payments/providers/", {"mosque": str(self.mosque.pk)})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @mock.patch("apps.payments.providers.requests.request")
    def test_connection_test_endpoint(self, request):
        request.return_value = gateway_response([{"categoryName": "Tabung Khairat"}])
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            "/api/payments/providers/test/",
            {"provider_type": "toyyibpay", "credentials": {"secret_key": "s", "category_code": "c"}},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["details"]["title"], "Tabung Khairat")
        self.assertFalse(PaymentProvider.objects.exists())

    def test_deactivate_endpoint(self):
        PaymentProvider.objects.create(
            mosque=self.mosque, provider_type="toyyibpay", is_active=True,
            toyyibpay_secret_key="s", toyyibpay_category_code="c",
        )
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            "/api/payments/providers/deactivate/",
            {"mosque": str(self.mosque.pk), "provider_type": "toyyibpay"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(PaymentProvider.objects.get().is_active)

    def test_status_is_public(self):
        response = self.client.get("/api/payments/providers/status/", {"mosque": str(self.mosque.pk)})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["needs_setup"], True)

        response = self.client.get("/api/payments/providers/status/", {"mosque": "not-a-uuid"})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class CallbackApiTests(APITestCase):
    def setUp(self):
        admin = User.objects.create_user(
            email="bendahari@masjid.test", password="pass12345", full_name="Bendahari", role="mosque_admin"
        )
        mosque = Mosque.objects.create(name="Masjid Ar-Rahman", user=admin)
        PaymentProvider.objects.create(
            mosque=mosque,
            provider_type="billplz",
            is_active=True,
            billplz_api_key="key",
            billplz_x_signature_key="sig-secret",
            billplz_collection_id="col_abc",
        )
        self.contribution = KhairatContribution.objects.create(
            mosque=mosque,
            payer_name="Ahmad",
            amount=Decimal("25.50"),
            bill_id="bill_001",
            payment_provider="billplz",
        )

    def test_billplz_form_callback(self):
        payload = {"id": "bill_001", "paid": "true", "state": "paid", "paid_amount": "2550"}
        payload["x_signature"] = billplz_signature(payload)

        response = self.client.post("/api/payments/billplz/callback/", payload)

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.contribution.refresh_from_db()
        self.assertEqual(self.contribution.status, "completed")

    def test_billplz_bad_signature(self):
        payload = {"id": "bill_001", "paid": "true", "state": "paid", "x_signature": "0" * 64}

        response = self.client.post("/api/payments/billplz/callback/", payload)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.contribution.refresh_from_db()
        self.assertEqual(self.contribution.status, "pending")
        self.assertTrue(PaymentLog.objects.filter(reference="bill_001").exists())

    def test_toyyibpay_callback_requires_bill_code(self):
        response = self.client.post("/api/payments/toyyibpay/callback/", {"status_id": "1"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
