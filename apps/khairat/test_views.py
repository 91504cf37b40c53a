from decimal import Decimal

from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User
from apps.mosques.models import Mosque

from .models import KhairatClaim, KhairatContribution


class KhairatClaimApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            email="bendahari@masjid.test", password="pass12345", full_name="Bendahari", role="mosque_admin"
        )
        self.member = User.objects.create_user(email="ahmad@masjid.test", password="pass12345", full_name="Ahmad")
        self.mosque = Mosque.objects.create(name="Masjid An-Nur", user=self.admin)

    def create_claim(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(
            "/api/khairat/claims/",
            {"mosque": str(self.mosque.pk), "title": "Kos pengebumian", "requested_amount": "800.00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data["id"]

    def test_claim_lifecycle(self):
        claim_id = self.create_claim()

        self.client.force_authenticate(self.admin)
        response = self.client.post(f"/api/khairat/claims/{claim_id}/start-review/")
        self.assertEqual(response.data["status"], "under_review")

        response = self.client.post(
            f"/api/khairat/claims/{claim_id}/review/",
            {"status": "approved", "approved_amount": "600.00", "expected_version": 2},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["approved_amount"], "600.00")

        response = self.client.post(f"/api/khairat/claims/{claim_id}/mark-paid/", {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "paid")

    def test_member_cannot_review(self):
        claim_id = self.create_claim()
        response = self.client.post(
            f"/api/khairat/claims/{claim_id}/review/", {"status": "approved"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_reject_without_notes(self):
        claim_id = self.create_claim()
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            f"/api/khairat/claims/{claim_id}/review/", {"status": "rejected", "admin_notes": ""}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(KhairatClaim.objects.get(pk=claim_id).status, "pending")

    def test_claimant_cancels(self):
        claim_id = self.create_claim()
        response = self.client.post(f"/api/khairat/claims/{claim_id}/cancel/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "cancelled")

        response = self.client.post(f"/api/khairat/claims/{claim_id}/cancel/")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class KhairatContributionApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            email="bendahari@masjid.test", password="pass12345", full_name="Bendahari", role="mosque_admin"
        )
        self.member = User.objects.create_user(email="ahmad@masjid.test", password="pass12345", full_name="Ahmad")
        self.mosque = Mosque.objects.create(name="Masjid An-Nur", user=self.admin)

    def test_member_creates_online_contribution(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(
            "/api/khairat/contributions/",
            {"mosque": str(self.mosque.pk), "payer_name": "Ahmad", "amount": "30.00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["status"], "pending")
        contribution = KhairatContribution.objects.get()
        self.assertEqual(contribution.contributor, self.member)
        self.assertEqual(contribution.amount, Decimal("30.00"))

    def test_member_cannot_record_cash(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(
            "/api/khairat/contributions/",
            {"mosque": str(self.mosque.pk), "payer_name": "Ahmad", "amount": "30.00", "payment_method": "cash"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(KhairatContribution.objects.exists())

    def test_admin_records_cash(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            "/api/khairat/contributions/",
            {"mosque": str(self.mosque.pk), "payer_name": "Pak Long", "amount": "30.00", "payment_method": "cash"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["status"], "completed")

    def test_pay_without_provider_is_conflict(self):
        contribution = KhairatContribution.objects.create(
            mosque=self.mosque, contributor=self.member, payer_name="Ahmad", amount=Decimal("30.00")
        )
        self.client.force_authenticate(self.member)
        response = self.client.post(f"/api/khairat/contributions/{contribution.pk}/pay/", {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
