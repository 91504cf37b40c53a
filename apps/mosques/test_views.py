from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User

from .models import Mosque


class MosqueApiTests(APITestCase):
    def setUp(self):
        self.member = User.objects.create_user(email="imam@masjid.test", password="pass12345", full_name="Imam")
        self.other = User.objects.create_user(email="ali@masjid.test", password="pass12345", full_name="Ali")

    def test_creator_becomes_mosque_admin(self):
        self.client.force_authenticate(self.member)

        response = self.client.post(
            "/api/mosques/",
            {
                "name": "Masjid Al-Hidayah",
                "address": "Jalan Masjid, Shah Alam",
                "khairat_settings": {"enabled": True, "fixed_price": "50.00"},
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["khairat_settings"]["fixed_price"], "50.00")
        self.member.refresh_from_db()
        self.assertEqual(self.member.role, "mosque_admin")
        self.assertEqual(Mosque.objects.get().user, self.member)

    def test_invalid_khairat_settings(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(
            "/api/mosques/",
            {"name": "Masjid Al-Hidayah", "khairat_settings": {"fixed_price": "-1"}},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_listing_is_public(self):
        Mosque.objects.create(name="Masjid Jamek", user=self.member)
        response = self.client.get("/api/mosques/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["results"][0]["name"], "Masjid Jamek")

    def test_only_owner_updates(self):
        mosque = Mosque.objects.create(name="Masjid Jamek", user=self.member)

        self.client.force_authenticate(self.other)
        response = self.client.patch(f"/api/mosques/{mosque.pk}/", {"name": "Hijacked"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.member)
        response = self.client.patch(f"/api/mosques/{mosque.pk}/", {"phone": "03-5555 1234"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_mosques_cannot_be_deleted(self):
        mosque = Mosque.objects.create(name="Masjid Jamek", user=self.member)
        self.client.force_authenticate(self.member)
        response = self.client.delete(f"/api/mosques/{mosque.pk}/")
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
