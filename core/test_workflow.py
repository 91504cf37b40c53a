from django.test import TestCase

from apps.authentication.models import User
from apps.kariah.models import KariahApplication
from apps.mosques.models import Mosque

from . import workflow
from .exceptions import ConcurrentUpdateError, InvalidStateError, ValidationError


class WorkflowTests(TestCase):
    def setUp(self):
        self.reviewer = User.objects.create_user(
            email="imam@masjid.test", password="pass12345", full_name="Imam", role="mosque_admin"
        )
        applicant = User.objects.create_user(email="ali@masjid.test", password="pass12345", full_name="Ali")
        mosque = Mosque.objects.create(name="Masjid Al-Amin", user=self.reviewer)
        self.application = KariahApplication.objects.create(
            user=applicant, mosque=mosque, ic_passport_number="900101-01-1234"
        )

    def test_transition_table(self):
        self.assertTrue(self.application.can_transition_to("under_review"))
        self.assertFalse(self.application.can_transition_to("withdrawn"))
        self.assertFalse(self.application.is_terminal)
        self.assertFalse(KariahApplication.is_known_status("archived"))

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            workflow.apply_transition(self.application, "archived")

    def test_illegal_transition_writes_nothing(self):
        with self.assertRaises(InvalidStateError):
            workflow.apply_transition(self.application, "withdrawn")
        self.application.refresh_from_db()
        self.assertEqual(self.application.version, 1)

    def test_review_stamps_reviewer_and_bumps_version(self):
        record = workflow.review(self.application, "rejected", self.reviewer, "  Tiada bukti alamat  ")

        self.assertEqual(record.status, "rejected")
        self.assertEqual(record.admin_notes, "Tiada bukti alamat")
        self.assertEqual(record.reviewed_by, self.reviewer)
        self.assertIsNotNone(record.reviewed_at)
        self.assertEqual(record.version, 2)
        self.assertTrue(record.is_terminal)

    def test_blank_approval_notes_are_stored_as_null(self):
        record = workflow.review(self.application, "approved", self.reviewer, "   ")
        self.assertIsNone(record.admin_notes)

    def test_version_mismatch(self):
        with self.assertRaises(ConcurrentUpdateError):
            workflow.review(self.application, "approved", self.reviewer, expected_version=7)

    def test_lost_update_is_detected(self):
        first = KariahApplication.objects.get(pk=self.application.pk)
        second = KariahApplication.objects.get(pk=self.application.pk)

        workflow.review(first, "approved", self.reviewer)
        with self.assertRaises(ConcurrentUpdateError):
            workflow.review(second, "rejected", self.reviewer, "Terlambat")

        self.application.refresh_from_db()
        self.assertEqual(self.application.status, "approved")
