from unittest import mock

from django.test import TestCase

from apps.authentication.models import User
from apps.mosques.models import Mosque
from apps.notifications.models import Notification
from apps.notifications.tasks import send_notification_email
from core import workflow
from core.exceptions import (
    ConcurrentUpdateError,
    DuplicateApplicationError,
    InvalidStateError,
    NotAuthorizedError,
    ValidationError,
)

from . import services
from .models import KariahApplication, KariahMembership


class KariahServiceTestCase(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            email="imam@masjid.test", password="pass12345", full_name="Imam Ahmad", role="mosque_admin"
        )
        self.member = User.objects.create_user(email="ali@masjid.test", password="pass12345", full_name="Ali Abu")
        self.other = User.objects.create_user(email="siti@masjid.test", password="pass12345", full_name="Siti Aminah")
        self.mosque = Mosque.objects.create(name="Masjid Al-Falah", user=self.admin)

    def submit(self, user=None, ic="900101-01-1234"):
        return services.submit_application(user or self.member, self.mosque, ic)


class NormalizeIcPassportTests(TestCase):
    def test_ic_without_dashes_is_formatted(self):
        self.assertEqual(services.normalize_ic_passport("900101011234"), "900101-01-1234")

    def test_passport_is_upper_cased(self):
        self.assertEqual(services.normalize_ic_passport(" a1234567 "), "A1234567")

    def test_invalid_value_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            services.normalize_ic_passport("12-34")
        self.assertIn("ic_passport_number", ctx.exception.detail)


class SubmitApplicationTests(KariahServiceTestCase):
    def test_submit_creates_pending_application_and_notifies_mosque_admin(self):
        application = self.submit()

        self.assertEqual(application.status, "pending")
        self.assertEqual(application.ic_passport_number, "900101-01-1234")
        self.assertEqual(application.version, 1)
        self.assertTrue(Notification.objects.filter(user=self.admin, mosque=self.mosque).exists())

    def test_second_submission_is_a_duplicate(self):
        self.submit()
        with self.assertRaises(DuplicateApplicationError):
            self.submit()
        self.assertEqual(KariahApplication.objects.count(), 1)

    def test_rejected_application_blocks_until_deleted(self):
        application = self.submit()
        services.review_application(application.pk, self.mosque.pk, "rejected", self.admin, "Not a resident")

        with self.assertRaises(DuplicateApplicationError):
            self.submit()

        services.delete_rejected_application(application.pk, self.member)
        resubmitted = self.submit()
        self.assertEqual(resubmitted.status, "pending")

    def test_active_member_cannot_apply_again(self):
        KariahMembership.objects.create(user=self.member, mosque=self.mosque, joined_date="2024-01-01")
        with self.assertRaises(DuplicateApplicationError):
            self.submit()


class ReviewApplicationTests(KariahServiceTestCase):
    def test_reject_with_blank_notes_leaves_status_unchanged(self):
        application = self.submit()

        for notes in (None, "", "   "):
            with self.assertRaises(ValidationError):
                services.review_application(application.pk, self.mosque.pk, "rejected", self.admin, notes)

        application.refresh_from_db()
        self.assertEqual(application.status, "pending")
        self.assertEqual(application.version, 1)
        self.assertIsNone(application.reviewed_by)

    def test_unknown_outcome_is_rejected(self):
        application = self.submit()
        with self.assertRaises(ValidationError):
            services.review_application(application.pk, self.mosque.pk, "withdrawn", self.admin)

    def test_review_requires_reviewer(self):
        application = self.submit()
        with self.assertRaises(ValidationError):
            services.review_application(application.pk, self.mosque.pk, "approved", None)

    def test_review_outside_mosque_is_not_found(self):
        other_mosque = Mosque.objects.create(name="Masjid Jamek", user=self.other)
        application = self.submit()

        from rest_framework.exceptions import NotFound

        with self.assertRaises(NotFound):
            services.review_application(application.pk, other_mosque.pk, "approved", self.admin)

    def test_approve_creates_membership(self):
        application = self.submit()
        services.start_review(application.pk, self.mosque.pk, self.admin)

        application = services.review_application(application.pk, self.mosque.pk, "approved", self.admin)

        self.assertEqual(application.status, "approved")
        self.assertEqual(application.reviewed_by, self.admin)
        self.assertIsNotNone(application.reviewed_at)
        self.assertEqual(application.version, 3)
        membership = KariahMembership.objects.get(user=self.member, mosque=self.mosque)
        self.assertEqual(membership.status, "active")
        self.assertTrue(membership.membership_number.startswith("KRH-"))
        self.assertTrue(Notification.objects.filter(user=self.member, type="success").exists())

    def test_approval_survives_a_broker_outage(self):
        application = self.submit()

        with mock.patch.object(send_notification_email, "delay", side_effect=ConnectionError("broker down")):
            with self.assertLogs("apps.notifications.services", level="ERROR"):
                with self.captureOnCommitCallbacks(execute=True):
                    application = services.review_application(application.pk, self.mosque.pk, "approved", self.admin)

        self.assertEqual(application.status, "approved")
        self.assertTrue(KariahMembership.objects.filter(user=self.member, mosque=self.mosque, status="active").exists())

    def test_rejected_application_cannot_be_approved(self):
        application = self.submit()
        services.review_application(application.pk, self.mosque.pk, "rejected", self.admin, "Incomplete")

        with self.assertRaises(InvalidStateError):
            services.review_application(application.pk, self.mosque.pk, "approved", self.admin)

    def test_stale_expected_version_is_refused(self):
        application = self.submit()
        services.start_review(application.pk, self.mosque.pk, self.admin)

        with self.assertRaises(ConcurrentUpdateError):
            services.review_application(
                application.pk, self.mosque.pk, "approved", self.admin, expected_version=1
            )
        application.refresh_from_db()
        self.assertEqual(application.status, "under_review")

    def test_second_reviewer_with_stale_copy_fails_loudly(self):
        application = self.submit()
        stale = KariahApplication.objects.get(pk=application.pk)

        services.review_application(application.pk, self.mosque.pk, "rejected", self.admin, "Duplicate IC")

        with self.assertRaises(ConcurrentUpdateError):
            workflow.review(stale, "approved", self.other)
        application.refresh_from_db()
        self.assertEqual(application.status, "rejected")
        self.assertFalse(KariahMembership.objects.filter(user=self.member).exists())


class WithdrawMembershipTests(KariahServiceTestCase):
    def approve(self):
        application = self.submit()
        services.review_application(application.pk, self.mosque.pk, "approved", self.admin)
        return KariahMembership.objects.get(user=self.member, mosque=self.mosque)

    def test_only_owner_can_withdraw(self):
        membership = self.approve()

        with self.assertRaises(NotAuthorizedError):
            services.withdraw_membership(membership.pk, self.other)

        membership.refresh_from_db()
        self.assertEqual(membership.status, "active")
        self.assertEqual(KariahApplication.objects.get(user=self.member).status, "approved")

    def test_withdraw_then_reapply(self):
        membership = self.approve()

        with self.assertLogs("core.workflow", level="INFO") as logs:
            membership = services.withdraw_membership(membership.pk, self.member)

        self.assertIn("approved -> withdrawn", logs.output[0])
        self.assertEqual(membership.status, "withdrawn")
        self.assertIsNotNone(membership.withdrawn_at)
        self.assertFalse(KariahApplication.objects.filter(user=self.member, mosque=self.mosque).exists())

        application = self.submit()
        self.assertEqual(application.status, "pending")

    def test_reapproval_reactivates_existing_membership(self):
        membership = self.approve()
        services.withdraw_membership(membership.pk, self.member)

        application = self.submit()
        services.review_application(application.pk, self.mosque.pk, "approved", self.admin)

        memberships = KariahMembership.objects.filter(user=self.member, mosque=self.mosque)
        self.assertEqual(memberships.count(), 1)
        reactivated = memberships.get()
        self.assertEqual(reactivated.pk, membership.pk)
        self.assertEqual(reactivated.status, "active")
        self.assertIsNone(reactivated.withdrawn_at)

    def test_withdrawn_membership_cannot_be_withdrawn_again(self):
        membership = self.approve()
        services.withdraw_membership(membership.pk, self.member)

        with self.assertRaises(InvalidStateError):
            services.withdraw_membership(membership.pk, self.member)


class DeleteRejectedApplicationTests(KariahServiceTestCase):
    def test_pending_application_cannot_be_deleted(self):
        application = self.submit()
        with self.assertRaises(InvalidStateError):
            services.delete_rejected_application(application.pk, self.member)

    def test_only_applicant_can_delete(self):
        application = self.submit()
        services.review_application(application.pk, self.mosque.pk, "rejected", self.admin, "No proof of address")

        with self.assertRaises(NotAuthorizedError):
            services.delete_rejected_application(application.pk, self.admin)
        self.assertTrue(KariahApplication.objects.filter(pk=application.pk).exists())
