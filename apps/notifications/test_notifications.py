from datetime import timedelta
from unittest import mock

from django.core import mail
from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User

from .models import Notification
from .services import notify_user
from .tasks import purge_read_notifications, send_notification_email


class NotifyUserTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="ali@masjid.test", password="pass12345", full_name="Ali")

    def test_notification_is_emailed_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            notification = notify_user(self.user, "Salam", "Permohonan anda diterima.", action_url="/kariah")

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["ali@masjid.test"])
        self.assertIn("/kariah", mail.outbox[0].body)
        notification.refresh_from_db()
        self.assertIsNotNone(notification.emailed_at)

    def test_no_email_before_commit(self):
        notify_user(self.user, "Salam", "Mesej")
        self.assertEqual(len(mail.outbox), 0)

    def test_database_error_is_logged_not_raised(self):
        with mock.patch.object(Notification.objects, "create", side_effect=DatabaseError("disk full")):
            with self.assertLogs("apps.notifications.services", level="ERROR"):
                self.assertIsNone(notify_user(self.user, "Salam", "Mesej"))

    def test_broker_outage_is_logged_not_raised(self):
        with mock.patch.object(send_notification_email, "delay", side_effect=ConnectionError("broker down")):
            with self.assertLogs("apps.notifications.services", level="ERROR") as logs:
                with self.captureOnCommitCallbacks(execute=True):
                    notification = notify_user(self.user, "Salam", "Mesej")

        self.assertIsNotNone(notification)
        self.assertTrue(Notification.objects.filter(pk=notification.pk).exists())
        self.assertIn(f"notification {notification.pk}", logs.output[0])

    def test_purge_only_old_read_notifications(self):
        old_read = Notification.objects.create(user=self.user, title="a", message="a", is_read=True)
        Notification.objects.filter(pk=old_read.pk).update(created_at=timezone.now() - timedelta(days=120))
        Notification.objects.create(user=self.user, title="b", message="b", is_read=True)
        Notification.objects.create(user=self.user, title="c", message="c")

        self.assertEqual(purge_read_notifications(), 1)
        self.assertEqual(Notification.objects.count(), 2)


class NotificationApiTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="ali@masjid.test", password="pass12345", full_name="Ali")
        other = User.objects.create_user(email="siti@masjid.test", password="pass12345", full_name="Siti")
        self.first = Notification.objects.create(user=self.user, title="Satu", message="1")
        Notification.objects.create(user=self.user, title="Dua", message="2")
        Notification.objects.create(user=other, title="Bukan anda", message="3")
        self.client.force_authenticate(self.user)

    def test_list_own_notifications(self):
        response = self.client.get("/api/notifications/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["pagination"]["total"], 2)

    def test_read_flow(self):
        self.assertEqual(self.client.get("/api/notifications/unread-count/").data["count"], 2)

        response = self.client.post(f"/api/notifications/{self.first.pk}/read/")
        self.assertTrue(response.data["is_read"])
        self.assertEqual(self.client.get("/api/notifications/unread-count/").data["count"], 1)

        response = self.client.post("/api/notifications/read-all/")
        self.assertEqual(response.data["updated"], 1)

        response = self.client.delete("/api/notifications/clear-read/")
        self.assertEqual(response.data["deleted"], 2)
        self.assertEqual(Notification.objects.filter(user=self.user).count(), 0)

    def test_cannot_touch_other_users_notification(self):
        foreign = Notification.objects.exclude(user=self.user).get()
        response = self.client.post(f"/api/notifications/{foreign.pk}/read/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
