import datetime

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from students.models import UserProfile

from .models import Notification
from .services import (
    RECENT_LIMIT, mark_all_read, mark_read, notify, recent_notifications, unread_count,
)


def _make_user(email, role=UserProfile.Role.STUDENT):
    user = get_user_model().objects.create_user(
        username=email, email=email, password="secret123",
    )
    UserProfile.objects.create(user=user, display_name=email.split("@")[0], role=role)
    return user


class NotificationServiceTests(TestCase):

    def test_notify(self):
        user = _make_user("ada@example.com")
        when = timezone.now() - datetime.timedelta(hours=1)
        notification = notify(Notification.Kind.WARNING, "Late", student=user, now=when)
        self.assertEqual(notification.created_at, when)
        self.assertFalse(notification.read)
        self.assertEqual(user.notifications.get(), notification)

    def test_recent_is_newest_first_and_capped(self):
        start = timezone.now()
        for i in range(RECENT_LIMIT + 5):
            notify(Notification.Kind.INFO, f"n{i}", now=start + datetime.timedelta(minutes=i))
        recent = recent_notifications()
        self.assertEqual(len(recent), RECENT_LIMIT)
        self.assertEqual(recent[0].message, f"n{RECENT_LIMIT + 4}")

    def test_mark_read(self):
        first = notify(Notification.Kind.INFO, "a")
        notify(Notification.Kind.INFO, "b")
        self.assertEqual(unread_count(), 2)

        mark_read(first)
        self.assertEqual(unread_count(), 1)
        self.assertEqual(mark_all_read(), 1)
        self.assertEqual(unread_count(), 0)
        self.assertEqual(mark_all_read(), 0)

    def test_deleting_student_keeps_notification(self):
        user = _make_user("ada@example.com")
        notification = notify(Notification.Kind.SUCCESS, "Done", student=user)
        user.delete()
        notification.refresh_from_db()
        self.assertIsNone(notification.student)


class NotificationViewTests(TestCase):

    def setUp(self):
        self.admin = _make_user("admin@example.com", role=UserProfile.Role.ADMIN)
        self.client.force_login(self.admin)
        self.notification = notify(Notification.Kind.SUCCESS, 'ada completed "Essay"')

    def test_list(self):
        data = self.client.get(reverse("notifications:notification_list")).json()
        self.assertEqual(data["unread"], 1)
        self.assertEqual(data["notifications"][0]["type"], "success")
        self.assertEqual(data["notifications"][0]["message"], 'ada completed "Essay"')

    def test_mark_read(self):
        url = reverse("notifications:notification_read", args=[self.notification.pk])
        data = self.client.post(url).json()
        self.assertTrue(data["read"])
        self.notification.refresh_from_db()
        self.assertTrue(self.notification.read)

    def test_mark_all_read(self):
        notify(Notification.Kind.INFO, "another")
        data = self.client.post(reverse("notifications:notification_read_all")).json()
        self.assertEqual(data, {"updated": 2, "unread": 0})

    def test_missing_notification(self):
        url = reverse("notifications:notification_read", args=[999999])
        self.assertEqual(self.client.post(url).status_code, 404)

    def test_admin_only(self):
        self.client.force_login(_make_user("ada@example.com"))
        response = self.client.get(reverse("notifications:notification_list"))
        self.assertEqual(response.status_code, 403)
