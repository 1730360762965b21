"""Write helpers for admin-facing notifications.

Notifications are append-only; ``read`` is the only field changed after
creation.
"""

from .models import Notification

RECENT_LIMIT = 20


def notify(kind, message, student=None, now=None):
    """Create one notification and return it."""
    fields = {"kind": kind, "message": message, "student": student}
    if now is not None:
        fields["created_at"] = now
    return Notification.objects.create(**fields)


def recent_notifications(limit=RECENT_LIMIT):
    return list(
        Notification.objects
        .select_related("student")
        .order_by("-created_at", "-pk")[:limit]
    )


def unread_count():
    return Notification.objects.filter(read=False).count()


def mark_read(notification):
    if notification.read:
        return notification
    notification.read = True
    notification.save(update_fields=["read"])
    return notification


def mark_all_read():
    """Mark every unread notification as read. Returns the number updated."""
    return Notification.objects.filter(read=False).update(read=True)
