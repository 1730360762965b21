"""Write-side helpers for tasks and the notifications they trigger."""

import datetime
import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.utils import timezone

from notifications.models import Notification
from notifications.services import notify

from .models import Task
from .temporal import TaskState, classify, is_past_day

logger = logging.getLogger(__name__)


def display_name(user, fallback="Student"):
    profile = getattr(user, "profile", None)
    if profile is not None and profile.display_name:
        return profile.display_name
    return fallback


def due_day_start(due_date, now=None):
    """Start of *due_date* in the current timezone as an aware datetime."""
    tz = now.tzinfo if now is not None else timezone.get_current_timezone()
    return datetime.datetime.combine(due_date, datetime.time.min, tzinfo=tz)


def create_task(user, title, due_date, priority=Task.Priority.MEDIUM,
                description="", now=None):
    """Create a task due on the calendar day *due_date*."""
    now = now or timezone.localtime()
    return Task.objects.create(
        user=user,
        title=title.strip(),
        description=description,
        due_date=due_day_start(due_date, now),
        priority=priority,
        created_at=now,
    )


def update_task(task, title, due_date, priority, now=None):
    """Edit a task.

    Moving the due date to today or later clears the overdue latch so the
    next overdue transition notifies again. A past due date keeps the
    latch as it was.
    """
    now = now or timezone.localtime()
    task.title = title.strip()
    task.due_date = due_day_start(due_date, now)
    task.priority = priority
    if not is_past_day(task.due_date, now):
        task.overdue_notification_sent = False
    task.save(update_fields=[
        "title", "due_date", "priority", "overdue_notification_sent", "updated_at",
    ])
    return task


def toggle_complete(task, now=None):
    """Flip completion. Completing notifies; un-completing is silent.

    Returns the completion notification, or None.
    """
    now = now or timezone.now()
    previous = (task.completed, task.completed_at, task.updated_at)
    try:
        with transaction.atomic():
            task.completed = not task.completed
            task.completed_at = now if task.completed else None
            task.save(update_fields=["completed", "completed_at", "updated_at"])
            if not task.completed:
                return None
            return notify(
                Notification.Kind.SUCCESS,
                f'{display_name(task.user, "A student")} completed "{task.title}"',
                student=task.user,
                now=now,
            )
    except Exception:
        # The row rolled back; keep the instance in step with it.
        task.completed, task.completed_at, task.updated_at = previous
        raise


def delete_task(task):
    task.delete()


def overdue_candidates(tasks, now):
    """Tasks that are overdue and have not been notified yet."""
    return [
        task for task in tasks
        if not task.overdue_notification_sent
        and classify(task, now) == TaskState.OVERDUE
    ]


def _claim_latch(task):
    """Set *task*'s overdue latch if it is still unset. True when this call set it."""
    return bool(
        Task.objects
        .filter(pk=task.pk, completed=False, overdue_notification_sent=False)
        .update(overdue_notification_sent=True)
    )


def scan_overdue(user, now=None):
    """Notify once for each of *user*'s newly overdue tasks.

    Each task is claimed by a guarded update of its latch, and the warning
    is written in the same transaction. Only the scan whose update matched
    the row notifies; a failed notification rolls the latch back so the
    next pass retries. Returns the notifications created.
    """
    now = now or timezone.localtime()
    tasks = Task.objects.filter(
        user=user, completed=False, overdue_notification_sent=False,
    ).order_by("created_at", "pk")
    name = display_name(user)

    created = []
    for task in overdue_candidates(tasks, now):
        try:
            with transaction.atomic():
                if not _claim_latch(task):
                    continue
                notification = notify(
                    Notification.Kind.WARNING,
                    f"{name} has an overdue task: '{task.title}'",
                    student=user,
                    now=now,
                )
        except DatabaseError:
            logger.exception("Could not send overdue notification for task %s", task.pk)
            continue
        created.append(notification)

    if created:
        logger.info("Sent %d overdue notification(s) for user %s", len(created), user.pk)
    return created


def watch_overdue(snapshot):
    """Feed listener: run the overdue scan for students in *snapshot* who
    have un-notified overdue tasks."""
    now = timezone.localtime()
    user_ids = {task.user_id for task in overdue_candidates(snapshot, now)}
    if not user_ids:
        return []
    created = []
    for user in get_user_model().objects.filter(pk__in=user_ids):
        created.extend(scan_overdue(user, now=now))
    return created
