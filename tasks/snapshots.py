"""Immutable task snapshots and the feed that pushes them to listeners.

Analytics never see model instances directly from the feed: every listener
gets a ``Snapshot`` of frozen ``TaskRecord`` values and recomputes from
scratch. There is no incremental update path.
"""

import logging
import threading
from dataclasses import dataclass

from django.utils import timezone

from .models import Task
from .temporal import coerce_instant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskRecord:
    id: str
    user_id: str
    title: str
    due_date: object
    completed: bool
    created_at: object
    completed_at: object = None
    priority: str = None
    description: str = ""
    overdue_notification_sent: bool = False

    @classmethod
    def from_task(cls, task):
        return cls(
            id=str(task.pk),
            user_id=str(task.user_id),
            title=task.title,
            description=task.description,
            due_date=task.due_date,
            priority=task.priority,
            completed=task.completed,
            completed_at=task.completed_at,
            created_at=task.created_at,
            overdue_notification_sent=task.overdue_notification_sent,
        )

    @classmethod
    def from_document(cls, doc_id, data, tz=None):
        """Build a record from a raw document-store payload.

        Document timestamps are epoch milliseconds under camelCase keys.
        Unreadable timestamps become None rather than raising.
        """
        return cls(
            id=str(doc_id),
            user_id=str(data.get("userId", "")),
            title=data.get("title", ""),
            description=data.get("description") or "",
            due_date=coerce_instant(data.get("dueDate"), tz),
            priority=data.get("priority"),
            completed=bool(data.get("completed", False)),
            completed_at=coerce_instant(data.get("completedAt"), tz),
            created_at=coerce_instant(data.get("createdAt"), tz),
            overdue_notification_sent=bool(data.get("overdueNotificationSent", False)),
        )


@dataclass(frozen=True)
class Snapshot:
    tasks: tuple
    taken_at: object
    user_id: str = None

    def __len__(self):
        return len(self.tasks)

    def __iter__(self):
        return iter(self.tasks)

    def for_user(self, user_id):
        user_id = str(user_id)
        return Snapshot(
            tasks=tuple(t for t in self.tasks if t.user_id == user_id),
            taken_at=self.taken_at,
            user_id=user_id,
        )


def take_snapshot(user_id=None):
    """Read the current tasks (all, or one student's) into a Snapshot.

    Storage errors propagate; callers decide how to degrade.
    """
    qs = Task.objects.order_by("created_at", "pk")
    if user_id is not None:
        qs = qs.filter(user_id=user_id)
    return Snapshot(
        tasks=tuple(TaskRecord.from_task(task) for task in qs),
        taken_at=timezone.now(),
        user_id=str(user_id) if user_id is not None else None,
    )


class TaskFeed:
    """Push a fresh Snapshot to subscribers whenever tasks change.

    A subscriber either follows one student (``user_id``) or every task
    (``user_id=None``).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners = {}
        self._next_token = 0

    def subscribe(self, listener, user_id=None):
        """Register *listener*; returns a callable that unsubscribes it."""
        key = str(user_id) if user_id is not None else None
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = (key, listener)

        def unsubscribe():
            with self._lock:
                self._listeners.pop(token, None)

        return unsubscribe

    def listener_count(self):
        with self._lock:
            return len(self._listeners)

    def publish(self, user_id):
        """Deliver a new snapshot to every listener interested in *user_id*."""
        key = str(user_id)
        with self._lock:
            targets = [
                (scope, listener)
                for scope, listener in self._listeners.values()
                if scope is None or scope == key
            ]
        if not targets:
            return 0

        snapshot = take_snapshot()
        for scope, listener in targets:
            try:
                listener(snapshot if scope is None else snapshot.for_user(scope))
            except Exception:
                logger.exception("Task feed listener failed for user %s", key)
        return len(targets)


feed = TaskFeed()
