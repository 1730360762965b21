from django.apps import AppConfig


class TasksConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "tasks"

    def ready(self):
        import tasks.signals  # noqa: F401

        self._watch_overdue()

    @staticmethod
    def _watch_overdue():
        """Subscribe the overdue scan to the task feed when enabled."""
        from django.conf import settings

        if not getattr(settings, "TRACKER_WATCH_OVERDUE", True):
            return

        from .services import watch_overdue
        from .snapshots import feed

        feed.subscribe(watch_overdue)
