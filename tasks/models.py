from django.conf import settings
from django.db import models
from django.utils import timezone


class Task(models.Model):
    class Priority(models.TextChoices):
        HIGH = "high", "High"
        MEDIUM = "medium", "Medium"
        LOW = "low", "Low"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="tasks",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    due_date = models.DateTimeField(help_text="Start of the local due day")
    priority = models.CharField(
        max_length=10, choices=Priority.choices, default=Priority.MEDIUM
    )
    completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    overdue_notification_sent = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "pk"]
        indexes = [
            models.Index(fields=["user", "completed"], name="task_user_completed_idx"),
            models.Index(fields=["due_date"], name="task_due_date_idx"),
            models.Index(fields=["-created_at"], name="task_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(completed=True, completed_at__isnull=False)
                    | models.Q(completed=False, completed_at__isnull=True)
                ),
                name="task_completed_at_matches_completed",
            ),
        ]

    def __str__(self):
        return self.title
