from django.conf import settings
from django.db import models
from django.utils import timezone


class UserProfile(models.Model):
    class Role(models.TextChoices):
        STUDENT = "STUDENT", "Student"
        ADMIN = "ADMIN", "Admin"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    display_name = models.CharField(max_length=255)
    photo_url = models.URLField(max_length=500, blank=True, default="")
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.STUDENT)
    bio = models.TextField(blank=True, default="")
    student_id = models.CharField(max_length=20, unique=True, null=True, blank=True)
    requires_password_change = models.BooleanField(default=False)
    assessment_completed = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-pk"]
        indexes = [
            models.Index(fields=["role", "requires_password_change"], name="profile_role_pending_idx"),
        ]

    @property
    def uid(self):
        return str(self.user_id)

    @property
    def email(self):
        return self.user.email

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN

    def __str__(self):
        return self.display_name


class StudentCounter(models.Model):
    """Named monotonically increasing counter (one row per sequence)."""

    name = models.CharField(max_length=50, unique=True)
    value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name}={self.value}"


class Assessment(models.Model):
    class Kind(models.TextChoices):
        STRUCTURED = "structured", "Structured"
        LEGACY = "legacy", "Legacy"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="assessment",
    )
    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.STRUCTURED)
    submitted_at = models.DateTimeField(default=timezone.now)
    # Only populated for LEGACY assessments.
    study_habits = models.JSONField(default=dict, blank=True)
    personality = models.JSONField(default=dict, blank=True)

    def __str__(self):
        return f"Assessment for {self.user}"


class AssessmentResponse(models.Model):
    class Category(models.TextChoices):
        STUDY_HABITS = "Study Habits", "Study Habits"
        PERSONALITY = "Personality", "Personality"

    assessment = models.ForeignKey(
        Assessment, on_delete=models.CASCADE, related_name="responses"
    )
    key = models.CharField(max_length=50)
    category = models.CharField(max_length=20, choices=Category.choices)
    question = models.TextField()
    answer = models.CharField(max_length=100)
    label = models.CharField(max_length=100, blank=True, default="")
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "pk"]
        constraints = [
            models.UniqueConstraint(
                fields=["assessment", "key"],
                name="unique_assessment_response_key",
            ),
        ]

    def __str__(self):
        return f"{self.key}: {self.answer}"
