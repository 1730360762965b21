import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="StudentCounter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50, unique=True)),
                ("value", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="UserProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("display_name", models.CharField(max_length=255)),
                ("photo_url", models.URLField(blank=True, default="", max_length=500)),
                ("role", models.CharField(choices=[("STUDENT", "Student"), ("ADMIN", "Admin")], default="STUDENT", max_length=10)),
                ("bio", models.TextField(blank=True, default="")),
                ("student_id", models.CharField(blank=True, max_length=20, null=True, unique=True)),
                ("requires_password_change", models.BooleanField(default=False)),
                ("assessment_completed", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="profile", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-pk"],
                "indexes": [
                    models.Index(fields=["role", "requires_password_change"], name="profile_role_pending_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Assessment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("structured", "Structured"), ("legacy", "Legacy")], default="structured", max_length=20)),
                ("submitted_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("study_habits", models.JSONField(blank=True, default=dict)),
                ("personality", models.JSONField(blank=True, default=dict)),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="assessment", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="AssessmentResponse",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=50)),
                ("category", models.CharField(choices=[("Study Habits", "Study Habits"), ("Personality", "Personality")], max_length=20)),
                ("question", models.TextField()),
                ("answer", models.CharField(max_length=100)),
                ("label", models.CharField(blank=True, default="", max_length=100)),
                ("sort_order", models.IntegerField(default=0)),
                ("assessment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="responses", to="students.assessment")),
            ],
            options={
                "ordering": ["sort_order", "pk"],
                "constraints": [
                    models.UniqueConstraint(fields=("assessment", "key"), name="unique_assessment_response_key"),
                ],
            },
        ),
    ]
