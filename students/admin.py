from django.contrib import admin

from .models import Assessment, AssessmentResponse, StudentCounter, UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ["display_name", "user", "role", "student_id", "requires_password_change", "created_at"]
    list_filter = ["role", "requires_password_change", "assessment_completed"]
    search_fields = ["display_name", "user__email", "student_id"]
    readonly_fields = ["student_id", "created_at"]


@admin.register(StudentCounter)
class StudentCounterAdmin(admin.ModelAdmin):
    list_display = ["name", "value", "updated_at"]
    readonly_fields = ["updated_at"]


class AssessmentResponseInline(admin.TabularInline):
    model = AssessmentResponse
    extra = 0
    readonly_fields = ["key", "category", "question", "answer", "label"]


@admin.register(Assessment)
class AssessmentAdmin(admin.ModelAdmin):
    list_display = ["user", "kind", "submitted_at"]
    list_filter = ["kind"]
    inlines = [AssessmentResponseInline]
    readonly_fields = ["user", "kind", "submitted_at", "study_habits", "personality"]
