from django.contrib import admin

from .models import Task


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ["title", "user", "priority", "due_date", "completed", "overdue_notification_sent"]
    list_filter = ["completed", "priority", "overdue_notification_sent"]
    search_fields = ["title", "user__email", "user__profile__display_name"]
    date_hierarchy = "due_date"
    actions = ["reset_overdue_latch"]

    @admin.action(description="Clear overdue notification flag")
    def reset_overdue_latch(self, request, queryset):
        updated = queryset.update(overdue_notification_sent=False)
        self.message_user(request, f"{updated} task(s) reset.")
