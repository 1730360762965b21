from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from students.decorators import admin_required

from .models import Notification
from .services import mark_all_read, mark_read, recent_notifications, unread_count


def notification_payload(notification):
    return {
        "id": notification.pk,
        "type": notification.kind,
        "message": notification.message,
        "read": notification.read,
        "created_at": notification.created_at.isoformat(),
        "student_id": notification.student_id,
    }


@admin_required
@require_GET
def notification_list(request):
    return JsonResponse({
        "unread": unread_count(),
        "notifications": [notification_payload(n) for n in recent_notifications()],
    })


@admin_required
@require_POST
def notification_read(request, pk):
    notification = get_object_or_404(Notification, pk=pk)
    return JsonResponse(notification_payload(mark_read(notification)))


@admin_required
@require_POST
def notification_read_all(request):
    return JsonResponse({"updated": mark_all_read(), "unread": unread_count()})
