import logging

from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.db import DatabaseError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404, redirect
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST

from notifications.services import unread_count
from students.decorators import admin_required
from students.models import UserProfile
from students.services import ensure_profile

from .aggregation import aggregate
from .buckets import ChartRange, MonthAnchor
from .forms import TaskForm
from .models import Task
from .payloads import (
    grid_payload, page_payload, rollup_payload, series_payload, tasks_payload,
)
from .rollups import (
    StudentRollup, active_order, contribution_grid, explorer_order, line_chart,
    recent_tasks, search_tasks,
)
from .services import (
    create_task, delete_task, scan_overdue, toggle_complete, update_task,
)
from .snapshots import take_snapshot

logger = logging.getLogger(__name__)

ITEMS_PER_PAGE = 10


def month_anchor():
    return MonthAnchor(getattr(settings, "TRACKER_MONTH_ANCHOR", MonthAnchor.DECEMBER))


def week_start():
    return getattr(settings, "TRACKER_WEEK_START", 0)


def chart_range_param(request, name="range"):
    value = request.GET.get(name, ChartRange.MONTH)
    return ChartRange(value) if value in ChartRange.values else ChartRange.MONTH


def storage_unavailable():
    return JsonResponse(
        {"error": "Could not load tasks. Please check your connection."},
        status=503,
    )


def form_errors(form):
    return JsonResponse({"errors": form.errors.get_json_data()}, status=400)


@login_required
@require_GET
def dashboard(request):
    now = timezone.localtime()
    profile, _ = ensure_profile(request.user)
    try:
        snapshot = take_snapshot(user_id=request.user.pk)
    except DatabaseError:
        logger.exception("Could not load tasks for user %s", request.user.pk)
        return storage_unavailable()

    scan_overdue(request.user, now=now)

    result = aggregate(snapshot, now)
    pending = [t for t in snapshot if not t.completed]
    done = [t for t in snapshot if t.completed]

    return JsonResponse({
        "greeting_name": (profile.display_name.split(" ")[0] or "Student"),
        "stats": {
            "completion_rate": result.completion_rate,
            "total_tasks": result.total,
            "completed_tasks": result.completed,
            "pending_tasks": result.pending,
            "overdue_tasks": result.overdue,
            "high_priority_pending": result.high_priority_pending,
            "completed_today": result.completed_today,
            "today_progress": min(result.completed_today * 20, 100),
        },
        "consistency": grid_payload(
            contribution_grid(snapshot, now, anchor=month_anchor(), result=result)
        ),
        "active_tasks": tasks_payload(active_order(pending), now),
        "completed_tasks": tasks_payload(active_order(done), now),
    })


@login_required
@require_POST
def task_add(request):
    form = TaskForm(request.POST)
    if not form.is_valid():
        return form_errors(form)
    create_task(
        request.user,
        title=form.cleaned_data["title"],
        due_date=form.cleaned_data["due_date"],
        priority=form.cleaned_data["priority"],
        now=timezone.localtime(),
    )
    return redirect("tasks:dashboard")


@login_required
@require_POST
def task_edit(request, pk):
    task = get_object_or_404(Task, pk=pk, user=request.user)
    form = TaskForm(request.POST)
    if not form.is_valid():
        return form_errors(form)
    update_task(
        task,
        title=form.cleaned_data["title"],
        due_date=form.cleaned_data["due_date"],
        priority=form.cleaned_data["priority"],
        now=timezone.localtime(),
    )
    return redirect("tasks:dashboard")


@login_required
@require_POST
def task_toggle_complete(request, pk):
    task = get_object_or_404(
        Task.objects.select_related("user__profile"), pk=pk, user=request.user,
    )
    toggle_complete(task, now=timezone.localtime())
    return redirect("tasks:dashboard")


@login_required
@require_POST
def task_delete(request, pk):
    task = get_object_or_404(Task, pk=pk, user=request.user)
    delete_task(task)
    return redirect("tasks:dashboard")


def _student_names():
    return {
        str(user_id): name
        for user_id, name in UserProfile.objects.values_list("user_id", "display_name")
    }


@admin_required
@require_GET
def overview(request):
    now = timezone.localtime()
    chart_range = chart_range_param(request)
    try:
        snapshot = take_snapshot()
        profiles = list(UserProfile.objects.only("role", "requires_password_change"))
    except DatabaseError:
        logger.exception("Could not load admin overview")
        return storage_unavailable()

    result = aggregate(snapshot, now)
    students = [p for p in profiles if p.role == UserProfile.Role.STUDENT]

    return JsonResponse({
        "stats": {
            "total_students": len(students),
            "pending_activation": sum(1 for p in profiles if p.requires_password_change),
            "pending_tasks": result.pending,
            "unread_notifications": unread_count(),
        },
        "system": rollup_payload(StudentRollup.from_aggregate(result)),
        "trend": series_payload(
            line_chart(snapshot, now, chart_range, week_start=week_start(), result=result),
            chart_range,
        ),
        "recent_tasks": tasks_payload(recent_tasks(snapshot), now, _student_names()),
    })


@admin_required
@require_GET
def explorer(request):
    now = timezone.localtime()
    try:
        snapshot = take_snapshot()
        names = _student_names()
    except DatabaseError:
        logger.exception("Could not load task explorer")
        return storage_unavailable()

    matches = explorer_order(search_tasks(snapshot, request.GET.get("q", ""), names))
    page = Paginator(matches, ITEMS_PER_PAGE).get_page(request.GET.get("page"))

    return JsonResponse({
        "found": len(matches),
        "page": page_payload(page),
        "tasks": tasks_payload(page.object_list, now, names),
    })
