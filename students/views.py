import logging

from django.contrib.auth import update_session_auth_hash
from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.db import DatabaseError
from django.http import Http404, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from tasks.aggregation import aggregate
from tasks.payloads import grid_payload, rollup_payload, series_payload, tasks_payload
from tasks.rollups import (
    EMPTY_ROLLUP, StudentRollup, contribution_grid, history_order, line_chart,
    rollups_by_student,
)
from tasks.snapshots import take_snapshot
from tasks.views import chart_range_param, month_anchor, storage_unavailable, week_start

from .assessment import assessment_summary
from .decorators import admin_required
from .forms import AssessmentForm, CreateAccountForm, PasswordChangeForm, ProfileForm
from .models import Assessment, UserProfile
from .reports import (
    CONTENT_TYPE, StudentFilter, filter_by_status, report_filename, report_rows,
    write_report,
)
from .services import (
    AccountError, AssessmentError, change_password, create_account, ensure_profile,
    filter_profiles, peek_next_student_id, submit_assessment, update_profile,
)

logger = logging.getLogger(__name__)

ITEMS_PER_PAGE = 10
HISTORY_PER_PAGE = 5


def profile_payload(profile):
    return {
        "uid": profile.uid,
        "display_name": profile.display_name,
        "email": profile.email,
        "photo_url": profile.photo_url,
        "role": profile.role,
        "bio": profile.bio,
        "student_id": profile.student_id,
        "requires_password_change": profile.requires_password_change,
        "assessment_completed": profile.assessment_completed,
        "created_at": profile.created_at.isoformat() if profile.created_at else None,
    }


def errors_response(errors, status=400):
    return JsonResponse({"errors": errors}, status=status)


def _status_param(request):
    value = request.GET.get("status", StudentFilter.ALL)
    return StudentFilter(value) if value in StudentFilter.values else StudentFilter.ALL


@admin_required
@require_GET
def student_list(request):
    now = timezone.localtime()
    try:
        profiles = list(
            UserProfile.objects
            .filter(role=UserProfile.Role.STUDENT)
            .select_related("user")
        )
        snapshot = take_snapshot()
    except DatabaseError:
        logger.exception("Could not load student roster")
        return storage_unavailable()

    matches = filter_profiles(filter_by_status(profiles, _status_param(request)),
                              request.GET.get("q", ""))
    page = Paginator(matches, ITEMS_PER_PAGE).get_page(request.GET.get("page"))
    rollups = rollups_by_student(snapshot, now)

    return JsonResponse({
        "found": len(matches),
        "next_student_id": peek_next_student_id(),
        "page": {
            "number": page.number,
            "num_pages": page.paginator.num_pages,
        },
        "students": [
            {
                **profile_payload(profile),
                "rollup": rollup_payload(rollups.get(profile.uid, EMPTY_ROLLUP)),
            }
            for profile in page.object_list
        ],
    })


@admin_required
@require_GET
def student_detail(request, pk):
    now = timezone.localtime()
    profile = get_object_or_404(UserProfile.objects.select_related("user"), user_id=pk)
    try:
        snapshot = take_snapshot(user_id=profile.user_id)
    except DatabaseError:
        logger.exception("Could not load tasks for student %s", pk)
        return storage_unavailable()

    result = aggregate(snapshot, now)
    chart_range = chart_range_param(request)
    history = Paginator(history_order(snapshot), HISTORY_PER_PAGE).get_page(
        request.GET.get("page")
    )
    try:
        summary = assessment_summary(profile.user.assessment)
    except Assessment.DoesNotExist:
        summary = None

    return JsonResponse({
        "profile": profile_payload(profile),
        "rollup": rollup_payload(StudentRollup.from_aggregate(result)),
        "trend": series_payload(
            line_chart(snapshot, now, chart_range, week_start=week_start(), result=result),
            chart_range,
        ),
        "consistency": grid_payload(
            contribution_grid(snapshot, now, anchor=month_anchor(), result=result)
        ),
        "history": {
            "number": history.number,
            "num_pages": history.paginator.num_pages,
            "tasks": tasks_payload(history.object_list, now),
        },
        "assessment": summary.as_dict() if summary is not None else None,
    })


@admin_required
@require_POST
def student_create(request):
    form = CreateAccountForm(request.POST)
    if not form.is_valid():
        return errors_response(form.errors.get_json_data())
    try:
        profile = create_account(
            email=form.cleaned_data["email"],
            password=form.cleaned_data["password"],
            display_name=form.cleaned_data["display_name"],
            role=form.cleaned_data["role"],
        )
    except AccountError as e:
        return errors_response({"__all__": [{"message": str(e)}]})
    return JsonResponse(profile_payload(profile), status=201)


@admin_required
@require_GET
def next_student_id(request):
    return JsonResponse({"student_id": peek_next_student_id()})


@admin_required
@require_GET
def student_export(request, status):
    if status not in StudentFilter.values:
        raise Http404("Unknown report filter")
    now = timezone.localtime()
    try:
        profiles = list(UserProfile.objects.select_related("user"))
        snapshot = take_snapshot()
    except DatabaseError:
        logger.exception("Could not load data for the student report")
        return storage_unavailable()

    response = HttpResponse(content_type=CONTENT_TYPE)
    response["Content-Disposition"] = (
        f'attachment; filename="{report_filename(status, now)}"'
    )
    write_report(report_rows(profiles, snapshot, now, status), response)
    return response


@login_required
@require_http_methods(["GET", "POST"])
def profile(request):
    user_profile, _ = ensure_profile(request.user)
    if request.method == "POST":
        form = ProfileForm(request.POST, instance=user_profile)
        if not form.is_valid():
            return errors_response(form.errors.get_json_data())
        update_profile(
            user_profile,
            display_name=form.cleaned_data["display_name"],
            bio=form.cleaned_data["bio"],
            photo_url=form.cleaned_data["photo_url"],
        )
    return JsonResponse(profile_payload(user_profile))


@login_required
@require_POST
def password_change(request):
    form = PasswordChangeForm(request.POST)
    if not form.is_valid():
        return errors_response(form.errors.get_json_data())
    change_password(request.user, form.cleaned_data["new_password"])
    update_session_auth_hash(request, request.user)
    return JsonResponse({"requires_password_change": False})


@login_required
@require_http_methods(["GET", "POST"])
def assessment(request):
    if request.method == "GET":
        try:
            summary = assessment_summary(request.user.assessment)
        except Assessment.DoesNotExist:
            summary = None
        return JsonResponse({
            "completed": summary is not None,
            "assessment": summary.as_dict() if summary is not None else None,
        })

    form = AssessmentForm(request.POST)
    if not form.is_valid():
        return errors_response(form.errors.get_json_data())
    try:
        submitted = submit_assessment(
            request.user,
            habit_answers=form.habit_answers(),
            personality_answers=form.personality_answers(),
            now=timezone.now(),
        )
    except AssessmentError as e:
        return errors_response({"__all__": [{"message": str(e)}]})
    return JsonResponse(
        {"completed": True, "assessment": assessment_summary(submitted).as_dict()},
        status=201,
    )
