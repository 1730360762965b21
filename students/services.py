"""Service helpers for student profiles, accounts and assessments."""

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from notifications.models import Notification
from notifications.services import notify

from .assessment import build_responses
from .models import Assessment, AssessmentResponse, StudentCounter, UserProfile

logger = logging.getLogger(__name__)

STUDENT_COUNTER = "students"
MIN_PASSWORD_LENGTH = 6


class AccountError(Exception):
    """An admin-created account could not be made."""


class AssessmentError(Exception):
    """An assessment submission was rejected."""


def format_student_id(number, prefix=None, width=None):
    prefix = prefix if prefix is not None else settings.STUDENT_ID_PREFIX
    width = width if width is not None else settings.STUDENT_ID_WIDTH
    return f"{prefix}{number:0{width}d}"


def allocate_student_id():
    """Advance the student counter and return the new formatted ID.

    The counter row is locked and incremented in one transaction; if the
    caller's surrounding transaction rolls back, the number is not consumed.
    """
    with transaction.atomic():
        counter, _ = (
            StudentCounter.objects
            .select_for_update()
            .get_or_create(name=STUDENT_COUNTER)
        )
        StudentCounter.objects.filter(pk=counter.pk).update(value=F("value") + 1)
        counter.refresh_from_db(fields=["value"])
    return format_student_id(counter.value)


def peek_next_student_id():
    """The ID the next allocation would return, without consuming it."""
    current = (
        StudentCounter.objects
        .filter(name=STUDENT_COUNTER)
        .values_list("value", flat=True)
        .first()
    )
    return format_student_id((current or 0) + 1)


def default_avatar(user):
    return settings.DEFAULT_AVATAR_URL.format(uid=user.pk)


def _default_display_name(user):
    full_name = user.get_full_name()
    if full_name:
        return full_name
    if user.email:
        return user.email.split("@")[0]
    return "Student"


def ensure_profile(user):
    """Return ``(profile, created)``, creating a STUDENT profile on first login.

    A new profile and its signup notification are written together.
    """
    try:
        return user.profile, False
    except UserProfile.DoesNotExist:
        pass

    display_name = _default_display_name(user)
    with transaction.atomic():
        profile, created = UserProfile.objects.get_or_create(
            user=user,
            defaults={
                "display_name": display_name,
                "photo_url": default_avatar(user),
                "role": UserProfile.Role.STUDENT,
                "bio": "Ready to learn!",
            },
        )
        if created:
            notify(
                Notification.Kind.INFO,
                f"New student '{display_name}' just joined.",
                student=user,
            )
    if created:
        logger.info("Created default profile for user %s", user.pk)
    return profile, created


def create_account(email, password, display_name, role=UserProfile.Role.STUDENT):
    """Create a login and profile on an admin's behalf.

    The caller's own session is never touched. Students get the next
    student ID; the account and the ID allocation commit or roll back
    together. The new user must change their password on first login.
    """
    email = (email or "").strip().lower()
    try:
        validate_email(email)
    except ValidationError:
        raise AccountError("Please enter a valid email address.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise AccountError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
        )

    User = get_user_model()
    if User.objects.filter(email__iexact=email).exists():
        raise AccountError("That email is already registered.")

    try:
        with transaction.atomic():
            student_id = None
            if role == UserProfile.Role.STUDENT:
                student_id = allocate_student_id()
            user = User.objects.create_user(username=email, email=email, password=password)
            profile = UserProfile.objects.create(
                user=user,
                display_name=display_name.strip() or email.split("@")[0],
                photo_url=default_avatar(user),
                role=role,
                student_id=student_id,
                bio="Administrator" if role == UserProfile.Role.ADMIN else "Student",
                requires_password_change=True,
            )
    except IntegrityError:
        logger.exception("Account creation failed for %s", email)
        raise AccountError("That email is already registered.")

    logger.info("Created %s account %s (%s)", role, user.pk, student_id or "no student ID")
    return profile


def update_profile(profile, display_name, bio, photo_url):
    profile.display_name = display_name.strip()
    profile.bio = bio
    profile.photo_url = photo_url
    profile.save(update_fields=["display_name", "bio", "photo_url"])
    return profile


def change_password(user, new_password):
    """Set a new password and clear the forced-change flag."""
    with transaction.atomic():
        user.set_password(new_password)
        user.save(update_fields=["password"])
        UserProfile.objects.filter(user=user).update(requires_password_change=False)


def submit_assessment(user, habit_answers, personality_answers, now=None):
    """Store *user*'s one and only assessment and notify admins."""
    now = now or timezone.now()
    if Assessment.objects.filter(user=user).exists():
        raise AssessmentError("Assessment already submitted.")

    profile, _ = ensure_profile(user)
    try:
        with transaction.atomic():
            assessment = Assessment.objects.create(
                user=user,
                kind=Assessment.Kind.STRUCTURED,
                submitted_at=now,
            )
            responses = build_responses(habit_answers, personality_answers)
            for response in responses:
                response.assessment = assessment
            AssessmentResponse.objects.bulk_create(responses)
            UserProfile.objects.filter(pk=profile.pk).update(assessment_completed=True)
            notify(
                Notification.Kind.INFO,
                f"{profile.display_name or 'Student'} completed their Educational Assessment.",
                student=user,
                now=now,
            )
    except IntegrityError:
        raise AssessmentError("Assessment already submitted.")
    profile.assessment_completed = True
    return assessment


def filter_profiles(profiles, query):
    """Profiles whose name, email or student ID contains *query*."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(profiles)
    return [
        p for p in profiles
        if needle in p.display_name.lower()
        or needle in p.email.lower()
        or needle in (p.student_id or "").lower()
    ]
