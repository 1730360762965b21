"""Classify tasks against an evaluation instant.

Nothing in here reads the wall clock: every function takes ``now``.
Calendar-day comparisons happen in ``now``'s timezone, so "today" is the
user's local day rather than the UTC day.
"""

import datetime
import math

from dateutil import parser as date_parser
from django.db import models


class TaskState(models.TextChoices):
    UPCOMING = "upcoming", "Upcoming"
    DUE_TODAY = "due_today", "Due today"
    OVERDUE = "overdue", "Overdue"
    COMPLETED = "completed", "Completed"


def coerce_instant(value, tz=None):
    """Return *value* as a datetime in *tz*, or None if it can't be read.

    Accepts datetimes, dates, epoch-millisecond numbers and ISO-8601
    strings. Naive datetimes are taken to already be in *tz*.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime.datetime):
        if tz is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=tz)
        try:
            return value.astimezone(tz)
        except (OverflowError, ValueError):
            # Shifting into tz falls outside year 1..9999.
            return None

    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min, tzinfo=tz)

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        try:
            if tz is None:
                return datetime.datetime.fromtimestamp(value / 1000)
            return datetime.datetime.fromtimestamp(value / 1000, tz=tz)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            return None
        return coerce_instant(parsed, tz)

    return None


def local_day(value, tz=None):
    """Return the calendar date of *value* in *tz*, or None."""
    instant = coerce_instant(value, tz)
    return instant.date() if instant is not None else None


def today_for(now):
    return now.date()


def classify(task, now):
    """Return the TaskState of *task* as seen at *now*.

    A due date that can't be read classifies as UPCOMING so that bad data
    never shows up as overdue.
    """
    if task.completed:
        return TaskState.COMPLETED

    due = local_day(task.due_date, now.tzinfo)
    if due is None:
        return TaskState.UPCOMING

    today = today_for(now)
    if due == today:
        return TaskState.DUE_TODAY
    if due < today:
        return TaskState.OVERDUE
    return TaskState.UPCOMING


def is_overdue(task, now):
    return classify(task, now) == TaskState.OVERDUE


def is_past_day(value, now):
    """True when *value* falls on a calendar day before ``now``'s day.

    Unreadable values are not in the past.
    """
    day = local_day(value, now.tzinfo)
    return day is not None and day < today_for(now)


def count_states(tasks, now):
    """Return ``{TaskState: count}`` with every state present."""
    counts = {state: 0 for state in TaskState}
    for task in tasks:
        counts[classify(task, now)] += 1
    return counts
