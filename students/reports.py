"""Per-student CSV report for admins.

Filters choose which students appear; every task of an included student is
counted.
"""

import csv

from django.db import models

from tasks.rollups import EMPTY_ROLLUP, rollups_by_student
from tasks.temporal import coerce_instant

from .models import UserProfile

HEADER = [
    "ID",
    "Name",
    "Email",
    "Role",
    "Joined Date",
    "Total Tasks",
    "Completed Tasks",
    "Pending Tasks",
    "Overdue Tasks",
    "Completion Rate (%)",
]
CONTENT_TYPE = "text/csv; charset=utf-8"


class StudentFilter(models.TextChoices):
    ALL = "all", "All students"
    ACTIVE = "active", "Active"
    PENDING = "pending", "Pending password change"


FILENAME_SUFFIX = {
    StudentFilter.ALL: "full",
    StudentFilter.ACTIVE: "active",
    StudentFilter.PENDING: "pending",
}


def filter_by_status(profiles, status):
    """Apply the active/pending filter (``all`` keeps everyone)."""
    if status == StudentFilter.ACTIVE:
        return [p for p in profiles if not p.requires_password_change]
    if status == StudentFilter.PENDING:
        return [p for p in profiles if p.requires_password_change]
    return list(profiles)


def report_students(profiles, status):
    students = [p for p in profiles if p.role == UserProfile.Role.STUDENT]
    return filter_by_status(students, status)


def joined_date(value, tz=None):
    instant = coerce_instant(value, tz)
    return instant.strftime("%Y-%m-%d") if instant is not None else "N/A"


def report_rows(profiles, tasks, now, status=StudentFilter.ALL):
    """One row per included student, in the order of *profiles*."""
    rollups = rollups_by_student(tasks, now)
    rows = []
    for profile in report_students(profiles, status):
        r = rollups.get(str(profile.uid), EMPTY_ROLLUP)
        rows.append([
            profile.student_id or "",
            profile.display_name,
            profile.email,
            profile.role,
            joined_date(profile.created_at, now.tzinfo),
            r.total_tasks,
            r.completed_tasks,
            r.pending_tasks,
            r.overdue_tasks,
            r.completion_rate,
        ])
    return rows


def write_report(rows, stream):
    """Write the header and *rows* to *stream*; comma-bearing fields get quoted."""
    writer = csv.writer(stream, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(HEADER)
    writer.writerows(rows)


def report_filename(status, now):
    return f"student_report_{FILENAME_SUFFIX[StudentFilter(status)]}_{now.strftime('%Y-%m-%d')}.csv"
