"""Shapes consumed by the dashboards: rollups, grids, chart series, orderings."""

from collections import defaultdict
from dataclasses import dataclass

from .aggregation import aggregate, line_series
from .buckets import ChartRange, MonthAnchor, chart_window, rolling_months
from .temporal import coerce_instant

RECENT_TASK_LIMIT = 8


@dataclass(frozen=True)
class StudentRollup:
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    overdue_tasks: int
    completion_rate: int

    @classmethod
    def from_aggregate(cls, result):
        return cls(
            total_tasks=result.total,
            completed_tasks=result.completed,
            pending_tasks=result.pending,
            overdue_tasks=result.overdue,
            completion_rate=result.completion_rate,
        )


EMPTY_ROLLUP = StudentRollup(0, 0, 0, 0, 0)


def rollup(tasks, now):
    """Rollup for one student's tasks, or for every task (system-wide)."""
    return StudentRollup.from_aggregate(aggregate(tasks, now))


def group_by_student(tasks):
    grouped = defaultdict(list)
    for task in tasks:
        grouped[str(task.user_id)].append(task)
    return grouped


def rollups_by_student(tasks, now):
    """Return ``{user_id: StudentRollup}`` for every student with tasks."""
    return {
        user_id: rollup(student_tasks, now)
        for user_id, student_tasks in group_by_student(tasks).items()
    }


@dataclass(frozen=True)
class GridCell:
    key: str
    count: int
    level: int


@dataclass(frozen=True)
class GridMonth:
    label: str
    leading_slots: int
    cells: tuple


def contribution_grid(tasks, now, anchor=MonthAnchor.DECEMBER, result=None):
    """Twelve months of daily completion cells for the consistency grid."""
    if result is None:
        result = aggregate(tasks, now)
    months = []
    for month in rolling_months(now, anchor=anchor):
        cells = []
        for day in month.days:
            count = result.day_count(day.key)
            cells.append(GridCell(key=day.key, count=count, level=result.level(day.key)))
        months.append(GridMonth(
            label=month.label,
            leading_slots=month.leading_slots,
            cells=tuple(cells),
        ))
    return months


def line_chart(tasks, now, chart_range=ChartRange.MONTH, week_start=0, result=None):
    if result is None:
        result = aggregate(tasks, now)
    return line_series(result, chart_window(now, chart_range, week_start=week_start))


def _timestamp(value):
    instant = coerce_instant(value)
    return instant.timestamp() if instant is not None else 0


def explorer_order(tasks):
    """Newest-created first."""
    return sorted(tasks, key=lambda t: _timestamp(t.created_at), reverse=True)


def active_order(tasks):
    """Oldest-created first; ties broken by id."""
    return sorted(tasks, key=lambda t: (_timestamp(t.created_at), str(t.id)))


def _history_key(task):
    if task.completed:
        return (1, -_timestamp(task.completed_at))
    return (0, _timestamp(task.due_date))


def history_order(tasks):
    """Incomplete before complete.

    Incomplete tasks by ascending due date; completed tasks with the most
    recent completion first. Missing timestamps count as 0.
    """
    return sorted(tasks, key=_history_key)


def recent_tasks(tasks, limit=RECENT_TASK_LIMIT):
    return explorer_order(tasks)[:limit]


def search_tasks(tasks, query, student_names):
    """Tasks whose title or owner's name contains *query* (case-insensitive).

    *student_names* maps user id to display name.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return list(tasks)
    return [
        task for task in tasks
        if needle in task.title.lower()
        or needle in student_names.get(str(task.user_id), "").lower()
    ]
