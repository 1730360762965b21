"""Fold a task snapshot into dashboard numbers.

``aggregate`` makes one pass over the tasks; everything else reads from the
result. The consistency levels and the chart ceiling are product-visible,
so their thresholds live here as constants.
"""

from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType

from .buckets import day_key
from .temporal import TaskState, classify

HIGH_PRIORITY = "high"

# Upper bound (inclusive) of each consistency level after level 0.
CONSISTENCY_THRESHOLDS = [(1, 1), (3, 2), (5, 3)]
MAX_CONSISTENCY_LEVEL = 4

MIN_CHART_CEILING = 5


def consistency_level(count):
    """Map a day's completion count to a 0..4 colour level."""
    if count <= 0:
        return 0
    for upper, level in CONSISTENCY_THRESHOLDS:
        if count <= upper:
            return level
    return MAX_CONSISTENCY_LEVEL


def completion_rate(completed, total):
    """Whole-number percentage, halves rounded up; 0 when there are no tasks."""
    if not total:
        return 0
    return (200 * completed + total) // (2 * total)


def chart_ceiling(values):
    return max(max(values, default=0), MIN_CHART_CEILING)


def _as_key(day):
    if isinstance(day, str):
        return day
    return day_key(day)


@dataclass(frozen=True)
class AggregateResult:
    total: int
    completed: int
    overdue: int
    due_today: int
    upcoming: int
    high_priority_pending: int
    completed_today: int
    day_counts: MappingProxyType = field(repr=False)

    @property
    def pending(self):
        return self.total - self.completed

    @property
    def completion_rate(self):
        return completion_rate(self.completed, self.total)

    def day_count(self, day):
        """Completions on *day* (a date, datetime or ``YYYY-MM-DD`` key)."""
        key = _as_key(day)
        if key is None:
            return 0
        return self.day_counts.get(key, 0)

    def level(self, day):
        return consistency_level(self.day_count(day))

    def state_counts(self):
        return {
            TaskState.COMPLETED: self.completed,
            TaskState.OVERDUE: self.overdue,
            TaskState.DUE_TODAY: self.due_today,
            TaskState.UPCOMING: self.upcoming,
        }


def aggregate(tasks, now):
    """Summarise *tasks* as seen at *now*."""
    tz = now.tzinfo
    today_key = now.strftime("%Y-%m-%d")
    states = Counter()
    day_counts = Counter()
    high_priority_pending = 0
    total = 0

    for task in tasks:
        total += 1
        state = classify(task, now)
        states[state] += 1
        if task.completed:
            key = day_key(task.completed_at, tz)
            if key is not None:
                day_counts[key] += 1
        elif getattr(task, "priority", None) == HIGH_PRIORITY:
            high_priority_pending += 1

    return AggregateResult(
        total=total,
        completed=states[TaskState.COMPLETED],
        overdue=states[TaskState.OVERDUE],
        due_today=states[TaskState.DUE_TODAY],
        upcoming=states[TaskState.UPCOMING],
        high_priority_pending=high_priority_pending,
        completed_today=day_counts.get(today_key, 0),
        day_counts=MappingProxyType(dict(day_counts)),
    )


@dataclass(frozen=True)
class SeriesPoint:
    label: str
    key: str
    count: int
    height: float


@dataclass(frozen=True)
class LineSeries:
    points: tuple
    ceiling: int

    @property
    def peak(self):
        return max((p.count for p in self.points), default=0)


def line_series(result, buckets):
    """Build a chart series from an AggregateResult over day *buckets*.

    ``height`` is ``count / ceiling`` where the ceiling never drops below
    MIN_CHART_CEILING.
    """
    counts = [result.day_count(bucket.key) for bucket in buckets]
    ceiling = chart_ceiling(counts)
    points = tuple(
        SeriesPoint(
            label=bucket.label,
            key=bucket.key,
            count=count,
            height=count / ceiling,
        )
        for bucket, count in zip(buckets, counts)
    )
    return LineSeries(points=points, ceiling=ceiling)