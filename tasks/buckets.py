"""Calendar windows used by the dashboards.

Each window is an ordered sequence of day (or month) buckets computed from
an explicit ``now``. Weekday slots are Sunday-based (0=Sunday..6=Saturday)
so a grid can line days up under ``WEEKDAY_LABELS``.
"""

import datetime
from dataclasses import dataclass

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, MONTHLY, rrule
from django.db import models

from .temporal import coerce_instant

WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
MONTHS_IN_WINDOW = 12
DECEMBER_MONTH = 12


class MonthAnchor(models.TextChoices):
    DECEMBER = "december", "Most recent December first"
    CURRENT = "current", "Current month first"


class ChartRange(models.TextChoices):
    WEEK = "week", "This week"
    MONTH = "month", "This month"


@dataclass(frozen=True)
class DayBucket:
    start_of_day: datetime.datetime
    label: str
    weekday_slot: int

    @property
    def key(self):
        return self.start_of_day.strftime("%Y-%m-%d")


@dataclass(frozen=True)
class MonthBucket:
    start: datetime.datetime
    label: str
    days: tuple
    leading_slots: int

    @property
    def grid_slots(self):
        """Days padded with ``None`` so day 1 sits under its weekday."""
        return [None] * self.leading_slots + list(self.days)


def start_of_day(value):
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(value):
    return start_of_day(value).replace(day=1)


def weekday_slot(value):
    """0=Sunday .. 6=Saturday."""
    return (value.weekday() + 1) % 7


def day_key(value, tz=None):
    """``YYYY-MM-DD`` for *value* in *tz*, or None when unreadable."""
    instant = coerce_instant(value, tz)
    if instant is None:
        return None
    return instant.strftime("%Y-%m-%d")


def iter_days(first, last):
    """Yield the start of every day from *first* to *last* inclusive."""
    return rrule(DAILY, dtstart=start_of_day(first), until=start_of_day(last))


def _day_bucket(day, label):
    return DayBucket(start_of_day=day, label=label, weekday_slot=weekday_slot(day))


def month_days(month_start):
    """Return one DayBucket per day of the month starting at *month_start*."""
    first = start_of_month(month_start)
    last = first + relativedelta(months=1, days=-1)
    return tuple(
        _day_bucket(day, str(day.day))
        for day in iter_days(first, last)
    )


def month_bucket(month_start):
    first = start_of_month(month_start)
    return MonthBucket(
        start=first,
        label=first.strftime("%B"),
        days=month_days(first),
        leading_slots=weekday_slot(first),
    )


def rolling_months(now, anchor=MonthAnchor.DECEMBER):
    """Return the 12 month buckets of the contribution grid.

    DECEMBER starts at the most recent December (this month when it is
    December) and runs forward to November. CURRENT lists this month first
    and then the 11 months before it.
    """
    this_month = start_of_month(now)
    if anchor == MonthAnchor.DECEMBER:
        months_back = (now.month - DECEMBER_MONTH) % MONTHS_IN_WINDOW
        first = this_month - relativedelta(months=months_back)
        starts = list(rrule(MONTHLY, dtstart=first, count=MONTHS_IN_WINDOW))
    elif anchor == MonthAnchor.CURRENT:
        starts = [
            this_month - relativedelta(months=offset)
            for offset in range(MONTHS_IN_WINDOW)
        ]
    else:
        raise ValueError(f"Unknown month anchor: {anchor!r}")
    return [month_bucket(start) for start in starts]


def week_window(now, week_start=0):
    """Return the 7 day buckets of the week containing *now*.

    *week_start* is the weekday slot the week begins on (0=Sunday).
    """
    if not 0 <= week_start <= 6:
        raise ValueError(f"week_start must be 0..6, got {week_start!r}")
    today = start_of_day(now)
    offset = (weekday_slot(today) - week_start) % 7
    first = today - relativedelta(days=offset)
    last = first + relativedelta(days=6)
    return [
        _day_bucket(day, WEEKDAY_LABELS[weekday_slot(day)])
        for day in iter_days(first, last)
    ]


def month_window(now):
    """Return one bucket per day of ``now``'s month, labelled 1..31."""
    return list(month_days(start_of_month(now)))


def chart_window(now, chart_range=ChartRange.MONTH, week_start=0):
    if chart_range == ChartRange.WEEK:
        return week_window(now, week_start=week_start)
    if chart_range == ChartRange.MONTH:
        return month_window(now)
    raise ValueError(f"Unknown chart range: {chart_range!r}")
