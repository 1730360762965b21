import datetime
import io
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError, IntegrityError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone

from notifications.models import Notification
from notifications.services import notify
from students.models import UserProfile

from .aggregation import (
    aggregate, chart_ceiling, completion_rate, consistency_level, line_series,
)
from .buckets import (
    ChartRange, MonthAnchor, chart_window, month_window, rolling_months, week_window,
)
from .models import Task
from .rollups import (
    active_order, contribution_grid, explorer_order, history_order, recent_tasks,
    rollups_by_student, search_tasks,
)
from .services import (
    create_task, scan_overdue, toggle_complete, update_task, watch_overdue,
)
from .snapshots import TaskFeed, TaskRecord, feed, take_snapshot
from .temporal import TaskState, classify, coerce_instant, count_states, is_overdue

UTC = datetime.timezone.utc
EST = datetime.timezone(datetime.timedelta(hours=-5))

# A Wednesday.
NOW = datetime.datetime(2026, 3, 18, 14, 30, tzinfo=UTC)


def _record(id="1", user_id="1", title="Task", due_date=None, completed=False,
            created_at=None, **kwargs):
    return TaskRecord(
        id=id, user_id=user_id, title=title, due_date=due_date,
        completed=completed, created_at=created_at, **kwargs,
    )


def _done(completed_at, **kwargs):
    return _record(completed=True, completed_at=completed_at, **kwargs)


def _make_user(email, name=None, role=UserProfile.Role.STUDENT):
    user = get_user_model().objects.create_user(
        username=email, email=email, password="secret123",
    )
    UserProfile.objects.create(
        user=user, display_name=name or email.split("@")[0], role=role,
    )
    return user


class ClassifyTests(SimpleTestCase):
    """classify() buckets a task relative to an explicit now."""

    def test_completed_wins_over_past_due_date(self):
        task = _record(due_date=NOW - datetime.timedelta(days=10), completed=True)
        self.assertEqual(classify(task, NOW), TaskState.COMPLETED)

    def test_due_today_any_time_of_day(self):
        for hour in (0, 9, 23):
            task = _record(due_date=NOW.replace(hour=hour, minute=0))
            self.assertEqual(classify(task, NOW), TaskState.DUE_TODAY)

    def test_yesterday_is_overdue(self):
        task = _record(due_date=NOW - datetime.timedelta(days=1))
        self.assertEqual(classify(task, NOW), TaskState.OVERDUE)
        self.assertTrue(is_overdue(task, NOW))

    def test_tomorrow_is_upcoming(self):
        task = _record(due_date=NOW + datetime.timedelta(days=1))
        self.assertEqual(classify(task, NOW), TaskState.UPCOMING)

    def test_unreadable_due_date_is_upcoming(self):
        for bad in (None, "not a date", "", float("nan"), object()):
            self.assertEqual(classify(_record(due_date=bad), NOW), TaskState.UPCOMING)

    def test_day_comparison_uses_local_day(self):
        # 03:00 UTC on the 18th is still the 17th in UTC-5.
        now = datetime.datetime(2026, 3, 18, 10, tzinfo=EST)
        task = _record(due_date=datetime.datetime(2026, 3, 18, 3, tzinfo=UTC))
        self.assertEqual(classify(task, now), TaskState.OVERDUE)
        self.assertEqual(classify(task, NOW), TaskState.DUE_TODAY)

    def test_epoch_millis_and_iso_strings(self):
        yesterday = NOW - datetime.timedelta(days=1)
        by_millis = _record(due_date=int(yesterday.timestamp() * 1000))
        by_string = _record(due_date="2026-03-19T08:00:00+00:00")
        self.assertEqual(classify(by_millis, NOW), TaskState.OVERDUE)
        self.assertEqual(classify(by_string, NOW), TaskState.UPCOMING)

    def test_state_counts_cover_every_task(self):
        tasks = [
            _record(due_date=NOW),
            _record(due_date=NOW - datetime.timedelta(days=2)),
            _record(due_date=NOW + datetime.timedelta(days=2)),
            _done(NOW),
        ]
        counts = count_states(tasks, NOW)
        self.assertEqual(sum(counts.values()), len(tasks))
        self.assertEqual(counts[TaskState.OVERDUE], 1)


class CoerceInstantTests(SimpleTestCase):

    def test_naive_datetime_takes_tz(self):
        value = coerce_instant(datetime.datetime(2026, 3, 18, 9), EST)
        self.assertEqual(value.tzinfo, EST)
        self.assertEqual(value.hour, 9)

    def test_aware_datetime_is_converted(self):
        value = coerce_instant(datetime.datetime(2026, 3, 18, 3, tzinfo=UTC), EST)
        self.assertEqual(value.date(), datetime.date(2026, 3, 17))

    def test_date_is_start_of_day(self):
        value = coerce_instant(datetime.date(2026, 3, 18), UTC)
        self.assertEqual(value, datetime.datetime(2026, 3, 18, tzinfo=UTC))

    def test_epoch_millis(self):
        self.assertEqual(
            coerce_instant(0, UTC),
            datetime.datetime(1970, 1, 1, tzinfo=UTC),
        )

    def test_malformed_values_are_none(self):
        for bad in (None, True, "", "garbage", float("inf"), float("nan"), 1e20, [1]):
            self.assertIsNone(coerce_instant(bad, UTC), bad)

    def test_out_of_range_after_conversion_is_none(self):
        tokyo = datetime.timezone(datetime.timedelta(hours=9))
        now = datetime.datetime(2026, 3, 18, 9, tzinfo=tokyo)
        self.assertIsNone(coerce_instant("9999-12-31T23:00:00Z", tokyo))
        self.assertIsNone(coerce_instant("0001-01-01T00:00:00+05:00", tokyo))

        late = _record(due_date="9999-12-31T23:00:00Z")
        self.assertEqual(classify(late, now), TaskState.UPCOMING)
        result = aggregate([late, _done("0001-01-01T00:00:00+05:00")], now)
        self.assertEqual((result.total, result.completed), (2, 1))
        self.assertEqual(dict(result.day_counts), {})


class BucketTests(SimpleTestCase):

    def test_week_starts_on_sunday_by_default(self):
        days = week_window(NOW)
        self.assertEqual(len(days), 7)
        self.assertEqual(days[0].key, "2026-03-15")
        self.assertEqual(days[-1].key, "2026-03-21")
        self.assertEqual([d.label for d in days],
                         ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"])

    def test_week_start_is_configurable(self):
        self.assertEqual(week_window(NOW, week_start=1)[0].key, "2026-03-16")
        sunday = datetime.datetime(2026, 3, 15, 12, tzinfo=UTC)
        self.assertEqual(week_window(sunday, week_start=1)[0].key, "2026-03-09")

    def test_invalid_week_start(self):
        with self.assertRaises(ValueError):
            week_window(NOW, week_start=7)

    def test_month_window_lengths(self):
        cases = {
            datetime.datetime(2026, 2, 10, tzinfo=UTC): 28,
            datetime.datetime(2028, 2, 10, tzinfo=UTC): 29,
            datetime.datetime(2026, 4, 10, tzinfo=UTC): 30,
            datetime.datetime(2026, 3, 31, 23, tzinfo=UTC): 31,
        }
        for now, length in cases.items():
            days = month_window(now)
            self.assertEqual(len(days), length)
            self.assertEqual(days[0].label, "1")
            self.assertEqual(days[-1].label, str(length))

    def test_chart_window(self):
        self.assertEqual(len(chart_window(NOW, ChartRange.WEEK)), 7)
        self.assertEqual(len(chart_window(NOW, ChartRange.MONTH)), 31)
        with self.assertRaises(ValueError):
            chart_window(NOW, "year")

    def test_december_anchor(self):
        months = rolling_months(NOW, anchor=MonthAnchor.DECEMBER)
        self.assertEqual(len(months), 12)
        self.assertEqual(months[0].label, "December")
        self.assertEqual(months[0].start.year, 2025)
        self.assertEqual(months[1].label, "January")
        self.assertEqual(months[-1].label, "November")

    def test_december_anchor_in_december(self):
        now = datetime.datetime(2026, 12, 5, tzinfo=UTC)
        first = rolling_months(now)[0]
        self.assertEqual((first.start.year, first.start.month), (2026, 12))

    def test_current_anchor_runs_backwards(self):
        months = rolling_months(NOW, anchor=MonthAnchor.CURRENT)
        self.assertEqual(
            [m.label for m in months[:4]],
            ["March", "February", "January", "December"],
        )
        self.assertEqual(months[-1].label, "April")

    def test_unknown_anchor(self):
        with self.assertRaises(ValueError):
            rolling_months(NOW, anchor="june")

    def test_leading_slots(self):
        march, april = rolling_months(NOW)[3], rolling_months(NOW)[4]
        self.assertEqual(march.label, "March")
        self.assertEqual(march.leading_slots, 0)  # 1 March 2026 is a Sunday
        self.assertEqual(april.leading_slots, 3)
        self.assertEqual(len(april.grid_slots), 33)
        self.assertIsNone(april.grid_slots[0])


class AggregateTests(SimpleTestCase):

    def test_empty(self):
        result = aggregate([], NOW)
        self.assertEqual(result.total, 0)
        self.assertEqual(result.completion_rate, 0)
        self.assertEqual(result.completed_today, 0)
        self.assertEqual(dict(result.day_counts), {})

    def test_completion_rate_rounds_half_up(self):
        self.assertEqual(completion_rate(1, 8), 13)
        self.assertEqual(completion_rate(1, 3), 33)
        self.assertEqual(completion_rate(2, 3), 67)
        self.assertEqual(completion_rate(7, 10), 70)
        self.assertEqual(completion_rate(0, 0), 0)

    def test_consistency_levels(self):
        expected = {0: 0, 1: 1, 2: 2, 3: 2, 4: 3, 5: 3, 6: 4, 10: 4}
        for count, level in expected.items():
            self.assertEqual(consistency_level(count), level, count)

    def test_chart_ceiling_floor(self):
        self.assertEqual(chart_ceiling([0, 0, 0]), 5)
        self.assertEqual(chart_ceiling([]), 5)
        self.assertEqual(chart_ceiling([2, 9, 1]), 9)

    def test_counts(self):
        tasks = [
            _done(NOW - datetime.timedelta(hours=1), due_date=NOW),
            _done(NOW - datetime.timedelta(days=1)),
            _record(due_date=NOW - datetime.timedelta(days=1), priority="high"),
            _record(due_date=NOW, priority="low"),
            _record(due_date=NOW + datetime.timedelta(days=3), priority="high"),
            _done(NOW - datetime.timedelta(days=5), priority="high"),
        ]
        result = aggregate(tasks, NOW)
        self.assertEqual(result.total, 6)
        self.assertEqual(result.completed, 3)
        self.assertEqual(result.pending, 3)
        self.assertEqual(result.overdue, 1)
        self.assertEqual(result.due_today, 1)
        self.assertEqual(result.upcoming, 1)
        self.assertEqual(result.high_priority_pending, 2)
        self.assertEqual(result.completed_today, 1)
        self.assertEqual(result.completion_rate, 50)
        self.assertEqual(sum(result.state_counts().values()), result.total)

    def test_day_counts_match_naive_rescan(self):
        now = datetime.datetime(2026, 3, 18, 10, tzinfo=EST)
        completions = [
            datetime.datetime(2026, 3, 17, 3, tzinfo=UTC),
            datetime.datetime(2026, 3, 17, 4, 59, tzinfo=UTC),
            datetime.datetime(2026, 3, 17, 5, 0, tzinfo=UTC),
            datetime.datetime(2026, 3, 12, 12, tzinfo=UTC),
            datetime.datetime(2026, 3, 18, 14, tzinfo=UTC),
            "2026-03-12T20:00:00+00:00",
            None,
            "garbage",
        ]
        tasks = [_done(c, id=str(i)) for i, c in enumerate(completions)]
        tasks.append(_record(id="x", due_date=now))
        result = aggregate(tasks, now)

        first = datetime.date(2026, 3, 8)
        for offset in range(14):
            day = first + datetime.timedelta(days=offset)
            naive = 0
            for task in tasks:
                instant = coerce_instant(task.completed_at, EST)
                if task.completed and instant is not None and instant.date() == day:
                    naive += 1
            self.assertEqual(result.day_count(day), naive, day)
        self.assertEqual(result.day_count("2026-03-16"), 2)
        self.assertEqual(result.completed, 8)

    def test_line_series_heights(self):
        tasks = [_done(NOW - datetime.timedelta(minutes=i), id=str(i)) for i in range(3)]
        series = line_series(aggregate(tasks, NOW), week_window(NOW))
        self.assertEqual(series.ceiling, 5)
        wednesday = series.points[3]
        self.assertEqual(wednesday.label, "Wed")
        self.assertEqual(wednesday.count, 3)
        self.assertAlmostEqual(wednesday.height, 0.6)
        self.assertEqual(series.peak, 3)

    def test_line_series_all_zero(self):
        series = line_series(aggregate([], NOW), month_window(NOW))
        self.assertEqual(series.ceiling, 5)
        self.assertTrue(all(p.height == 0 for p in series.points))


class RollupTests(SimpleTestCase):

    def test_rollups_by_student(self):
        tasks = [
            _done(NOW, user_id="1"),
            _record(user_id="1", due_date=NOW - datetime.timedelta(days=1)),
            _record(user_id="2", due_date=NOW),
        ]
        rollups = rollups_by_student(tasks, NOW)
        self.assertEqual(rollups["1"].total_tasks, 2)
        self.assertEqual(rollups["1"].overdue_tasks, 1)
        self.assertEqual(rollups["1"].completion_rate, 50)
        self.assertEqual(rollups["2"].pending_tasks, 1)

    def test_contribution_grid(self):
        jan10 = datetime.datetime(2026, 1, 10, 15, tzinfo=UTC)
        tasks = [_done(jan10, id=str(i)) for i in range(3)]
        grid = contribution_grid(tasks, NOW)
        self.assertEqual(len(grid), 12)
        january = grid[1]
        self.assertEqual(january.label, "January")
        self.assertEqual(len(january.cells), 31)
        cell = january.cells[9]
        self.assertEqual((cell.key, cell.count, cell.level), ("2026-01-10", 3, 2))
        self.assertEqual(january.cells[10].level, 0)

    def test_explorer_order_newest_first(self):
        tasks = [
            _record(id="a", created_at=NOW - datetime.timedelta(days=2)),
            _record(id="b", created_at=NOW),
            _record(id="c", created_at=None),
        ]
        self.assertEqual([t.id for t in explorer_order(tasks)], ["b", "a", "c"])
        self.assertEqual([t.id for t in recent_tasks(tasks, limit=2)], ["b", "a"])

    def test_active_order_ties_broken_by_id(self):
        tasks = [
            _record(id="b", created_at=NOW),
            _record(id="a", created_at=NOW),
            _record(id="c", created_at=NOW - datetime.timedelta(hours=1)),
        ]
        self.assertEqual([t.id for t in active_order(tasks)], ["c", "a", "b"])

    def test_history_order(self):
        tasks = [
            _done(NOW - datetime.timedelta(days=3), id="old-done"),
            _record(id="later", due_date=NOW + datetime.timedelta(days=2)),
            _done(NOW, id="new-done"),
            _record(id="sooner", due_date=NOW - datetime.timedelta(days=1)),
            _done(None, id="undated-done"),
        ]
        self.assertEqual(
            [t.id for t in history_order(tasks)],
            ["sooner", "later", "new-done", "old-done", "undated-done"],
        )

    def test_search_by_title_or_student_name(self):
        tasks = [
            _record(id="1", user_id="1", title="Essay draft"),
            _record(id="2", user_id="2", title="Lab report"),
        ]
        names = {"1": "Ada Lovelace", "2": "Grace Hopper"}
        self.assertEqual([t.id for t in search_tasks(tasks, "ESSAY", names)], ["1"])
        self.assertEqual([t.id for t in search_tasks(tasks, "hopper", names)], ["2"])
        self.assertEqual(len(search_tasks(tasks, "  ", names)), 2)


class TaskRecordTests(SimpleTestCase):

    def test_from_document(self):
        due = datetime.datetime(2026, 3, 17, tzinfo=UTC)
        record = TaskRecord.from_document("doc1", {
            "userId": "u1",
            "title": "Read chapter 4",
            "dueDate": int(due.timestamp() * 1000),
            "completed": False,
            "createdAt": "garbage",
            "overdueNotificationSent": True,
        }, tz=UTC)
        self.assertEqual(record.id, "doc1")
        self.assertEqual(record.due_date, due)
        self.assertIsNone(record.created_at)
        self.assertTrue(record.overdue_notification_sent)
        self.assertEqual(classify(record, NOW), TaskState.OVERDUE)

    def test_records_are_immutable(self):
        record = _record()
        with self.assertRaises(AttributeError):
            record.title = "changed"


class TaskModelTests(TestCase):

    def test_completed_at_must_match_completed(self):
        user = _make_user("ada@example.com")
        with self.assertRaises(IntegrityError):
            Task.objects.create(
                user=user, title="Bad", due_date=timezone.now(), completed=True,
            )


class TaskFeedTests(TestCase):

    def setUp(self):
        self.ada = _make_user("ada@example.com")
        self.grace = _make_user("grace@example.com")
        now = timezone.localtime()
        create_task(self.ada, "Essay", now.date(), now=now)
        create_task(self.grace, "Lab", now.date(), now=now)
        self.feed = TaskFeed()

    def test_publish_and_unsubscribe(self):
        received = []
        unsubscribe = self.feed.subscribe(received.append)
        self.assertEqual(self.feed.publish(self.ada.pk), 1)
        self.assertEqual(len(received[0]), 2)

        unsubscribe()
        self.assertEqual(self.feed.listener_count(), 0)
        self.assertEqual(self.feed.publish(self.ada.pk), 0)
        self.assertEqual(len(received), 1)

    def test_scoped_listener(self):
        received = []
        self.feed.subscribe(received.append, user_id=self.ada.pk)
        self.assertEqual(self.feed.publish(self.grace.pk), 0)
        self.feed.publish(self.ada.pk)
        self.assertEqual([t.title for t in received[0]], ["Essay"])

    def test_failing_listener_does_not_block_others(self):
        received = []

        def broken(snapshot):
            raise RuntimeError("boom")

        self.feed.subscribe(broken)
        self.feed.subscribe(received.append)
        with self.assertLogs("tasks.snapshots", level="ERROR"):
            self.assertEqual(self.feed.publish(self.ada.pk), 2)
        self.assertEqual(len(received), 1)

    def test_saves_publish_after_commit(self):
        received = []
        unsubscribe = feed.subscribe(received.append, user_id=self.ada.pk)
        self.addCleanup(unsubscribe)
        with self.captureOnCommitCallbacks(execute=True):
            now = timezone.localtime()
            create_task(self.ada, "Quiz", now.date() + datetime.timedelta(days=2), now=now)
        self.assertEqual(len(received), 1)
        self.assertEqual(len(received[0]), 2)


class OverdueScanTests(TestCase):
    """Yesterday / today / tomorrow: exactly one warning, and none on re-run."""

    def setUp(self):
        self.user = _make_user("ada@example.com", "Ada Lovelace")
        self.now = datetime.datetime(
            2026, 3, 15, 12, tzinfo=timezone.get_current_timezone(),
        )
        today = self.now.date()
        self.overdue = create_task(
            self.user, "Yesterday", today - datetime.timedelta(days=1), now=self.now,
        )
        self.today = create_task(self.user, "Today", today, now=self.now)
        self.tomorrow = create_task(
            self.user, "Tomorrow", today + datetime.timedelta(days=1), now=self.now,
        )

    def test_scenario(self):
        result = aggregate(take_snapshot(user_id=self.user.pk), self.now)
        self.assertEqual((result.overdue, result.due_today, result.upcoming), (1, 1, 1))
        self.assertEqual(result.completion_rate, 0)

        created = scan_overdue(self.user, now=self.now)
        self.assertEqual(len(created), 1)
        self.assertEqual(created[0].kind, Notification.Kind.WARNING)
        self.assertEqual(created[0].message, "Ada Lovelace has an overdue task: 'Yesterday'")

        self.overdue.refresh_from_db()
        self.today.refresh_from_db()
        self.assertTrue(self.overdue.overdue_notification_sent)
        self.assertFalse(self.today.overdue_notification_sent)

    def test_rerun_is_idempotent(self):
        scan_overdue(self.user, now=self.now)
        self.assertEqual(scan_overdue(self.user, now=self.now), [])
        self.assertEqual(
            Notification.objects.filter(kind=Notification.Kind.WARNING).count(), 1,
        )

    def test_completed_tasks_are_never_reported(self):
        toggle_complete(self.overdue, now=self.now)
        self.assertEqual(scan_overdue(self.user, now=self.now), [])

    def test_notification_failure_leaves_latch_unset(self):
        with mock.patch("tasks.services.notify", side_effect=DatabaseError("down")):
            with self.assertLogs("tasks.services", level="ERROR"):
                self.assertEqual(scan_overdue(self.user, now=self.now), [])
        self.overdue.refresh_from_db()
        self.assertFalse(self.overdue.overdue_notification_sent)
        self.assertEqual(len(scan_overdue(self.user, now=self.now)), 1)

    def test_scan_started_during_another_scan_does_not_repeat(self):
        nested = []

        def notify_and_rescan(*args, **kwargs):
            if not nested:
                nested.append(None)
                nested.append(scan_overdue(self.user, now=self.now))
            return notify(*args, **kwargs)

        with mock.patch("tasks.services.notify", side_effect=notify_and_rescan):
            created = scan_overdue(self.user, now=self.now)

        self.assertEqual(len(created), 1)
        self.assertEqual(nested[1], [])
        self.assertEqual(
            Notification.objects.filter(kind=Notification.Kind.WARNING).count(), 1,
        )
        self.overdue.refresh_from_db()
        self.assertTrue(self.overdue.overdue_notification_sent)

    def test_moving_due_date_forward_resets_latch(self):
        scan_overdue(self.user, now=self.now)
        self.overdue.refresh_from_db()
        update_task(self.overdue, "Yesterday", self.now.date(), "high", now=self.now)
        self.assertFalse(self.overdue.overdue_notification_sent)

        later = self.now + datetime.timedelta(days=1)
        created = scan_overdue(self.user, now=later)
        self.assertEqual(
            sorted(n.message for n in created),
            [
                "Ada Lovelace has an overdue task: 'Today'",
                "Ada Lovelace has an overdue task: 'Yesterday'",
            ],
        )

    def test_past_due_date_keeps_latch(self):
        scan_overdue(self.user, now=self.now)
        self.overdue.refresh_from_db()
        update_task(
            self.overdue, "Renamed", self.now.date() - datetime.timedelta(days=3),
            "low", now=self.now,
        )
        self.overdue.refresh_from_db()
        self.assertTrue(self.overdue.overdue_notification_sent)
        self.assertEqual(scan_overdue(self.user, now=self.now), [])

    def test_watch_overdue_scans_students_with_candidates(self):
        now = timezone.localtime()
        create_task(self.user, "Long ago", now.date() - datetime.timedelta(days=30), now=now)
        created = watch_overdue(take_snapshot())
        self.assertIn(
            "Ada Lovelace has an overdue task: 'Long ago'",
            [n.message for n in created],
        )
        self.assertEqual(watch_overdue(take_snapshot()), [])


class ToggleCompleteTests(TestCase):

    def setUp(self):
        self.user = _make_user("ada@example.com", "Ada Lovelace")
        self.now = timezone.localtime()
        self.task = create_task(self.user, "Essay", self.now.date(), now=self.now)

    def test_complete_then_uncomplete(self):
        notification = toggle_complete(self.task, now=self.now)
        self.task.refresh_from_db()
        self.assertTrue(self.task.completed)
        self.assertEqual(self.task.completed_at, self.now)
        self.assertEqual(notification.kind, Notification.Kind.SUCCESS)
        self.assertEqual(notification.message, 'Ada Lovelace completed "Essay"')

        self.assertIsNone(toggle_complete(self.task, now=self.now))
        self.task.refresh_from_db()
        self.assertFalse(self.task.completed)
        self.assertIsNone(self.task.completed_at)
        self.assertEqual(Notification.objects.count(), 1)

    def test_failed_notification_leaves_task_unchanged(self):
        with mock.patch("tasks.services.notify", side_effect=DatabaseError("down")):
            with self.assertRaises(DatabaseError):
                toggle_complete(self.task, now=self.now)
        self.assertFalse(self.task.completed)
        self.assertIsNone(self.task.completed_at)
        self.task.refresh_from_db()
        self.assertFalse(self.task.completed)
        self.assertFalse(Notification.objects.exists())

    def test_student_without_profile(self):
        user = get_user_model().objects.create_user(username="x", password="secret123")
        task = create_task(user, "Quiz", self.now.date(), now=self.now)
        notification = toggle_complete(task, now=self.now)
        self.assertEqual(notification.message, 'A student completed "Quiz"')


class TaskViewTests(TestCase):

    def setUp(self):
        self.ada = _make_user("ada@example.com", "Ada Lovelace")
        self.grace = _make_user("grace@example.com", "Grace Hopper")
        self.client.force_login(self.ada)
        self.now = timezone.localtime()

    def test_login_required(self):
        self.client.logout()
        response = self.client.get(reverse("tasks:dashboard"))
        self.assertEqual(response.status_code, 302)

    def test_dashboard(self):
        done = create_task(self.ada, "Done", self.now.date(), now=self.now)
        toggle_complete(done, now=self.now)
        create_task(self.ada, "Late", self.now.date() - datetime.timedelta(days=3), now=self.now)
        create_task(self.grace, "Not mine", self.now.date(), now=self.now)

        response = self.client.get(reverse("tasks:dashboard"))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["greeting_name"], "Ada")
        self.assertEqual(data["stats"]["total_tasks"], 2)
        self.assertEqual(data["stats"]["completion_rate"], 50)
        self.assertEqual(data["stats"]["completed_today"], 1)
        self.assertEqual(data["stats"]["today_progress"], 20)
        self.assertEqual([t["title"] for t in data["active_tasks"]], ["Late"])
        self.assertEqual(data["active_tasks"][0]["state"], "overdue")
        self.assertEqual(len(data["consistency"]), 12)
        self.assertEqual(
            Notification.objects.filter(kind=Notification.Kind.WARNING).count(), 1,
        )

    def test_dashboard_storage_failure(self):
        with mock.patch("tasks.views.take_snapshot", side_effect=DatabaseError("down")):
            with self.assertLogs("tasks.views", level="ERROR"):
                response = self.client.get(reverse("tasks:dashboard"))
        self.assertEqual(response.status_code, 503)
        self.assertIn("error", response.json())

    def test_add_task(self):
        response = self.client.post(reverse("tasks:task_add"), {
            "title": "  Essay  ", "due_date": "2026-03-20", "priority": "high",
        })
        self.assertRedirects(response, reverse("tasks:dashboard"), fetch_redirect_response=False)
        task = Task.objects.get(user=self.ada)
        self.assertEqual(task.title, "Essay")
        self.assertEqual(task.priority, Task.Priority.HIGH)
        self.assertEqual(
            timezone.localtime(task.due_date).date(), datetime.date(2026, 3, 20),
        )
        self.assertEqual(timezone.localtime(task.due_date).hour, 0)

    def test_add_task_requires_title(self):
        response = self.client.post(reverse("tasks:task_add"), {
            "title": "   ", "due_date": "2026-03-20",
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn("title", response.json()["errors"])
        self.assertFalse(Task.objects.exists())

    def test_priority_defaults_to_medium(self):
        self.client.post(reverse("tasks:task_add"), {"title": "Read", "due_date": "2026-03-20"})
        self.assertEqual(Task.objects.get().priority, Task.Priority.MEDIUM)

    def test_edit_and_delete(self):
        task = create_task(self.ada, "Essay", self.now.date(), now=self.now)
        self.client.post(reverse("tasks:task_edit", args=[task.pk]), {
            "title": "Essay v2", "due_date": "2026-04-01", "priority": "low",
        })
        task.refresh_from_db()
        self.assertEqual(task.title, "Essay v2")

        self.client.post(reverse("tasks:task_delete", args=[task.pk]))
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())

    def test_toggle_via_view(self):
        task = create_task(self.ada, "Essay", self.now.date(), now=self.now)
        self.client.post(reverse("tasks:toggle_complete", args=[task.pk]))
        task.refresh_from_db()
        self.assertTrue(task.completed)

    def test_other_students_task_is_404(self):
        task = create_task(self.grace, "Lab", self.now.date(), now=self.now)
        for name in ("tasks:toggle_complete", "tasks:task_delete"):
            response = self.client.post(reverse(name, args=[task.pk]))
            self.assertEqual(response.status_code, 404)
        self.assertTrue(Task.objects.filter(pk=task.pk, completed=False).exists())

    def test_get_not_allowed_on_writes(self):
        response = self.client.get(reverse("tasks:task_add"))
        self.assertEqual(response.status_code, 405)


class AdminTaskViewTests(TestCase):

    def setUp(self):
        self.admin = _make_user("admin@example.com", "Admin", role=UserProfile.Role.ADMIN)
        self.ada = _make_user("ada@example.com", "Ada Lovelace")
        self.grace = _make_user("grace@example.com", "Grace Hopper")
        now = timezone.localtime()
        create_task(self.ada, "Essay", now.date(), now=now)
        create_task(self.grace, "Lab report", now.date(), now=now)
        self.client.force_login(self.admin)

    def test_students_are_forbidden(self):
        self.client.force_login(self.ada)
        for name in ("tasks:overview", "tasks:explorer"):
            self.assertEqual(self.client.get(reverse(name)).status_code, 403)

    def test_overview(self):
        response = self.client.get(reverse("tasks:overview"), {"range": "week"})
        data = response.json()
        self.assertEqual(data["stats"]["total_students"], 2)
        self.assertEqual(data["stats"]["pending_tasks"], 2)
        self.assertEqual(data["system"]["total_tasks"], 2)
        self.assertEqual(data["trend"]["range"], "week")
        self.assertEqual(len(data["trend"]["points"]), 7)
        self.assertEqual(len(data["recent_tasks"]), 2)

    def test_overview_unknown_range_falls_back_to_month(self):
        data = self.client.get(reverse("tasks:overview"), {"range": "decade"}).json()
        self.assertEqual(data["trend"]["range"], "month")

    def test_explorer_search(self):
        data = self.client.get(reverse("tasks:explorer"), {"q": "grace"}).json()
        self.assertEqual(data["found"], 1)
        self.assertEqual(data["tasks"][0]["title"], "Lab report")
        self.assertEqual(data["tasks"][0]["student_name"], "Grace Hopper")


class ScanOverdueCommandTests(TestCase):

    def test_command(self):
        user = _make_user("ada@example.com", "Ada Lovelace")
        now = datetime.datetime(2026, 3, 15, 12, tzinfo=timezone.get_current_timezone())
        create_task(user, "Essay", datetime.date(2026, 3, 14), now=now)
        create_task(user, "Lab", datetime.date(2026, 3, 15), now=now)

        out = io.StringIO()
        call_command("scan_overdue", "--date", "2026-03-15", stdout=out)
        self.assertIn("Ada Lovelace has an overdue task: 'Essay'", out.getvalue())
        self.assertIn("Sent 1 overdue notification(s) as of 2026-03-15.", out.getvalue())

        out = io.StringIO()
        call_command("scan_overdue", "--date", "2026-03-15", stdout=out)
        self.assertIn("Sent 0 overdue notification(s)", out.getvalue())
