import datetime
import io
import threading

from django.contrib.auth import get_user_model
from django.db import connection, transaction
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from django.utils import timezone

from notifications.models import Notification
from tasks.snapshots import TaskRecord

from .assessment import (
    NO_ANSWER, PERSONALITY_QUESTIONS, STUDY_QUESTIONS, LegacyAssessment,
    StructuredAssessment, assessment_summary, build_responses,
)
from .models import Assessment, StudentCounter, UserProfile
from .reports import (
    HEADER, StudentFilter, report_filename, report_rows, write_report,
)
from .services import (
    STUDENT_COUNTER, AccountError, AssessmentError, allocate_student_id,
    create_account, ensure_profile, filter_profiles, peek_next_student_id,
    submit_assessment,
)

UTC = datetime.timezone.utc
NOW = datetime.datetime(2026, 3, 18, 14, 30, tzinfo=UTC)


def _make_user(email, name=None, role=UserProfile.Role.STUDENT, **profile_fields):
    user = get_user_model().objects.create_user(
        username=email, email=email, password="secret123",
    )
    UserProfile.objects.create(
        user=user, display_name=name or email.split("@")[0], role=role,
        **profile_fields,
    )
    return user


def _all_answers(answer="Often"):
    data = {f"habit_{i}": answer for i in range(len(STUDY_QUESTIONS))}
    data.update({f"personality_{i}": answer for i in range(len(PERSONALITY_QUESTIONS))})
    return data


class StudentIdTests(TestCase):

    def test_counter_continues_from_stored_value(self):
        StudentCounter.objects.create(name=STUDENT_COUNTER, value=41)
        self.assertEqual(peek_next_student_id(), "DSV0042")
        self.assertEqual(allocate_student_id(), "DSV0042")
        self.assertEqual(allocate_student_id(), "DSV0043")
        self.assertEqual(StudentCounter.objects.get(name=STUDENT_COUNTER).value, 43)

    def test_first_allocation_creates_counter(self):
        self.assertEqual(peek_next_student_id(), "DSV0001")
        self.assertEqual(allocate_student_id(), "DSV0001")

    def test_rolled_back_allocation_is_not_consumed(self):
        StudentCounter.objects.create(name=STUDENT_COUNTER, value=41)
        with self.assertRaises(RuntimeError):
            with transaction.atomic():
                allocate_student_id()
                raise RuntimeError("abort")
        self.assertEqual(allocate_student_id(), "DSV0042")

    def test_sequential_allocations_are_unique(self):
        ids = [allocate_student_id() for _ in range(25)]
        self.assertEqual(len(set(ids)), 25)
        self.assertEqual(ids[-1], "DSV0025")


class ConcurrentStudentIdTests(TransactionTestCase):
    """Two admins creating students at once get consecutive, distinct IDs."""

    def test_parallel_account_creation(self):
        StudentCounter.objects.create(name=STUDENT_COUNTER, value=41)
        barrier = threading.Barrier(2)
        student_ids, errors = [], []

        def create(email):
            try:
                barrier.wait(timeout=10)
                student_ids.append(create_account(email, "secret123", email).student_id)
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [
            threading.Thread(target=create, args=(f"student{i}@example.com",))
            for i in range(2)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        self.assertEqual(errors, [])
        self.assertEqual(sorted(student_ids), ["DSV0042", "DSV0043"])
        self.assertEqual(StudentCounter.objects.get(name=STUDENT_COUNTER).value, 43)


class CreateAccountTests(TestCase):

    def test_student_account(self):
        StudentCounter.objects.create(name=STUDENT_COUNTER, value=41)
        profile = create_account("Ada@Example.com", "secret123", "Ada Lovelace")
        self.assertEqual(profile.student_id, "DSV0042")
        self.assertEqual(profile.email, "ada@example.com")
        self.assertTrue(profile.requires_password_change)
        self.assertTrue(profile.user.check_password("secret123"))
        self.assertIn(profile.uid, profile.photo_url)

    def test_admin_account_has_no_student_id(self):
        profile = create_account("boss@example.com", "secret123", "Boss", UserProfile.Role.ADMIN)
        self.assertIsNone(profile.student_id)
        self.assertTrue(profile.is_admin)
        self.assertFalse(StudentCounter.objects.exists())

    def test_validation(self):
        with self.assertRaises(AccountError):
            create_account("not-an-email", "secret123", "X")
        with self.assertRaises(AccountError):
            create_account("x@example.com", "123", "X")

    def test_duplicate_email(self):
        create_account("ada@example.com", "secret123", "Ada")
        with self.assertRaises(AccountError):
            create_account("ADA@example.com", "secret123", "Ada again")

    def test_failed_creation_does_not_consume_an_id(self):
        get_user_model().objects.create_user(username="bob@example.com", password="x")
        StudentCounter.objects.create(name=STUDENT_COUNTER, value=41)
        with self.assertLogs("students.services", level="ERROR"):
            with self.assertRaises(AccountError):
                create_account("bob@example.com", "secret123", "Bob")
        self.assertEqual(StudentCounter.objects.get(name=STUDENT_COUNTER).value, 41)


class EnsureProfileTests(TestCase):

    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="ada", email="ada@example.com", password="secret123",
            first_name="Ada", last_name="Lovelace",
        )

    def test_first_login_creates_student_profile(self):
        self.client.force_login(self.user)
        profile = UserProfile.objects.get(user=self.user)
        self.assertEqual(profile.role, UserProfile.Role.STUDENT)
        self.assertEqual(profile.display_name, "Ada Lovelace")
        self.assertIsNone(profile.student_id)
        notification = Notification.objects.get()
        self.assertEqual(notification.kind, Notification.Kind.INFO)
        self.assertEqual(notification.message, "New student 'Ada Lovelace' just joined.")

    def test_second_login_is_quiet(self):
        self.client.force_login(self.user)
        self.client.logout()
        self.client.force_login(self.user)
        self.assertEqual(UserProfile.objects.count(), 1)
        self.assertEqual(Notification.objects.count(), 1)

    def test_existing_profile_is_returned(self):
        profile, created = ensure_profile(self.user)
        self.assertTrue(created)
        again, created = ensure_profile(get_user_model().objects.get(pk=self.user.pk))
        self.assertFalse(created)
        self.assertEqual(again.pk, profile.pk)


class AssessmentTests(TestCase):

    def setUp(self):
        self.user = _make_user("ada@example.com", "Ada Lovelace")

    def test_build_responses_fills_missing_answers(self):
        responses = build_responses({0: "Yes Consistently"}, {})
        self.assertEqual(len(responses), len(STUDY_QUESTIONS) + len(PERSONALITY_QUESTIONS))
        self.assertEqual(responses[0].answer, "Yes Consistently")
        self.assertEqual(responses[1].answer, NO_ANSWER)
        self.assertEqual(responses[len(STUDY_QUESTIONS)].label, "Procrastinator")

    def test_submit(self):
        habits = {i: "Often" for i in range(len(STUDY_QUESTIONS))}
        personality = {i: "No" for i in range(len(PERSONALITY_QUESTIONS))}
        assessment = submit_assessment(self.user, habits, personality, now=NOW)

        self.assertEqual(assessment.responses.count(), 17)
        self.assertTrue(UserProfile.objects.get(user=self.user).assessment_completed)
        self.assertEqual(
            Notification.objects.get().message,
            "Ada Lovelace completed their Educational Assessment.",
        )

        summary = assessment_summary(assessment)
        self.assertIsInstance(summary, StructuredAssessment)
        self.assertEqual(len(summary.study_habits), 7)
        self.assertEqual(len(summary.personality), 10)
        self.assertEqual(summary.as_dict()["personality"][0]["label"], "Procrastinator")

    def test_second_submission_rejected(self):
        submit_assessment(self.user, {}, {}, now=NOW)
        with self.assertRaises(AssessmentError):
            submit_assessment(self.user, {}, {}, now=NOW)
        self.assertEqual(Assessment.objects.count(), 1)
        self.assertEqual(Notification.objects.count(), 1)

    def test_legacy_summary(self):
        assessment = Assessment.objects.create(
            user=self.user,
            kind=Assessment.Kind.LEGACY,
            submitted_at=NOW,
            study_habits={"plan": "Often"},
            personality={"Procrastinator": "Yes Consistently"},
        )
        summary = assessment_summary(assessment)
        self.assertIsInstance(summary, LegacyAssessment)
        self.assertEqual(summary.as_dict(), {
            "kind": "legacy",
            "submitted_at": NOW.isoformat(),
            "study_habits": {"plan": "Often"},
            "personality": {"Procrastinator": "Yes Consistently"},
        })

    def test_no_assessment(self):
        self.assertIsNone(assessment_summary(None))


class ReportTests(TestCase):

    def setUp(self):
        self.ada = _make_user(
            "ada@example.com", "Lovelace, Ada", student_id="DSV0001",
            created_at=datetime.datetime(2026, 1, 5, 10, tzinfo=UTC),
        )
        self.grace = _make_user(
            "grace@example.com", "Grace Hopper", student_id="DSV0002",
            requires_password_change=True,
        )
        _make_user("boss@example.com", "Boss", role=UserProfile.Role.ADMIN)
        uid = str(self.ada.pk)
        yesterday = NOW - datetime.timedelta(days=1)
        tomorrow = NOW + datetime.timedelta(days=1)
        self.tasks = [
            TaskRecord(id=f"done-{i}", user_id=uid, title="Done", due_date=yesterday,
                       completed=True, completed_at=NOW, created_at=NOW)
            for i in range(7)
        ] + [
            TaskRecord(id="late", user_id=uid, title="Late", due_date=yesterday,
                       completed=False, created_at=NOW),
            TaskRecord(id="next-1", user_id=uid, title="Next", due_date=tomorrow,
                       completed=False, created_at=NOW),
            TaskRecord(id="next-2", user_id=uid, title="Next", due_date=tomorrow,
                       completed=False, created_at=NOW),
        ]
        self.profiles = list(UserProfile.objects.select_related("user").order_by("pk"))

    def test_row_for_student(self):
        rows = report_rows(self.profiles, self.tasks, NOW)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0], [
            "DSV0001", "Lovelace, Ada", "ada@example.com", "STUDENT", "2026-01-05",
            10, 7, 3, 1, 70,
        ])
        self.assertEqual(rows[1][5:], [0, 0, 0, 0, 0])

    def test_filters(self):
        pending = report_rows(self.profiles, self.tasks, NOW, StudentFilter.PENDING)
        active = report_rows(self.profiles, self.tasks, NOW, StudentFilter.ACTIVE)
        self.assertEqual([r[0] for r in pending], ["DSV0002"])
        self.assertEqual([r[0] for r in active], ["DSV0001"])

    def test_csv_output(self):
        stream = io.StringIO()
        write_report(report_rows(self.profiles, self.tasks, NOW), stream)
        lines = stream.getvalue().splitlines()
        self.assertEqual(lines[0], ",".join(
            f'"{h}"' if "," in h else h for h in HEADER
        ))
        self.assertEqual(
            lines[1],
            'DSV0001,"Lovelace, Ada",ada@example.com,STUDENT,2026-01-05,10,7,3,1,70',
        )

    def test_filename(self):
        self.assertEqual(
            report_filename(StudentFilter.ALL, NOW), "student_report_full_2026-03-18.csv",
        )
        self.assertEqual(
            report_filename("pending", NOW), "student_report_pending_2026-03-18.csv",
        )

    def test_filter_profiles(self):
        self.assertEqual(
            [p.display_name for p in filter_profiles(self.profiles, "dsv0002")],
            ["Grace Hopper"],
        )
        self.assertEqual(len(filter_profiles(self.profiles, "EXAMPLE.COM")), 3)


class AdminStudentViewTests(TestCase):

    def setUp(self):
        self.admin = _make_user("admin@example.com", "Admin", role=UserProfile.Role.ADMIN)
        self.ada = _make_user("ada@example.com", "Ada Lovelace", student_id="DSV0001")
        self.client.force_login(self.admin)

    def test_students_are_forbidden(self):
        self.client.force_login(self.ada)
        response = self.client.get(reverse("students:student_list"))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Admin only"})

    def test_list(self):
        _make_user("grace@example.com", "Grace Hopper", requires_password_change=True)
        data = self.client.get(reverse("students:student_list")).json()
        self.assertEqual(data["found"], 2)

        data = self.client.get(reverse("students:student_list"), {"status": "pending"}).json()
        self.assertEqual([s["display_name"] for s in data["students"]], ["Grace Hopper"])

        data = self.client.get(reverse("students:student_list"), {"q": "dsv0001"}).json()
        self.assertEqual([s["display_name"] for s in data["students"]], ["Ada Lovelace"])
        self.assertEqual(data["students"][0]["rollup"]["total_tasks"], 0)

    def test_detail(self):
        response = self.client.get(reverse("students:student_detail", args=[self.ada.pk]))
        data = response.json()
        self.assertEqual(data["profile"]["student_id"], "DSV0001")
        self.assertEqual(data["rollup"]["completion_rate"], 0)
        self.assertEqual(data["history"]["tasks"], [])
        self.assertIsNone(data["assessment"])
        self.assertEqual(len(data["consistency"]), 12)

    def test_detail_missing_student(self):
        response = self.client.get(reverse("students:student_detail", args=[999999]))
        self.assertEqual(response.status_code, 404)

    def test_create_keeps_admin_session(self):
        StudentCounter.objects.create(name=STUDENT_COUNTER, value=41)
        response = self.client.post(reverse("students:student_create"), {
            "email": "new@example.com",
            "password": "secret123",
            "display_name": "New Student",
            "role": "STUDENT",
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["student_id"], "DSV0042")
        self.assertEqual(self.client.session["_auth_user_id"], str(self.admin.pk))

    def test_create_errors(self):
        response = self.client.post(reverse("students:student_create"), {
            "email": "ada@example.com",
            "password": "secret123",
            "display_name": "Dup",
            "role": "STUDENT",
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn("errors", response.json())

        response = self.client.post(reverse("students:student_create"), {"email": "bad"})
        self.assertEqual(response.status_code, 400)

    def test_next_id(self):
        StudentCounter.objects.create(name=STUDENT_COUNTER, value=9)
        data = self.client.get(reverse("students:next_student_id")).json()
        self.assertEqual(data["student_id"], "DSV0010")

    def test_export(self):
        response = self.client.get(reverse("students:student_export", args=["all"]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv; charset=utf-8")
        today = timezone.localtime().strftime("%Y-%m-%d")
        self.assertEqual(
            response["Content-Disposition"],
            f'attachment; filename="student_report_full_{today}.csv"',
        )
        lines = response.content.decode().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[1].startswith("DSV0001,Ada Lovelace,ada@example.com,STUDENT,"))

    def test_export_unknown_filter(self):
        response = self.client.get(reverse("students:student_export", args=["everyone"]))
        self.assertEqual(response.status_code, 404)


class SelfServiceViewTests(TestCase):

    def setUp(self):
        self.ada = _make_user("ada@example.com", "Ada Lovelace", requires_password_change=True)
        self.client.force_login(self.ada)

    def test_profile(self):
        data = self.client.get(reverse("students:profile")).json()
        self.assertEqual(data["display_name"], "Ada Lovelace")

        response = self.client.post(reverse("students:profile"), {
            "display_name": "Ada L.", "bio": "Counting engines", "photo_url": "",
        })
        self.assertEqual(response.json()["display_name"], "Ada L.")
        self.assertEqual(UserProfile.objects.get(user=self.ada).bio, "Counting engines")

    def test_password_change(self):
        response = self.client.post(reverse("students:password_change"), {
            "new_password": "newsecret", "confirm_password": "newsecret",
        })
        self.assertEqual(response.status_code, 200)
        self.assertFalse(UserProfile.objects.get(user=self.ada).requires_password_change)
        self.ada.refresh_from_db()
        self.assertTrue(self.ada.check_password("newsecret"))
        # Session survives the password change.
        self.assertEqual(self.client.get(reverse("students:profile")).status_code, 200)

    def test_password_mismatch(self):
        response = self.client.post(reverse("students:password_change"), {
            "new_password": "newsecret", "confirm_password": "other",
        })
        self.assertEqual(response.status_code, 400)
        self.assertTrue(UserProfile.objects.get(user=self.ada).requires_password_change)

    def test_assessment(self):
        data = self.client.get(reverse("students:assessment")).json()
        self.assertFalse(data["completed"])

        response = self.client.post(reverse("students:assessment"), _all_answers())
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.json()["assessment"]["study_habits"]), 7)

        response = self.client.post(reverse("students:assessment"), _all_answers())
        self.assertEqual(response.status_code, 400)

        data = self.client.get(reverse("students:assessment")).json()
        self.assertTrue(data["completed"])

    def test_assessment_requires_every_answer(self):
        answers = _all_answers()
        del answers["habit_3"]
        response = self.client.post(reverse("students:assessment"), answers)
        self.assertEqual(response.status_code, 400)
        self.assertIn("habit_3", response.json()["errors"])
        self.assertFalse(Assessment.objects.exists())
