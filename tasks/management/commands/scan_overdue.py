import datetime

from django.core.management.base import BaseCommand
from django.utils import timezone

from students.models import UserProfile
from tasks.services import scan_overdue


class Command(BaseCommand):
    help = (
        "Send one overdue notification for every student task that became "
        "overdue since the last scan."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            type=datetime.date.fromisoformat,
            default=None,
            help="Evaluate as of this day (YYYY-MM-DD). Defaults to now.",
        )

    def handle(self, *args, **options):
        if options["date"]:
            now = datetime.datetime.combine(
                options["date"], datetime.time.min,
                tzinfo=timezone.get_current_timezone(),
            )
        else:
            now = timezone.localtime()

        profiles = (
            UserProfile.objects
            .filter(role=UserProfile.Role.STUDENT)
            .select_related("user")
            .order_by("user_id")
        )
        total = 0
        for profile in profiles:
            created = scan_overdue(profile.user, now=now)
            total += len(created)
            for notification in created:
                self.stdout.write(f"  ! {notification.message}")

        self.stdout.write(f"Sent {total} overdue notification(s) as of {now.date()}.")
        self.stdout.write(self.style.SUCCESS("Done."))
