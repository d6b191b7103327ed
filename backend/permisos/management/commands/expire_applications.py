import time
from datetime import datetime, timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from permisos.workflow import expire_applications


def run_expire_applications(today=None, now=None) -> dict:
    """Run a single maintenance pass.

    Safe to call from short-lived contexts such as the cron HTTP view.
    Returns ``{'expired': n, 'cancelled': m, 'reminded': r}``.
    """
    now = now or timezone.now()
    return expire_applications(today=today or timezone.localdate(now), now=now)


class Command(BaseCommand):
    help = "Expire permits past their end date, cancel stale unpaid applications and send expiration reminders"

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            type=str,
            default=None,
            help="Run as if the local date were this YYYY-MM-DD (defaults to today).",
        )
        parser.add_argument(
            "--loop",
            action="store_true",
            help="If set, run in a continuous loop instead of a single run.",
        )
        parser.add_argument(
            "--interval-seconds",
            type=int,
            default=3600,
            help="Sleep interval between runs when --loop is enabled.",
        )

    def _report(self, result):
        self.stdout.write(
            self.style.SUCCESS(
                f"{result['expired']} permit(s) expired, {result['cancelled']} unpaid application(s) cancelled, "
                f"{result['reminded']} reminder(s) sent."
            )
        )

    def _clock_offset(self, value):
        # --date shifts the whole clock, so TTL cutoffs move with it
        if not value:
            return timedelta(0)
        try:
            target = datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            raise CommandError(f"Invalid --date {value!r}; expected YYYY-MM-DD.")
        return timedelta(days=(target - timezone.localdate()).days)

    def _run_once(self, offset):
        return run_expire_applications(now=timezone.now() + offset)

    def handle(self, *args, **options):
        offset = self._clock_offset(options["date"])

        if options["loop"]:
            interval_seconds = options["interval_seconds"]
            self.stdout.write(
                self.style.NOTICE(f"Starting expire_applications in loop mode: interval={interval_seconds}s")
            )
            try:
                while True:
                    self._report(self._run_once(offset))
                    time.sleep(interval_seconds)
            except KeyboardInterrupt:
                self.stdout.write(self.style.WARNING("Loop interrupted by user."))
        else:
            self._report(self._run_once(offset))
