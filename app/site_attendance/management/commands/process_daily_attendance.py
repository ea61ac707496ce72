from datetime import date, timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from site_attendance.services.time_calculation import process_daily_attendance, reprocess_date
from tenants.models import Tenant


class Command(BaseCommand):
    help = "Aggregate attendance events into daily summaries (nightly fallback pass)"

    def add_arguments(self, parser):
        parser.add_argument("--tenant", help="Tenant code (default: all tenants)")
        parser.add_argument("--date", help="Date to process, YYYY-MM-DD (default: yesterday)")
        parser.add_argument("--reprocess", action="store_true", help="Re-aggregate already processed events")

    def handle(self, *args, **options):
        if options["date"]:
            try:
                day = date.fromisoformat(options["date"])
            except ValueError as exc:
                raise CommandError(f"Invalid --date '{options['date']}'") from exc
        else:
            day = timezone.now().date() - timedelta(days=1)

        tenants = Tenant.objects.all().order_by("code")
        if options["tenant"]:
            tenants = tenants.filter(code=options["tenant"].strip())
            if not tenants.exists():
                raise CommandError(f"Unknown tenant '{options['tenant']}'")

        handler = reprocess_date if options["reprocess"] else process_daily_attendance
        for tenant in tenants:
            result = handler(tenant, day)
            self.stdout.write(
                self.style.SUCCESS(
                    f"{tenant.code} {day.isoformat()}: {result.events_processed} events, "
                    f"{result.summaries_created} summaries created, {result.summaries_updated} updated"
                )
            )
