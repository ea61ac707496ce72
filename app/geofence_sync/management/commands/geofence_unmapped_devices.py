from django.core.management.base import BaseCommand, CommandError

from geofence_sync.services.status import get_unmapped_devices
from tenants.models import Tenant


class Command(BaseCommand):
    help = "List active mobile devices that are not linked to any employee"

    def add_arguments(self, parser):
        parser.add_argument("--tenant", required=True, help="Tenant code")

    def handle(self, *args, **options):
        tenant_code = options["tenant"].strip()
        tenant = Tenant.objects.filter(code=tenant_code).first()
        if tenant is None:
            raise CommandError(f"Unknown tenant '{tenant_code}'")

        devices = get_unmapped_devices(tenant)
        if not devices:
            self.stdout.write(self.style.SUCCESS("No unmapped devices"))
            return

        for device in devices:
            last_seen = device.last_seen_at.isoformat() if device.last_seen_at else "-"
            self.stdout.write(
                f"{device.device_id}\t{device.platform or '-'}\t{device.model or '-'}\t"
                f"events={device.event_count}\tlast_seen={last_seen}"
            )
        self.stdout.write(self.style.SUCCESS(f"{len(devices)} unmapped devices"))
