from django.core.management.base import BaseCommand, CommandError

from geofence_sync.services.sync import sync_all_tenants, sync_tenant
from tenants.models import Tenant


class Command(BaseCommand):
    help = "Run one geofence sync pass (configured tenants, or a single tenant)"

    def add_arguments(self, parser):
        parser.add_argument("--tenant", help="Tenant code (default: GEOFENCE_SYNC['TENANT_CODES'])")

    def handle(self, *args, **options):
        tenant_code = (options.get("tenant") or "").strip()
        if tenant_code:
            tenant = Tenant.objects.filter(code=tenant_code).first()
            if tenant is None:
                raise CommandError(f"Unknown tenant '{tenant_code}'")
            results = {tenant_code: sync_tenant(tenant)}
        else:
            results = sync_all_tenants()

        failed = []
        for code, result in results.items():
            if not result.success:
                self.stderr.write(self.style.ERROR(f"{code}: sync failed: {result.error}"))
                failed.append(code)
                continue
            self.stdout.write(
                self.style.SUCCESS(
                    f"{code}: processed={result.records_processed} created={result.records_created} "
                    f"skipped={result.records_skipped} summaries={result.summaries_created}"
                )
            )

        if failed:
            raise CommandError(f"Geofence sync failed for: {', '.join(failed)}")
