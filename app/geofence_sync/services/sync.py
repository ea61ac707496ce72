from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable

from django.conf import settings
from django.utils import timezone

from geofence_sync.client import EventStoreError, GeofenceEventStore, MobileGeofenceEvent
from geofence_sync.models import GeofenceSyncLog
from geofence_sync.services.device_status import refresh_device_status
from geofence_sync.services.identity import IdentityLookup, load_lookup
from site_attendance.models import AttendanceEvent
from site_attendance.services.noise import check_for_noise, noise_threshold_for
from site_attendance.services.time_calculation import process_daily_attendance
from tenants.models import Tenant
from workforce.models import Employee, Site

logger = logging.getLogger(__name__)

FLUSH_EVERY = 100
DUPLICATE_WINDOW = timedelta(seconds=1)
UNMAPPED_LOG_LIMIT = 10

DEFAULT_SYNC_SETTINGS = {
    "ENABLED": False,
    "INTERVAL_MINUTES": 15,
    "STARTUP_DELAY_SECONDS": 30,
    "BATCH_SIZE": 1000,
    "INITIAL_SYNC_DAYS": 30,
    "PROCESS_SUMMARIES_AFTER_SYNC": True,
    "TENANT_CODES": [],
    "DATABASE_ALIAS": "geofence_mobile",
}


class SyncCancelled(Exception):
    """The run was aborted because shutdown was requested."""


@dataclass
class SyncResult:
    success: bool
    records_processed: int = 0
    records_created: int = 0
    records_skipped: int = 0
    error: str = ""
    last_event_timestamp: datetime | None = None
    dates_processed: list[date] = field(default_factory=list)
    summaries_created: int = 0
    summaries_updated: int = 0
    events_processed_for_summaries: int = 0
    devices_synced: int = 0
    devices_online: int = 0


def sync_settings() -> dict:
    return {**DEFAULT_SYNC_SETTINGS, **getattr(settings, "GEOFENCE_SYNC", {})}


def _check_cancelled(cancel_event: threading.Event | None):
    if cancel_event is not None and cancel_event.is_set():
        raise SyncCancelled()


def parse_event_type(value: str) -> str:
    if (value or "").strip().lower() == "exit":
        return AttendanceEvent.TYPE_EXIT
    return AttendanceEvent.TYPE_ENTER


def parse_trigger_method(value: str) -> str:
    if (value or "").strip().lower() == "manual":
        return AttendanceEvent.TRIGGER_MANUAL
    return AttendanceEvent.TRIGGER_AUTOMATIC


def is_duplicate_event(
    tenant: Tenant,
    employee: Employee,
    site: Site,
    event_type: str,
    timestamp: datetime,
    pending: Iterable[AttendanceEvent] = (),
) -> bool:
    start = timestamp - DUPLICATE_WINDOW
    end = timestamp + DUPLICATE_WINDOW

    for other in pending:
        if (
            other.employee_id == employee.pk
            and other.site_id == site.pk
            and other.event_type == event_type
            and start <= other.timestamp <= end
        ):
            return True

    return AttendanceEvent.objects.filter(
        tenant=tenant,
        employee=employee,
        site=site,
        event_type=event_type,
        timestamp__gte=start,
        timestamp__lte=end,
        is_deleted=False,
    ).exists()


def _build_event(tenant: Tenant, employee: Employee, site: Site, mobile_event: MobileGeofenceEvent) -> AttendanceEvent:
    coordinate = mobile_event.coordinate
    return AttendanceEvent(
        tenant=tenant,
        employee=employee,
        site=site,
        event_type=parse_event_type(mobile_event.event_type),
        timestamp=mobile_event.timestamp,
        latitude=coordinate.latitude if coordinate else None,
        longitude=coordinate.longitude if coordinate else None,
        trigger_method=parse_trigger_method(mobile_event.trigger_method),
        device_identifier=mobile_event.user_id,
    )


def _flush(pending: list[AttendanceEvent]):
    if pending:
        AttendanceEvent.objects.bulk_create(pending)
        logger.debug("Saved batch of %s attendance events", len(pending))
        pending.clear()


def _log_unmapped(tenant: Tenant, lookup: IdentityLookup):
    if lookup.unmapped_devices:
        logger.warning(
            "Skipped %s events for %s unmapped device identifiers. Top: %s",
            lookup.unmapped_devices.total,
            len(lookup.unmapped_devices),
            lookup.unmapped_devices.describe(UNMAPPED_LOG_LIMIT),
            extra={"tenant": tenant.code},
        )
    if lookup.unmapped_sites:
        logger.warning(
            "Skipped %s events for %s unmapped site codes. Top: %s",
            lookup.unmapped_sites.total,
            len(lookup.unmapped_sites),
            lookup.unmapped_sites.describe(UNMAPPED_LOG_LIMIT),
            extra={"tenant": tenant.code},
        )


def _process_summaries(tenant: Tenant, result: SyncResult, cancel_event: threading.Event | None):
    for day in result.dates_processed:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Summary processing interrupted by shutdown", extra={"tenant": tenant.code})
            return
        try:
            outcome = process_daily_attendance(tenant, day)
        except Exception:  # noqa: BLE001
            logger.warning(
                "Failed to process summaries for %s, the nightly run will pick it up",
                day.isoformat(),
                exc_info=True,
                extra={"tenant": tenant.code},
            )
            continue

        result.summaries_created += outcome.summaries_created
        result.summaries_updated += outcome.summaries_updated
        result.events_processed_for_summaries += outcome.events_processed


def _run_sync(
    tenant: Tenant,
    store: GeofenceEventStore,
    sync_log: GeofenceSyncLog,
    config: dict,
    cancel_event: threading.Event | None,
) -> SyncResult:
    _check_cancelled(cancel_event)
    try:
        store.ping()
    except EventStoreError as exc:
        error = f"Unable to connect to mobile geofence datastore: {exc}"
        logger.warning(error, extra={"tenant": tenant.code})
        sync_log.fail(error)
        return SyncResult(False, error=error)

    devices_synced, devices_online = refresh_device_status(store)
    logger.info("Device status sync: %s devices, %s online", devices_synced, devices_online)

    _check_cancelled(cancel_event)
    last_sync = GeofenceSyncLog.last_successful(tenant)
    if last_sync is not None and last_sync.last_event_timestamp is not None:
        cursor = last_sync.last_event_timestamp
    else:
        cursor = timezone.now() - timedelta(days=config["INITIAL_SYNC_DAYS"])

    lookup = load_lookup(tenant)
    logger.debug(
        "Syncing geofence events after %s",
        cursor.isoformat(),
        extra={
            "tenant": tenant.code,
            "employees": len(lookup.employees_by_device),
            "sites": len(lookup.sites_by_code),
        },
    )

    _check_cancelled(cancel_event)
    mobile_events = store.fetch_events_after(cursor, config["BATCH_SIZE"])
    if not mobile_events:
        logger.debug("No new geofence events", extra={"tenant": tenant.code})
        sync_log.complete(0, 0, 0, last_event_timestamp=cursor)
        return SyncResult(
            True,
            last_event_timestamp=cursor,
            devices_synced=devices_synced,
            devices_online=devices_online,
        )

    noise_threshold = noise_threshold_for(tenant.pk)
    processed = created = skipped = 0
    last_event_id = ""
    last_event_timestamp = None
    affected_dates: set[date] = set()
    pending: list[AttendanceEvent] = []

    for mobile_event in mobile_events:
        _check_cancelled(cancel_event)
        processed += 1
        last_event_id = mobile_event.id
        last_event_timestamp = mobile_event.timestamp

        employee, site, reason = lookup.resolve(mobile_event)
        if reason:
            skipped += 1
            continue

        event = _build_event(tenant, employee, site, mobile_event)
        if is_duplicate_event(tenant, employee, site, event.event_type, event.timestamp, pending):
            logger.debug(
                "Skipping duplicate geofence event %s",
                mobile_event.id,
                extra={"employee_id": employee.pk, "site_id": site.pk},
            )
            skipped += 1
            continue

        if event.event_type == AttendanceEvent.TYPE_ENTER:
            noise = check_for_noise(event, noise_threshold, pending)
            event.is_noise = noise.is_noise
            event.noise_distance = noise.distance

        pending.append(event)
        created += 1
        affected_dates.add(event.event_date)

        if len(pending) >= FLUSH_EVERY:
            _flush(pending)
            sync_log.update_progress(processed, created, skipped)

    _check_cancelled(cancel_event)
    _flush(pending)
    _log_unmapped(tenant, lookup)
    sync_log.complete(processed, created, skipped, last_event_id, last_event_timestamp)

    result = SyncResult(
        True,
        records_processed=processed,
        records_created=created,
        records_skipped=skipped,
        last_event_timestamp=last_event_timestamp,
        dates_processed=sorted(affected_dates),
        devices_synced=devices_synced,
        devices_online=devices_online,
    )

    if config["PROCESS_SUMMARIES_AFTER_SYNC"] and result.dates_processed:
        logger.info(
            "Processing summaries for dates: %s",
            ", ".join(day.isoformat() for day in result.dates_processed),
            extra={"tenant": tenant.code},
        )
        _process_summaries(tenant, result, cancel_event)

    return result


def sync_tenant(
    tenant: Tenant,
    store: GeofenceEventStore | None = None,
    cancel_event: threading.Event | None = None,
) -> SyncResult:
    """Pull new mobile geofence events for ``tenant`` into attendance events.

    Every run is recorded in ``GeofenceSyncLog``. The cursor for the next
    run is the last event timestamp of the newest successful log, so a
    failed or cancelled run is simply retried from the same point.
    Raises ``SyncCancelled`` when ``cancel_event`` is set mid-run.
    """
    config = sync_settings()
    store = store or GeofenceEventStore(config["DATABASE_ALIAS"])
    sync_log = GeofenceSyncLog.start(tenant)

    try:
        result = _run_sync(tenant, store, sync_log, config, cancel_event)
    except SyncCancelled:
        logger.info("Geofence sync cancelled", extra={"tenant": tenant.code, "sync_log_id": sync_log.pk})
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error during geofence sync", extra={"tenant": tenant.code})
        sync_log.fail(str(exc))
        return SyncResult(False, error=str(exc))

    if result.success:
        logger.info(
            "Geofence sync completed. Processed: %s, Created: %s, Skipped: %s",
            result.records_processed,
            result.records_created,
            result.records_skipped,
            extra={"tenant": tenant.code, "summaries_created": result.summaries_created},
        )
    return result


def sync_all_tenants(
    cancel_event: threading.Event | None = None,
    tenant_codes: Iterable[str] | None = None,
) -> dict[str, SyncResult]:
    codes = list(tenant_codes) if tenant_codes is not None else list(sync_settings()["TENANT_CODES"])
    if not codes:
        logger.warning("No tenants configured for geofence sync")

    results = {}
    for code in codes:
        _check_cancelled(cancel_event)
        tenant = Tenant.objects.filter(code=code).first()
        if tenant is None:
            logger.warning("Skipping unknown tenant '%s' in geofence sync", code)
            continue
        results[code] = sync_tenant(tenant, cancel_event=cancel_event)
    return results
