from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db.models import Count, Q, Sum
from django.utils import timezone

from geofence_sync.client import EventStoreError, GeofenceEventStore
from geofence_sync.models import GeofenceSyncLog
from geofence_sync.services.sync import sync_settings
from tenants.models import Tenant
from workforce.models import Employee

logger = logging.getLogger(__name__)

RECENT_LOG_LIMIT = 10


@dataclass(frozen=True)
class SyncStatus:
    is_healthy: bool
    last_successful_sync: datetime | None
    syncs_last_24_hours: int
    failed_syncs_last_24_hours: int
    events_created_last_24_hours: int
    recent_syncs: list[GeofenceSyncLog]


@dataclass(frozen=True)
class UnmappedDevice:
    device_id: str
    platform: str
    model: str
    manufacturer: str
    registered_at: datetime | None
    last_seen_at: datetime | None
    is_active: bool
    event_count: int


def get_sync_status(tenant: Tenant) -> SyncStatus:
    now = timezone.now()
    logs = GeofenceSyncLog.objects.filter(tenant=tenant)

    last_success = GeofenceSyncLog.last_successful(tenant)
    last_successful_sync = last_success.sync_completed if last_success else None
    healthy_within = timedelta(hours=sync_settings().get("HEALTHY_WITHIN_HOURS", 2))

    totals = logs.filter(sync_started__gte=now - timedelta(hours=24)).aggregate(
        total=Count("id"),
        failed=Count("id", filter=~Q(error_message="")),
        created=Sum("records_created"),
    )

    return SyncStatus(
        is_healthy=last_successful_sync is not None and last_successful_sync > now - healthy_within,
        last_successful_sync=last_successful_sync,
        syncs_last_24_hours=totals["total"] or 0,
        failed_syncs_last_24_hours=totals["failed"] or 0,
        events_created_last_24_hours=totals["created"] or 0,
        recent_syncs=list(logs.order_by("-sync_started", "-id")[:RECENT_LOG_LIMIT]),
    )


def get_unmapped_devices(tenant: Tenant, store: GeofenceEventStore | None = None) -> list[UnmappedDevice]:
    """Active mobile devices that no employee of ``tenant`` is linked to, busiest first."""
    store = store or GeofenceEventStore(sync_settings()["DATABASE_ALIAS"])

    try:
        store.ping()
        devices = store.fetch_active_devices()
    except EventStoreError:
        logger.warning("Cannot reach the mobile datastore to list unmapped devices", exc_info=True)
        return []

    mapped = {
        tracker_id.lower()
        for tracker_id in Employee.objects.filter(
            tenant=tenant,
            is_deleted=False,
            geo_tracker_id__isnull=False,
        ).values_list("geo_tracker_id", flat=True)
    }
    unmapped = [device for device in devices if device.id.lower() not in mapped]
    if not unmapped:
        return []

    try:
        counts = store.count_events_by_user(device.id for device in unmapped)
    except EventStoreError:
        logger.warning("Cannot count events for unmapped devices", exc_info=True)
        counts = {}

    report = [
        UnmappedDevice(
            device_id=device.id,
            platform=device.platform,
            model=device.model,
            manufacturer=device.manufacturer,
            registered_at=device.registered_at,
            last_seen_at=device.last_seen_at,
            is_active=device.is_active,
            event_count=counts.get(device.id, 0),
        )
        for device in unmapped
    ]
    report.sort(key=lambda item: item.event_count, reverse=True)
    return report
