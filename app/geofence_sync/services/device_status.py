from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from geofence_sync.client import GeofenceEventStore
from geofence_sync.models import DeviceStatusCache

logger = logging.getLogger(__name__)

DEFAULT_ONLINE_THRESHOLD_MINUTES = 90


def _online_threshold_minutes() -> int:
    return getattr(settings, "GEOFENCE_SYNC", {}).get("ONLINE_THRESHOLD_MINUTES", DEFAULT_ONLINE_THRESHOLD_MINUTES)


def refresh_device_status(store: GeofenceEventStore) -> tuple[int, int]:
    """Mirror active mobile devices into ``DeviceStatusCache``.

    Returns ``(synced, online)``. A failure is logged and reported as
    ``(0, 0)`` so the surrounding sync run carries on.
    """
    try:
        devices = store.fetch_active_devices()
    except Exception:  # noqa: BLE001
        logger.exception("Failed to read device status from the mobile datastore")
        return 0, 0

    if not devices:
        logger.debug("No active devices found in the mobile datastore")
        return 0, 0

    synced_at = timezone.now()
    online_since = synced_at - timedelta(minutes=_online_threshold_minutes())

    online = 0
    for device in devices:
        DeviceStatusCache.objects.update_or_create(
            device_id=device.id,
            defaults={
                "platform_identifier": device.platform_identifier,
                "model": device.model,
                "platform": device.platform,
                "is_active": device.is_active,
                "last_seen_at": device.last_seen_at,
                "last_latitude": device.last_position.latitude if device.last_position else None,
                "last_longitude": device.last_position.longitude if device.last_position else None,
                "last_accuracy": device.last_accuracy,
                "last_battery_level": device.last_battery_level,
                "synced_at": synced_at,
            },
        )
        if device.last_seen_at and device.last_seen_at > online_since:
            online += 1

    return len(devices), online
