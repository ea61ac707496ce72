from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from site_attendance.models import AttendanceEvent
from site_attendance.services.geo import find_nearest_site, is_within_geofence
from site_attendance.services.noise import apply_noise_check
from site_attendance.services.notifications import check_and_notify_missing_spa
from tenants.models import Tenant
from workforce.models import Employee, Site

logger = logging.getLogger(__name__)


class CheckInError(Exception):
    pass


class NoSiteAvailableError(CheckInError):
    pass


class OutsideGeofenceError(CheckInError):
    def __init__(self, site: Site):
        super().__init__(f"Position is outside the geofence of site '{site.site_code}'")
        self.site = site


def record_check_in(
    tenant: Tenant,
    employee: Employee,
    event_type: str,
    latitude: Decimal,
    longitude: Decimal,
    site: Site | None = None,
    device_identifier: str = "",
    trigger_method: str = AttendanceEvent.TRIGGER_MANUAL,
    timestamp: datetime | None = None,
) -> AttendanceEvent:
    if site is None:
        site, distance = find_nearest_site(tenant, latitude, longitude)
        if site is None:
            raise NoSiteAvailableError("No active site is configured for this tenant")
        logger.debug("Resolved nearest site", extra={"site_id": site.pk, "distance": distance})

    if not is_within_geofence(site, latitude, longitude):
        raise OutsideGeofenceError(site)

    with transaction.atomic():
        event = AttendanceEvent.objects.create(
            tenant=tenant,
            employee=employee,
            site=site,
            event_type=event_type,
            timestamp=timestamp or timezone.now(),
            latitude=latitude,
            longitude=longitude,
            trigger_method=trigger_method,
            device_identifier=device_identifier,
        )
        apply_noise_check(event)

    logger.info(
        "Recorded %s check-in",
        event_type,
        extra={"tenant": tenant.code, "employee_id": employee.pk, "site_id": site.pk, "event_id": event.pk},
    )

    if event.event_type == AttendanceEvent.TYPE_ENTER:
        check_and_notify_missing_spa(event)
    return event
