from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from site_attendance.models import AttendanceEvent, AttendanceSettings, utc_day_bounds
from site_attendance.services.geo import calculate_distance

logger = logging.getLogger(__name__)

DEFAULT_NOISE_THRESHOLD_METERS = 150


@dataclass(frozen=True)
class NoiseCheck:
    is_noise: bool
    distance: Decimal | None = None


def _first_entry_of_day(event: AttendanceEvent, pending: Iterable[AttendanceEvent]) -> AttendanceEvent | None:
    start, end = utc_day_bounds(event.event_date)
    queryset = AttendanceEvent.objects.filter(
        tenant_id=event.tenant_id,
        employee_id=event.employee_id,
        site_id=event.site_id,
        event_type=AttendanceEvent.TYPE_ENTER,
        timestamp__gte=start,
        timestamp__lt=end,
        is_noise=False,
        is_deleted=False,
    )
    if event.pk is not None:
        queryset = queryset.exclude(pk=event.pk)
    candidates = [entry for entry in [queryset.order_by("timestamp", "id").first()] if entry is not None]

    for other in pending:
        if (
            other is not event
            and other.event_type == AttendanceEvent.TYPE_ENTER
            and not other.is_noise
            and other.employee_id == event.employee_id
            and other.site_id == event.site_id
            and start <= other.timestamp < end
        ):
            candidates.append(other)

    if not candidates:
        return None
    return min(candidates, key=lambda entry: entry.timestamp)


def check_for_noise(
    event: AttendanceEvent,
    threshold_meters: int = DEFAULT_NOISE_THRESHOLD_METERS,
    pending: Iterable[AttendanceEvent] = (),
) -> NoiseCheck:
    """Classify an Enter event against the first genuine entry of its day.

    ``pending`` holds events created in the same batch that are not yet
    persisted.
    """
    if event.event_type != AttendanceEvent.TYPE_ENTER:
        return NoiseCheck(False)

    first_entry = _first_entry_of_day(event, pending)
    if first_entry is None:
        return NoiseCheck(False)

    if not event.has_coordinates or not first_entry.has_coordinates:
        return NoiseCheck(False)

    distance = calculate_distance(
        first_entry.latitude,
        first_entry.longitude,
        event.latitude,
        event.longitude,
    )
    rounded = Decimal(str(round(distance, 2)))
    return NoiseCheck(distance <= threshold_meters, rounded)


def noise_threshold_for(tenant_id: int) -> int:
    settings = AttendanceSettings.objects.filter(tenant_id=tenant_id).first()
    if settings is None:
        return DEFAULT_NOISE_THRESHOLD_METERS
    return settings.noise_threshold_meters


def apply_noise_check(event: AttendanceEvent) -> NoiseCheck:
    result = check_for_noise(event, noise_threshold_for(event.tenant_id))
    event.is_noise = result.is_noise
    event.noise_distance = result.distance
    if event.pk is not None:
        event.save(update_fields=["is_noise", "noise_distance", "updated_at"])
    if result.is_noise:
        logger.info(
            "Attendance event marked as GPS noise",
            extra={"event_id": event.pk, "employee_id": event.employee_id, "distance": str(result.distance)},
        )
    return result
