from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from typing import Any, Iterable

from django.conf import settings
from django.db import DatabaseError, connections
from django.utils import timezone
from django.utils.dateparse import parse_datetime

EVENTS_TABLE = "geofence_events"
DEVICES_TABLE = "devices"

# Internal coordinates are fixed-point with 8 decimal places (~1 mm); the
# mobile datastore stores doubles, anything finer is dropped here.
COORDINATE_QUANTUM = Decimal("0.00000001")

_SELECT_STATEMENT = re.compile(r"^\s*select\b", re.IGNORECASE)


class EventStoreError(Exception):
    pass


class ReadOnlyEventStoreError(EventStoreError):
    pass


def _to_decimal(value: Any, quantum: Decimal = COORDINATE_QUANTUM) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(quantum)


def _as_aware(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = parse_datetime(value)
        if value is None:
            return None
    if timezone.is_naive(value):
        return timezone.make_aware(value, dt_timezone.utc)
    return value


@dataclass(frozen=True)
class Coordinate:
    latitude: Decimal
    longitude: Decimal

    @classmethod
    def from_floats(cls, latitude: float | None, longitude: float | None) -> Coordinate | None:
        if latitude is None or longitude is None:
            return None
        return cls(_to_decimal(latitude), _to_decimal(longitude))


@dataclass(frozen=True)
class MobileGeofenceEvent:
    id: str
    user_id: str
    site_id: str
    event_type: str
    timestamp: datetime
    coordinate: Coordinate | None
    trigger_method: str


@dataclass(frozen=True)
class MobileDevice:
    id: str
    platform_identifier: str
    platform: str
    model: str
    manufacturer: str
    os_version: str
    device_type: str
    registered_at: datetime | None
    last_seen_at: datetime | None
    is_active: bool
    last_position: Coordinate | None
    last_accuracy: Decimal | None
    last_battery_level: int | None


class GeofenceEventStore:
    """Read-only access to the mobile app's geofence datastore."""

    def __init__(self, using: str | None = None):
        sync_settings = getattr(settings, "GEOFENCE_SYNC", {})
        self.using = using or sync_settings.get("DATABASE_ALIAS", "geofence_mobile")

    def _query(self, sql: str, params: Iterable[Any] | None = None) -> list[tuple]:
        if not _SELECT_STATEMENT.match(sql):
            raise ReadOnlyEventStoreError("The geofence event store is read-only")
        if self.using not in connections.databases:
            raise EventStoreError(f"Database alias '{self.using}' is not configured")

        try:
            with connections[self.using].cursor() as cursor:
                cursor.execute(sql, list(params or []))
                return cursor.fetchall()
        except DatabaseError as exc:
            raise EventStoreError(str(exc)) from exc

    def ping(self) -> None:
        self._query("SELECT 1")

    def fetch_events_after(self, cursor: datetime, limit: int) -> list[MobileGeofenceEvent]:
        rows = self._query(
            f'SELECT id, user_id, site_id, event_type, "timestamp", latitude, longitude, trigger_method '
            f'FROM {EVENTS_TABLE} WHERE "timestamp" > %s ORDER BY "timestamp" ASC, id ASC LIMIT %s',
            [cursor, limit],
        )
        return [
            MobileGeofenceEvent(
                id=str(row[0]),
                user_id=str(row[1] or ""),
                site_id=str(row[2] or ""),
                event_type=str(row[3] or ""),
                timestamp=_as_aware(row[4]),
                coordinate=Coordinate.from_floats(row[5], row[6]),
                trigger_method=str(row[7] or ""),
            )
            for row in rows
        ]

    def fetch_active_devices(self) -> list[MobileDevice]:
        rows = self._query(
            "SELECT id, platform_identifier, platform, model, manufacturer, os_version, device_type, "
            "registered_at, last_seen_at, is_active, last_latitude, last_longitude, last_accuracy, "
            f"last_battery_level FROM {DEVICES_TABLE} WHERE is_active = %s ORDER BY id",
            [True],
        )
        return [
            MobileDevice(
                id=str(row[0]),
                platform_identifier=row[1] or "",
                platform=row[2] or "",
                model=row[3] or "",
                manufacturer=row[4] or "",
                os_version=row[5] or "",
                device_type=row[6] or "",
                registered_at=_as_aware(row[7]),
                last_seen_at=_as_aware(row[8]),
                is_active=bool(row[9]),
                last_position=Coordinate.from_floats(row[10], row[11]),
                last_accuracy=_to_decimal(row[12], Decimal("0.01")),
                last_battery_level=int(row[13]) if row[13] is not None else None,
            )
            for row in rows
        ]

    def count_events_by_user(self, user_ids: Iterable[str]) -> dict[str, int]:
        user_ids = list(user_ids)
        if not user_ids:
            return {}

        placeholders = ", ".join(["%s"] * len(user_ids))
        rows = self._query(
            f"SELECT user_id, COUNT(*) FROM {EVENTS_TABLE} WHERE user_id IN ({placeholders}) GROUP BY user_id",
            user_ids,
        )
        return {str(user_id): int(count) for user_id, count in rows}
