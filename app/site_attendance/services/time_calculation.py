from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

from django.db import transaction

from site_attendance.models import (
    AttendanceEvent,
    AttendanceSettings,
    AttendanceSummary,
    BankHoliday,
    SitePhotoAttendance,
    utc_day_bounds,
)
from tenants.models import Tenant

logger = logging.getLogger(__name__)

DEFAULT_EXPECTED_HOURS = Decimal("7.50")
TWO_PLACES = Decimal("0.01")

EXCELLENT_THRESHOLD = Decimal("90")
GOOD_THRESHOLD = Decimal("75")

SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True)
class DailyProcessingResult:
    events_processed: int = 0
    summaries_created: int = 0
    summaries_updated: int = 0


def calculate_time_on_site(events: Iterable[AttendanceEvent]) -> int:
    """Total whole minutes covered by closed Enter/Exit intervals, noise excluded."""
    ordered = sorted((event for event in events if not event.is_noise), key=lambda event: event.timestamp)

    total_minutes = 0
    entry_time = None
    for event in ordered:
        if event.event_type == AttendanceEvent.TYPE_ENTER:
            # A second Enter restarts the open interval.
            entry_time = event.timestamp
        elif event.event_type == AttendanceEvent.TYPE_EXIT and entry_time is not None:
            minutes = int((event.timestamp - entry_time).total_seconds() // 60)
            total_minutes += max(0, minutes)
            entry_time = None

    return total_minutes


def minutes_to_hours(minutes: int) -> Decimal:
    return (Decimal(minutes) / Decimal(60)).quantize(TWO_PLACES)


def calculate_utilization(actual_hours: Decimal, expected_hours: Decimal) -> Decimal:
    actual_hours = Decimal(str(actual_hours))
    expected_hours = Decimal(str(expected_hours))
    if expected_hours <= 0:
        return Decimal("0.00")
    return (actual_hours / expected_hours * 100).quantize(TWO_PLACES)


def classify_status(utilization: Decimal, entry_count: int, exit_count: int) -> str:
    if utilization >= EXCELLENT_THRESHOLD:
        return AttendanceSummary.STATUS_EXCELLENT
    if utilization >= GOOD_THRESHOLD:
        return AttendanceSummary.STATUS_GOOD
    if utilization > 0:
        return AttendanceSummary.STATUS_BELOW_TARGET
    if entry_count or exit_count:
        return AttendanceSummary.STATUS_INCOMPLETE
    return AttendanceSummary.STATUS_ABSENT


def _settings_for(tenant: Tenant) -> AttendanceSettings | None:
    return AttendanceSettings.objects.filter(tenant=tenant).first()


def _is_weekend_excluded(day: date, settings: AttendanceSettings | None) -> bool:
    weekday = day.weekday()
    if weekday == SATURDAY:
        return not (settings and settings.include_saturday)
    if weekday == SUNDAY:
        return not (settings and settings.include_sunday)
    return False


def get_working_days(tenant: Tenant, from_date: date, to_date: date) -> int:
    settings = _settings_for(tenant)
    holidays = set(
        BankHoliday.objects.filter(tenant=tenant, date__gte=from_date, date__lte=to_date).values_list(
            "date", flat=True
        )
    )

    working_days = 0
    current = from_date
    while current <= to_date:
        if not _is_weekend_excluded(current, settings) and current not in holidays:
            working_days += 1
        current += timedelta(days=1)
    return working_days


def is_working_day(tenant: Tenant, day: date) -> bool:
    if _is_weekend_excluded(day, _settings_for(tenant)):
        return False
    return not BankHoliday.objects.filter(tenant=tenant, date=day).exists()


def _day_events(tenant: Tenant, day: date):
    start, end = utc_day_bounds(day)
    return AttendanceEvent.objects.filter(
        tenant=tenant,
        timestamp__gte=start,
        timestamp__lt=end,
        is_deleted=False,
    )


def _apply_events(summary: AttendanceSummary, events: list[AttendanceEvent]) -> None:
    entries = [event.timestamp for event in events if event.event_type == AttendanceEvent.TYPE_ENTER]
    exits = [event.timestamp for event in events if event.event_type == AttendanceEvent.TYPE_EXIT]
    minutes = calculate_time_on_site(events)
    utilization = calculate_utilization(minutes_to_hours(minutes), summary.expected_hours)

    summary.first_entry = min(entries) if entries else None
    summary.last_exit = max(exits) if exits else None
    summary.time_on_site_minutes = minutes
    summary.entry_count = len(entries)
    summary.exit_count = len(exits)
    summary.utilization_percent = utilization
    summary.status = classify_status(utilization, summary.entry_count, summary.exit_count)


def process_daily_attendance(tenant: Tenant, day: date, include_existing: bool = False) -> DailyProcessingResult:
    """Recompute summaries for every employee/site with unprocessed events on ``day``.

    Each summary is rebuilt from all events of that employee, site and date,
    so running this again for the same date gives the same result. With
    ``include_existing`` every summary already stored for ``day`` is rebuilt
    too, even when none of its events remain.
    """
    settings = _settings_for(tenant)
    expected_hours = settings.expected_hours_per_day if settings else DEFAULT_EXPECTED_HOURS

    unprocessed = list(
        _day_events(tenant, day).filter(processed=False).values_list("id", "employee_id", "site_id")
    )
    groups: dict[tuple[int, int], list[int]] = {}
    for event_id, employee_id, site_id in unprocessed:
        groups.setdefault((employee_id, site_id), []).append(event_id)
    if include_existing:
        existing = AttendanceSummary.objects.filter(tenant=tenant, date=day).values_list("employee_id", "site_id")
        for employee_id, site_id in existing:
            groups.setdefault((employee_id, site_id), [])

    created = 0
    updated = 0
    for (employee_id, site_id), event_ids in groups.items():
        with transaction.atomic():
            events = list(
                _day_events(tenant, day).filter(employee_id=employee_id, site_id=site_id).order_by("timestamp", "id")
            )
            summary = AttendanceSummary.objects.select_for_update().filter(
                tenant=tenant,
                employee_id=employee_id,
                site_id=site_id,
                date=day,
            ).first()
            if summary is None:
                summary = AttendanceSummary(
                    tenant=tenant,
                    employee_id=employee_id,
                    site_id=site_id,
                    date=day,
                    expected_hours=expected_hours,
                )
                created += 1
            else:
                updated += 1

            _apply_events(summary, events)
            summary.has_spa = SitePhotoAttendance.exists_for(tenant, employee_id, site_id, day)
            summary.save()

            AttendanceEvent.objects.filter(id__in=event_ids).update(processed=True)

    logger.debug(
        "Processed daily attendance",
        extra={
            "tenant": tenant.code,
            "date": day.isoformat(),
            "events_processed": len(unprocessed),
            "summaries_created": created,
        },
    )
    return DailyProcessingResult(len(unprocessed), created, updated)


def reprocess_date(tenant: Tenant, day: date) -> DailyProcessingResult:
    _day_events(tenant, day).update(processed=False)
    return process_daily_attendance(tenant, day, include_existing=True)
