from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from decimal import Decimal

from site_attendance.models import AttendanceSettings, AttendanceSummary, SitePhotoAttendance
from site_attendance.services.time_calculation import (
    DEFAULT_EXPECTED_HOURS,
    calculate_utilization,
    classify_status,
    get_working_days,
    minutes_to_hours,
)
from tenants.models import Tenant

logger = logging.getLogger(__name__)

DEFAULT_WORK_START = time(8, 0)
DEFAULT_LATE_THRESHOLD_MINUTES = 30


@dataclass(frozen=True)
class EmployeePerformance:
    employee_id: int
    employee_name: str
    total_hours: Decimal
    expected_hours: Decimal
    utilization_percent: Decimal
    variance_hours: Decimal
    status: str
    days_present: int
    days_absent: int
    late_arrivals: int
    spa_count: int
    status_counts: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class AttendanceReport:
    from_date: date
    to_date: date
    working_days: int
    expected_hours_per_day: Decimal
    employees: list[EmployeePerformance]


def _late_cutoff(day: date, work_start: time, late_threshold_minutes: int) -> datetime:
    start = datetime.combine(day, work_start, tzinfo=dt_timezone.utc)
    return start + timedelta(minutes=late_threshold_minutes)


def build_performance_report(
    tenant: Tenant,
    from_date: date,
    to_date: date,
    site_id: int | None = None,
    employee_id: int | None = None,
) -> AttendanceReport:
    """Per-employee hours for ``from_date``..``to_date`` against the working-day target.

    Expected hours are working days times the tenant's hours per day, so
    weekends and bank holidays do not count against anyone. An arrival is
    late when the first entry of the day is after the work start time plus
    the late threshold.
    """
    settings = AttendanceSettings.objects.filter(tenant=tenant).first()
    hours_per_day = settings.expected_hours_per_day if settings else DEFAULT_EXPECTED_HOURS
    work_start = settings.work_start_time if settings else DEFAULT_WORK_START
    late_threshold = settings.late_threshold_minutes if settings else DEFAULT_LATE_THRESHOLD_MINUTES

    working_days = get_working_days(tenant, from_date, to_date)
    expected_hours = (Decimal(working_days) * hours_per_day).quantize(Decimal("0.01"))

    summaries = AttendanceSummary.objects.filter(
        tenant=tenant,
        date__gte=from_date,
        date__lte=to_date,
    ).select_related("employee")
    photos = SitePhotoAttendance.objects.filter(
        tenant=tenant,
        event_date__gte=from_date,
        event_date__lte=to_date,
        is_deleted=False,
    )
    if site_id is not None:
        summaries = summaries.filter(site_id=site_id)
        photos = photos.filter(site_id=site_id)
    if employee_id is not None:
        summaries = summaries.filter(employee_id=employee_id)
        photos = photos.filter(employee_id=employee_id)

    by_employee: dict[int, list[AttendanceSummary]] = {}
    for summary in summaries:
        by_employee.setdefault(summary.employee_id, []).append(summary)
    spa_counts = Counter(photos.values_list("employee_id", flat=True))

    employees = []
    for emp_id, rows in by_employee.items():
        total_hours = minutes_to_hours(sum(row.time_on_site_minutes for row in rows))
        utilization = calculate_utilization(total_hours, expected_hours)

        present_days = {row.date for row in rows if row.status != AttendanceSummary.STATUS_ABSENT}
        first_entries: dict[date, datetime] = {}
        for row in rows:
            if row.first_entry is None:
                continue
            earliest = first_entries.get(row.date)
            if earliest is None or row.first_entry < earliest:
                first_entries[row.date] = row.first_entry
        late_arrivals = sum(
            1
            for day, first_entry in first_entries.items()
            if first_entry > _late_cutoff(day, work_start, late_threshold)
        )

        status_counts = {value: 0 for value, _ in AttendanceSummary.STATUS_CHOICES}
        status_counts.update(Counter(row.status for row in rows))

        employee = rows[0].employee
        name = f"{employee.first_name} {employee.last_name}".strip()
        employees.append(
            EmployeePerformance(
                employee_id=emp_id,
                employee_name=name or "Unknown",
                total_hours=total_hours,
                expected_hours=expected_hours,
                utilization_percent=utilization,
                variance_hours=total_hours - expected_hours,
                status=classify_status(utilization, 0, 0),
                days_present=len(present_days),
                days_absent=max(0, working_days - len(present_days)),
                late_arrivals=late_arrivals,
                spa_count=spa_counts.get(emp_id, 0),
                status_counts=status_counts,
            )
        )

    employees.sort(key=lambda item: (-item.utilization_percent, item.employee_id))
    logger.debug(
        "Built attendance performance report",
        extra={"tenant": tenant.code, "employees": len(employees), "working_days": working_days},
    )
    return AttendanceReport(from_date, to_date, working_days, hours_per_day, employees)
