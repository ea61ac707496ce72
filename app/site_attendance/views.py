from __future__ import annotations

import logging
from datetime import date

from rest_framework import status, viewsets
from rest_framework.decorators import api_view
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.request import Request
from rest_framework.response import Response

from site_attendance.models import AttendanceEvent, AttendanceSettings, AttendanceSummary, utc_day_bounds
from site_attendance.serializers import (
    AttendanceEventSerializer,
    AttendanceReportSerializer,
    AttendanceSettingsSerializer,
    AttendanceSummarySerializer,
    CheckInSerializer,
)
from site_attendance.services.check_in import CheckInError, record_check_in
from site_attendance.services.reporting import build_performance_report
from tenants.views import resolve_tenant
from workforce.models import Employee, Site

logger = logging.getLogger(__name__)


def _parse_date_param(request: Request, name: str) -> date | None:
    value = (request.query_params.get(name) or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError({name: "Expected YYYY-MM-DD"}) from exc


class TenantScopedMixin:
    def get_tenant(self):
        tenant = resolve_tenant(self.request)
        if tenant is None:
            raise NotFound("Unknown tenant")
        return tenant


class AttendanceEventViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    queryset = AttendanceEvent.objects.none()
    serializer_class = AttendanceEventSerializer

    def get_queryset(self):
        queryset = AttendanceEvent.objects.filter(tenant=self.get_tenant(), is_deleted=False)

        day = _parse_date_param(self.request, "date")
        if day is not None:
            start, end = utc_day_bounds(day)
            queryset = queryset.filter(timestamp__gte=start, timestamp__lt=end)

        employee_id = self.request.query_params.get("employee")
        if employee_id:
            queryset = queryset.filter(employee_id=employee_id)

        return queryset.order_by("-timestamp", "-id")


class AttendanceSummaryViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    queryset = AttendanceSummary.objects.none()
    serializer_class = AttendanceSummarySerializer

    def get_queryset(self):
        queryset = AttendanceSummary.objects.filter(tenant=self.get_tenant())

        date_from = _parse_date_param(self.request, "from")
        date_to = _parse_date_param(self.request, "to")
        if date_from is not None:
            queryset = queryset.filter(date__gte=date_from)
        if date_to is not None:
            queryset = queryset.filter(date__lte=date_to)

        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        return queryset.order_by("-date", "employee_id", "site_id")


@api_view(["POST"])
def check_in(request: Request) -> Response:
    tenant = resolve_tenant(request)
    if tenant is None:
        return Response({"detail": "Unknown tenant"}, status=status.HTTP_400_BAD_REQUEST)

    serializer = CheckInSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    employee = Employee.objects.filter(tenant=tenant, pk=data["employee_id"], is_deleted=False).first()
    if employee is None:
        return Response({"detail": "Unknown employee"}, status=status.HTTP_404_NOT_FOUND)

    site = None
    if data.get("site_id"):
        site = Site.objects.filter(tenant=tenant, pk=data["site_id"], is_active=True, is_deleted=False).first()
        if site is None:
            return Response({"detail": "Unknown site"}, status=status.HTTP_404_NOT_FOUND)

    try:
        event = record_check_in(
            tenant,
            employee,
            data["event_type"],
            data["latitude"],
            data["longitude"],
            site=site,
            device_identifier=data.get("device_identifier", ""),
        )
    except CheckInError as exc:
        logger.info("Check-in rejected: %s", exc, extra={"tenant": tenant.code, "employee_id": employee.pk})
        return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(AttendanceEventSerializer(event).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PUT", "PATCH"])
def attendance_settings(request: Request) -> Response:
    tenant = resolve_tenant(request)
    if tenant is None:
        return Response({"detail": "Unknown tenant"}, status=status.HTTP_400_BAD_REQUEST)

    settings = AttendanceSettings.get_for_tenant(tenant)
    if request.method == "GET":
        return Response(AttendanceSettingsSerializer(settings).data)

    serializer = AttendanceSettingsSerializer(settings, data=request.data, partial=request.method == "PATCH")
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response(serializer.data)


def _parse_int_param(request: Request, name: str) -> int | None:
    value = (request.query_params.get(name) or "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValidationError({name: "Expected an integer id"}) from exc


@api_view(["GET"])
def performance_report(request: Request) -> Response:
    tenant = resolve_tenant(request)
    if tenant is None:
        return Response({"detail": "Unknown tenant"}, status=status.HTTP_400_BAD_REQUEST)

    date_from = _parse_date_param(request, "from")
    date_to = _parse_date_param(request, "to")
    if date_from is None or date_to is None:
        return Response({"detail": "Both from and to are required"}, status=status.HTTP_400_BAD_REQUEST)
    if date_from > date_to:
        return Response({"detail": "from must not be after to"}, status=status.HTTP_400_BAD_REQUEST)

    report = build_performance_report(
        tenant,
        date_from,
        date_to,
        site_id=_parse_int_param(request, "site"),
        employee_id=_parse_int_param(request, "employee"),
    )
    return Response(AttendanceReportSerializer(report).data)
