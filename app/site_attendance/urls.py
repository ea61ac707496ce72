from django.urls import include, path
from rest_framework.routers import DefaultRouter

from site_attendance.views import (
    AttendanceEventViewSet,
    AttendanceSummaryViewSet,
    attendance_settings,
    check_in,
    performance_report,
)

router = DefaultRouter()
router.register(r"events", AttendanceEventViewSet, basename="attendance-event")
router.register(r"summaries", AttendanceSummaryViewSet, basename="attendance-summary")

urlpatterns = [
    path("check-in", check_in, name="attendance-check-in"),
    path("settings", attendance_settings, name="attendance-settings"),
    path("reports/performance", performance_report, name="attendance-performance-report"),
    path("", include(router.urls)),
]
