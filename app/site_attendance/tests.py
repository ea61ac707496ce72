import math
from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal
from io import StringIO
from unittest.mock import MagicMock, patch

import requests
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from site_attendance.models import (
    AttendanceEvent,
    AttendanceNotification,
    AttendanceSettings,
    AttendanceSummary,
    BankHoliday,
    SitePhotoAttendance,
)
from site_attendance.services.check_in import OutsideGeofenceError, record_check_in
from site_attendance.services.geo import calculate_distance, find_nearest_site, is_within_geofence
from site_attendance.services.noise import apply_noise_check, check_for_noise
from site_attendance.services.notifications import check_and_notify_missing_spa
from site_attendance.services.reporting import build_performance_report
from site_attendance.services.time_calculation import (
    calculate_time_on_site,
    calculate_utilization,
    classify_status,
    get_working_days,
    is_working_day,
    process_daily_attendance,
    reprocess_date,
)
from tenants.models import Tenant
from workforce.models import Employee, Site

SITE_LAT = Decimal("51.50740000")
SITE_LON = Decimal("-0.12780000")
# Latitude offsets giving roughly 40 m, 50 m and 200 m due north.
NORTH_40M = Decimal("0.00035973")
NORTH_50M = Decimal("0.00044966")
NORTH_200M = Decimal("0.00179864")

DAY = date(2024, 1, 15)


def _at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=dt_timezone.utc)


class AttendanceFixtureMixin:
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Tenant A", code="tenant-a")
        self.employee = Employee.objects.create(
            tenant=self.tenant,
            first_name="Aoife",
            last_name="Byrne",
            email="aoife@example.com",
            phone="+353870000000",
            geo_tracker_id="EVT0001",
        )
        self.site = Site.objects.create(
            tenant=self.tenant,
            site_code="S-001",
            site_name="Docklands",
            latitude=SITE_LAT,
            longitude=SITE_LON,
        )

    def _event(self, event_type, timestamp, latitude=SITE_LAT, longitude=SITE_LON, **extra):
        return AttendanceEvent.objects.create(
            tenant=self.tenant,
            employee=self.employee,
            site=self.site,
            event_type=event_type,
            timestamp=timestamp,
            latitude=latitude,
            longitude=longitude,
            **extra,
        )


class GeofenceMatcherTests(AttendanceFixtureMixin, TestCase):
    def test_distance_between_identical_points_is_zero(self):
        self.assertEqual(calculate_distance(51.5074, -0.1278, 51.5074, -0.1278), 0)

    def test_one_degree_of_latitude_is_about_111_km(self):
        distance = calculate_distance(51.0, -0.1278, 52.0, -0.1278)
        self.assertAlmostEqual(distance, 111195, delta=111195 * 0.01)

    def test_accepts_decimal_coordinates(self):
        distance = calculate_distance(SITE_LAT, SITE_LON, SITE_LAT + NORTH_50M, SITE_LON)
        self.assertAlmostEqual(distance, 50, delta=0.5)

    def test_find_nearest_site_returns_closest_active_site(self):
        far_site = Site.objects.create(
            tenant=self.tenant,
            site_code="S-002",
            site_name="Airport",
            latitude=Decimal("53.42130000"),
            longitude=Decimal("-6.27010000"),
        )
        Site.objects.create(
            tenant=self.tenant,
            site_code="S-003",
            site_name="Closed",
            latitude=Decimal("53.42140000"),
            longitude=Decimal("-6.27010000"),
            is_active=False,
        )

        site, distance = find_nearest_site(self.tenant, Decimal("53.42140000"), Decimal("-6.27010000"))

        self.assertEqual(site, far_site)
        self.assertLess(distance, 20)

    def test_find_nearest_site_falls_back_to_first_site_without_coordinates(self):
        tenant = Tenant.objects.create(name="Tenant B", code="tenant-b")
        first = Site.objects.create(tenant=tenant, site_code="B-1", site_name="B one")
        Site.objects.create(tenant=tenant, site_code="B-2", site_name="B two")

        site, distance = find_nearest_site(tenant, SITE_LAT, SITE_LON)

        self.assertEqual(site, first)
        self.assertEqual(distance, math.inf)

    def test_find_nearest_site_without_sites(self):
        tenant = Tenant.objects.create(name="Tenant C", code="tenant-c")
        self.assertEqual(find_nearest_site(tenant, SITE_LAT, SITE_LON), (None, math.inf))

    def test_site_without_coordinates_accepts_any_position(self):
        site = Site.objects.create(tenant=self.tenant, site_code="S-009", site_name="Unmapped")
        self.assertTrue(is_within_geofence(site, Decimal("0"), Decimal("0")))

    def test_geofence_uses_default_radius(self):
        self.assertTrue(is_within_geofence(self.site, SITE_LAT + NORTH_50M, SITE_LON))
        self.assertFalse(is_within_geofence(self.site, SITE_LAT + NORTH_200M, SITE_LON))

    def test_geofence_prefers_site_radius_then_tenant_setting(self):
        AttendanceSettings.objects.create(tenant=self.tenant, geofence_radius_meters=250)
        self.assertTrue(is_within_geofence(self.site, SITE_LAT + NORTH_200M, SITE_LON))

        self.site.geofence_radius_meters = 60
        self.site.save()
        self.assertFalse(is_within_geofence(self.site, SITE_LAT + NORTH_200M, SITE_LON))

    def test_zero_site_radius_is_kept(self):
        self.site.geofence_radius_meters = 0
        self.site.save()

        self.assertFalse(is_within_geofence(self.site, SITE_LAT + NORTH_50M, SITE_LON))
        self.assertTrue(is_within_geofence(self.site, SITE_LAT, SITE_LON))

    def test_zero_tenant_radius_is_not_replaced_by_default(self):
        AttendanceSettings.objects.create(tenant=self.tenant, geofence_radius_meters=0)
        self.assertFalse(is_within_geofence(self.site, SITE_LAT + NORTH_50M, SITE_LON))


class NoiseFilterTests(AttendanceFixtureMixin, TestCase):
    def test_first_entry_of_the_day_is_not_noise(self):
        event = self._event(AttendanceEvent.TYPE_ENTER, _at(8))
        self.assertFalse(check_for_noise(event, 150).is_noise)

    def test_re_entry_within_threshold_is_noise(self):
        self._event(AttendanceEvent.TYPE_ENTER, _at(8))
        second = self._event(AttendanceEvent.TYPE_ENTER, _at(8, 5), latitude=SITE_LAT + NORTH_50M)

        result = check_for_noise(second, 150)

        self.assertTrue(result.is_noise)
        self.assertAlmostEqual(float(result.distance), 50, delta=0.5)

    def test_re_entry_beyond_threshold_keeps_distance(self):
        self._event(AttendanceEvent.TYPE_ENTER, _at(8))
        second = self._event(AttendanceEvent.TYPE_ENTER, _at(8, 5), latitude=SITE_LAT + NORTH_200M)

        result = check_for_noise(second, 150)

        self.assertFalse(result.is_noise)
        self.assertAlmostEqual(float(result.distance), 200, delta=1)

    def test_exit_events_are_never_noise(self):
        self._event(AttendanceEvent.TYPE_ENTER, _at(8))
        exit_event = self._event(AttendanceEvent.TYPE_EXIT, _at(8, 5))
        self.assertFalse(check_for_noise(exit_event, 150).is_noise)

    def test_unsaved_pending_entries_count_as_first_entry(self):
        first = AttendanceEvent(
            tenant=self.tenant,
            employee=self.employee,
            site=self.site,
            event_type=AttendanceEvent.TYPE_ENTER,
            timestamp=_at(8),
            latitude=SITE_LAT,
            longitude=SITE_LON,
        )
        second = AttendanceEvent(
            tenant=self.tenant,
            employee=self.employee,
            site=self.site,
            event_type=AttendanceEvent.TYPE_ENTER,
            timestamp=_at(9),
            latitude=SITE_LAT + NORTH_40M,
            longitude=SITE_LON,
        )
        self.assertTrue(check_for_noise(second, 150, pending=[first]).is_noise)

    def test_apply_noise_check_uses_tenant_threshold(self):
        AttendanceSettings.objects.create(tenant=self.tenant, noise_threshold_meters=30)
        self._event(AttendanceEvent.TYPE_ENTER, _at(8))
        second = self._event(AttendanceEvent.TYPE_ENTER, _at(8, 5), latitude=SITE_LAT + NORTH_50M)

        apply_noise_check(second)
        second.refresh_from_db()

        self.assertFalse(second.is_noise)
        self.assertIsNotNone(second.noise_distance)


class TimeCalculationTests(AttendanceFixtureMixin, TestCase):
    @staticmethod
    def _unsaved(event_type, timestamp, is_noise=False):
        return AttendanceEvent(event_type=event_type, timestamp=timestamp, is_noise=is_noise)

    def test_pairs_enter_and_exit_intervals(self):
        events = [
            self._unsaved(AttendanceEvent.TYPE_ENTER, _at(8)),
            self._unsaved(AttendanceEvent.TYPE_EXIT, _at(12)),
            self._unsaved(AttendanceEvent.TYPE_ENTER, _at(13)),
            self._unsaved(AttendanceEvent.TYPE_EXIT, _at(17)),
        ]
        self.assertEqual(calculate_time_on_site(events), 480)

    def test_trailing_enter_and_lone_exit_add_nothing(self):
        self.assertEqual(calculate_time_on_site([self._unsaved(AttendanceEvent.TYPE_ENTER, _at(8))]), 0)
        self.assertEqual(calculate_time_on_site([self._unsaved(AttendanceEvent.TYPE_EXIT, _at(17))]), 0)

    def test_second_enter_restarts_open_interval(self):
        events = [
            self._unsaved(AttendanceEvent.TYPE_ENTER, _at(8)),
            self._unsaved(AttendanceEvent.TYPE_ENTER, _at(10)),
            self._unsaved(AttendanceEvent.TYPE_EXIT, _at(12)),
        ]
        self.assertEqual(calculate_time_on_site(events), 120)

    def test_noise_events_are_ignored(self):
        events = [
            self._unsaved(AttendanceEvent.TYPE_EXIT, _at(12, 30)),
            self._unsaved(AttendanceEvent.TYPE_ENTER, _at(8, 5), is_noise=True),
            self._unsaved(AttendanceEvent.TYPE_ENTER, _at(8)),
        ]
        self.assertEqual(calculate_time_on_site(events), 270)

    def test_utilization_boundaries(self):
        excellent = calculate_utilization(Decimal("6.75"), Decimal("7.5"))
        good = calculate_utilization(Decimal("5.63"), Decimal("7.5"))

        self.assertEqual(excellent, Decimal("90.00"))
        self.assertEqual(classify_status(excellent, 1, 1), AttendanceSummary.STATUS_EXCELLENT)
        self.assertEqual(good, Decimal("75.07"))
        self.assertEqual(classify_status(good, 1, 1), AttendanceSummary.STATUS_GOOD)
        self.assertEqual(classify_status(Decimal("10"), 1, 1), AttendanceSummary.STATUS_BELOW_TARGET)
        self.assertEqual(classify_status(Decimal("0"), 1, 0), AttendanceSummary.STATUS_INCOMPLETE)
        self.assertEqual(classify_status(Decimal("0"), 0, 0), AttendanceSummary.STATUS_ABSENT)

    def test_zero_expected_hours_gives_zero_utilization(self):
        self.assertEqual(calculate_utilization(Decimal("4"), Decimal("0")), Decimal("0.00"))

    def test_working_days_skip_weekends_and_bank_holidays(self):
        AttendanceSettings.objects.create(tenant=self.tenant)
        BankHoliday.objects.create(tenant=self.tenant, date=date(2024, 1, 1), name="New Year's Day")

        self.assertEqual(get_working_days(self.tenant, date(2024, 1, 1), date(2024, 1, 14)), 9)
        self.assertFalse(is_working_day(self.tenant, date(2024, 1, 1)))
        self.assertFalse(is_working_day(self.tenant, date(2024, 1, 6)))
        self.assertTrue(is_working_day(self.tenant, date(2024, 1, 2)))

    def test_working_days_include_saturday_when_enabled(self):
        AttendanceSettings.objects.create(tenant=self.tenant, include_saturday=True)
        self.assertEqual(get_working_days(self.tenant, date(2024, 1, 1), date(2024, 1, 14)), 12)


class DailyProcessingTests(AttendanceFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        AttendanceSettings.objects.create(tenant=self.tenant)
        self._event(AttendanceEvent.TYPE_ENTER, _at(8))
        self._event(AttendanceEvent.TYPE_EXIT, _at(12))
        self._event(AttendanceEvent.TYPE_ENTER, _at(13))
        self._event(AttendanceEvent.TYPE_EXIT, _at(17))

    def test_creates_summary_and_marks_events_processed(self):
        result = process_daily_attendance(self.tenant, DAY)

        self.assertEqual(result.events_processed, 4)
        self.assertEqual(result.summaries_created, 1)
        summary = AttendanceSummary.objects.get()
        self.assertEqual(summary.time_on_site_minutes, 480)
        self.assertEqual(summary.expected_hours, Decimal("7.50"))
        self.assertEqual(summary.utilization_percent, Decimal("106.67"))
        self.assertEqual(summary.status, AttendanceSummary.STATUS_EXCELLENT)
        self.assertEqual(summary.entry_count, 2)
        self.assertEqual(summary.exit_count, 2)
        self.assertEqual(summary.first_entry, _at(8))
        self.assertEqual(summary.last_exit, _at(17))
        self.assertFalse(AttendanceEvent.objects.filter(processed=False).exists())

    def test_second_run_is_a_no_op(self):
        process_daily_attendance(self.tenant, DAY)
        result = process_daily_attendance(self.tenant, DAY)

        self.assertEqual(result.events_processed, 0)
        self.assertEqual(AttendanceSummary.objects.count(), 1)
        self.assertEqual(AttendanceSummary.objects.get().time_on_site_minutes, 480)

    def test_late_event_recomputes_from_full_day(self):
        process_daily_attendance(self.tenant, DAY)
        self._event(AttendanceEvent.TYPE_ENTER, _at(18))

        result = process_daily_attendance(self.tenant, DAY)

        self.assertEqual(result.summaries_updated, 1)
        summary = AttendanceSummary.objects.get()
        self.assertEqual(summary.time_on_site_minutes, 480)
        self.assertEqual(summary.entry_count, 3)

    def test_reprocess_date_reaggregates_processed_events(self):
        process_daily_attendance(self.tenant, DAY)
        result = reprocess_date(self.tenant, DAY)

        self.assertEqual(result.events_processed, 4)
        self.assertEqual(result.summaries_updated, 1)
        self.assertEqual(AttendanceSummary.objects.get().time_on_site_minutes, 480)

    def test_reprocess_date_resets_summary_when_all_events_deleted(self):
        process_daily_attendance(self.tenant, DAY)
        AttendanceEvent.objects.update(is_deleted=True)

        result = reprocess_date(self.tenant, DAY)

        self.assertEqual(result.events_processed, 0)
        self.assertEqual(result.summaries_updated, 1)
        summary = AttendanceSummary.objects.get()
        self.assertEqual(summary.time_on_site_minutes, 0)
        self.assertEqual(summary.entry_count, 0)
        self.assertEqual(summary.exit_count, 0)
        self.assertIsNone(summary.first_entry)
        self.assertEqual(summary.utilization_percent, Decimal("0.00"))
        self.assertEqual(summary.status, AttendanceSummary.STATUS_ABSENT)

    def test_summary_reflects_compliance_photo(self):
        SitePhotoAttendance.objects.create(
            tenant=self.tenant,
            employee=self.employee,
            site=self.site,
            event_date=DAY,
        )
        process_daily_attendance(self.tenant, DAY)
        self.assertTrue(AttendanceSummary.objects.get().has_spa)

    def test_deleted_events_are_ignored(self):
        AttendanceEvent.objects.filter(timestamp=_at(17)).update(is_deleted=True)
        process_daily_attendance(self.tenant, DAY)

        summary = AttendanceSummary.objects.get()
        self.assertEqual(summary.time_on_site_minutes, 240)
        self.assertEqual(summary.exit_count, 1)

    def test_management_command_processes_requested_date(self):
        out = StringIO()
        call_command("process_daily_attendance", "--tenant", "tenant-a", "--date", "2024-01-15", stdout=out)

        self.assertIn("1 summaries created", out.getvalue())
        self.assertEqual(AttendanceSummary.objects.count(), 1)

    def test_management_command_rejects_bad_input(self):
        with self.assertRaises(CommandError):
            call_command("process_daily_attendance", "--date", "15/01/2024")
        with self.assertRaises(CommandError):
            call_command("process_daily_attendance", "--tenant", "missing")


@override_settings(
    ATTENDANCE_NOTIFICATIONS={
        "PUSH_WEBHOOK_URL": "https://push.example.com/send",
        "SMS_WEBHOOK_URL": "https://sms.example.com/send",
        "WEBHOOK_TOKEN": "secret",
        "TIMEOUT": 5,
        "SPA_DEEP_LINK": "/attendance/spa/new?siteId={site_id}",
    },
    EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
)
class MissingSpaNotificationTests(AttendanceFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.settings_row = AttendanceSettings.objects.create(
            tenant=self.tenant,
            enable_push_notifications=True,
            enable_email_notifications=True,
            enable_sms_notifications=True,
        )
        self.enter = self._event(AttendanceEvent.TYPE_ENTER, _at(8))

    @patch("site_attendance.services.notifications.requests.post")
    def test_channel_failure_does_not_block_other_channels(self, post_mock):
        def fake_post(url, **kwargs):
            if "push" in url:
                raise requests.ConnectionError("push provider down")
            return MagicMock()

        post_mock.side_effect = fake_post

        notifications = check_and_notify_missing_spa(self.enter)

        by_type = {notification.notification_type: notification for notification in notifications}
        self.assertEqual(set(by_type), {"Push", "Email", "Sms"})
        self.assertFalse(by_type["Push"].delivered)
        self.assertIn("push provider down", by_type["Push"].error_message)
        self.assertTrue(by_type["Email"].delivered)
        self.assertTrue(by_type["Sms"].delivered)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("Docklands", mail.outbox[0].body)
        self.assertEqual(AttendanceNotification.objects.filter(related_event=self.enter).count(), 3)

    @patch("site_attendance.services.notifications.requests.post")
    def test_push_payload_carries_deep_link(self, post_mock):
        self.settings_row.enable_email_notifications = False
        self.settings_row.enable_sms_notifications = False
        self.settings_row.save()

        check_and_notify_missing_spa(self.enter)

        post_mock.assert_called_once()
        payload = post_mock.call_args.kwargs["json"]
        self.assertEqual(payload["deep_link"], f"/attendance/spa/new?siteId={self.site.pk}")
        self.assertEqual(post_mock.call_args.kwargs["headers"], {"X-ATTENDANCE-TOKEN": "secret"})

    @patch("site_attendance.services.notifications.requests.post")
    def test_existing_photo_suppresses_reminder(self, post_mock):
        SitePhotoAttendance.objects.create(tenant=self.tenant, employee=self.employee, site=self.site, event_date=DAY)

        self.assertEqual(check_and_notify_missing_spa(self.enter), [])
        post_mock.assert_not_called()
        self.assertFalse(AttendanceNotification.objects.exists())

    def test_exit_events_do_not_trigger_reminder(self):
        exit_event = self._event(AttendanceEvent.TYPE_EXIT, _at(12))
        self.assertEqual(check_and_notify_missing_spa(exit_event), [])

    def test_push_row_recorded_even_when_push_disabled(self):
        self.settings_row.enable_push_notifications = False
        self.settings_row.enable_email_notifications = False
        self.settings_row.enable_sms_notifications = False
        self.settings_row.save()

        notifications = check_and_notify_missing_spa(self.enter)

        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0].notification_type, AttendanceNotification.TYPE_PUSH)
        self.assertFalse(notifications[0].delivered)
        self.assertEqual(notifications[0].error_message, "Push notifications disabled")

    def test_no_settings_means_no_reminder(self):
        self.settings_row.delete()
        self.assertEqual(check_and_notify_missing_spa(self.enter), [])


class CheckInServiceTests(AttendanceFixtureMixin, TestCase):
    def test_rejects_position_outside_geofence(self):
        with self.assertRaises(OutsideGeofenceError):
            record_check_in(
                self.tenant,
                self.employee,
                AttendanceEvent.TYPE_ENTER,
                SITE_LAT + NORTH_200M,
                SITE_LON,
                site=self.site,
            )
        self.assertFalse(AttendanceEvent.objects.exists())

    def test_repeat_entry_is_flagged_as_noise(self):
        first = record_check_in(
            self.tenant, self.employee, AttendanceEvent.TYPE_ENTER, SITE_LAT, SITE_LON, timestamp=_at(8)
        )
        second = record_check_in(
            self.tenant,
            self.employee,
            AttendanceEvent.TYPE_ENTER,
            SITE_LAT + NORTH_40M,
            SITE_LON,
            timestamp=_at(8, 5),
        )

        self.assertFalse(first.is_noise)
        self.assertTrue(second.is_noise)
        self.assertEqual(second.trigger_method, AttendanceEvent.TRIGGER_MANUAL)


class AttendanceApiTests(AttendanceFixtureMixin, APITestCase):
    def setUp(self):
        super().setUp()
        AttendanceSettings.get_for_tenant(self.tenant)
        self.user = get_user_model().objects.create_user(username="operator", password="pass")
        self.client.force_authenticate(self.user)

    def test_check_in_creates_event_and_reminder(self):
        response = self.client.post(
            "/api/attendance/check-in",
            {
                "employee_id": self.employee.pk,
                "event_type": "enter",
                "latitude": "51.50740000",
                "longitude": "-0.12780000",
            },
            format="json",
            HTTP_X_TENANT_CODE="tenant-a",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        event = AttendanceEvent.objects.get()
        self.assertEqual(response.data["id"], event.pk)
        self.assertEqual(event.site, self.site)
        self.assertEqual(event.event_type, AttendanceEvent.TYPE_ENTER)
        notification = AttendanceNotification.objects.get()
        self.assertEqual(notification.notification_type, AttendanceNotification.TYPE_PUSH)
        self.assertFalse(notification.delivered)

    def test_check_in_outside_geofence_is_rejected(self):
        response = self.client.post(
            "/api/attendance/check-in?tenant=tenant-a",
            {
                "employee_id": self.employee.pk,
                "event_type": "Enter",
                "latitude": "51.50919864",
                "longitude": "-0.12780000",
                "site_id": self.site.pk,
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("outside the geofence", response.data["detail"])
        self.assertFalse(AttendanceEvent.objects.exists())

    def test_check_in_rejects_inactive_site(self):
        self.site.is_active = False
        self.site.save()

        response = self.client.post(
            "/api/attendance/check-in",
            {
                "employee_id": self.employee.pk,
                "event_type": "Enter",
                "latitude": "51.50740000",
                "longitude": "-0.12780000",
                "site_id": self.site.pk,
            },
            format="json",
            HTTP_X_TENANT_CODE="tenant-a",
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(AttendanceEvent.objects.exists())

    def test_check_in_requires_known_tenant(self):
        response = self.client.post(
            "/api/attendance/check-in",
            {"employee_id": self.employee.pk, "event_type": "Enter", "latitude": "0", "longitude": "0"},
            format="json",
            HTTP_X_TENANT_CODE="unknown",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_check_in_rejects_unknown_event_type(self):
        response = self.client.post(
            "/api/attendance/check-in",
            {"employee_id": self.employee.pk, "event_type": "Lunch", "latitude": "0", "longitude": "0"},
            format="json",
            HTTP_X_TENANT_CODE="tenant-a",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("event_type", response.data)

    def test_check_in_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.client.post("/api/attendance/check-in", {}, format="json", HTTP_X_TENANT_CODE="tenant-a")
        self.assertIn(response.status_code, {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN})

    def test_event_and_summary_lists_are_tenant_scoped(self):
        other = Tenant.objects.create(name="Tenant B", code="tenant-b")
        self._event(AttendanceEvent.TYPE_ENTER, _at(8))
        self._event(AttendanceEvent.TYPE_EXIT, _at(12))
        process_daily_attendance(self.tenant, DAY)

        events = self.client.get("/api/attendance/events/", {"date": "2024-01-15"}, HTTP_X_TENANT_CODE="tenant-a")
        summaries = self.client.get("/api/attendance/summaries/", HTTP_X_TENANT_CODE="tenant-a")
        other_events = self.client.get("/api/attendance/events/", HTTP_X_TENANT_CODE=other.code)

        self.assertEqual(events.status_code, status.HTTP_200_OK)
        self.assertEqual(len(events.data), 2)
        self.assertEqual(len(summaries.data), 1)
        self.assertEqual(summaries.data[0]["time_on_site_minutes"], 240)
        self.assertEqual(len(other_events.data), 0)

    def test_settings_can_be_read_and_updated(self):
        response = self.client.get("/api/attendance/settings", HTTP_X_TENANT_CODE="tenant-a")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["noise_threshold_meters"], 150)

        response = self.client.patch(
            "/api/attendance/settings",
            {"noise_threshold_meters": 80, "include_saturday": True},
            format="json",
            HTTP_X_TENANT_CODE="tenant-a",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        settings_row = AttendanceSettings.objects.get(tenant=self.tenant)
        self.assertEqual(settings_row.noise_threshold_meters, 80)
        self.assertTrue(settings_row.include_saturday)


class PerformanceReportTests(AttendanceFixtureMixin, TestCase):
    # 2024-01-01 is a Monday and a bank holiday, so the week has four working days.
    FROM = date(2024, 1, 1)
    TO = date(2024, 1, 7)

    def setUp(self):
        super().setUp()
        AttendanceSettings.objects.create(tenant=self.tenant)
        BankHoliday.objects.create(tenant=self.tenant, date=self.FROM, name="New Year's Day")
        self.colleague = Employee.objects.create(tenant=self.tenant, first_name="Conor", last_name="Walsh")

        self._summary(self.employee, date(2024, 1, 2), 480, AttendanceSummary.STATUS_EXCELLENT, first_entry=(8, 10))
        self._summary(self.employee, date(2024, 1, 3), 420, AttendanceSummary.STATUS_EXCELLENT, first_entry=(9, 0))
        self._summary(self.employee, date(2024, 1, 4), 0, AttendanceSummary.STATUS_ABSENT)
        for day in range(2, 6):
            self._summary(self.colleague, date(2024, 1, day), 480, AttendanceSummary.STATUS_EXCELLENT, (7, 55))
        self._summary(self.employee, date(2024, 1, 8), 480, AttendanceSummary.STATUS_EXCELLENT, first_entry=(8, 0))

        SitePhotoAttendance.objects.create(
            tenant=self.tenant,
            employee=self.employee,
            site=self.site,
            event_date=date(2024, 1, 2),
        )

    def _summary(self, employee, day, minutes, summary_status, first_entry=None, site=None):
        return AttendanceSummary.objects.create(
            tenant=self.tenant,
            employee=employee,
            site=site or self.site,
            date=day,
            first_entry=_at(*first_entry, day=day) if first_entry else None,
            time_on_site_minutes=minutes,
            expected_hours=Decimal("7.50"),
            status=summary_status,
        )

    def test_expected_hours_follow_working_days(self):
        report = build_performance_report(self.tenant, self.FROM, self.TO)

        self.assertEqual(report.working_days, 4)
        self.assertEqual(report.expected_hours_per_day, Decimal("7.50"))
        self.assertEqual([row.employee_id for row in report.employees], [self.colleague.pk, self.employee.pk])

        colleague, employee = report.employees
        self.assertEqual(colleague.total_hours, Decimal("32.00"))
        self.assertEqual(colleague.utilization_percent, Decimal("106.67"))
        self.assertEqual(colleague.status, AttendanceSummary.STATUS_EXCELLENT)
        self.assertEqual(colleague.days_absent, 0)

        self.assertEqual(employee.employee_name, "Aoife Byrne")
        self.assertEqual(employee.total_hours, Decimal("15.00"))
        self.assertEqual(employee.expected_hours, Decimal("30.00"))
        self.assertEqual(employee.variance_hours, Decimal("-15.00"))
        self.assertEqual(employee.utilization_percent, Decimal("50.00"))
        self.assertEqual(employee.status, AttendanceSummary.STATUS_BELOW_TARGET)
        self.assertEqual(employee.days_present, 2)
        self.assertEqual(employee.days_absent, 2)
        self.assertEqual(employee.spa_count, 1)
        self.assertEqual(employee.status_counts[AttendanceSummary.STATUS_EXCELLENT], 2)
        self.assertEqual(employee.status_counts[AttendanceSummary.STATUS_ABSENT], 1)
        self.assertEqual(employee.status_counts[AttendanceSummary.STATUS_GOOD], 0)

    def test_late_arrivals_use_work_start_and_threshold(self):
        report = build_performance_report(self.tenant, self.FROM, self.TO, employee_id=self.employee.pk)
        self.assertEqual(report.employees[0].late_arrivals, 1)

        AttendanceSettings.objects.filter(tenant=self.tenant).update(late_threshold_minutes=60)
        report = build_performance_report(self.tenant, self.FROM, self.TO, employee_id=self.employee.pk)
        self.assertEqual(report.employees[0].late_arrivals, 0)

    def test_late_arrival_counts_earliest_entry_across_sites(self):
        other_site = Site.objects.create(tenant=self.tenant, site_code="S-002", site_name="Airport")
        self._summary(self.employee, date(2024, 1, 3), 60, AttendanceSummary.STATUS_BELOW_TARGET, (8, 0), other_site)

        report = build_performance_report(self.tenant, self.FROM, self.TO, employee_id=self.employee.pk)

        self.assertEqual(report.employees[0].late_arrivals, 0)
        self.assertEqual(report.employees[0].days_present, 2)

    def test_site_filter(self):
        other_site = Site.objects.create(tenant=self.tenant, site_code="S-002", site_name="Airport")
        self._summary(self.colleague, date(2024, 1, 6), 120, AttendanceSummary.STATUS_BELOW_TARGET, site=other_site)

        report = build_performance_report(self.tenant, self.FROM, self.TO, site_id=other_site.pk)

        self.assertEqual([row.employee_id for row in report.employees], [self.colleague.pk])
        self.assertEqual(report.employees[0].total_hours, Decimal("2.00"))
        self.assertEqual(report.employees[0].spa_count, 0)

    def test_report_api(self):
        user = get_user_model().objects.create_user(username="manager", password="pass")
        self.client.force_login(user)

        response = self.client.get(
            "/api/attendance/reports/performance",
            {"from": "2024-01-01", "to": "2024-01-07"},
            HTTP_X_TENANT_CODE="tenant-a",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["working_days"], 4)
        self.assertEqual(len(body["employees"]), 2)
        self.assertEqual(body["employees"][1]["expected_hours"], "30.00")
        self.assertEqual(body["employees"][1]["late_arrivals"], 1)

    def test_report_api_validates_period(self):
        user = get_user_model().objects.create_user(username="manager", password="pass")
        self.client.force_login(user)

        missing = self.client.get(
            "/api/attendance/reports/performance",
            {"from": "2024-01-01"},
            HTTP_X_TENANT_CODE="tenant-a",
        )
        reversed_period = self.client.get(
            "/api/attendance/reports/performance",
            {"from": "2024-01-07", "to": "2024-01-01"},
            HTTP_X_TENANT_CODE="tenant-a",
        )

        self.assertEqual(missing.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(reversed_period.status_code, status.HTTP_400_BAD_REQUEST)
