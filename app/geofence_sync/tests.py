import threading
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import connection
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from geofence_sync.client import (
    Coordinate,
    EventStoreError,
    GeofenceEventStore,
    ReadOnlyEventStoreError,
)
from geofence_sync.models import DeviceStatusCache, GeofenceSyncLog
from geofence_sync.routers import GeofenceMobileRouter
from geofence_sync.services.device_status import refresh_device_status
from geofence_sync.services.identity import load_lookup
from geofence_sync.services.status import get_sync_status, get_unmapped_devices
from geofence_sync.services.sync import SyncCancelled, sync_all_tenants, sync_tenant
from geofence_sync.worker import GeofenceSyncWorker
from site_attendance.models import AttendanceEvent, AttendanceSettings, AttendanceSummary
from site_attendance.services.time_calculation import DailyProcessingResult
from tenants.models import Tenant
from workforce.models import Employee, Site

SITE_LAT = 51.5074
SITE_LON = -0.1278

EVENTS_DDL = """
CREATE TABLE geofence_events (
    id varchar(64) PRIMARY KEY,
    user_id varchar(64),
    site_id varchar(64),
    event_type varchar(16),
    "timestamp" timestamp,
    latitude real,
    longitude real,
    trigger_method varchar(16)
)
"""

DEVICES_DDL = """
CREATE TABLE devices (
    id varchar(64) PRIMARY KEY,
    platform_identifier varchar(255),
    platform varchar(32),
    model varchar(64),
    manufacturer varchar(64),
    os_version varchar(32),
    device_type varchar(32),
    registered_at timestamp,
    last_seen_at timestamp,
    is_active integer,
    last_latitude real,
    last_longitude real,
    last_accuracy real,
    last_battery_level integer
)
"""

USE_DEFAULT_DATABASE = {"DATABASE_ALIAS": "default", "TENANT_CODES": ["tenant-a"]}


def _utc(year, month, day, hour=0, minute=0, second=0, microsecond=0):
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=dt_timezone.utc)


class MobileDatastoreMixin:
    """Creates the mobile datastore tables inside the test database."""

    def setUp(self):
        super().setUp()
        with connection.cursor() as cursor:
            cursor.execute(EVENTS_DDL)
            cursor.execute(DEVICES_DDL)

        self.store = GeofenceEventStore(using="default")
        self.tenant = Tenant.objects.create(name="Tenant A", code="tenant-a")
        AttendanceSettings.get_for_tenant(self.tenant)
        self.employee = Employee.objects.create(
            tenant=self.tenant,
            first_name="Aoife",
            last_name="Byrne",
            geo_tracker_id="EVT0001",
        )
        self.site = Site.objects.create(
            tenant=self.tenant,
            site_code="S-001",
            site_name="Docklands",
            latitude=Decimal("51.50740000"),
            longitude=Decimal("-0.12780000"),
        )

    def tearDown(self):
        with connection.cursor() as cursor:
            cursor.execute("DROP TABLE IF EXISTS geofence_events")
            cursor.execute("DROP TABLE IF EXISTS devices")
        super().tearDown()

    def _insert_event(self, event_id, timestamp, event_type="enter", user_id="EVT0001", site_id="S-001",
                      latitude=SITE_LAT, longitude=SITE_LON, trigger_method="automatic"):
        with connection.cursor() as cursor:
            cursor.execute(
                'INSERT INTO geofence_events (id, user_id, site_id, event_type, "timestamp", latitude, longitude, '
                "trigger_method) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
                [event_id, user_id, site_id, event_type, timestamp, latitude, longitude, trigger_method],
            )

    def _insert_device(self, device_id, last_seen_at=None, is_active=True, platform="android", model="Pixel 7"):
        with connection.cursor() as cursor:
            cursor.execute(
                "INSERT INTO devices (id, platform_identifier, platform, model, manufacturer, os_version, "
                "device_type, registered_at, last_seen_at, is_active, last_latitude, last_longitude, "
                "last_accuracy, last_battery_level) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
                [
                    device_id,
                    f"push-{device_id}",
                    platform,
                    model,
                    "Google",
                    "14",
                    "phone",
                    _utc(2023, 6, 1),
                    last_seen_at,
                    1 if is_active else 0,
                    SITE_LAT,
                    SITE_LON,
                    12.5,
                    81,
                ],
            )

    def _seed_cursor(self, cursor_timestamp, completed_at=None):
        return GeofenceSyncLog.objects.create(
            tenant=self.tenant,
            sync_started=completed_at or timezone.now(),
            sync_completed=completed_at or timezone.now(),
            last_event_timestamp=cursor_timestamp,
        )


class GeofenceEventStoreTests(MobileDatastoreMixin, TestCase):
    def test_fetch_events_after_cursor_in_timestamp_order(self):
        self._insert_event("e-2", _utc(2024, 1, 15, 12, 30), event_type="exit")
        self._insert_event("e-1", _utc(2024, 1, 15, 8))
        self._insert_event("e-0", _utc(2023, 12, 31, 23))

        events = self.store.fetch_events_after(_utc(2024, 1, 1), limit=10)

        self.assertEqual([event.id for event in events], ["e-1", "e-2"])
        self.assertEqual(events[0].timestamp, _utc(2024, 1, 15, 8))
        self.assertEqual(events[0].coordinate, Coordinate(Decimal("51.50740000"), Decimal("-0.12780000")))
        self.assertEqual(events[1].event_type, "exit")

    def test_fetch_events_respects_limit(self):
        for minute in range(3):
            self._insert_event(f"e-{minute}", _utc(2024, 1, 15, 8, minute))

        self.assertEqual(len(self.store.fetch_events_after(_utc(2024, 1, 1), limit=2)), 2)

    def test_coordinates_are_rounded_to_eight_places(self):
        coordinate = Coordinate.from_floats(51.507412345678, -0.1)
        self.assertEqual(coordinate.latitude, Decimal("51.50741235"))
        self.assertEqual(coordinate.longitude, Decimal("-0.10000000"))
        self.assertIsNone(Coordinate.from_floats(None, -0.1))

    def test_fetch_active_devices_skips_inactive(self):
        self._insert_device("EVT0001", last_seen_at=_utc(2024, 1, 15, 8))
        self._insert_device("EVT0002", is_active=False)

        devices = self.store.fetch_active_devices()

        self.assertEqual([device.id for device in devices], ["EVT0001"])
        self.assertTrue(devices[0].is_active)
        self.assertEqual(devices[0].last_seen_at, _utc(2024, 1, 15, 8))
        self.assertEqual(devices[0].last_battery_level, 81)
        self.assertEqual(devices[0].last_accuracy, Decimal("12.50"))

    def test_count_events_by_user(self):
        self._insert_event("e-1", _utc(2024, 1, 15, 8), user_id="EVT0002")
        self._insert_event("e-2", _utc(2024, 1, 15, 9), user_id="EVT0002")
        self._insert_event("e-3", _utc(2024, 1, 15, 9), user_id="EVT0003")

        self.assertEqual(self.store.count_events_by_user(["EVT0002", "EVT0003", "EVT0004"]), {"EVT0002": 2, "EVT0003": 1})
        self.assertEqual(self.store.count_events_by_user([]), {})

    def test_write_statements_are_rejected(self):
        for statement in (
            "DELETE FROM geofence_events",
            "UPDATE devices SET is_active = 0",
            "INSERT INTO geofence_events (id) VALUES ('x')",
            "DROP TABLE devices",
        ):
            with self.subTest(statement=statement):
                with self.assertRaises(ReadOnlyEventStoreError):
                    self.store._query(statement)

    def test_unconfigured_alias_raises_store_error(self):
        with self.assertRaises(EventStoreError):
            GeofenceEventStore(using="not-configured").ping()

    def test_router_blocks_migrations_on_mobile_alias(self):
        router = GeofenceMobileRouter()
        self.assertFalse(router.allow_migrate("geofence_mobile", "site_attendance"))
        self.assertIsNone(router.allow_migrate("default", "site_attendance"))


class IdentityLookupTests(MobileDatastoreMixin, TestCase):
    def test_lookup_only_contains_live_records_of_tenant(self):
        other = Tenant.objects.create(name="Tenant B", code="tenant-b")
        Employee.objects.create(tenant=other, first_name="Other", geo_tracker_id="EVT0009")
        Employee.objects.create(tenant=self.tenant, first_name="Gone", geo_tracker_id="EVT0002", is_deleted=True)
        Employee.objects.create(tenant=self.tenant, first_name="Untracked")
        Site.objects.create(tenant=self.tenant, site_code="S-OLD", site_name="Old", is_deleted=True)

        lookup = load_lookup(self.tenant)

        self.assertEqual(set(lookup.employees_by_device), {"EVT0001"})
        self.assertEqual(set(lookup.sites_by_code), {"S-001"})


class SyncTenantTests(MobileDatastoreMixin, TestCase):
    def test_end_to_end_sync_builds_summary(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8))
        self._insert_event("e-2", _utc(2024, 1, 15, 12, 30), event_type="exit")
        self._insert_event("e-3", _utc(2024, 1, 15, 8, 5), latitude=51.50775973)

        result = sync_tenant(self.tenant, store=self.store)

        self.assertTrue(result.success)
        self.assertEqual(result.records_processed, 3)
        self.assertEqual(result.records_created, 3)
        self.assertEqual(result.dates_processed, [date(2024, 1, 15)])
        self.assertEqual(result.last_event_timestamp, _utc(2024, 1, 15, 12, 30))

        noise = AttendanceEvent.objects.get(is_noise=True)
        self.assertEqual(noise.timestamp, _utc(2024, 1, 15, 8, 5))
        self.assertAlmostEqual(float(noise.noise_distance), 40, delta=0.5)
        self.assertFalse(AttendanceEvent.objects.filter(processed=False).exists())

        summary = AttendanceSummary.objects.get()
        self.assertEqual(summary.date, date(2024, 1, 15))
        self.assertEqual(summary.time_on_site_minutes, 270)
        self.assertEqual(summary.entry_count, 2)
        self.assertEqual(summary.exit_count, 1)
        self.assertEqual(summary.utilization_percent, Decimal("60.00"))
        self.assertEqual(summary.status, AttendanceSummary.STATUS_BELOW_TARGET)

        log = GeofenceSyncLog.last_successful(self.tenant)
        self.assertEqual(log.last_event_id, "e-2")
        self.assertEqual(log.last_event_timestamp, _utc(2024, 1, 15, 12, 30))
        self.assertEqual(log.records_created, 3)

    def test_rerun_over_same_window_creates_nothing(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8))
        self._insert_event("e-2", _utc(2024, 1, 15, 12, 30), event_type="exit")
        sync_tenant(self.tenant, store=self.store)

        self._seed_cursor(_utc(2024, 1, 1), completed_at=timezone.now() + timedelta(seconds=1))
        result = sync_tenant(self.tenant, store=self.store)

        self.assertTrue(result.success)
        self.assertEqual(result.records_processed, 2)
        self.assertEqual(result.records_created, 0)
        self.assertEqual(result.records_skipped, 2)
        self.assertEqual(AttendanceEvent.objects.count(), 2)

    def test_second_run_resumes_from_cursor(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8))
        sync_tenant(self.tenant, store=self.store)

        self._insert_event("e-2", _utc(2024, 1, 15, 12), event_type="exit")
        result = sync_tenant(self.tenant, store=self.store)

        self.assertEqual(result.records_processed, 1)
        self.assertEqual(result.records_created, 1)
        self.assertEqual(AttendanceSummary.objects.get().time_on_site_minutes, 240)

    def test_empty_window_completes_and_keeps_cursor(self):
        self._seed_cursor(_utc(2024, 1, 1))

        result = sync_tenant(self.tenant, store=self.store)

        self.assertTrue(result.success)
        self.assertEqual(result.records_processed, 0)
        self.assertEqual(GeofenceSyncLog.last_successful(self.tenant).last_event_timestamp, _utc(2024, 1, 1))

    @override_settings(GEOFENCE_SYNC={"INITIAL_SYNC_DAYS": 30})
    def test_first_run_looks_back_initial_sync_days(self):
        self._insert_event("old", timezone.now() - timedelta(days=40))
        self._insert_event("recent", timezone.now() - timedelta(days=2))

        result = sync_tenant(self.tenant, store=self.store)

        self.assertEqual(result.records_processed, 1)
        self.assertEqual(GeofenceSyncLog.last_successful(self.tenant).last_event_id, "recent")

    def test_duplicate_window_is_one_second(self):
        self._seed_cursor(_utc(2024, 1, 1))
        AttendanceEvent.objects.create(
            tenant=self.tenant,
            employee=self.employee,
            site=self.site,
            event_type=AttendanceEvent.TYPE_ENTER,
            timestamp=_utc(2024, 1, 15, 8, 0, 0, 900000),
        )
        AttendanceEvent.objects.create(
            tenant=self.tenant,
            employee=self.employee,
            site=self.site,
            event_type=AttendanceEvent.TYPE_ENTER,
            timestamp=_utc(2024, 1, 15, 9, 0, 1, 100000),
        )
        self._insert_event("e-1", _utc(2024, 1, 15, 8))
        self._insert_event("e-2", _utc(2024, 1, 15, 9))

        result = sync_tenant(self.tenant, store=self.store)

        self.assertEqual(result.records_skipped, 1)
        self.assertEqual(result.records_created, 1)
        self.assertTrue(AttendanceEvent.objects.filter(timestamp=_utc(2024, 1, 15, 9)).exists())
        self.assertFalse(AttendanceEvent.objects.filter(timestamp=_utc(2024, 1, 15, 8)).exists())

    def test_unmapped_identifiers_are_skipped_and_reported(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8), user_id="EVT9999")
        self._insert_event("e-2", _utc(2024, 1, 15, 9), user_id="EVT9999")
        self._insert_event("e-3", _utc(2024, 1, 15, 10), site_id="S-404")

        with self.assertLogs("geofence_sync.services.sync", level="WARNING") as logs:
            result = sync_tenant(self.tenant, store=self.store)

        self.assertTrue(result.success)
        self.assertEqual(result.records_skipped, 3)
        self.assertEqual(result.records_created, 0)
        self.assertTrue(any("EVT9999(2)" in line for line in logs.output))
        self.assertTrue(any("S-404(1)" in line for line in logs.output))
        self.assertEqual(GeofenceSyncLog.last_successful(self.tenant).last_event_id, "e-3")

    def test_unknown_event_type_and_trigger_use_defaults(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8), event_type="dwell", trigger_method="beacon")
        self._insert_event("e-2", _utc(2024, 1, 15, 17), event_type="EXIT", trigger_method="Manual")

        sync_tenant(self.tenant, store=self.store)

        first, second = AttendanceEvent.objects.order_by("timestamp")
        self.assertEqual(first.event_type, AttendanceEvent.TYPE_ENTER)
        self.assertEqual(first.trigger_method, AttendanceEvent.TRIGGER_AUTOMATIC)
        self.assertEqual(first.device_identifier, "EVT0001")
        self.assertEqual(second.event_type, AttendanceEvent.TYPE_EXIT)
        self.assertEqual(second.trigger_method, AttendanceEvent.TRIGGER_MANUAL)

    @override_settings(GEOFENCE_SYNC={"BATCH_SIZE": 2})
    def test_batch_size_caps_each_run(self):
        self._seed_cursor(_utc(2024, 1, 1))
        for hour in (8, 9, 10):
            self._insert_event(f"e-{hour}", _utc(2024, 1, 15, hour))

        first = sync_tenant(self.tenant, store=self.store)
        second = sync_tenant(self.tenant, store=self.store)

        self.assertEqual(first.records_processed, 2)
        self.assertEqual(second.records_processed, 1)
        self.assertEqual(AttendanceEvent.objects.count(), 3)

    def test_connectivity_failure_keeps_cursor(self):
        seed = self._seed_cursor(_utc(2024, 1, 1))

        result = sync_tenant(self.tenant, store=GeofenceEventStore(using="not-configured"))

        self.assertFalse(result.success)
        self.assertIn("Unable to connect", result.error)
        failed = GeofenceSyncLog.objects.exclude(pk=seed.pk).get()
        self.assertIn("Unable to connect", failed.error_message)
        self.assertIsNotNone(failed.sync_completed)
        self.assertFalse(failed.is_success)
        self.assertEqual(GeofenceSyncLog.last_successful(self.tenant), seed)

    def test_unexpected_error_is_persisted_on_log(self):
        self._seed_cursor(_utc(2024, 1, 1))

        with patch.object(self.store, "fetch_events_after", side_effect=RuntimeError("boom")):
            result = sync_tenant(self.tenant, store=self.store)

        self.assertFalse(result.success)
        self.assertEqual(result.error, "boom")
        self.assertEqual(GeofenceSyncLog.objects.order_by("-id").first().error_message, "boom")

    def test_failed_date_does_not_stop_other_dates(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8))
        self._insert_event("e-2", _utc(2024, 1, 16, 8))

        with patch(
            "geofence_sync.services.sync.process_daily_attendance",
            side_effect=[RuntimeError("locked"), DailyProcessingResult(1, 1, 0)],
        ) as process_mock:
            result = sync_tenant(self.tenant, store=self.store)

        self.assertTrue(result.success)
        self.assertEqual(process_mock.call_count, 2)
        self.assertEqual(result.summaries_created, 1)
        self.assertEqual(result.events_processed_for_summaries, 1)

    @override_settings(GEOFENCE_SYNC={"PROCESS_SUMMARIES_AFTER_SYNC": False})
    def test_summaries_can_be_left_to_nightly_job(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8))

        result = sync_tenant(self.tenant, store=self.store)

        self.assertEqual(result.records_created, 1)
        self.assertFalse(AttendanceSummary.objects.exists())
        self.assertTrue(AttendanceEvent.objects.filter(processed=False).exists())

    def test_cancelled_run_is_neither_completed_nor_failed(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8))
        cancel_event = threading.Event()
        cancel_event.set()

        with self.assertRaises(SyncCancelled):
            sync_tenant(self.tenant, store=self.store, cancel_event=cancel_event)

        log = GeofenceSyncLog.objects.order_by("-id").first()
        self.assertIsNone(log.sync_completed)
        self.assertEqual(log.error_message, "")
        self.assertFalse(AttendanceEvent.objects.exists())

    @override_settings(GEOFENCE_SYNC={"TENANT_CODES": ["tenant-a", "ghost"]})
    def test_sync_all_tenants_skips_unknown_codes(self):
        with patch("geofence_sync.services.sync.sync_tenant") as sync_mock:
            results = sync_all_tenants()

        self.assertEqual(list(results), ["tenant-a"])
        sync_mock.assert_called_once_with(self.tenant, cancel_event=None)


class DeviceStatusTests(MobileDatastoreMixin, TestCase):
    def test_refresh_upserts_cache_and_counts_online_devices(self):
        now = timezone.now()
        self._insert_device("EVT0001", last_seen_at=now - timedelta(minutes=10))
        self._insert_device("EVT0002", last_seen_at=now - timedelta(hours=3))
        self._insert_device("EVT0003", last_seen_at=now, is_active=False)

        self.assertEqual(refresh_device_status(self.store), (2, 1))
        self.assertEqual(refresh_device_status(self.store), (2, 1))

        self.assertEqual(DeviceStatusCache.objects.count(), 2)
        cached = DeviceStatusCache.objects.get(device_id="EVT0001")
        self.assertEqual(cached.last_latitude, Decimal("51.50740000"))
        self.assertEqual(cached.last_battery_level, 81)
        self.assertEqual(cached.platform, "android")

    def test_refresh_failure_is_contained(self):
        with patch.object(self.store, "fetch_active_devices", side_effect=EventStoreError("gone")):
            self.assertEqual(refresh_device_status(self.store), (0, 0))

    def test_sync_refreshes_devices_without_new_events(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_device("EVT0001", last_seen_at=timezone.now())

        result = sync_tenant(self.tenant, store=self.store)

        self.assertEqual(result.devices_synced, 1)
        self.assertEqual(result.devices_online, 1)
        self.assertTrue(DeviceStatusCache.objects.filter(device_id="EVT0001").exists())


class OperatorStatusTests(MobileDatastoreMixin, TestCase):
    def _log(self, started_ago, error="", created=0):
        started = timezone.now() - started_ago
        return GeofenceSyncLog.objects.create(
            tenant=self.tenant,
            sync_started=started,
            sync_completed=started + timedelta(seconds=5),
            records_created=created,
            error_message=error,
        )

    def test_sync_status_reports_health_and_recent_counts(self):
        self._log(timedelta(days=3), created=50)
        self._log(timedelta(hours=1), error="Unable to connect")
        self._log(timedelta(minutes=30), created=5)

        sync_status = get_sync_status(self.tenant)

        self.assertTrue(sync_status.is_healthy)
        self.assertEqual(sync_status.syncs_last_24_hours, 2)
        self.assertEqual(sync_status.failed_syncs_last_24_hours, 1)
        self.assertEqual(sync_status.events_created_last_24_hours, 5)
        self.assertEqual(len(sync_status.recent_syncs), 3)
        self.assertEqual(sync_status.recent_syncs[0].records_created, 5)

    def test_stale_success_is_unhealthy(self):
        self._log(timedelta(hours=3))
        self._log(timedelta(minutes=15), error="boom")

        sync_status = get_sync_status(self.tenant)

        self.assertFalse(sync_status.is_healthy)
        self.assertIsNotNone(sync_status.last_successful_sync)

    def test_recent_syncs_are_capped_at_ten(self):
        for minutes in range(12):
            self._log(timedelta(minutes=minutes))
        self.assertEqual(len(get_sync_status(self.tenant).recent_syncs), 10)

    def test_unmapped_devices_sorted_by_event_volume(self):
        self._insert_device("evt0001")
        self._insert_device("EVT0002")
        self._insert_device("EVT0003")
        self._insert_event("e-1", _utc(2024, 1, 15, 8), user_id="EVT0002")
        for minute in range(3):
            self._insert_event(f"e-3-{minute}", _utc(2024, 1, 15, 9, minute), user_id="EVT0003")

        report = get_unmapped_devices(self.tenant, store=self.store)

        self.assertEqual([device.device_id for device in report], ["EVT0003", "EVT0002"])
        self.assertEqual([device.event_count for device in report], [3, 1])

    def test_unmapped_devices_empty_when_store_unreachable(self):
        self.assertEqual(get_unmapped_devices(self.tenant, store=GeofenceEventStore(using="not-configured")), [])


@override_settings(GEOFENCE_SYNC=USE_DEFAULT_DATABASE)
class GeofenceSyncApiTests(MobileDatastoreMixin, APITestCase):
    def setUp(self):
        super().setUp()
        self.user = get_user_model().objects.create_user(username="operator", password="pass", is_staff=True)
        self.client.force_authenticate(self.user)

    def test_status_endpoint(self):
        self._seed_cursor(_utc(2024, 1, 1))

        response = self.client.get("/api/geofence-sync/status", HTTP_X_TENANT_CODE="tenant-a")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_healthy"])
        self.assertEqual(len(response.data["recent_syncs"]), 1)
        self.assertTrue(response.data["recent_syncs"][0]["is_success"])

    def test_status_endpoint_requires_tenant(self):
        response = self.client.get("/api/geofence-sync/status")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unmapped_devices_endpoint(self):
        self._insert_device("EVT0001")
        self._insert_device("EVT0042")

        response = self.client.get("/api/geofence-sync/unmapped-devices", {"tenant": "tenant-a"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["device_id"], "EVT0042")

    def test_manual_run_endpoint(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8))

        response = self.client.post("/api/geofence-sync/run", HTTP_X_TENANT_CODE="tenant-a")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["records_created"], 1)


@override_settings(GEOFENCE_SYNC=USE_DEFAULT_DATABASE)
class GeofenceSyncCommandTests(MobileDatastoreMixin, TestCase):
    def test_geofence_sync_command_for_one_tenant(self):
        self._seed_cursor(_utc(2024, 1, 1))
        self._insert_event("e-1", _utc(2024, 1, 15, 8))
        out = StringIO()

        call_command("geofence_sync", "--tenant", "tenant-a", stdout=out)

        self.assertIn("tenant-a: processed=1 created=1", out.getvalue())

    def test_geofence_sync_command_uses_configured_tenants(self):
        out = StringIO()
        call_command("geofence_sync", stdout=out)
        self.assertIn("tenant-a:", out.getvalue())

    def test_geofence_sync_command_rejects_unknown_tenant(self):
        with self.assertRaises(CommandError):
            call_command("geofence_sync", "--tenant", "ghost")

    @override_settings(GEOFENCE_SYNC={"DATABASE_ALIAS": "not-configured"})
    def test_geofence_sync_command_reports_failure(self):
        with self.assertRaises(CommandError):
            call_command("geofence_sync", "--tenant", "tenant-a", stdout=StringIO(), stderr=StringIO())

    def test_unmapped_devices_command(self):
        self._insert_device("EVT0042")
        out = StringIO()

        call_command("geofence_unmapped_devices", "--tenant", "tenant-a", stdout=out)

        self.assertIn("EVT0042", out.getvalue())
        self.assertIn("1 unmapped devices", out.getvalue())


@patch("geofence_sync.worker.close_old_connections")
class GeofenceSyncWorkerTests(TestCase):
    def test_disabled_worker_returns_immediately(self, _close):
        worker = GeofenceSyncWorker(config={"ENABLED": False})
        with patch("geofence_sync.worker.sync_all_tenants") as sync_mock:
            worker.run()
        sync_mock.assert_not_called()

    def test_runs_one_pass_per_tick_until_stopped(self, _close):
        worker = GeofenceSyncWorker(
            config={"ENABLED": True, "STARTUP_DELAY_SECONDS": 0, "TENANT_CODES": ["tenant-a"]},
        )

        def one_pass(**kwargs):
            worker.stop()
            return {}

        with patch("geofence_sync.worker.sync_all_tenants", side_effect=one_pass) as sync_mock:
            worker.run()

        sync_mock.assert_called_once_with(cancel_event=worker.stop_event, tenant_codes=["tenant-a"])

    def test_stop_during_startup_delay_skips_sync(self, _close):
        worker = GeofenceSyncWorker(config={"ENABLED": True, "STARTUP_DELAY_SECONDS": 30})
        worker.stop()
        with patch("geofence_sync.worker.sync_all_tenants") as sync_mock:
            worker.run()
        sync_mock.assert_not_called()

    def test_tick_contains_unexpected_errors(self, _close):
        worker = GeofenceSyncWorker(config={"TENANT_CODES": []})
        with patch("geofence_sync.worker.sync_all_tenants", side_effect=RuntimeError("db down")):
            self.assertEqual(worker.tick(), {})

    def test_cancellation_ends_the_loop(self, _close):
        worker = GeofenceSyncWorker(config={"ENABLED": True, "STARTUP_DELAY_SECONDS": 0})
        with patch("geofence_sync.worker.sync_all_tenants", side_effect=SyncCancelled()) as sync_mock:
            worker.run()
        sync_mock.assert_called_once()
