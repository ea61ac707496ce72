from __future__ import annotations

from datetime import datetime

from django.db import models
from django.utils import timezone

from tenants.models import Tenant


class GeofenceSyncLog(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="geofence_sync_logs")
    sync_started = models.DateTimeField()
    sync_completed = models.DateTimeField(null=True, blank=True)
    records_processed = models.PositiveIntegerField(default=0)
    records_created = models.PositiveIntegerField(default=0)
    records_skipped = models.PositiveIntegerField(default=0)
    last_event_id = models.CharField(max_length=100, blank=True, default="")
    last_event_timestamp = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["tenant", "sync_started"], name="ix_sync_log_tenant_started"),
            models.Index(fields=["sync_completed"], name="ix_sync_log_completed"),
        ]

    @classmethod
    def start(cls, tenant: Tenant) -> GeofenceSyncLog:
        return cls.objects.create(tenant=tenant, sync_started=timezone.now())

    @classmethod
    def last_successful(cls, tenant: Tenant) -> GeofenceSyncLog | None:
        return (
            cls.objects.filter(tenant=tenant, sync_completed__isnull=False, error_message="")
            .order_by("-sync_completed", "-id")
            .first()
        )

    @property
    def is_success(self) -> bool:
        return self.sync_completed is not None and not self.error_message

    def update_progress(self, processed: int, created: int, skipped: int):
        self.records_processed = processed
        self.records_created = created
        self.records_skipped = skipped
        self.save(update_fields=["records_processed", "records_created", "records_skipped"])

    def complete(
        self,
        processed: int,
        created: int,
        skipped: int,
        last_event_id: str = "",
        last_event_timestamp: datetime | None = None,
    ):
        self.records_processed = processed
        self.records_created = created
        self.records_skipped = skipped
        self.last_event_id = last_event_id or ""
        self.last_event_timestamp = last_event_timestamp
        self.sync_completed = timezone.now()
        self.save()

    def fail(self, error: str):
        self.error_message = error or "Unknown error"
        self.sync_completed = timezone.now()
        self.save(update_fields=["error_message", "sync_completed"])

    def __str__(self):
        return f"GeofenceSyncLog<{self.tenant_id}:{self.sync_started.isoformat()}>"


class DeviceStatusCache(models.Model):
    device_id = models.CharField(max_length=100, unique=True)
    platform_identifier = models.CharField(max_length=255, blank=True, default="")
    model = models.CharField(max_length=100, blank=True, default="")
    platform = models.CharField(max_length=50, blank=True, default="")
    is_active = models.BooleanField(default=True)
    last_seen_at = models.DateTimeField(null=True, blank=True)
    last_latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True)
    last_longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True)
    last_accuracy = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    last_battery_level = models.IntegerField(null=True, blank=True)
    synced_at = models.DateTimeField()

    class Meta:
        indexes = [models.Index(fields=["last_seen_at"], name="ix_device_cache_last_seen")]

    def __str__(self):
        return f"{self.device_id} ({self.platform})"
