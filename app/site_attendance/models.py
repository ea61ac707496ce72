from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.db import models
from django.utils import timezone

from tenants.models import Tenant
from workforce.models import Employee, Site


def utc_date(value: datetime) -> date:
    return value.astimezone(dt_timezone.utc).date()


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=dt_timezone.utc)
    return start, start + timedelta(days=1)


class AttendanceSettings(models.Model):
    tenant = models.OneToOneField(Tenant, on_delete=models.CASCADE, related_name="attendance_settings")
    expected_hours_per_day = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal("7.50"))
    work_start_time = models.TimeField(default=time(8, 0))
    late_threshold_minutes = models.PositiveIntegerField(default=30)
    include_saturday = models.BooleanField(default=False)
    include_sunday = models.BooleanField(default=False)
    geofence_radius_meters = models.PositiveIntegerField(default=100)
    noise_threshold_meters = models.PositiveIntegerField(default=150)
    spa_grace_period_minutes = models.PositiveIntegerField(default=15)
    enable_push_notifications = models.BooleanField(default=True)
    enable_email_notifications = models.BooleanField(default=False)
    enable_sms_notifications = models.BooleanField(default=False)
    notification_title = models.CharField(max_length=200, default="Site Photo Attendance Required")
    notification_message = models.CharField(
        max_length=500,
        default="You have arrived on site. Please submit your site photo attendance.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "attendance settings"

    @classmethod
    def get_for_tenant(cls, tenant: Tenant) -> AttendanceSettings:
        settings, _ = cls.objects.get_or_create(tenant=tenant)
        return settings

    def __str__(self):
        return f"AttendanceSettings<{self.tenant_id}>"


class BankHoliday(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="bank_holidays")
    date = models.DateField()
    name = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["tenant", "date"], name="uq_bank_holiday_tenant_date"),
        ]

    def __str__(self):
        return f"{self.date} {self.name}".strip()


class AttendanceEvent(models.Model):
    TYPE_ENTER = "Enter"
    TYPE_EXIT = "Exit"
    TYPE_CHOICES = [
        (TYPE_ENTER, "Enter"),
        (TYPE_EXIT, "Exit"),
    ]

    TRIGGER_AUTOMATIC = "Automatic"
    TRIGGER_MANUAL = "Manual"
    TRIGGER_CHOICES = [
        (TRIGGER_AUTOMATIC, "Automatic"),
        (TRIGGER_MANUAL, "Manual"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="attendance_events")
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="attendance_events")
    site = models.ForeignKey(Site, on_delete=models.PROTECT, related_name="attendance_events")
    event_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    timestamp = models.DateTimeField()
    latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True)
    longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True)
    trigger_method = models.CharField(max_length=10, choices=TRIGGER_CHOICES, default=TRIGGER_AUTOMATIC)
    device_identifier = models.CharField(max_length=200, blank=True, default="")
    is_noise = models.BooleanField(default=False)
    noise_distance = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    processed = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["tenant", "employee"], name="ix_event_tenant_employee"),
            models.Index(fields=["tenant", "site"], name="ix_event_tenant_site"),
            models.Index(fields=["tenant", "processed"], name="ix_event_tenant_processed"),
            models.Index(fields=["timestamp"], name="ix_event_timestamp"),
        ]

    @property
    def event_date(self) -> date:
        return utc_date(self.timestamp)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __str__(self):
        return f"{self.event_type} {self.employee_id}@{self.site_id} {self.timestamp.isoformat()}"


class AttendanceSummary(models.Model):
    STATUS_EXCELLENT = "Excellent"
    STATUS_GOOD = "Good"
    STATUS_BELOW_TARGET = "BelowTarget"
    STATUS_INCOMPLETE = "Incomplete"
    STATUS_ABSENT = "Absent"
    STATUS_CHOICES = [
        (STATUS_EXCELLENT, "Excellent"),
        (STATUS_GOOD, "Good"),
        (STATUS_BELOW_TARGET, "Below target"),
        (STATUS_INCOMPLETE, "Incomplete"),
        (STATUS_ABSENT, "Absent"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="attendance_summaries")
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="attendance_summaries")
    site = models.ForeignKey(Site, on_delete=models.PROTECT, related_name="attendance_summaries")
    date = models.DateField()
    first_entry = models.DateTimeField(null=True, blank=True)
    last_exit = models.DateTimeField(null=True, blank=True)
    time_on_site_minutes = models.PositiveIntegerField(default=0)
    expected_hours = models.DecimalField(max_digits=5, decimal_places=2)
    utilization_percent = models.DecimalField(max_digits=7, decimal_places=2, default=Decimal("0"))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ABSENT)
    entry_count = models.PositiveIntegerField(default=0)
    exit_count = models.PositiveIntegerField(default=0)
    has_spa = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "employee", "site", "date"],
                name="uq_summary_tenant_employee_site_date",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "date"], name="ix_summary_tenant_date"),
            models.Index(fields=["status"], name="ix_summary_status"),
        ]

    def __str__(self):
        return f"Summary<{self.employee_id}@{self.site_id} {self.date} {self.status}>"


class SitePhotoAttendance(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="site_photo_attendances")
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="site_photo_attendances")
    site = models.ForeignKey(Site, on_delete=models.PROTECT, related_name="site_photo_attendances")
    event_date = models.DateField()
    image_url = models.URLField(max_length=500, blank=True, default="")
    latitude = models.DecimalField(max_digits=10, decimal_places=8, null=True, blank=True)
    longitude = models.DecimalField(max_digits=11, decimal_places=8, null=True, blank=True)
    distance_to_site = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    notes = models.CharField(max_length=1000, blank=True, default="")
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["tenant", "employee", "event_date"], name="ix_spa_tenant_employee_date"),
        ]

    @classmethod
    def exists_for(cls, tenant: Tenant, employee_id: int, site_id: int, day: date) -> bool:
        return cls.objects.filter(
            tenant=tenant,
            employee_id=employee_id,
            site_id=site_id,
            event_date=day,
            is_deleted=False,
        ).exists()


class AttendanceNotification(models.Model):
    TYPE_PUSH = "Push"
    TYPE_EMAIL = "Email"
    TYPE_SMS = "Sms"
    TYPE_CHOICES = [
        (TYPE_PUSH, "Push"),
        (TYPE_EMAIL, "Email"),
        (TYPE_SMS, "SMS"),
    ]

    REASON_MISSING_SPA = "MissingSpa"
    REASON_CHOICES = [
        (REASON_MISSING_SPA, "Missing compliance photo"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="attendance_notifications")
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="attendance_notifications")
    notification_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    reason = models.CharField(max_length=30, choices=REASON_CHOICES)
    message = models.CharField(max_length=500, blank=True, default="")
    sent_at = models.DateTimeField(default=timezone.now)
    delivered = models.BooleanField(default=False)
    error_message = models.CharField(max_length=500, blank=True, default="")
    related_event = models.ForeignKey(
        AttendanceEvent,
        on_delete=models.SET_NULL,
        related_name="notifications",
        null=True,
        blank=True,
    )

    class Meta:
        indexes = [
            models.Index(fields=["tenant", "delivered"], name="ix_notification_tenant_deliv"),
            models.Index(fields=["tenant", "employee"], name="ix_notification_tenant_emp"),
        ]

    def mark_delivered(self):
        self.delivered = True
        self.error_message = ""
        self.save(update_fields=["delivered", "error_message"])

    def mark_failed(self, error: str):
        self.delivered = False
        self.error_message = (error or "Unknown error")[:500]
        self.save(update_fields=["delivered", "error_message"])
