import datetime
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
        ("workforce", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AttendanceSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("expected_hours_per_day", models.DecimalField(decimal_places=2, default=Decimal("7.50"), max_digits=4)),
                ("work_start_time", models.TimeField(default=datetime.time(8, 0))),
                ("late_threshold_minutes", models.PositiveIntegerField(default=30)),
                ("include_saturday", models.BooleanField(default=False)),
                ("include_sunday", models.BooleanField(default=False)),
                ("geofence_radius_meters", models.PositiveIntegerField(default=100)),
                ("noise_threshold_meters", models.PositiveIntegerField(default=150)),
                ("spa_grace_period_minutes", models.PositiveIntegerField(default=15)),
                ("enable_push_notifications", models.BooleanField(default=True)),
                ("enable_email_notifications", models.BooleanField(default=False)),
                ("enable_sms_notifications", models.BooleanField(default=False)),
                ("notification_title", models.CharField(default="Site Photo Attendance Required", max_length=200)),
                (
                    "notification_message",
                    models.CharField(
                        default="You have arrived on site. Please submit your site photo attendance.",
                        max_length=500,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "tenant",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_settings",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "attendance settings",
            },
        ),
        migrations.CreateModel(
            name="BankHoliday",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("name", models.CharField(blank=True, default="", max_length=100)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bank_holidays",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("tenant", "date"), name="uq_bank_holiday_tenant_date")],
            },
        ),
        migrations.CreateModel(
            name="AttendanceEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_type", models.CharField(choices=[("Enter", "Enter"), ("Exit", "Exit")], max_length=10)),
                ("timestamp", models.DateTimeField()),
                ("latitude", models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ("longitude", models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                (
                    "trigger_method",
                    models.CharField(
                        choices=[("Automatic", "Automatic"), ("Manual", "Manual")],
                        default="Automatic",
                        max_length=10,
                    ),
                ),
                ("device_identifier", models.CharField(blank=True, default="", max_length=200)),
                ("is_noise", models.BooleanField(default=False)),
                ("noise_distance", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("processed", models.BooleanField(default=False)),
                ("is_deleted", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="attendance_events",
                        to="workforce.employee",
                    ),
                ),
                (
                    "site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="attendance_events",
                        to="workforce.site",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_events",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["tenant", "employee"], name="ix_event_tenant_employee"),
                    models.Index(fields=["tenant", "site"], name="ix_event_tenant_site"),
                    models.Index(fields=["tenant", "processed"], name="ix_event_tenant_processed"),
                    models.Index(fields=["timestamp"], name="ix_event_timestamp"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AttendanceSummary",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("first_entry", models.DateTimeField(blank=True, null=True)),
                ("last_exit", models.DateTimeField(blank=True, null=True)),
                ("time_on_site_minutes", models.PositiveIntegerField(default=0)),
                ("expected_hours", models.DecimalField(decimal_places=2, max_digits=5)),
                ("utilization_percent", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=7)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Excellent", "Excellent"),
                            ("Good", "Good"),
                            ("BelowTarget", "Below target"),
                            ("Incomplete", "Incomplete"),
                            ("Absent", "Absent"),
                        ],
                        default="Absent",
                        max_length=20,
                    ),
                ),
                ("entry_count", models.PositiveIntegerField(default=0)),
                ("exit_count", models.PositiveIntegerField(default=0)),
                ("has_spa", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="attendance_summaries",
                        to="workforce.employee",
                    ),
                ),
                (
                    "site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="attendance_summaries",
                        to="workforce.site",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_summaries",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "employee", "site", "date"),
                        name="uq_summary_tenant_employee_site_date",
                    )
                ],
                "indexes": [
                    models.Index(fields=["tenant", "date"], name="ix_summary_tenant_date"),
                    models.Index(fields=["status"], name="ix_summary_status"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SitePhotoAttendance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_date", models.DateField()),
                ("image_url", models.URLField(blank=True, default="", max_length=500)),
                ("latitude", models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ("longitude", models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ("distance_to_site", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("notes", models.CharField(blank=True, default="", max_length=1000)),
                ("is_deleted", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="site_photo_attendances",
                        to="workforce.employee",
                    ),
                ),
                (
                    "site",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="site_photo_attendances",
                        to="workforce.site",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="site_photo_attendances",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["tenant", "employee", "event_date"], name="ix_spa_tenant_employee_date"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AttendanceNotification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "notification_type",
                    models.CharField(choices=[("Push", "Push"), ("Email", "Email"), ("Sms", "SMS")], max_length=20),
                ),
                ("reason", models.CharField(choices=[("MissingSpa", "Missing compliance photo")], max_length=30)),
                ("message", models.CharField(blank=True, default="", max_length=500)),
                ("sent_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("delivered", models.BooleanField(default=False)),
                ("error_message", models.CharField(blank=True, default="", max_length=500)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="attendance_notifications",
                        to="workforce.employee",
                    ),
                ),
                (
                    "related_event",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="notifications",
                        to="site_attendance.attendanceevent",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_notifications",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["tenant", "delivered"], name="ix_notification_tenant_deliv"),
                    models.Index(fields=["tenant", "employee"], name="ix_notification_tenant_emp"),
                ],
            },
        ),
    ]
