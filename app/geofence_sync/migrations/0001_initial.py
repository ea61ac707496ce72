import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="GeofenceSyncLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sync_started", models.DateTimeField()),
                ("sync_completed", models.DateTimeField(blank=True, null=True)),
                ("records_processed", models.PositiveIntegerField(default=0)),
                ("records_created", models.PositiveIntegerField(default=0)),
                ("records_skipped", models.PositiveIntegerField(default=0)),
                ("last_event_id", models.CharField(blank=True, default="", max_length=100)),
                ("last_event_timestamp", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="geofence_sync_logs",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["tenant", "sync_started"], name="ix_sync_log_tenant_started"),
                    models.Index(fields=["sync_completed"], name="ix_sync_log_completed"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DeviceStatusCache",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("device_id", models.CharField(max_length=100, unique=True)),
                ("platform_identifier", models.CharField(blank=True, default="", max_length=255)),
                ("model", models.CharField(blank=True, default="", max_length=100)),
                ("platform", models.CharField(blank=True, default="", max_length=50)),
                ("is_active", models.BooleanField(default=True)),
                ("last_seen_at", models.DateTimeField(blank=True, null=True)),
                ("last_latitude", models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ("last_longitude", models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ("last_accuracy", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("last_battery_level", models.IntegerField(blank=True, null=True)),
                ("synced_at", models.DateTimeField()),
            ],
            options={
                "indexes": [models.Index(fields=["last_seen_at"], name="ix_device_cache_last_seen")],
            },
        ),
    ]
