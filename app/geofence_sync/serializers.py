from rest_framework import serializers

from .models import GeofenceSyncLog


class GeofenceSyncLogSerializer(serializers.ModelSerializer):
    is_success = serializers.BooleanField(read_only=True)

    class Meta:
        model = GeofenceSyncLog
        fields = [
            'id', 'sync_started', 'sync_completed', 'records_processed', 'records_created',
            'records_skipped', 'last_event_id', 'last_event_timestamp', 'error_message', 'is_success',
        ]


class SyncStatusSerializer(serializers.Serializer):
    is_healthy = serializers.BooleanField()
    last_successful_sync = serializers.DateTimeField(allow_null=True)
    syncs_last_24_hours = serializers.IntegerField()
    failed_syncs_last_24_hours = serializers.IntegerField()
    events_created_last_24_hours = serializers.IntegerField()
    recent_syncs = GeofenceSyncLogSerializer(many=True)


class UnmappedDeviceSerializer(serializers.Serializer):
    device_id = serializers.CharField()
    platform = serializers.CharField()
    model = serializers.CharField()
    manufacturer = serializers.CharField()
    registered_at = serializers.DateTimeField(allow_null=True)
    last_seen_at = serializers.DateTimeField(allow_null=True)
    is_active = serializers.BooleanField()
    event_count = serializers.IntegerField()


class SyncResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    records_processed = serializers.IntegerField()
    records_created = serializers.IntegerField()
    records_skipped = serializers.IntegerField()
    error = serializers.CharField(allow_blank=True)
    last_event_timestamp = serializers.DateTimeField(allow_null=True)
    dates_processed = serializers.ListField(child=serializers.DateField())
    summaries_created = serializers.IntegerField()
    events_processed_for_summaries = serializers.IntegerField()
