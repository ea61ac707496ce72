from rest_framework import serializers

from .models import AttendanceEvent, AttendanceSettings, AttendanceSummary


class AttendanceEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = AttendanceEvent
        fields = [
            'id', 'employee', 'site', 'event_type', 'timestamp', 'latitude', 'longitude',
            'trigger_method', 'device_identifier', 'is_noise', 'noise_distance', 'processed', 'created_at',
        ]


class AttendanceSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = AttendanceSummary
        fields = [
            'id', 'employee', 'site', 'date', 'first_entry', 'last_exit', 'time_on_site_minutes',
            'expected_hours', 'utilization_percent', 'status', 'entry_count', 'exit_count', 'has_spa',
            'updated_at',
        ]


class AttendanceSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = AttendanceSettings
        exclude = ['id', 'tenant', 'created_at', 'updated_at']


class CheckInSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    event_type = serializers.CharField()
    latitude = serializers.DecimalField(max_digits=10, decimal_places=8)
    longitude = serializers.DecimalField(max_digits=11, decimal_places=8)
    site_id = serializers.IntegerField(required=False, allow_null=True)
    device_identifier = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_event_type(self, value):
        normalized = value.strip().lower()
        for choice, _ in AttendanceEvent.TYPE_CHOICES:
            if choice.lower() == normalized:
                return choice
        raise serializers.ValidationError("event_type must be Enter or Exit")


class EmployeePerformanceSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField()
    employee_name = serializers.CharField()
    total_hours = serializers.DecimalField(max_digits=9, decimal_places=2)
    expected_hours = serializers.DecimalField(max_digits=9, decimal_places=2)
    utilization_percent = serializers.DecimalField(max_digits=9, decimal_places=2)
    variance_hours = serializers.DecimalField(max_digits=9, decimal_places=2)
    status = serializers.CharField()
    days_present = serializers.IntegerField()
    days_absent = serializers.IntegerField()
    late_arrivals = serializers.IntegerField()
    spa_count = serializers.IntegerField()
    status_counts = serializers.DictField(child=serializers.IntegerField())


class AttendanceReportSerializer(serializers.Serializer):
    from_date = serializers.DateField()
    to_date = serializers.DateField()
    working_days = serializers.IntegerField()
    expected_hours_per_day = serializers.DecimalField(max_digits=4, decimal_places=2)
    employees = EmployeePerformanceSerializer(many=True)
