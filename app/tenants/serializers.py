from rest_framework import serializers

from .models import Tenant


class TenantSerializer(serializers.ModelSerializer):
    employee_count = serializers.IntegerField(read_only=True)
    site_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Tenant
        fields = ["id", "name", "code", "employee_count", "site_count", "created_at"]
