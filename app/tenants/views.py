from __future__ import annotations

from django.db.models import Count, Q
from rest_framework import viewsets
from rest_framework.request import Request

from .models import Tenant
from .serializers import TenantSerializer


def resolve_tenant(request: Request) -> Tenant | None:
    tenant_code = request.headers.get("X-TENANT-CODE", "").strip()
    if not tenant_code:
        tenant_code = (request.query_params.get("tenant") or "").strip()

    if not tenant_code:
        return None

    return Tenant.objects.filter(code=tenant_code).first()


class TenantViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Tenant.objects.annotate(
        employee_count=Count("employees", filter=Q(employees__is_deleted=False), distinct=True),
        site_count=Count("sites", filter=Q(sites__is_deleted=False), distinct=True),
    ).order_by("code")
    serializer_class = TenantSerializer
    lookup_field = "code"
