from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.request import Request
from rest_framework.response import Response

from geofence_sync.serializers import SyncResultSerializer, SyncStatusSerializer, UnmappedDeviceSerializer
from geofence_sync.services.status import get_sync_status, get_unmapped_devices
from geofence_sync.services.sync import sync_tenant
from tenants.views import resolve_tenant

logger = logging.getLogger(__name__)


def _unknown_tenant() -> Response:
    return Response(
        {"detail": "Unknown tenant. Pass X-TENANT-CODE or ?tenant=<code>."},
        status=status.HTTP_400_BAD_REQUEST,
    )


@api_view(["GET"])
def sync_status(request: Request) -> Response:
    tenant = resolve_tenant(request)
    if tenant is None:
        return _unknown_tenant()
    return Response(SyncStatusSerializer(get_sync_status(tenant)).data)


@api_view(["GET"])
def unmapped_devices(request: Request) -> Response:
    tenant = resolve_tenant(request)
    if tenant is None:
        return _unknown_tenant()

    devices = get_unmapped_devices(tenant)
    return Response({"count": len(devices), "results": UnmappedDeviceSerializer(devices, many=True).data})


@api_view(["POST"])
def run_sync(request: Request) -> Response:
    tenant = resolve_tenant(request)
    if tenant is None:
        return _unknown_tenant()

    user = getattr(request, "user", None)
    logger.info("Manual geofence sync requested", extra={"tenant": tenant.code, "user": str(user)})
    result = sync_tenant(tenant)
    http_status = status.HTTP_200_OK if result.success else status.HTTP_502_BAD_GATEWAY
    return Response(SyncResultSerializer(result).data, status=http_status)
