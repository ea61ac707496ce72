from django.urls import path

from geofence_sync.views import run_sync, sync_status, unmapped_devices

urlpatterns = [
    path("status", sync_status, name="geofence-sync-status"),
    path("unmapped-devices", unmapped_devices, name="geofence-sync-unmapped-devices"),
    path("run", run_sync, name="geofence-sync-run"),
]
