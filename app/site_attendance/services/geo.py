from __future__ import annotations

import math
from decimal import Decimal

from site_attendance.models import AttendanceSettings
from tenants.models import Tenant
from workforce.models import Site

EARTH_RADIUS_METERS = 6371000
DEFAULT_GEOFENCE_RADIUS_METERS = 100

Number = float | Decimal


def calculate_distance(lat1: Number, lon1: Number, lat2: Number, lon2: Number) -> float:
    """Great-circle distance in metres between two decimal-degree points (haversine)."""
    lat1_rad = math.radians(float(lat1))
    lat2_rad = math.radians(float(lat2))
    delta_lat = math.radians(float(lat2) - float(lat1))
    delta_lon = math.radians(float(lon2) - float(lon1))

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def find_nearest_site(tenant: Tenant, latitude: Number, longitude: Number) -> tuple[Site | None, float]:
    """Return the closest active site and its distance.

    When no site of the tenant has coordinates the first active site is
    returned with an infinite distance, so check-in is not rejected.
    """
    sites = list(
        Site.objects.filter(tenant=tenant, is_active=True, is_deleted=False).order_by("id")
    )
    if not sites:
        return None, math.inf

    located = [site for site in sites if site.has_coordinates]
    if not located:
        return sites[0], math.inf

    nearest_site = None
    nearest_distance = math.inf
    for site in located:
        distance = calculate_distance(site.latitude, site.longitude, latitude, longitude)
        if distance < nearest_distance:
            nearest_site = site
            nearest_distance = distance

    return nearest_site, nearest_distance


def geofence_radius_for(site: Site) -> int:
    if site.geofence_radius_meters is not None:
        return site.geofence_radius_meters

    settings = AttendanceSettings.objects.filter(tenant_id=site.tenant_id).first()
    if settings is not None and settings.geofence_radius_meters is not None:
        return settings.geofence_radius_meters
    return DEFAULT_GEOFENCE_RADIUS_METERS


def is_within_geofence(site: Site, latitude: Number, longitude: Number) -> bool:
    # Sites without coordinates accept any position.
    if not site.has_coordinates:
        return True

    distance = calculate_distance(site.latitude, site.longitude, latitude, longitude)
    return distance <= geofence_radius_for(site)
