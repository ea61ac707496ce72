from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from geofence_sync.client import MobileGeofenceEvent
from tenants.models import Tenant
from workforce.models import Employee, Site

REASON_UNMAPPED_DEVICE = "unmapped_device"
REASON_UNMAPPED_SITE = "unmapped_site"


class UnmappedTally:
    def __init__(self):
        self.counts: Counter[str] = Counter()

    def add(self, identifier: str):
        self.counts[identifier] += 1

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def __len__(self):
        return len(self.counts)

    def top(self, limit: int = 10) -> list[tuple[str, int]]:
        return sorted(self.counts.items(), key=lambda item: (-item[1], item[0]))[:limit]

    def describe(self, limit: int = 10) -> str:
        return ", ".join(f"{identifier}({count})" for identifier, count in self.top(limit))


@dataclass
class IdentityLookup:
    """Per-run lookup tables from mobile identifiers to internal records."""

    employees_by_device: dict[str, Employee]
    sites_by_code: dict[str, Site]
    unmapped_devices: UnmappedTally = field(default_factory=UnmappedTally)
    unmapped_sites: UnmappedTally = field(default_factory=UnmappedTally)

    def resolve(self, event: MobileGeofenceEvent) -> tuple[Employee | None, Site | None, str]:
        employee = self.employees_by_device.get(event.user_id)
        if employee is None:
            self.unmapped_devices.add(event.user_id)
            return None, None, REASON_UNMAPPED_DEVICE

        site = self.sites_by_code.get(event.site_id)
        if site is None:
            self.unmapped_sites.add(event.site_id)
            return employee, None, REASON_UNMAPPED_SITE

        return employee, site, ""


def load_lookup(tenant: Tenant) -> IdentityLookup:
    employees = Employee.objects.filter(tenant=tenant, is_deleted=False, geo_tracker_id__isnull=False).exclude(
        geo_tracker_id=""
    )
    sites = Site.objects.filter(tenant=tenant, is_deleted=False)
    return IdentityLookup(
        employees_by_device={employee.geo_tracker_id: employee for employee in employees},
        sites_by_code={site.site_code: site for site in sites},
    )
