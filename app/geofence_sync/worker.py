from __future__ import annotations

import logging
import threading

from django.db import close_old_connections

from geofence_sync.services.sync import SyncCancelled, SyncResult, sync_all_tenants, sync_settings

logger = logging.getLogger(__name__)


class GeofenceSyncWorker:
    """Runs one sync pass over the configured tenants per interval.

    ``stop_event`` is both the sleep timer and the cancellation token, so
    setting it wakes the loop and aborts any run in progress.
    """

    def __init__(self, config: dict | None = None, stop_event: threading.Event | None = None):
        self.config = {**sync_settings(), **(config or {})}
        self.stop_event = stop_event or threading.Event()

    @property
    def interval_seconds(self) -> float:
        return self.config["INTERVAL_MINUTES"] * 60

    def stop(self):
        self.stop_event.set()

    def tick(self) -> dict[str, SyncResult]:
        close_old_connections()
        try:
            return sync_all_tenants(cancel_event=self.stop_event, tenant_codes=self.config["TENANT_CODES"])
        except SyncCancelled:
            raise
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error during geofence sync")
            return {}
        finally:
            close_old_connections()

    def run(self):
        if not self.config["ENABLED"]:
            logger.info("Geofence sync worker is disabled")
            return

        logger.info(
            "Geofence sync worker starting",
            extra={
                "interval_minutes": self.config["INTERVAL_MINUTES"],
                "tenants": list(self.config["TENANT_CODES"]),
            },
        )
        if self.stop_event.wait(self.config["STARTUP_DELAY_SECONDS"]):
            logger.info("Geofence sync worker stopped before first run")
            return

        while not self.stop_event.is_set():
            try:
                self.tick()
            except SyncCancelled:
                logger.info("Geofence sync worker is stopping")
                break
            self.stop_event.wait(self.interval_seconds)

        logger.info("Geofence sync worker stopped")
