import logging
import signal

from django.core.management.base import BaseCommand

from geofence_sync.worker import GeofenceSyncWorker

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Run the geofence sync loop until SIGINT/SIGTERM"

    def add_arguments(self, parser):
        parser.add_argument("--no-delay", action="store_true", help="Skip the startup delay")

    def handle(self, *args, **options):
        config = {"STARTUP_DELAY_SECONDS": 0} if options["no_delay"] else None
        worker = GeofenceSyncWorker(config=config)

        def _signal_handler(signum, frame):
            logger.info("Received signal %s, shutting down", signum)
            worker.stop()

        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)

        worker.run()
        self.stdout.write(self.style.SUCCESS("Geofence sync worker stopped"))
