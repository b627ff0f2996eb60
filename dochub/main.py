"""Application wiring: backend, maintenance jobs and health reporting"""

import asyncio
import json
import sys
import time
from typing import Any, Dict, List, Optional

from dochub.api import create_api
from dochub.api.base import DatabaseAPI
from dochub.api.local import LocalStorageAPI
from dochub.config import Settings, settings
from dochub.database import DatabaseService
from dochub.errors import DataAccessError
from dochub.models.entities import TimeRange
from dochub.scheduler import RECONCILE_JOB, STORAGE_WATCH_JOB, SchedulerService
from dochub.services.notifications import ChangeNotifier
from dochub.services.reconciliation import reconcile
from dochub.services.storage_watcher import StorageWatcher
from dochub.utils.logger import get_logger, log_backend_config

logger = get_logger(__name__)


class DocHubApplication:
    """
    Owns the long-lived services of one process.

    ``startup`` opens the configured backend, repairs local data, and starts
    the storage watcher and periodic reconciliation; ``shutdown`` stops them in
    reverse order. Feeds created for this process should share ``notifier``.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings
        self.notifier = ChangeNotifier()
        self.scheduler = SchedulerService()
        self.database: Optional[DatabaseService] = None
        self.api: Optional[DatabaseAPI] = None
        self.watcher: Optional[StorageWatcher] = None
        self._started_at: Optional[float] = None

    async def startup(self) -> DatabaseAPI:
        """Initialize services on startup"""
        self._started_at = time.time()
        log_backend_config(logger, self.config)

        if self.config.storage_backend == "local":
            self.database = DatabaseService(self.config.database_url)
            self.database.initialize()

        self.api = create_api(self.config, database=self.database, notifier=self.notifier)

        if self.config.reconcile_on_startup:
            try:
                await reconcile(self.api)
            except DataAccessError as e:
                logger.error(f"Startup reconciliation failed: {e}")

        self.scheduler.initialize()
        self.scheduler.start()

        if isinstance(self.api, LocalStorageAPI) and self.config.storage_watch_enabled:
            self.watcher = StorageWatcher(self.api.store, self.notifier)
            self.watcher.prime()
            self.scheduler.add_interval_job(
                self.watcher.poll,
                seconds=self.config.storage_watch_interval,
                job_id=STORAGE_WATCH_JOB,
            )
            logger.debug("Storage watcher job scheduled")

        if self.config.reconcile_interval_minutes > 0:
            self.scheduler.add_interval_job(
                self.reconcile_job,
                minutes=self.config.reconcile_interval_minutes,
                job_id=RECONCILE_JOB,
            )
            logger.debug("Reconciliation job scheduled")

        logger.info("DocHub started", backend=self.config.storage_backend)
        return self.api

    async def reconcile_job(self):
        """Scheduled reconciliation; failures are logged and retried on the next run"""
        try:
            await reconcile(self.api)
        except DataAccessError as e:
            logger.error(f"Scheduled reconciliation failed: {e}")

    async def shutdown(self):
        """Cleanup on shutdown"""
        logger.debug("Shutting down DocHub")
        self.scheduler.stop()
        self.watcher = None

        if self.api:
            await self.api.close()
            self.api = None

        if self.database:
            self.database.close()
            self.database = None

    async def health_check(self) -> Dict[str, Any]:
        """Report service status"""
        checks: Dict[str, Any] = {
            "status": "ok",
            "backend": self.config.storage_backend,
            "uptime": (time.time() - self._started_at) if self._started_at else 0,
            "scheduler": self.scheduler.running,
            "subscribers": self.notifier.subscriber_count,
        }

        if self.database:
            checks["database"] = await self.database.health_check()
            checks["database_stats"] = (await self.database.get_stats())["database"]
            if not checks["database"]:
                checks["status"] = "error"
        elif self.api is None:
            checks["status"] = "error"

        return checks

    async def __aenter__(self):
        await self.startup()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()


async def print_analytics(time_range: Optional[str] = None):
    """Start the application, print one analytics snapshot as JSON and exit"""
    async with DocHubApplication() as application:
        analytics = await application.api.get_analytics(time_range or application.config.default_time_range)
        print(json.dumps(analytics.to_wire(), indent=2))


USAGE = "usage: dochub-analytics [week|month|year]"


def main(argv: Optional[List[str]] = None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) > 1 or (args and args[0].lower() not in {r.value for r in TimeRange}):
        print(USAGE, file=sys.stderr)
        sys.exit(2)

    time_range = args[0].lower() if args else None
    asyncio.run(print_analytics(time_range))


if __name__ == "__main__":
    main()
