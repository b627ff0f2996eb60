"""APScheduler setup for recurring maintenance jobs"""

from typing import Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dochub.utils.logger import get_logger

logger = get_logger(__name__)

STORAGE_WATCH_JOB = "storage_watch"
RECONCILE_JOB = "reconcile"


class SchedulerService:
    """Scheduler service using APScheduler"""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    def initialize(self):
        """Initialize scheduler"""
        try:
            # Jobs are rebuilt from settings on every start, nothing to persist
            jobstores = {"default": MemoryJobStore()}
            executors = {"default": AsyncIOExecutor()}
            job_defaults = {
                "coalesce": True,  # A slow poll must not queue up missed runs
                "max_instances": 1,
                "misfire_grace_time": 30,
            }

            self.scheduler = AsyncIOScheduler(
                jobstores=jobstores,
                executors=executors,
                job_defaults=job_defaults,
                timezone="UTC",
            )

            logger.debug("Scheduler initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize scheduler: {e}")
            raise

    def start(self):
        """Start scheduler; must be called with the event loop running"""
        if not self.scheduler:
            raise RuntimeError("Scheduler not initialized. Call initialize() first.")

        try:
            self.scheduler.start()
            self.running = True
            logger.debug("Scheduler started")
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop scheduler"""
        if self.scheduler and self.running:
            try:
                self.scheduler.shutdown(wait=False)
                self.running = False
                logger.debug("Scheduler stopped")
            except Exception as e:
                logger.error(f"Failed to stop scheduler: {e}")

    def add_job(self, func, trigger, job_id: Optional[str] = None, **kwargs):
        """Add a job to the scheduler"""
        if not self.scheduler:
            raise RuntimeError("Scheduler not initialized. Call initialize() first.")

        try:
            job = self.scheduler.add_job(
                func, trigger=trigger, id=job_id, replace_existing=True, **kwargs
            )
            logger.debug(f"Job added: {job_id or func.__name__}")
            return job
        except Exception as e:
            logger.error(f"Failed to add job: {e}")
            raise

    def add_interval_job(
        self,
        func,
        seconds: float = 0,
        minutes: int = 0,
        job_id: Optional[str] = None,
        **kwargs,
    ):
        """Add an interval job"""
        trigger = IntervalTrigger(seconds=seconds, minutes=minutes)
        return self.add_job(func, trigger, job_id=job_id, **kwargs)

    def remove_job(self, job_id: str):
        """Remove a job from the scheduler"""
        if not self.scheduler:
            raise RuntimeError("Scheduler not initialized. Call initialize() first.")

        try:
            self.scheduler.remove_job(job_id)
            logger.debug(f"Job removed: {job_id}")
        except Exception as e:
            logger.error(f"Failed to remove job: {job_id}: {e}")

    def get_jobs(self):
        """Get all scheduled jobs"""
        if not self.scheduler:
            return []
        return self.scheduler.get_jobs()
