"""
Scheduler service for periodic manga update checks.

This module provides:
- Interval scheduling with APScheduler
- Mutual exclusion between scheduled, cron and manual runs
- A cooldown gate for manual triggers
- Scheduler status for the API
"""

import asyncio
from typing import Dict, Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from scheduler.models import SchedulerConfig, UpdateResult
from scheduler.rate_limiter import RateLimiter
from scheduler.update_checker import UpdateScheduler

logger = structlog.get_logger(__name__)

UPDATE_JOB_ID = "manga_update_check"


class RunInProgressError(Exception):
    """An update run is already executing."""


class TriggerRateLimitedError(Exception):
    """A manual trigger arrived inside the cooldown window."""

    def __init__(self, retry_after: int):
        super().__init__(f"Manual update check is cooling down, retry in {retry_after}s")
        self.retry_after = retry_after


class SchedulerService:
    """Owns the APScheduler instance and every entry into ``run_once``."""

    def __init__(
        self,
        update_scheduler: UpdateScheduler,
        config: SchedulerConfig,
        scheduler: Optional[AsyncIOScheduler] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize scheduler service.

        Args:
            update_scheduler: The update pass to run
            config: Scheduler configuration
            scheduler: APScheduler instance, created when omitted
            rate_limiter: Cooldown gate for manual triggers
        """
        self.update_scheduler = update_scheduler
        self.config = config
        self.scheduler = scheduler or AsyncIOScheduler(timezone=config.timezone)
        self.rate_limiter = rate_limiter or RateLimiter(config.manual_trigger_cooldown_seconds)
        self._run_lock = asyncio.Lock()
        self.last_result: Optional[UpdateResult] = None
        self.logger = logger.bind(component="scheduler_service")

        self._setup_scheduler_listeners()

    def _setup_scheduler_listeners(self) -> None:
        """Setup scheduler event listeners."""
        def job_executed_listener(event):
            self.logger.info(
                "Job executed successfully",
                job_id=event.job_id,
                duration_ms=event.retval.get('duration_ms', 0) if event.retval else 0
            )

        def job_error_listener(event):
            self.logger.error(
                "Job execution failed",
                job_id=event.job_id,
                error=str(event.exception)
            )

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    def start(self) -> None:
        """Register the update job and start the scheduler."""
        self.scheduler.add_job(
            func=self._scheduled_update_job,
            trigger=CronTrigger(
                hour=f"*/{self.config.check_interval_hours}",
                minute=0,
                timezone=self.config.timezone
            ),
            id=UPDATE_JOB_ID,
            name='Manga Update Check',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.scheduler.start()

        self.logger.info(
            "Scheduler service started",
            timezone=self.config.timezone,
            interval_hours=self.config.check_interval_hours
        )

    def stop(self) -> None:
        """Stop the scheduler service."""
        try:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.logger.info("Scheduler service stopped")
        except Exception as e:
            self.logger.error("Error stopping scheduler service", error=str(e))

    @property
    def is_running_update(self) -> bool:
        return self._run_lock.locked()

    async def run_once(self, trigger: str = "scheduled") -> UpdateResult:
        """
        Run one update pass unless another is executing.

        Raises:
            RunInProgressError: If a run is already executing
        """
        if self._run_lock.locked():
            raise RunInProgressError("An update check is already running")

        async with self._run_lock:
            result = await self.update_scheduler.run_once(trigger=trigger)
            self.last_result = result
            return result

    async def trigger_manual_run(self) -> UpdateResult:
        """
        Run an update pass on user request, at most once per cooldown window.

        Raises:
            RunInProgressError: If a run is already executing
            TriggerRateLimitedError: If the cooldown has not elapsed
        """
        if self._run_lock.locked():
            raise RunInProgressError("An update check is already running")

        if not self.rate_limiter.try_acquire():
            raise TriggerRateLimitedError(self.rate_limiter.retry_after())

        self.logger.info("Manual update check triggered")
        return await self.run_once(trigger="manual")

    async def _scheduled_update_job(self) -> Dict:
        """Scheduled update job."""
        try:
            result = await self.run_once(trigger="scheduled")
        except RunInProgressError:
            self.logger.warning("Skipping scheduled update check, previous run still in progress")
            return {'skipped': True, 'duration_ms': 0}
        return result.dict()

    def get_status(self) -> Dict:
        """Get current scheduler status."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run_time = getattr(job, 'next_run_time', None)
            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run_time': next_run_time.isoformat() if next_run_time else None,
                'trigger': str(job.trigger)
            })

        return {
            'running': self.scheduler.running,
            'update_in_progress': self.is_running_update,
            'timezone': self.config.timezone,
            'jobs': jobs,
            'job_count': len(jobs),
            'last_run': self.last_result.dict() if self.last_result else None,
        }
