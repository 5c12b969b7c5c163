"""
Update checks for every tracked item.

This module provides:
- Active-reader and release-cadence skips
- Re-scraping, change detection and idempotent chapter upserts
- Notification of subscribers when new chapters appear
- A run summary that is returned even when items fail
"""

import asyncio
import time
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Optional

import structlog

from scheduler.change_detector import ChangeDetector
from scheduler.models import SchedulerConfig, UpdatedItem, UpdateResult
from scheduler.notifications import NotificationDispatcher
from scraper.database import ChapterRepository, SubscriptionRepository, TrackedItemRepository
from scraper.models import TrackedItem
from scraper.orchestrator import ScrapeOrchestrator
from utilities.logger import SchedulerLogger

logger = structlog.get_logger(__name__)


class UpdateScheduler:
    """Sequential update pass over all tracked items."""

    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        items: TrackedItemRepository,
        chapters: ChapterRepository,
        subscriptions: SubscriptionRepository,
        dispatcher: NotificationDispatcher,
        config: Optional[SchedulerConfig] = None,
        detector: Optional[ChangeDetector] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the update scheduler.

        Args:
            orchestrator: Scrape orchestrator
            items: Tracked item repository
            chapters: Chapter repository
            subscriptions: Subscription settings repository
            dispatcher: Push notification dispatcher
            config: Scheduler configuration
            detector: Chapter change detector
            clock: Returns the current naive UTC time
            sleep: Awaitable used for the inter-item delay
        """
        self.orchestrator = orchestrator
        self.items = items
        self.chapters = chapters
        self.subscriptions = subscriptions
        self.dispatcher = dispatcher
        self.config = config or SchedulerConfig()
        self.detector = detector or ChangeDetector()
        self.clock = clock
        self.sleep = sleep
        self.scheduler_logger = SchedulerLogger("update_checker")
        self.logger = logger.bind(component="update_checker")

    async def run_once(self, trigger: str = "scheduled") -> UpdateResult:
        """
        Check every tracked item once.

        Per-item failures are counted, never raised. Only a failure to list
        the items themselves ends the run early, and the summary is still
        returned.

        Args:
            trigger: Label recorded on the summary (scheduled, cron, manual)

        Returns:
            UpdateResult summary
        """
        start_time = time.monotonic()
        result = UpdateResult(started_at=self.clock(), trigger=trigger)

        try:
            items = await self.items.list_all()
        except Exception as e:
            self.logger.error("Failed to load tracked items", error=str(e))
            result.duration_ms = self._elapsed_ms(start_time)
            return result

        result.total = len(items)
        self.scheduler_logger.log_run_start(trigger, result.total)

        for item in items:
            try:
                reason = await self.skip_reason(item, self.clock())
                if reason:
                    result.skipped += 1
                    self.scheduler_logger.log_skip(item.title, reason)
                    continue

                try:
                    new_count = await self._check_item(item)
                finally:
                    await self._mark_checked(item)
                    await self.sleep(self.config.item_delay_seconds)

                result.checked += 1
                if new_count:
                    result.updated += 1
                    result.updated_items.append(
                        UpdatedItem(id=item.id, title=item.title, new_chapters_count=new_count)
                    )

            except Exception as e:
                result.failed += 1
                self.scheduler_logger.log_item_failed(item.title or item.url, str(e))

        result.duration_ms = self._elapsed_ms(start_time)
        self.scheduler_logger.log_run_complete(
            trigger,
            {
                "total": result.total,
                "checked": result.checked,
                "updated": result.updated,
                "skipped": result.skipped,
                "failed": result.failed,
                "duration_ms": result.duration_ms,
            },
        )
        return result

    async def skip_reason(self, item: TrackedItem, now: datetime) -> Optional[str]:
        """Return why an item should not be checked now, or None to check it."""
        settings = await self.subscriptions.list_for_item(item.id)
        if settings and not any(s.is_active_reader for s in settings):
            return "no active readers"

        latest = await self.chapters.latest_release_date(item.id)
        if latest is None:
            return None

        next_check = self.next_check_at(latest)
        if now < next_check:
            return f"next check at {next_check.isoformat()}"
        return None

    def next_check_at(self, latest_release: date) -> datetime:
        """Expected next release minus the buffer, from midnight of the latest release day."""
        return (
            datetime.combine(latest_release, datetime.min.time())
            + timedelta(days=self.config.cadence_days)
            - timedelta(hours=self.config.cadence_buffer_hours)
        )

    async def _check_item(self, item: TrackedItem) -> int:
        """Scrape one item and persist what is new. Returns the new-chapter count."""
        scraped = await self.orchestrator.scrape(item.url, today=self.clock().date())

        if scraped.title or scraped.cover_url:
            await self.items.update_metadata(item.id, scraped.title, scraped.cover_url)
            item = item.copy(update={
                "title": scraped.title or item.title,
                "cover_url": scraped.cover_url or item.cover_url,
            })

        if not scraped.chapters:
            return 0

        existing = await self.chapters.existing_numbers(item.id)
        new_chapters = self.detector.diff(existing, scraped.chapters)
        if not new_chapters:
            self.logger.debug("No new chapters", title=item.title)
            return 0

        await self.chapters.upsert_many(item.id, new_chapters)
        self.scheduler_logger.log_new_chapters(item.title, len(new_chapters))

        try:
            await self.dispatcher.notify(item, new_chapters)
        except Exception as e:
            self.logger.error("Failed to dispatch notifications", title=item.title, error=str(e))

        return len(new_chapters)

    async def _mark_checked(self, item: TrackedItem) -> None:
        try:
            await self.items.mark_checked(item.id, self.clock())
        except Exception as e:
            self.logger.error("Failed to update last_checked_at", title=item.title, error=str(e))

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)
