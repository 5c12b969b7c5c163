"""
Add-item flow: scrape a URL, persist it and link it to a user.
"""

from typing import Optional

import structlog

from .database import ChapterRepository, SubscriptionRepository, TrackedItemRepository
from .models import ScrapedManga, TrackedItem
from .orchestrator import ScrapeOrchestrator

logger = structlog.get_logger(__name__)


class TrackingService:
    """Starts tracking a manga on behalf of a user."""

    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        items: TrackedItemRepository,
        chapters: ChapterRepository,
        subscriptions: SubscriptionRepository,
    ):
        self.orchestrator = orchestrator
        self.items = items
        self.chapters = chapters
        self.subscriptions = subscriptions
        self.logger = logger.bind(component="tracking_service")

    async def track(self, url: str, user_id: Optional[str] = None) -> TrackedItem:
        """
        Scrape ``url`` and store it as a tracked item.

        Re-tracking an existing URL refreshes its title, cover and chapters
        without creating duplicates.

        Raises:
            ConfigError: If provider credentials are missing
            ScrapeFailure: If every fetch tier failed
            PersistenceError: If the store rejected a write
        """
        scraped: ScrapedManga = await self.orchestrator.scrape(url)

        item = await self.items.upsert_from_scrape(url, scraped)
        written = await self.chapters.upsert_many(item.id, scraped.chapters)

        if user_id:
            await self.subscriptions.link(user_id, item.id)

        self.logger.info(
            "Manga tracked",
            tracked_item_id=item.id,
            title=item.title,
            chapters=written,
            user_id=user_id,
            strategy=scraped.strategy.value if scraped.strategy else None,
        )
        return item
