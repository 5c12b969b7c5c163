"""
Composition root wiring the scraper, scheduler and persistence together.
"""

from typing import Optional

import structlog

from scheduler.change_detector import ChangeDetector
from scheduler.models import NotificationConfig, SchedulerConfig
from scheduler.notifications import NotificationDispatcher
from scheduler.scheduler_service import SchedulerService
from scheduler.update_checker import UpdateScheduler
from scheduler.validator import SourceValidator
from scraper.database import (
    ChapterRepository, MongoDBManager, PushSubscriberRepository,
    SubscriptionRepository, TrackedItemRepository
)
from scraper.extraction import ExtractionParser
from scraper.fetchers import DirectFetcher, ProviderFetcher
from scraper.orchestrator import ScrapeOrchestrator
from scraper.strategy_store import StrategyStore
from scraper.tracking import TrackingService
from utilities.config import ScraperConfig, config as default_config

logger = structlog.get_logger(__name__)


def scheduler_config_from(settings: ScraperConfig) -> SchedulerConfig:
    return SchedulerConfig(
        check_interval_hours=settings.check_interval_hours,
        timezone=settings.timezone,
        item_delay_seconds=settings.item_delay_seconds,
        cadence_days=settings.cadence_days,
        cadence_buffer_hours=settings.cadence_buffer_hours,
        manual_trigger_cooldown_seconds=settings.manual_trigger_cooldown_seconds,
    )


def notification_config_from(settings: ScraperConfig) -> NotificationConfig:
    return NotificationConfig(
        enabled=settings.push_enabled(),
        vapid_private_key=settings.vapid_private_key,
        vapid_subject=settings.vapid_subject,
        icon=settings.notification_icon,
    )


class ServiceContainer:
    """Builds every service once and owns the database connection."""

    def __init__(self, settings: Optional[ScraperConfig] = None, db_manager: Optional[MongoDBManager] = None):
        self.settings = settings or default_config
        self.db_manager = db_manager or MongoDBManager(
            connection_url=self.settings.mongodb_url,
            database_name=self.settings.mongodb_database,
        )

        # Persistence
        self.items = TrackedItemRepository(self.db_manager)
        self.chapters = ChapterRepository(self.db_manager)
        self.subscriptions = SubscriptionRepository(self.db_manager)
        self.push_subscribers = PushSubscriberRepository(self.db_manager)
        self.strategy_store = StrategyStore(self.db_manager)

        # Scraping
        self.provider_fetcher = ProviderFetcher(
            api_key=self.settings.firecrawl_api_key,
            base_url=self.settings.firecrawl_base_url,
            timeout=self.settings.provider_timeout,
            domain_actions=self.settings.domain_actions,
        )
        self.orchestrator = ScrapeOrchestrator(
            strategy_store=self.strategy_store,
            direct_fetcher=DirectFetcher(
                timeout=self.settings.direct_fetch_timeout,
                headers=self.settings.get_headers(),
            ),
            provider_fetcher=self.provider_fetcher,
            parser=ExtractionParser(
                api_key=self.settings.gemini_api_key,
                model_name=self.settings.gemini_model,
                html_char_limit=self.settings.html_char_limit,
                markdown_char_limit=self.settings.markdown_char_limit,
                timeout=self.settings.extraction_timeout,
            ),
            settings=self.settings,
        )
        self.tracking = TrackingService(self.orchestrator, self.items, self.chapters, self.subscriptions)
        self.validator = SourceValidator(
            self.orchestrator,
            cover_check_timeout=self.settings.cover_check_timeout,
            headers=self.settings.get_headers(),
        )

        # Scheduling
        self.scheduler_config = scheduler_config_from(self.settings)
        self.dispatcher = NotificationDispatcher(
            self.subscriptions,
            self.push_subscribers,
            notification_config_from(self.settings),
        )
        self.update_scheduler = UpdateScheduler(
            orchestrator=self.orchestrator,
            items=self.items,
            chapters=self.chapters,
            subscriptions=self.subscriptions,
            dispatcher=self.dispatcher,
            config=self.scheduler_config,
            detector=ChangeDetector(),
        )
        self.scheduler_service = SchedulerService(self.update_scheduler, self.scheduler_config)

    async def connect(self) -> None:
        await self.db_manager.connect()
        logger.info("Service container ready", database=self.settings.mongodb_database)

    async def close(self) -> None:
        self.scheduler_service.stop()
        await self.db_manager.disconnect()
