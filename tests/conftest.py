"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import date, datetime
from typing import Dict, List, Optional, Set
from unittest.mock import AsyncMock, MagicMock

import pytest

from scheduler.models import NotificationConfig, SchedulerConfig
from scraper.database import MongoDBManager
from scraper.models import (
    Chapter, FetchStrategy, PushSubscriber, ScrapedChapter, ScrapedManga,
    SubscriptionSetting, TrackedItem, extract_domain
)
from utilities.config import ScraperConfig


class InMemoryStrategyStore:
    """Dict-backed stand-in for StrategyStore."""

    def __init__(self, initial: Optional[Dict[str, FetchStrategy]] = None):
        self.strategies = dict(initial or {})
        self.set_calls = []

    async def get(self, domain: str) -> Optional[FetchStrategy]:
        return self.strategies.get(domain)

    async def set(self, domain: str, strategy: FetchStrategy) -> None:
        self.set_calls.append((domain, strategy))
        self.strategies[domain] = strategy


class InMemoryTrackedItemRepository:
    """Tracked items keyed by URL."""

    def __init__(self, items: Optional[List[TrackedItem]] = None):
        self.items: Dict[str, TrackedItem] = {item.id: item for item in items or []}
        self.checked: Dict[str, datetime] = {}

    def add(self, item: TrackedItem) -> None:
        self.items[item.id] = item

    async def list_all(self) -> List[TrackedItem]:
        return list(self.items.values())

    async def get_by_url(self, url: str) -> Optional[TrackedItem]:
        return next((i for i in self.items.values() if i.url == url), None)

    async def upsert_from_scrape(self, url: str, scraped: ScrapedManga) -> TrackedItem:
        existing = await self.get_by_url(url)
        item_id = existing.id if existing else f"item-{len(self.items) + 1}"
        item = TrackedItem(
            id=item_id,
            url=url,
            title=scraped.title,
            cover_url=scraped.cover_url or None,
            domain=extract_domain(url),
        )
        self.items[item_id] = item
        return item

    async def update_metadata(self, item_id: str, title: str, cover_url: Optional[str]) -> None:
        item = self.items[item_id]
        self.items[item_id] = item.copy(update={
            "title": title or item.title,
            "cover_url": cover_url or item.cover_url,
        })

    async def mark_checked(self, item_id: str, checked_at: datetime) -> None:
        self.checked[item_id] = checked_at


class InMemoryChapterRepository:
    """Chapters unique on (tracked_item_id, number)."""

    def __init__(self):
        self.rows: Dict[tuple, Chapter] = {}

    def seed(self, tracked_item_id: str, number: float, release_date: Optional[date] = None) -> None:
        self.rows[(tracked_item_id, float(number))] = Chapter(
            tracked_item_id=tracked_item_id,
            number=number,
            url=f"https://example.com/{tracked_item_id}/{number}",
            release_date=release_date,
        )

    def count_for_item(self, tracked_item_id: str) -> int:
        return sum(1 for key in self.rows if key[0] == tracked_item_id)

    async def list_for_item(self, tracked_item_id: str) -> List[Chapter]:
        return [c for key, c in self.rows.items() if key[0] == tracked_item_id]

    async def existing_numbers(self, tracked_item_id: str) -> Set[float]:
        return {key[1] for key in self.rows if key[0] == tracked_item_id}

    async def latest_release_date(self, tracked_item_id: str) -> Optional[date]:
        dates = [
            c.release_date for key, c in self.rows.items()
            if key[0] == tracked_item_id and c.release_date is not None
        ]
        return max(dates, default=None)

    async def upsert_many(self, tracked_item_id: str, chapters) -> int:
        count = 0
        for chapter in chapters:
            self.rows[(tracked_item_id, float(chapter.number))] = Chapter.from_scraped(tracked_item_id, chapter)
            count += 1
        return count


class InMemorySubscriptionRepository:
    """Subscription settings unique on (user_id, tracked_item_id)."""

    def __init__(self, settings: Optional[List[SubscriptionSetting]] = None):
        self.settings: Dict[tuple, SubscriptionSetting] = {
            (s.user_id, s.tracked_item_id): s for s in settings or []
        }

    def add(self, setting: SubscriptionSetting) -> None:
        self.settings[(setting.user_id, setting.tracked_item_id)] = setting

    async def list_for_item(self, tracked_item_id: str) -> List[SubscriptionSetting]:
        return [s for s in self.settings.values() if s.tracked_item_id == tracked_item_id]

    async def list_notifiable(self, tracked_item_id: str) -> List[SubscriptionSetting]:
        return [s for s in await self.list_for_item(tracked_item_id) if s.notifications_enabled]

    async def link(self, user_id: str, tracked_item_id: str) -> None:
        key = (user_id, tracked_item_id)
        if key in self.settings:
            self.settings[key] = self.settings[key].copy(update={"notifications_enabled": True})
        else:
            self.settings[key] = SubscriptionSetting(user_id=user_id, tracked_item_id=tracked_item_id)


class InMemoryPushSubscriberRepository:
    """Push subscriptions keyed by user."""

    def __init__(self, tokens: Optional[Dict[str, Optional[str]]] = None):
        self.tokens = dict(tokens or {})

    async def get_many(self, user_ids: List[str]) -> Dict[str, PushSubscriber]:
        return {
            user_id: PushSubscriber(user_id=user_id, push_token=self.tokens[user_id])
            for user_id in user_ids
            if user_id in self.tokens
        }

    async def save(self, user_id: str, subscription: dict) -> None:
        self.tokens[user_id] = json.dumps(subscription)


@pytest.fixture
def scraper_settings():
    """Settings with provider credentials present."""
    return ScraperConfig(
        _env_file=None,
        firecrawl_api_key="fc-test-key",
        gemini_api_key="gemini-test-key",
        rate_limit_per_second=10,
    )


@pytest.fixture
def strategy_store():
    return InMemoryStrategyStore()


@pytest.fixture
def today():
    return date(2024, 6, 10)


@pytest.fixture
def sample_chapters():
    """Five chapters, newest first."""
    return [
        ScrapedChapter(
            number=n,
            title=f"Chapter {n}",
            url=f"https://siteA.example/x/chapter-{n}",
            release_date=date(2024, 6, n),
        )
        for n in range(5, 0, -1)
    ]


@pytest.fixture
def sample_scraped_manga(sample_chapters):
    return ScrapedManga(
        title="Solo Leveling",
        cover_url="https://siteA.example/covers/solo.jpg",
        chapters=sample_chapters,
        strategy=FetchStrategy.FIRECRAWL,
    )


@pytest.fixture
def tracked_item():
    return TrackedItem(
        id="item-1",
        url="https://siteA.example/x",
        title="Solo Leveling",
        cover_url="https://siteA.example/covers/solo.jpg",
    )


@pytest.fixture
def scheduler_config():
    """Scheduler configuration with production defaults."""
    return SchedulerConfig(
        check_interval_hours=6,
        timezone="UTC",
        item_delay_seconds=5,
        cadence_days=7,
        cadence_buffer_hours=6,
        manual_trigger_cooldown_seconds=300,
    )


@pytest.fixture
def notification_config():
    return NotificationConfig(
        enabled=True,
        vapid_private_key="test-private-key",
        vapid_subject="mailto:test@example.com",
        icon="/icon-192x192.png",
    )


@pytest.fixture
def mock_mongodb_manager():
    """MongoDB manager whose collections are MagicMocks with async methods."""
    manager = MagicMock(spec=MongoDBManager)
    manager.database = MagicMock()
    for name in ("tracked_items", "chapters", "subscription_settings", "domain_strategies", "push_subscribers"):
        collection = MagicMock()
        collection.find_one = AsyncMock(return_value=None)
        collection.find_one_and_update = AsyncMock()
        collection.update_one = AsyncMock()
        collection.bulk_write = AsyncMock()
        collection.distinct = AsyncMock(return_value=[])
        setattr(manager.database, name, collection)
    manager.database.__getitem__.side_effect = lambda name: getattr(manager.database, name)
    return manager


@pytest.fixture
def item_repo():
    return InMemoryTrackedItemRepository()


@pytest.fixture
def chapter_repo():
    return InMemoryChapterRepository()


@pytest.fixture
def subscription_repo():
    return InMemorySubscriptionRepository()


@pytest.fixture
def push_repo():
    return InMemoryPushSubscriberRepository()
