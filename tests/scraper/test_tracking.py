"""
Unit tests for the add-item flow.
"""

from unittest.mock import AsyncMock

import pytest

from scraper.errors import ScrapeFailure
from scraper.orchestrator import ScrapeOrchestrator
from scraper.tracking import TrackingService

URL = "https://siteA.example/x"


class TestTrackingService:
    """Test cases for TrackingService."""

    @pytest.fixture
    def orchestrator(self, sample_scraped_manga):
        orchestrator = AsyncMock(spec=ScrapeOrchestrator)
        orchestrator.scrape.return_value = sample_scraped_manga
        return orchestrator

    @pytest.fixture
    def service(self, orchestrator, item_repo, chapter_repo, subscription_repo):
        return TrackingService(orchestrator, item_repo, chapter_repo, subscription_repo)

    @pytest.mark.asyncio
    async def test_track_persists_item_and_chapters(self, service, chapter_repo, subscription_repo):
        item = await service.track(URL, user_id="user-1")

        assert item.title == "Solo Leveling"
        assert item.domain == "sitea.example"
        assert chapter_repo.count_for_item(item.id) == 5
        assert ("user-1", item.id) in subscription_repo.settings

    @pytest.mark.asyncio
    async def test_track_without_user_does_not_link(self, service, subscription_repo):
        await service.track(URL)
        assert subscription_repo.settings == {}

    @pytest.mark.asyncio
    async def test_retracking_does_not_duplicate(self, service, item_repo, chapter_repo):
        """Test tracking the same URL twice keeps one item and one row per chapter."""
        first = await service.track(URL, user_id="user-1")
        second = await service.track(URL, user_id="user-2")

        assert first.id == second.id
        assert len(item_repo.items) == 1
        assert chapter_repo.count_for_item(first.id) == 5

    @pytest.mark.asyncio
    async def test_scrape_failure_persists_nothing(self, service, orchestrator, item_repo):
        orchestrator.scrape.side_effect = ScrapeFailure("Failed to scrape manga")

        with pytest.raises(ScrapeFailure):
            await service.track(URL, user_id="user-1")

        assert item_repo.items == {}
