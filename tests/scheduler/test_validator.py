"""
Unit tests for source validation reports.
"""

from datetime import date
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from scheduler.validator import SourceValidator
from scraper.errors import ScrapeFailure
from scraper.models import ScrapedChapter, ScrapedManga
from scraper.orchestrator import ScrapeOrchestrator

URL = "https://siteA.example/x"


def _manga(**overrides):
    data = {
        "title": "Solo Leveling",
        "cover_url": "https://siteA.example/cover.jpg",
        "chapters": [
            ScrapedChapter(number=5, url="https://siteA.example/ch/5", release_date=date(2024, 6, 5)),
            ScrapedChapter(number=4, url="https://siteA.example/ch/4", release_date=date(2024, 6, 4)),
        ],
    }
    data.update(overrides)
    return ScrapedManga(**data)


class TestSourceValidator:
    """Test cases for SourceValidator."""

    @pytest.fixture
    def orchestrator(self):
        orchestrator = AsyncMock(spec=ScrapeOrchestrator)
        orchestrator.scrape.return_value = _manga()
        return orchestrator

    @pytest.fixture
    def validator(self, orchestrator):
        return SourceValidator(orchestrator, cover_check_timeout=5.0, headers={"User-Agent": "test"})

    @pytest.fixture
    def cover_status(self):
        """Patch the cover HEAD request; yields the mock response to tweak its status."""
        with patch('httpx.AsyncClient') as mock_client:
            response = Mock(status_code=200)
            mock_client_instance = AsyncMock()
            mock_client_instance.head.return_value = response
            mock_client.return_value.__aenter__.return_value = mock_client_instance
            yield response

    @pytest.mark.asyncio
    async def test_valid_source(self, validator, cover_status):
        report = await validator.validate(URL)

        assert report.is_valid is True
        assert report.report[0].startswith("Scrape successful in")
        assert 'SUCCESS: Title found: "Solo Leveling"' in report.report
        assert "SUCCESS: Cover URL is accessible: https://siteA.example/cover.jpg" in report.report
        assert "SUCCESS: Found 2 chapters" in report.report
        assert report.data.title == "Solo Leveling"

    @pytest.mark.asyncio
    async def test_relative_chapter_url_is_an_error(self, validator, orchestrator, cover_status):
        orchestrator.scrape.return_value = _manga(chapters=[
            ScrapedChapter(number=5, url="/ch/5", release_date=date(2024, 6, 5)),
        ])

        report = await validator.validate(URL)

        assert report.is_valid is False
        assert "ERROR: 1 chapters have invalid URLs" in report.report

    @pytest.mark.asyncio
    async def test_missing_dates_are_only_a_warning(self, validator, orchestrator, cover_status):
        orchestrator.scrape.return_value = _manga(chapters=[
            ScrapedChapter(number=5, url="https://siteA.example/ch/5"),
        ])

        report = await validator.validate(URL)

        assert report.is_valid is True
        assert "WARNING: 1 chapters have no release date" in report.report

    @pytest.mark.asyncio
    async def test_unknown_numbers_are_a_warning(self, validator, orchestrator, cover_status):
        orchestrator.scrape.return_value = _manga(chapters=[
            ScrapedChapter(url="https://siteA.example/ch/extra", release_date=date(2024, 6, 1)),
        ])

        report = await validator.validate(URL)

        assert report.is_valid is True
        assert "WARNING: 1 chapters have unknown numbers (-1)" in report.report

    @pytest.mark.asyncio
    async def test_inaccessible_cover(self, validator, cover_status):
        cover_status.status_code = 404

        report = await validator.validate(URL)

        assert report.is_valid is False
        assert "ERROR: Cover URL is not accessible (404/403): https://siteA.example/cover.jpg" in report.report

    @pytest.mark.asyncio
    async def test_cover_request_error(self, validator):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.head.side_effect = httpx.ConnectError("refused")
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            report = await validator.validate(URL)

        assert report.is_valid is False

    @pytest.mark.asyncio
    async def test_missing_title_cover_and_chapters(self, validator, orchestrator):
        orchestrator.scrape.return_value = ScrapedManga(warnings=["model returned no chapters list"])

        report = await validator.validate(URL)

        assert report.is_valid is False
        assert "ERROR: Title is missing" in report.report
        assert "ERROR: Cover URL is missing" in report.report
        assert "ERROR: No chapters found" in report.report
        assert "WARNING: model returned no chapters list" in report.report

    @pytest.mark.asyncio
    async def test_scrape_failure_is_critical(self, validator, orchestrator):
        orchestrator.scrape.side_effect = ScrapeFailure("Failed to scrape manga")

        report = await validator.validate(URL)

        assert report.is_valid is False
        assert report.report == ["CRITICAL ERROR: Scrape failed - Failed to scrape manga"]
        assert report.data is None
