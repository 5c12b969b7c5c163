"""
Diagnostic validation of a source URL.

Runs one scrape and reports, line by line, whether the result is usable
for tracking. Not part of the scheduled path.
"""

import time
from typing import Optional

import httpx
import structlog

from scheduler.models import ValidationReport
from scraper.orchestrator import ScrapeOrchestrator
from utilities.config import config

logger = structlog.get_logger(__name__)


class SourceValidator:
    """Checks that a site yields a title, a reachable cover and usable chapters."""

    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        cover_check_timeout: Optional[float] = None,
        headers: Optional[dict] = None,
    ):
        self.orchestrator = orchestrator
        self.cover_check_timeout = cover_check_timeout or config.cover_check_timeout
        self.headers = headers or config.get_headers()
        self.logger = logger.bind(component="source_validator")

    async def validate(self, url: str) -> ValidationReport:
        """
        Scrape ``url`` and build the report.

        ERROR lines make the source invalid; WARNING lines do not.
        """
        report = ValidationReport(url=url, is_valid=True)
        start_time = time.monotonic()

        try:
            data = await self.orchestrator.scrape(url)
        except Exception as e:
            report.report.append(f"CRITICAL ERROR: Scrape failed - {e}")
            report.is_valid = False
            report.duration_ms = int((time.monotonic() - start_time) * 1000)
            self.logger.warning("Source validation failed", url=url, error=str(e))
            return report

        report.duration_ms = int((time.monotonic() - start_time) * 1000)
        report.data = data
        report.report.append(f"Scrape successful in {report.duration_ms}ms")

        if not data.title:
            self._error(report, "Title is missing")
        else:
            report.report.append(f'SUCCESS: Title found: "{data.title}"')

        if not data.cover_url:
            self._error(report, "Cover URL is missing")
        elif await self._cover_accessible(data.cover_url):
            report.report.append(f"SUCCESS: Cover URL is accessible: {data.cover_url}")
        else:
            self._error(report, f"Cover URL is not accessible (404/403): {data.cover_url}")

        if not data.chapters:
            self._error(report, "No chapters found")
        else:
            report.report.append(f"SUCCESS: Found {len(data.chapters)} chapters")

            invalid_urls = [c for c in data.chapters if not c.url or not c.url.startswith("http")]
            if invalid_urls:
                self._error(report, f"{len(invalid_urls)} chapters have invalid URLs")

            unknown_numbers = [c for c in data.chapters if c.has_unknown_number]
            if unknown_numbers:
                report.report.append(f"WARNING: {len(unknown_numbers)} chapters have unknown numbers (-1)")

            undated = [c for c in data.chapters if c.release_date is None]
            if undated:
                report.report.append(f"WARNING: {len(undated)} chapters have no release date")

        for warning in data.warnings:
            report.report.append(f"WARNING: {warning}")

        self.logger.info(
            "Source validated",
            url=url,
            is_valid=report.is_valid,
            chapters=len(data.chapters),
            duration_ms=report.duration_ms,
        )
        return report

    async def _cover_accessible(self, cover_url: str) -> bool:
        try:
            async with httpx.AsyncClient(
                timeout=self.cover_check_timeout,
                headers=self.headers,
                follow_redirects=True,
            ) as client:
                response = await client.head(cover_url)
        except httpx.HTTPError as e:
            self.logger.debug("Cover HEAD request failed", cover_url=cover_url, error=str(e))
            return False
        return response.status_code < 400

    @staticmethod
    def _error(report: ValidationReport, message: str) -> None:
        report.report.append(f"ERROR: {message}")
        report.is_valid = False
