"""
Scrape orchestration: a two-tier fallback chain with per-domain strategy caching.

Direct fetch is free and fast, so it is probed first unless the domain has
already proven it needs the provider. A structurally successful direct fetch
that yields zero chapters is treated as a JS-rendered page and falls back.
"""

import time
from datetime import date
from typing import Optional

import structlog
from asyncio_throttle import Throttler

from .errors import ScrapeFailure, ScraperError
from .extraction import ExtractionParser
from .fetchers import DirectFetcher, ProviderFetcher
from .models import ContentKind, FetchStrategy, ScrapedManga, extract_domain
from .sanitizer import clean_markdown
from .strategy_store import StrategyStore
from utilities.config import config
from utilities.logger import ScrapeLogger

logger = structlog.get_logger(__name__)


class ScrapeOrchestrator:
    """
    Composes fetchers, sanitiser and parser into a single ``scrape(url)``.
    """

    def __init__(
        self,
        strategy_store: StrategyStore,
        direct_fetcher: Optional[DirectFetcher] = None,
        provider_fetcher: Optional[ProviderFetcher] = None,
        parser: Optional[ExtractionParser] = None,
        settings=None,
        throttler: Optional[Throttler] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            strategy_store: Domain strategy cache
            direct_fetcher: Cheap first-tier fetcher
            provider_fetcher: Scrape-provider fallback fetcher
            parser: Language-model extraction parser
            settings: ScraperConfig instance, defaults to the global config
            throttler: Outbound request throttler shared by both tiers
        """
        self.settings = settings or config
        self.strategy_store = strategy_store
        self.direct_fetcher = direct_fetcher or DirectFetcher()
        self.provider_fetcher = provider_fetcher or ProviderFetcher()
        self.parser = parser or ExtractionParser()
        self.throttler = throttler or Throttler(rate_limit=self.settings.rate_limit_per_second)
        self.scrape_logger = ScrapeLogger("scrape_orchestrator")
        self.logger = logger.bind(component="scrape_orchestrator")

    async def scrape(self, url: str, today: Optional[date] = None) -> ScrapedManga:
        """
        Scrape a page into title, cover and chapters.

        Args:
            url: Page URL
            today: Anchor date for relative release dates

        Returns:
            ScrapedManga with ``strategy`` set to the tier that produced it

        Raises:
            ConfigError: If provider credentials are missing
            ScrapeFailure: If the fallback tier also failed
        """
        self.settings.require_provider_credentials()

        domain = extract_domain(url)
        known_strategy = await self.strategy_store.get(domain)
        start_time = time.monotonic()

        self.scrape_logger.log_scrape_start(url, known_strategy.value if known_strategy else None)

        if known_strategy != FetchStrategy.FIRECRAWL:
            try:
                result = await self._scrape_direct(url, today)
                await self.strategy_store.set(domain, FetchStrategy.DIRECT_FETCH)
                self.scrape_logger.log_scrape_success(
                    url, FetchStrategy.DIRECT_FETCH.value, len(result.chapters), self._elapsed_ms(start_time)
                )
                return result
            except Exception as e:
                self.scrape_logger.log_fallback(
                    url, FetchStrategy.DIRECT_FETCH.value, FetchStrategy.FIRECRAWL.value, str(e)
                )
        else:
            self.logger.debug("Skipping direct fetch, domain requires provider", domain=domain)

        try:
            result = await self._scrape_provider(url, today)
        except Exception as e:
            self.scrape_logger.log_scrape_failure(
                url, FetchStrategy.FIRECRAWL.value, str(e), self._elapsed_ms(start_time)
            )
            raise ScrapeFailure(f"Scraping failed: {e}", cause=e) from e

        if result.chapters:
            await self.strategy_store.set(domain, FetchStrategy.FIRECRAWL)

        self.scrape_logger.log_scrape_success(
            url, FetchStrategy.FIRECRAWL.value, len(result.chapters), self._elapsed_ms(start_time)
        )
        return result

    async def _scrape_direct(self, url: str, today: Optional[date]) -> ScrapedManga:
        async with self.throttler:
            html = await self.direct_fetcher.fetch(url)

        self.logger.debug("Direct fetch success, extracting", url=url, content_length=len(html))
        result = await self.parser.extract(html, url, ContentKind.HTML, today=today)

        if not result.chapters:
            raise ScraperError("Direct fetch returned 0 chapters (likely JS-rendered content)")

        result.strategy = FetchStrategy.DIRECT_FETCH
        return result

    async def _scrape_provider(self, url: str, today: Optional[date]) -> ScrapedManga:
        async with self.throttler:
            markdown = await self.provider_fetcher.fetch(url)

        cleaned = clean_markdown(markdown)
        self.logger.debug(
            "Markdown optimized",
            url=url,
            original_length=len(markdown),
            optimized_length=len(cleaned),
        )

        result = await self.parser.extract(cleaned, url, ContentKind.MARKDOWN, today=today)
        result.strategy = FetchStrategy.FIRECRAWL
        return result

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)
