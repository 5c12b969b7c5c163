"""
Exception taxonomy for the scraping pipeline.

Recoverable errors (FetchError, BlockedError, ProviderError on the first tier)
are absorbed by the orchestrator's fallback chain; only ScrapeFailure leaves
``scrape()``.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(ScraperError):
    """Provider credentials are missing. Fatal, raised before any attempt."""


class FetchError(ScraperError):
    """Direct fetch failed (timeout, network error, unusable response)."""


class BlockedError(FetchError):
    """Direct fetch hit an anti-bot challenge page."""


class ProviderError(ScraperError):
    """The external scrape provider reported a failure."""


class ExtractionError(ScraperError):
    """The language-model call itself failed."""


class MalformedResponse(ScraperError):
    """The language model returned an invalid or unexpected structure."""


class PersistenceError(ScraperError):
    """A store read or write failed."""


class DeliveryError(ScraperError):
    """A push notification could not be delivered to one recipient."""


class ScrapeFailure(ScraperError):
    """Every tier of the fallback chain failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
