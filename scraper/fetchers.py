"""
HTTP fetchers for the two tiers of the fallback chain.

DirectFetcher is the cheap probe: one browser-like GET with a short timeout.
ProviderFetcher delegates to the external scrape provider, which can run
page actions before returning markdown.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from .errors import BlockedError, FetchError, ProviderError
from .models import SearchResult, extract_domain
from utilities.config import config

logger = structlog.get_logger(__name__)

# Interstitial text served by common anti-bot challenges
CHALLENGE_MARKERS = (
    "Just a moment...",
    "Enable JavaScript",
)


def get_scrape_options(url: str, domain_actions: Optional[Dict[str, Dict]] = None) -> Dict[str, Any]:
    """
    Resolve provider options for a URL from the static per-domain table.

    Args:
        url: Page URL
        domain_actions: Mapping of hostname substring to options, defaults to config

    Returns:
        Dict with ``actions`` and ``onlyMainContent``
    """
    table = config.domain_actions if domain_actions is None else domain_actions
    domain = extract_domain(url)

    for pattern, options in table.items():
        if pattern in domain:
            return {
                "actions": list(options.get("actions", [])),
                "onlyMainContent": bool(options.get("onlyMainContent", False)),
            }

    return {"actions": [], "onlyMainContent": True}


class DirectFetcher:
    """Unauthenticated GET mimicking a browser. Never retried."""

    def __init__(self, timeout: Optional[float] = None, headers: Optional[Dict[str, str]] = None):
        self.timeout = timeout if timeout is not None else config.direct_fetch_timeout
        self.headers = headers or config.get_headers()
        self.logger = logger.bind(component="direct_fetcher")

    async def fetch(self, url: str) -> str:
        """
        Fetch raw HTML.

        Raises:
            FetchError: On timeout, network error or a non-200 / non-text response
            BlockedError: If the body is an anti-bot challenge page
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            raise FetchError(f"Direct fetch timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Direct fetch failed: {e}") from e

        if response.status_code != 200:
            raise FetchError(f"Direct fetch returned HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if content_type and "text" not in content_type and "html" not in content_type:
            raise FetchError(f"Direct fetch returned non-text content: {content_type}")

        body = response.text
        if not body:
            raise FetchError("Direct fetch returned an empty body")

        for marker in CHALLENGE_MARKERS:
            if marker in body:
                raise BlockedError(f"Anti-bot challenge detected ({marker!r})")

        self.logger.debug("Direct fetch succeeded", url=url, content_length=len(body))
        return body


class ProviderFetcher:
    """Client for the external scrape provider."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        domain_actions: Optional[Dict[str, Dict]] = None,
    ):
        self.api_key = api_key if api_key is not None else config.firecrawl_api_key
        self.base_url = (base_url or config.firecrawl_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else config.provider_timeout
        self.domain_actions = domain_actions
        self.logger = logger.bind(component="provider_fetcher")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_scrape_request(self, url: str) -> Dict[str, Any]:
        """Build the provider request body for a URL."""
        options = get_scrape_options(url, self.domain_actions)
        body: Dict[str, Any] = {
            "url": url,
            "formats": ["markdown"],
            "onlyMainContent": options["onlyMainContent"],
        }
        if options["actions"]:
            body["actions"] = options["actions"]
        return body

    async def fetch(self, url: str) -> str:
        """
        Fetch page markdown through the provider.

        Raises:
            ProviderError: If the call fails or the provider reports non-success
        """
        body = self.build_scrape_request(url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/scrape",
                    json=body,
                    headers=self._headers(),
                )
            payload = response.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"Scrape provider request failed: {e}") from e
        except ValueError as e:
            raise ProviderError("Scrape provider returned a non-JSON body") from e

        if not isinstance(payload, dict) or not payload.get("success"):
            raise ProviderError(f"Scrape provider failed: {payload}")

        markdown = (payload.get("data") or {}).get("markdown")
        if not isinstance(markdown, str):
            raise ProviderError("Scrape provider response has no markdown")

        self.logger.debug(
            "Provider response received",
            url=url,
            raw_length=len(markdown),
            actions=len(body.get("actions", [])),
        )
        return markdown

    async def search(self, query: str, limit: int = 5) -> List[SearchResult]:
        """
        Search the web for a title through the provider.

        Returns an empty list on any failure.
        """
        body = {
            "query": f"{query} manga online capitulos",
            "limit": limit,
            "lang": "es",
            "scrapeOptions": {"formats": ["markdown"]},
        }

        try:
            self.logger.info("Search started", query=query)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/search",
                    json=body,
                    headers=self._headers(),
                )
            payload = response.json()

            if not payload.get("success"):
                self.logger.warning("Provider search failed", query=query, response=payload)
                return []

            results = [
                SearchResult(
                    title=item.get("title") or "Sin título",
                    url=item["url"],
                    description=item.get("description"),
                )
                for item in payload.get("data", [])
                if item.get("url")
            ]
            self.logger.info("Search completed", query=query, result_count=len(results))
            return results

        except Exception as e:
            self.logger.error("Search failed", query=query, error=str(e))
            return []
