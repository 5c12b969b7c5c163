"""
Unit tests for the direct and provider fetchers.
"""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from scraper.errors import BlockedError, FetchError, ProviderError
from scraper.fetchers import DirectFetcher, ProviderFetcher, get_scrape_options
from utilities.config import DEFAULT_DOMAIN_ACTIONS


def _response(status_code=200, text="", content_type="text/html; charset=utf-8", json_data=None):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.headers = {"content-type": content_type}
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("not json")
    return response


class TestGetScrapeOptions:
    """Test cases for per-domain provider options."""

    def test_known_domain_gets_actions(self):
        options = get_scrape_options("https://manhwaweb.com/manga/solo", DEFAULT_DOMAIN_ACTIONS)

        assert options["onlyMainContent"] is False
        assert options["actions"] == [
            {"type": "click", "selector": "button.bg-blue-700"},
            {"type": "wait", "milliseconds": 3000},
        ]

    def test_subdomain_matches(self):
        options = get_scrape_options("https://www.manhwaweb.com/manga/solo", DEFAULT_DOMAIN_ACTIONS)
        assert options["actions"]

    def test_unknown_domain_defaults(self):
        options = get_scrape_options("https://other.example/manga", DEFAULT_DOMAIN_ACTIONS)
        assert options == {"actions": [], "onlyMainContent": True}


class TestDirectFetcher:
    """Test cases for DirectFetcher."""

    @pytest.fixture
    def fetcher(self):
        return DirectFetcher(timeout=5.0, headers={"User-Agent": "test"})

    @pytest.mark.asyncio
    async def test_fetch_success(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.get.return_value = _response(text="<html><h1>Manga</h1></html>")
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            html = await fetcher.fetch("https://site.example/x")

        assert html == "<html><h1>Manga</h1></html>"
        assert mock_client.call_args.kwargs["timeout"] == 5.0

    @pytest.mark.asyncio
    async def test_timeout_raises_fetch_error(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.get.side_effect = httpx.ReadTimeout("timed out")
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            with pytest.raises(FetchError, match="timed out"):
                await fetcher.fetch("https://site.example/x")

    @pytest.mark.asyncio
    async def test_non_200_raises_fetch_error(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.get.return_value = _response(status_code=403, text="Forbidden")
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            with pytest.raises(FetchError, match="HTTP 403"):
                await fetcher.fetch("https://site.example/x")

    @pytest.mark.asyncio
    async def test_non_text_content_raises_fetch_error(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.get.return_value = _response(text="%PDF", content_type="application/pdf")
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            with pytest.raises(FetchError, match="non-text"):
                await fetcher.fetch("https://site.example/x")

    @pytest.mark.asyncio
    async def test_challenge_page_raises_blocked(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.get.return_value = _response(
                text="<html><title>Just a moment...</title></html>"
            )
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            with pytest.raises(BlockedError):
                await fetcher.fetch("https://site.example/x")

    @pytest.mark.asyncio
    async def test_blocked_is_a_fetch_error(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.get.return_value = _response(
                text="<noscript>Enable JavaScript and cookies to continue</noscript>"
            )
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            with pytest.raises(FetchError):
                await fetcher.fetch("https://site.example/x")


class TestProviderFetcher:
    """Test cases for ProviderFetcher."""

    @pytest.fixture
    def fetcher(self):
        return ProviderFetcher(
            api_key="fc-test",
            base_url="https://provider.example/v1/",
            timeout=90.0,
            domain_actions=DEFAULT_DOMAIN_ACTIONS,
        )

    def test_build_scrape_request_default(self, fetcher):
        body = fetcher.build_scrape_request("https://other.example/manga")

        assert body == {
            "url": "https://other.example/manga",
            "formats": ["markdown"],
            "onlyMainContent": True,
        }

    def test_build_scrape_request_with_actions(self, fetcher):
        body = fetcher.build_scrape_request("https://manhwaweb.com/manga/x")

        assert body["onlyMainContent"] is False
        assert body["actions"][0] == {"type": "click", "selector": "button.bg-blue-700"}

    @pytest.mark.asyncio
    async def test_fetch_success(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.post.return_value = _response(
                json_data={"success": True, "data": {"markdown": "# Solo Leveling"}}
            )
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            markdown = await fetcher.fetch("https://other.example/manga")

        assert markdown == "# Solo Leveling"
        call = mock_client_instance.post.call_args
        assert call.args[0] == "https://provider.example/v1/scrape"
        assert call.kwargs["headers"]["Authorization"] == "Bearer fc-test"

    @pytest.mark.asyncio
    async def test_unsuccessful_response_raises(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.post.return_value = _response(
                json_data={"success": False, "error": "Payment required"}
            )
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            with pytest.raises(ProviderError):
                await fetcher.fetch("https://other.example/manga")

    @pytest.mark.asyncio
    async def test_missing_markdown_raises(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.post.return_value = _response(json_data={"success": True, "data": {}})
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            with pytest.raises(ProviderError):
                await fetcher.fetch("https://other.example/manga")

    @pytest.mark.asyncio
    async def test_network_error_raises(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.post.side_effect = httpx.ConnectError("connection refused")
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            with pytest.raises(ProviderError):
                await fetcher.fetch("https://other.example/manga")

    @pytest.mark.asyncio
    async def test_search_results(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.post.return_value = _response(json_data={
                "success": True,
                "data": [
                    {"title": "Solo Leveling - Capítulos", "url": "https://a.example/solo", "description": "Leer"},
                    {"url": "https://b.example/solo"},
                    {"title": "No URL"},
                ],
            })
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            results = await fetcher.search("solo leveling")

        assert [r.url for r in results] == ["https://a.example/solo", "https://b.example/solo"]
        assert results[1].title == "Sin título"
        body = mock_client_instance.post.call_args.kwargs["json"]
        assert body["query"] == "solo leveling manga online capitulos"
        assert body["limit"] == 5
        assert body["lang"] == "es"

    @pytest.mark.asyncio
    async def test_search_failure_returns_empty(self, fetcher):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client_instance = AsyncMock()
            mock_client_instance.post.side_effect = httpx.ConnectError("connection refused")
            mock_client.return_value.__aenter__.return_value = mock_client_instance

            assert await fetcher.search("solo leveling") == []
