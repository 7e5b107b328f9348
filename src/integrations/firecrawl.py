"""
Firecrawl API Client

Page scraping for reference URLs, served through the 302 proxy
(`{base}/firecrawl/v1/...`).

Firecrawl handles:
- JavaScript rendering
- Anti-bot bypass
- Clean markdown output

Proxies return several payload shapes; scrape_url() normalizes them to
{markdown, images, screenshot, title}.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from src.utils.config import get_settings, Settings

logger = logging.getLogger(__name__)


class FirecrawlError(Exception):
    """Custom exception for Firecrawl API errors."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 2
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


def _page_fields(page: Dict[str, Any]) -> Dict[str, Any]:
    metadata = page.get("metadata") or {}
    return {
        "markdown": page.get("markdown") or "",
        "images": page.get("images") or [],
        "screenshot": page.get("screenshot"),
        "title": page.get("title") or metadata.get("title"),
    }


def normalize_scrape_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a scrape payload.

    Accepted shapes, in order:
        {"success": true, "data": {...}}
        {"pages": [{...}]}
        {"markdown": "..."}
        {"data": {"markdown": "..."}}

    Raises:
        FirecrawlError: No content in any known shape, or empty markdown
    """
    if data.get("success") and isinstance(data.get("data"), dict):
        page = _page_fields(data["data"])
    elif isinstance(data.get("pages"), list) and data["pages"]:
        page = _page_fields(data["pages"][0])
    elif data.get("markdown"):
        page = _page_fields(data)
    elif isinstance(data.get("data"), dict) and data["data"].get("markdown"):
        page = _page_fields(data["data"])
    else:
        raise FirecrawlError("No content returned from Firecrawl API", response=data)

    if not page["markdown"].strip():
        raise FirecrawlError("Empty content returned from Firecrawl API", response=data)
    return page


def normalize_map_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize a /map payload to {pages: [{url, title, description, type}], topicClusters}."""
    def page_of(item: Dict[str, Any]) -> Dict[str, Any]:
        metadata = item.get("metadata") or {}
        return {
            "url": item.get("url") or item.get("link"),
            "title": item.get("title") or metadata.get("title"),
            "description": item.get("description") or metadata.get("description"),
            "type": item.get("type") or "page",
        }

    pages: List[Dict[str, Any]] = []
    clusters: List[Dict[str, Any]] = []

    if data.get("success") and isinstance(data.get("data"), dict):
        inner = data["data"]
        pages = [page_of(p) for p in inner.get("pages") or [] if isinstance(p, dict)]
        clusters = [
            {
                "name": c.get("name") or c.get("topic"),
                "pages": c.get("pages") or c.get("urls") or [],
                "priority": c.get("priority") or 0,
            }
            for c in inner.get("topicClusters") or []
            if isinstance(c, dict)
        ]
    elif isinstance(data.get("pages"), list):
        pages = [page_of(p) for p in data["pages"] if isinstance(p, dict)]
    elif isinstance(data.get("links"), list):
        pages = [{"url": link, "type": "page"} for link in data["links"] if isinstance(link, str)]

    return {"pages": pages, "topicClusters": clusters}


class FirecrawlClient:
    """
    Async client for Firecrawl through the 302 proxy.

    Usage:
        async with FirecrawlClient.from_settings() as firecrawl:
            page = await firecrawl.scrape_url("https://example.com", include_screenshot=True)
            print(page["markdown"][:200])
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.302.ai",
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Firecrawl client.

        Args:
            api_key: Proxy API key
            base_url: Proxy base URL
            retry_config: Retry configuration (optional)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        self.api_key = api_key
        self.retry_config = retry_config or RetryConfig()

        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/firecrawl/v1",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "FirecrawlClient":
        settings = settings or get_settings()
        if not settings.FIRECRAWL_API_KEY or not settings.FIRECRAWL_API_KEY.strip():
            raise FirecrawlError("FIRECRAWL_API_KEY is not configured")
        return cls(
            api_key=settings.FIRECRAWL_API_KEY,
            base_url=settings.FIRECRAWL_BASE_URL,
            **kwargs,
        )

    async def scrape_url(self, url: str, include_screenshot: bool = False) -> Dict[str, Any]:
        """
        Scrape a single URL to markdown.

        Returns:
            {"markdown": str, "images": [...], "screenshot": str | None, "title": str | None}

        Raises:
            FirecrawlError: On API errors or empty content
        """
        if self._closed:
            raise FirecrawlError("Client has been closed")

        formats = ["markdown"]
        if include_screenshot:
            formats.append("screenshot")

        logger.info(f"Scraping {url} (screenshot: {include_screenshot})")
        data = await self._request_with_retry("/scrape", {
            "url": url,
            "formats": formats,
            "onlyMainContent": True,
            "timeout": 30000,
        })
        page = normalize_scrape_response(data)
        logger.info(f"Scraped {len(page['markdown'])} characters from {url}")
        return page

    async def map_url(self, url: str, limit: int = 1000) -> Dict[str, Any]:
        """List the pages of a site via /map."""
        if self._closed:
            raise FirecrawlError("Client has been closed")

        data = await self._request_with_retry("/map", {
            "url": url,
            "includeSubdomains": True,
            "limit": limit,
        })
        result = normalize_map_response(data)
        logger.info(f"Mapped {len(result['pages'])} pages for {url}")
        return result

    async def _request_with_retry(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Make request with retry logic."""
        config = self.retry_config
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                response = await self._client.post(endpoint, json=payload)

                if response.status_code >= 400:
                    if response.status_code in config.retryable_status_codes:
                        last_exception = FirecrawlError(
                            f"API error: {response.status_code}",
                            status_code=response.status_code,
                        )
                    else:
                        raise FirecrawlError(
                            f"Firecrawl API error: {response.status_code} - {response.text[:300]}",
                            status_code=response.status_code,
                        )
                else:
                    return response.json()

            except httpx.TimeoutException as e:
                last_exception = FirecrawlError(f"Request timed out: {e}")
            except httpx.RequestError as e:
                last_exception = FirecrawlError(f"Request failed: {e}")

            if attempt < config.max_retries:
                delay = min(
                    config.initial_delay * (config.exponential_base**attempt),
                    config.max_delay,
                )
                logger.warning(
                    f"Firecrawl request failed, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{config.max_retries + 1})"
                )
                await asyncio.sleep(delay)

        raise last_exception

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
