"""
ThorData SERP Client

Fetches live Google results through the ThorData scraper API and reduces
them to the top 10 organic snippets plus a classification of the domain
holding position one.

ThorData wraps results inconsistently: sometimes under `data`, and the
result list may be `organic`, `organic_results`, `results`, `snack_pack`,
or an object keyed "0", "1", ... All of these are accepted.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from src.models.result import Ok, Failed, FetchResult
from src.utils.config import get_settings, Settings
from src.utils.domains import classify_domain_type

logger = logging.getLogger(__name__)

# Target language -> Google country code
LANGUAGE_COUNTRY_CODES: Dict[str, str] = {
    "ko": "kr",
    "ja": "jp",
    "fr": "fr",
    "ru": "ru",
    "pt": "br",
    "id": "id",
    "es": "es",
    "ar": "sa",
    "en": "us",
    "zh": "cn",
}

MAX_SNIPPETS = 10
BATCH_DELAY_SECONDS = 0.5


class SerpError(Exception):
    """Custom exception for SERP provider errors."""
    def __init__(self, message: str, status_code: int = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def _result_list(data: Any) -> List[Dict[str, Any]]:
    """Find the organic result list in a ThorData payload."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            logger.error("ThorData returned a non-JSON string payload")
            return []

    if not isinstance(data, dict):
        return []

    for key in ("organic", "organic_results", "results", "snack_pack"):
        if isinstance(data.get(key), list):
            return data[key]

    keys = list(data.keys())
    if keys and all(k.isdigit() for k in keys):
        return [data[k] for k in sorted(keys, key=int)]

    return []


def parse_serp_response(data: Any) -> Dict[str, Any]:
    """
    Reduce a ThorData payload to snippets, count and top domain type.

    Returns:
        {"results": [{title, url, snippet, position}], "resultCount": int,
         "topDomainType": str}
    """
    results = _result_list(data)

    snippets = []
    for item in results[:MAX_SNIPPETS]:
        if not isinstance(item, dict):
            continue
        title = item.get("title") or item.get("name") or ""
        url = item.get("link") or item.get("url") or ""
        snippet = (
            item.get("description")
            or item.get("snippet")
            or (item.get("result") or {}).get("snippet")
            or ""
        )
        if title and url:
            snippets.append({
                "title": title,
                "url": url,
                "snippet": snippet,
                "position": len(snippets) + 1,
            })

    top_domain_type = "Unknown"
    if results and isinstance(results[0], dict):
        top_domain_type = classify_domain_type(results[0].get("link") or results[0].get("url") or "")

    return {
        "results": snippets,
        "resultCount": len(results),
        "topDomainType": top_domain_type,
    }


class SerpClient:
    """
    Async client for ThorData SERP scraping.

    Usage:
        async with SerpClient.from_settings() as serp:
            result = await serp.search("best coffee machine", "en")
            if result.ok:
                print(result.data["results"])
    """

    def __init__(
        self,
        api_token: Optional[str],
        api_url: str = "https://scraperapi.thordata.com/request",
        timeout: float = 25.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_token = api_token
        self.api_url = api_url
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "SerpClient":
        settings = settings or get_settings()
        return cls(
            api_token=settings.THORDATA_API_TOKEN,
            api_url=settings.THORDATA_API_URL,
            **kwargs,
        )

    async def _fetch(self, query: str) -> Dict[str, Any]:
        """POST one query and return the unwrapped payload."""
        if not self.api_token:
            raise SerpError("THORDATA_API_TOKEN is not configured")

        response = await self._client.post(
            self.api_url,
            data={"engine": "google", "q": query, "json": "1"},
            headers={"Authorization": f"Bearer {self.api_token}"},
        )

        if response.status_code != 200:
            raise SerpError(
                f"ThorData request failed: {response.status_code} {response.text[:300]}",
                status_code=response.status_code,
            )

        payload = response.json()
        if isinstance(payload, dict) and payload.get("error"):
            raise SerpError(f"ThorData error: {payload['error']}", response=payload)

        # Some responses come wrapped as {code, data}
        if isinstance(payload, dict) and isinstance(payload.get("data"), (dict, str)):
            payload = payload["data"]

        return payload

    async def search(self, keyword: str, language: str = "en") -> FetchResult:
        """
        Fetch the top organic results for a keyword.

        Returns:
            Ok({keyword, results, totalResults, topDomainType}) or Failed(reason)
        """
        if self._closed:
            return Failed("Client is closed")

        try:
            payload = await self._fetch(keyword)
        except (SerpError, httpx.HTTPError, ValueError) as e:
            logger.error(f"SERP fetch failed for '{keyword}': {e}")
            return Failed(str(e))

        parsed = parse_serp_response(payload)
        return Ok({
            "keyword": keyword,
            "results": parsed["results"],
            "totalResults": parsed["resultCount"] or None,
            "topDomainType": parsed["topDomainType"],
        })

    async def search_batch(
        self,
        keywords: List[str],
        language: str = "en",
        delay: float = BATCH_DELAY_SECONDS,
    ) -> Dict[str, FetchResult]:
        """
        Fetch SERPs sequentially with a fixed delay between requests.

        Returns:
            Mapping of lower-cased keyword to its FetchResult
        """
        results: Dict[str, FetchResult] = {}
        for i, keyword in enumerate(keywords):
            results[keyword.lower()] = await self.search(keyword, language)
            if i < len(keywords) - 1:
                await asyncio.sleep(delay)
        return results

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
