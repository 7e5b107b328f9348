"""
SE-Ranking Keyword Research Client

Real search volume, CPC, competition and difficulty for keyword lists,
via the SE-Ranking keyword export endpoint.

Rate limits are tight, so keywords are sent in batches of 10 with a 2s
pause between batches. A 429 honours Retry-After (else waits 2^attempt
seconds) for up to 3 attempts per batch.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from src.models.result import Ok, Degraded, Failed, FetchResult
from src.utils.config import get_settings, Settings

logger = logging.getLogger(__name__)

EXPORT_URL = "https://api.seranking.com/v1/keywords/export"
EXPORT_COLUMNS = "keyword,volume,cpc,competition,difficulty,history_trend"

BATCH_SIZE = 10
BATCH_DELAY_SECONDS = 2.0
MAX_KEYWORDS = 100
MAX_ATTEMPTS = 3

# Target language -> SE-Ranking source database
LANGUAGE_SOURCES: Dict[str, str] = {
    "en": "us",
    "zh": "cn",
    "ru": "ru",
    "fr": "fr",
    "ja": "jp",
    "ko": "kr",
    "pt": "br",
    "id": "id",
    "es": "es",
    "ar": "eg",
}


class SERankingError(Exception):
    """Custom exception for SE-Ranking API errors."""
    def __init__(self, message: str, status_code: int = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def source_for_language(language: Optional[str]) -> str:
    """SE-Ranking source database for a target language (US by default)."""
    return LANGUAGE_SOURCES.get(language or "en", "us")


def not_found(keyword: str) -> Dict[str, Any]:
    """Placeholder row for a keyword with no data."""
    return {"keyword": keyword, "is_data_found": False}


def normalize_row(item: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize one export row.

    Rows without an explicit is_data_found flag count as found when they
    carry a volume.
    """
    if "is_data_found" in item:
        found = bool(item["is_data_found"])
    else:
        found = item.get("volume") is not None

    def number(key):
        value = item.get(key)
        return value if isinstance(value, (int, float)) and not isinstance(value, bool) else None

    row = {
        "keyword": str(item.get("keyword") or ""),
        "is_data_found": found,
        "volume": number("volume"),
        "cpc": number("cpc"),
        "competition": number("competition"),
        "difficulty": number("difficulty"),
    }
    if isinstance(item.get("history_trend"), dict):
        row["history_trend"] = item["history_trend"]
    return row


class SERankingClient:
    """
    Async client for SE-Ranking keyword export.

    Usage:
        async with SERankingClient.from_settings() as seranking:
            result = await seranking.fetch_keyword_data(["coffee grinder"], "en")
            rows = result.value_or([])
    """

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 30.0,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "SERankingClient":
        settings = settings or get_settings()
        return cls(api_key=settings.SERANKING_API_KEY, **kwargs)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _export_batch(self, keywords: List[str], source: str) -> List[Dict[str, Any]]:
        """Export one batch, retrying on rate limits."""
        fields = [("keywords[]", (None, kw)) for kw in keywords]
        fields.append(("cols", (None, EXPORT_COLUMNS)))

        for attempt in range(1, MAX_ATTEMPTS + 1):
            response = await self._client.post(
                EXPORT_URL,
                params={"source": source},
                files=fields,
                headers={"Authorization": f"Token {self.api_key}"},
            )

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                wait = float(retry_after) if retry_after and retry_after.isdigit() else float(2 ** attempt)
                if attempt < MAX_ATTEMPTS:
                    logger.warning(
                        f"SE-Ranking rate limited, waiting {wait:.0f}s "
                        f"(attempt {attempt}/{MAX_ATTEMPTS})"
                    )
                    await asyncio.sleep(wait)
                    continue
                raise SERankingError(
                    f"SE-Ranking rate limit exceeded after {MAX_ATTEMPTS} attempts",
                    status_code=429,
                )

            if response.status_code != 200:
                if response.status_code in (401, 403):
                    logger.error("SE-Ranking authentication failed, check SERANKING_API_KEY")
                raise SERankingError(
                    f"SE-Ranking API error: {response.status_code} {response.text[:300]}",
                    status_code=response.status_code,
                )

            data = response.json()
            if not isinstance(data, list):
                raise SERankingError(f"Unexpected SE-Ranking response type: {type(data).__name__}", response=data)
            return [normalize_row(item) for item in data if isinstance(item, dict)]

        raise SERankingError("SE-Ranking request failed")

    async def fetch_keyword_data(self, keywords: List[str], language: str = "en") -> FetchResult:
        """
        Fetch metrics for up to 100 keywords.

        Returns:
            Ok(rows) when every batch succeeded, Degraded(rows) when some
            batches failed (their keywords appear as not found), Failed
            when nothing came back.
        """
        if not self.is_configured:
            return Failed("SERANKING_API_KEY is not configured")

        valid = [kw.strip() for kw in keywords if kw and kw.strip()]
        if not valid:
            return Ok([])
        if len(valid) > MAX_KEYWORDS:
            logger.warning(f"SE-Ranking: truncating {len(valid)} keywords to {MAX_KEYWORDS}")
            valid = valid[:MAX_KEYWORDS]

        source = source_for_language(language)
        rows: List[Dict[str, Any]] = []
        errors: List[str] = []

        batches = [valid[i:i + self.batch_size] for i in range(0, len(valid), self.batch_size)]
        for index, batch in enumerate(batches):
            try:
                rows.extend(await self._export_batch(batch, source))
            except (SERankingError, httpx.HTTPError, ValueError) as e:
                logger.error(f"SE-Ranking batch {index + 1}/{len(batches)} failed: {e}")
                errors.append(str(e))
                rows.extend(not_found(kw) for kw in batch)

            if index < len(batches) - 1:
                await asyncio.sleep(self.batch_delay)

        found = sum(1 for r in rows if r["is_data_found"])
        logger.info(f"SE-Ranking returned data for {found}/{len(rows)} keywords (source: {source})")

        if errors and len(errors) == len(batches):
            return Failed(errors[0])
        if errors:
            return Degraded(rows, f"{len(errors)} of {len(batches)} batches failed")
        return Ok(rows)

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def index_by_keyword(rows: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Map lower-cased keyword to its row, keeping only rows with data."""
    return {
        row["keyword"].lower(): row
        for row in rows
        if row.get("is_data_found") and row.get("keyword")
    }


def merge_seranking_data(keywords: List[Dict[str, Any]], rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Attach SE-Ranking rows to KeywordData dicts.

    Every keyword gets `serankingData` (a not-found placeholder when there is
    no row); a real volume replaces the model's estimate.
    """
    by_keyword = {row["keyword"].lower(): row for row in rows if row.get("keyword")}
    merged = []
    for kw in keywords:
        text = kw.get("keyword", "")
        row = by_keyword.get(text.lower()) or not_found(text)
        updated = {**kw, "serankingData": row}
        if row.get("is_data_found") and row.get("volume") is not None:
            updated["volume"] = row["volume"]
        merged.append(updated)
    return merged
