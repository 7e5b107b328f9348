"""
DataForSEO API Client

Thin async wrapper over the v3 REST API used by the website data
dashboard. Every call is a POST of a task list; a response is accepted
when both the envelope and the HTTP status say so.

Retries (1s, 2s, 4s) cover rate limits, 5xx and transport failures.
Other 4xx responses and envelope-level errors (bad credentials, no
balance) are raised immediately.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from src.utils.config import get_settings, Settings

logger = logging.getLogger(__name__)

ENVELOPE_OK = 20000
TASK_OK = (20000, 20100)


def safe_get_result(response: Dict, get_items: bool = True) -> Any:
    """
    First task's first result, or its `items` list.

    DataForSEO nests data as tasks[0].result[0](.items) and any level can
    be null or missing; those cases give [] (items) or {} (result).
    """
    empty = [] if get_items else {}
    tasks = response.get("tasks") if isinstance(response, dict) else None
    if not isinstance(tasks, list) or not tasks or not isinstance(tasks[0], dict):
        return empty

    results = tasks[0].get("result")
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        return empty

    first = results[0]
    if not get_items:
        return first
    items = first.get("items")
    return items if isinstance(items, list) else []


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)

    def delay_for(self, attempt: int) -> float:
        return min(self.initial_delay * self.exponential_base ** attempt, self.max_delay)


class DataForSEOError(Exception):
    """Custom exception for DataForSEO API errors."""

    def __init__(self, message: str, status_code: int = None, response: dict = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.response = response
        self.retryable = retryable


class DataForSEOClient:
    """
    Async client for DataForSEO API.

    Usage:
        async with DataForSEOClient.from_settings() as client:
            response = await client.post("backlinks/competitors/live", [{"target": "example.com"}])
            items = safe_get_result(response)
    """

    BASE_URL = "https://api.dataforseo.com/v3"

    def __init__(
        self,
        login: str,
        password: str,
        retry_config: Optional[RetryConfig] = None,
        max_connections: int = 20,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        token = base64.b64encode(f"{login}:{password}".encode()).decode()

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Authorization": f"Basic {token}", "Content-Type": "application/json"},
            limits=httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections // 2),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "DataForSEOClient":
        """Create a client from DATAFORSEO_LOGIN / DATAFORSEO_PASSWORD."""
        settings = settings or get_settings()
        if not settings.DATAFORSEO_LOGIN or not settings.DATAFORSEO_PASSWORD:
            raise DataForSEOError("DataForSEO credentials are not configured")
        return cls(settings.DATAFORSEO_LOGIN, settings.DATAFORSEO_PASSWORD, **kwargs)

    async def post(self, endpoint: str, data: List[Dict[str, Any]], retry: bool = True) -> Dict[str, Any]:
        """
        POST a task list to `endpoint` (e.g. "backlinks/competitors/live").

        Raises:
            DataForSEOError: On HTTP, envelope or transport failure after retries
        """
        if self._closed:
            raise DataForSEOError("Client is closed")

        path = f"/{endpoint}"
        attempts = self.retry_config.max_retries + 1 if retry else 1
        for attempt in range(attempts):
            try:
                return await self._send(path, data)
            except DataForSEOError as e:
                if not e.retryable or attempt == attempts - 1:
                    raise
                delay = self.retry_config.delay_for(attempt)
                logger.warning(f"DataForSEO {endpoint} failed ({e}), retry {attempt + 1}/{attempts - 1} in {delay}s")
                await asyncio.sleep(delay)

    async def _send(self, path: str, data: List[Dict[str, Any]]) -> Dict[str, Any]:
        logger.debug(f"POST {path}")
        try:
            response = await self._client.post(path, json=data)
        except httpx.TimeoutException as e:
            raise DataForSEOError(f"Request timed out: {e}", retryable=True) from e
        except httpx.HTTPError as e:
            raise DataForSEOError(f"HTTP error: {e}", retryable=True) from e

        if response.status_code != 200:
            raise DataForSEOError(
                f"API request failed: {response.status_code}",
                status_code=response.status_code,
                response={"text": response.text[:500]} if response.content else None,
                retryable=response.status_code in self.retry_config.retryable_status_codes,
            )

        body = response.json()
        if body.get("status_code") != ENVELOPE_OK:
            raise DataForSEOError(
                f"API error: {body.get('status_message', 'Unknown error')}",
                status_code=body.get("status_code"),
                response=body,
            )

        for task in body.get("tasks") or []:
            if task and task.get("status_code") not in TASK_OK:
                logger.error(
                    f"DataForSEO task error in {path}: "
                    f"{task.get('status_message', 'Task error')} (status: {task.get('status_code')})"
                )
        return body

    async def close(self):
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
