"""
Credits Client

Billing lives in the main web app. Paid operations check the caller's
balance before starting and consume credits after a successful run,
forwarding the caller's own bearer token.

    GET  {MAIN_APP_URL}/api/user/dashboard    -> {credits: {remaining, total, used}}
    POST {MAIN_APP_URL}/api/credits/consume   {credits, description, related_entity}
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from src.utils.config import get_settings, Settings

logger = logging.getLogger(__name__)


class CreditsError(Exception):
    """Custom exception for credits API errors."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class InsufficientCreditsError(CreditsError):
    """Raised when the balance does not cover an operation."""

    def __init__(self, required: int, remaining: int):
        super().__init__(
            f"This operation requires {required} credits, but you only have "
            f"{remaining} credits remaining",
            status_code=402,
        )
        self.required = required
        self.remaining = remaining


@dataclass
class CreditBalance:
    remaining: int = 0
    total: int = 0
    used: int = 0


class CreditsClient:
    """
    Async client for the main app's credits API.

    Usage:
        async with CreditsClient.from_settings() as credits:
            await credits.require(token, 10)
            ...
            await credits.consume(token, 10, "Visual article: coffee grinder")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "CreditsClient":
        settings = settings or get_settings()
        return cls(base_url=settings.MAIN_APP_URL, **kwargs)

    @staticmethod
    def _error_message(response: httpx.Response, fallback: str) -> str:
        try:
            return response.json().get("error") or fallback
        except ValueError:
            return fallback

    async def get_balance(self, token: str) -> CreditBalance:
        """Fetch the caller's balance."""
        response = await self._client.get(
            f"{self.base_url}/api/user/dashboard",
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.status_code != 200:
            raise CreditsError(
                self._error_message(response, "Failed to fetch credits"),
                status_code=response.status_code,
            )

        credits = response.json().get("credits") or {}
        return CreditBalance(
            remaining=credits.get("remaining") or 0,
            total=credits.get("total") or 0,
            used=credits.get("used") or 0,
        )

    async def require(self, token: str, amount: int) -> CreditBalance:
        """
        Check the balance covers `amount`.

        Raises:
            InsufficientCreditsError: Balance too low
            CreditsError: Balance could not be fetched
        """
        balance = await self.get_balance(token)
        if balance.remaining < amount:
            raise InsufficientCreditsError(required=amount, remaining=balance.remaining)
        return balance

    async def consume(
        self,
        token: str,
        amount: int,
        description: str,
        related_entity: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Consume credits after a successful operation.

        Raises:
            InsufficientCreditsError: The main app reported a short balance
            CreditsError: Any other failure
        """
        response = await self._client.post(
            f"{self.base_url}/api/credits/consume",
            headers={"Authorization": f"Bearer {token}"},
            json={
                "credits": amount,
                "description": description,
                "related_entity": related_entity or {},
            },
        )
        if response.status_code != 200:
            message = self._error_message(response, "Failed to consume credits")
            if message == "Insufficient credits":
                raise InsufficientCreditsError(required=amount, remaining=0)
            raise CreditsError(message, status_code=response.status_code)

        logger.info(f"Consumed {amount} credits: {description}")
        return response.json()

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
