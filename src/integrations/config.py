"""
External API Configuration

Configuration and lazy client management for the upstream APIs one
request talks to.

Required environment variables:
- GEMINI_API_KEY: Gemini proxy key (302 provider)

Optional:
- GEMINI_TUZI_API_KEY: Gemini proxy key for the tuzi provider
- THORDATA_API_TOKEN: ThorData SERP token
- SERANKING_API_KEY: SE-Ranking key
- FIRECRAWL_API_KEY: Firecrawl key (302 proxy)
- DATAFORSEO_LOGIN / DATAFORSEO_PASSWORD: DataForSEO credentials
- SERP_ENABLED / SERANKING_ENABLED / FIRECRAWL_ENABLED: kill switches (default: true)
"""

import os
import logging
from typing import Optional

from src.analyzer.client import GeminiClient
from src.analyzer.context import RequestContext, DEFAULT_CONTEXT
from src.collector.client import DataForSEOClient
from src.utils.config import get_settings, Settings

from .firecrawl import FirecrawlClient
from .serp import SerpClient
from .seranking import SERankingClient

logger = logging.getLogger(__name__)


def get_env_bool(key: str, default: bool = True) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("false", "0", "no", "off"):
        return False
    if val in ("true", "1", "yes", "on"):
        return True
    return default


class ExternalAPIConfig:
    """Which upstream APIs are configured and enabled."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        serp_enabled: bool = True,
        seranking_enabled: bool = True,
        firecrawl_enabled: bool = True,
    ):
        self.settings = settings or get_settings()
        self.serp_enabled = serp_enabled and get_env_bool("SERP_ENABLED", True)
        self.seranking_enabled = seranking_enabled and get_env_bool("SERANKING_ENABLED", True)
        self.firecrawl_enabled = firecrawl_enabled and get_env_bool("FIRECRAWL_ENABLED", True)

    @property
    def has_serp(self) -> bool:
        return self.serp_enabled and bool(self.settings.THORDATA_API_TOKEN)

    @property
    def has_seranking(self) -> bool:
        return self.seranking_enabled and bool(self.settings.SERANKING_API_KEY)

    @property
    def has_firecrawl(self) -> bool:
        return self.firecrawl_enabled and bool(self.settings.FIRECRAWL_API_KEY)

    @property
    def has_dataforseo(self) -> bool:
        return bool(self.settings.DATAFORSEO_LOGIN and self.settings.DATAFORSEO_PASSWORD)

    def log_status(self):
        """Log configuration status."""
        logger.info(
            f"External API status: "
            f"SERP={'enabled' if self.has_serp else 'disabled'}, "
            f"SE-Ranking={'enabled' if self.has_seranking else 'disabled'}, "
            f"Firecrawl={'enabled' if self.has_firecrawl else 'disabled'}, "
            f"DataForSEO={'enabled' if self.has_dataforseo else 'disabled'}"
        )


class ExternalAPIClients:
    """
    Per-request factory and owner of upstream clients.

    Clients are created on first access and closed together. The Gemini
    client follows the request's proxy provider and model.

    Usage:
        async with ExternalAPIClients(context) as clients:
            response = await clients.gemini.generate("...")
            if clients.serp:
                result = await clients.serp.search("...")
    """

    def __init__(
        self,
        context: RequestContext = DEFAULT_CONTEXT,
        config: Optional[ExternalAPIConfig] = None,
    ):
        self.context = context
        self.config = config or ExternalAPIConfig()
        self._gemini: Optional[GeminiClient] = None
        self._serp: Optional[SerpClient] = None
        self._seranking: Optional[SERankingClient] = None
        self._firecrawl: Optional[FirecrawlClient] = None
        self._dataforseo: Optional[DataForSEOClient] = None

    @property
    def gemini(self) -> GeminiClient:
        """Get or create the Gemini client for this request's provider."""
        if self._gemini is None:
            self._gemini = GeminiClient.from_context(self.context, self.config.settings)
            logger.info(
                f"Initialized Gemini client (provider: {self.context.proxy_provider}, "
                f"model: {self._gemini.model})"
            )
        return self._gemini

    @property
    def serp(self) -> Optional[SerpClient]:
        """Get or create the SERP client."""
        if not self.config.has_serp:
            return None
        if self._serp is None:
            self._serp = SerpClient.from_settings(self.config.settings)
        return self._serp

    @property
    def seranking(self) -> Optional[SERankingClient]:
        """Get or create the SE-Ranking client."""
        if not self.config.has_seranking:
            return None
        if self._seranking is None:
            self._seranking = SERankingClient.from_settings(self.config.settings)
        return self._seranking

    @property
    def firecrawl(self) -> Optional[FirecrawlClient]:
        """Get or create the Firecrawl client."""
        if not self.config.has_firecrawl:
            return None
        if self._firecrawl is None:
            self._firecrawl = FirecrawlClient.from_settings(self.config.settings)
        return self._firecrawl

    @property
    def dataforseo(self) -> Optional[DataForSEOClient]:
        """Get or create the DataForSEO client."""
        if not self.config.has_dataforseo:
            return None
        if self._dataforseo is None:
            self._dataforseo = DataForSEOClient.from_settings(self.config.settings)
        return self._dataforseo

    async def close(self):
        """Close all clients."""
        for name in ("_gemini", "_serp", "_seranking", "_firecrawl", "_dataforseo"):
            client = getattr(self, name)
            if client is not None:
                await client.close()
                setattr(self, name, None)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
