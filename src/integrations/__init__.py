"""
External API Integrations

Clients for the third-party APIs behind keyword research and content
generation:
- SERP: ThorData live Google results
- SE-Ranking: Keyword volume / difficulty / CPC
- Firecrawl: Reference page scraping
- Credits: Main app billing
- Config: Per-request client management
"""

from .firecrawl import FirecrawlClient, FirecrawlError, normalize_scrape_response
from .serp import SerpClient, SerpError, parse_serp_response, LANGUAGE_COUNTRY_CODES
from .seranking import (
    SERankingClient,
    SERankingError,
    merge_seranking_data,
    index_by_keyword,
    source_for_language,
)
from .credits import CreditsClient, CreditsError, InsufficientCreditsError, CreditBalance
from .config import ExternalAPIConfig, ExternalAPIClients, get_env_bool

__all__ = [
    # Firecrawl
    "FirecrawlClient",
    "FirecrawlError",
    "normalize_scrape_response",
    # SERP
    "SerpClient",
    "SerpError",
    "parse_serp_response",
    "LANGUAGE_COUNTRY_CODES",
    # SE-Ranking
    "SERankingClient",
    "SERankingError",
    "merge_seranking_data",
    "index_by_keyword",
    "source_for_language",
    # Credits
    "CreditsClient",
    "CreditsError",
    "InsufficientCreditsError",
    "CreditBalance",
    # Config
    "ExternalAPIConfig",
    "ExternalAPIClients",
    "get_env_bool",
]
