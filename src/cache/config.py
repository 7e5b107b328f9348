"""
Cache Configuration

TTLs and row limits for the website data cache tables.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache


@dataclass(frozen=True)
class CacheTTL:
    """
    Cache TTL by table.

    Rankings and traffic move daily; competitor sets change slowly.
    """

    OVERVIEW: timedelta = timedelta(hours=24)
    KEYWORDS: timedelta = timedelta(hours=24)
    COMPETITORS: timedelta = timedelta(days=7)
    RANKED_KEYWORDS: timedelta = timedelta(hours=24)
    RECOMMENDATIONS: timedelta = timedelta(hours=24)

    @classmethod
    def for_table(cls, table: str) -> timedelta:
        """Get TTL for a cache table name."""
        mapping = {
            "domain_overview_cache": cls.OVERVIEW,
            "domain_keywords_cache": cls.KEYWORDS,
            "domain_competitors_cache": cls.COMPETITORS,
            "ranked_keywords_cache": cls.RANKED_KEYWORDS,
            "domain_keyword_recommendations_cache": cls.RECOMMENDATIONS,
        }
        return mapping.get(table, cls.OVERVIEW)


@dataclass(frozen=True)
class CacheLimits:
    """How much of each upstream response is fetched and cached."""

    KEYWORDS_FETCHED: int = 50
    KEYWORDS_CACHED: int = 20
    COMPETITORS_FETCHED: int = 5
    RANKED_KEYWORDS_CACHED: int = 50

    # Upper bound of the NUMERIC(10, 2) columns
    MAX_DECIMAL: float = 99999999.99


@dataclass
class CacheConfig:
    """
    Main cache configuration.

    Settings can be overridden via environment variables:
    - CACHE_ENABLED: Read from cache before calling DataForSEO
    """

    enabled: bool = field(default_factory=lambda: os.getenv(
        "CACHE_ENABLED",
        "true"
    ).lower() == "true")


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    """Get singleton cache configuration."""
    return CacheConfig()
