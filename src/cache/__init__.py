"""
Website Data Caching Layer

DataForSEO responses are cached per website in the database with fixed
TTLs (24 h for overview and keywords, 7 days for competitors).

Usage:
    cache = WebsiteDataCache(db)
    if cache.overview_needs_refresh(website_id, location_code):
        cache.upsert_overview(website_id, location_code, overview)
"""

from src.cache.config import CacheConfig, CacheTTL, CacheLimits, get_cache_config
from src.cache.postgres_cache import WebsiteDataCache, clamp_decimal

__all__ = [
    # Config
    "CacheConfig",
    "CacheTTL",
    "CacheLimits",
    "get_cache_config",
    # Cache
    "WebsiteDataCache",
    "clamp_decimal",
]
