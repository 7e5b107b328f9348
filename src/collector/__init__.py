"""
Domain Data Collection

DataForSEO client and the domain analytics calls behind the
website-data dashboard.
"""

from .client import DataForSEOClient, DataForSEOError, RetryConfig, safe_get_result
from .domain import (
    get_domain_overview,
    get_domain_keywords,
    get_domain_competitors,
    get_ranked_keywords,
    clean_keyword,
    region_to_location_code,
    location_names,
    REGION_LOCATION_CODES,
)

__all__ = [
    # Client
    "DataForSEOClient",
    "DataForSEOError",
    "RetryConfig",
    "safe_get_result",

    # Domain analytics
    "get_domain_overview",
    "get_domain_keywords",
    "get_domain_competitors",
    "get_ranked_keywords",
    "clean_keyword",
    "region_to_location_code",
    "location_names",
    "REGION_LOCATION_CODES",
]
