"""
Domain Utilities

Shared domain helpers used across SERP classification and domain analytics:
- Cleaning user-entered website URLs into bare domains
- Classifying the top-ranking SERP domain into a competition type
- Excluding the analysed domain from its own competitor list
"""

import re
from typing import Optional
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# SERP DOMAIN CLASSES
# =============================================================================

# Community platforms: UGC pages that are easy to outrank with focused content
FORUM_SOCIAL_MARKERS = ("reddit", "quora", "forum")

# Government & educational sources
GOV_EDU_MARKERS = ("wikipedia", ".gov", ".edu")

# Large brands that dominate commercial SERPs
BIG_BRAND_MARKERS = ("amazon", "walmart", "microsoft", "apple")


def clean_domain(value: Optional[str]) -> str:
    """
    Strip protocol and path from a website URL.

    "https://www.example.com/blog?x=1" -> "www.example.com"
    """
    if not value:
        return ""
    domain = re.sub(r"^https?://", "", value.strip(), flags=re.IGNORECASE)
    return re.sub(r"/.*$", "", domain)


def strip_www(domain: str) -> str:
    """Lowercase a domain and drop a leading www."""
    domain = (domain or "").lower().strip()
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def is_same_domain(a: Optional[str], b: Optional[str]) -> bool:
    """Check whether two domains (or URLs) point at the same site."""
    if not a or not b:
        return False
    return strip_www(clean_domain(a)) == strip_www(clean_domain(b))


def classify_domain_type(url: Optional[str]) -> str:
    """
    Classify the top-ranking result URL.

    Args:
        url: URL of the first organic result

    Returns:
        One of "Forum/Social", "Gov/Edu", "Big Brand", "Niche Site",
        or "Unknown" when there is no URL.
    """
    if not url:
        return "Unknown"

    url_lower = url.lower()

    if any(marker in url_lower for marker in FORUM_SOCIAL_MARKERS):
        return "Forum/Social"
    if any(marker in url_lower for marker in GOV_EDU_MARKERS):
        return "Gov/Edu"
    if any(marker in url_lower for marker in BIG_BRAND_MARKERS):
        return "Big Brand"
    return "Niche Site"
