"""
Website Data Service

Dashboard data for a user's website, cached from DataForSEO:

- overview: cached overview, top keywords and competitors; a missing or
  expired cache is populated before responding
- update_metrics: drop the cache and refetch everything, ranked keywords
  included
- ranked_keywords: cache only, sortable
- keyword_recommendations: LLM report over the best-ranked keywords,
  cached per website

Each of the three DataForSEO fetches is isolated: one failing leaves the
others cached.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from src.agents.prompts import keyword_recommendations_prompt
from src.analyzer.client import GeminiError
from src.cache import WebsiteDataCache, CacheLimits, get_cache_config
from src.collector import (
    DataForSEOClient,
    get_domain_overview,
    get_domain_keywords,
    get_domain_competitors,
    get_ranked_keywords,
    region_to_location_code,
)
from src.database.models import UserWebsite
from src.integrations import ExternalAPIClients
from src.output.parser import parse_json, truncate_for_log

logger = logging.getLogger(__name__)

REPORT_REQUIRED_FIELDS = ("report_metadata", "executive_summary", "keyword_recommendation_list")
NO_RANKED_KEYWORDS_MESSAGE = "No cached data. Please sync metrics first."
NO_KEYWORDS_MESSAGE = "No keywords found. Please update website metrics first."


class WebsiteDataError(Exception):
    """Raised when a website data operation cannot complete."""

    def __init__(self, message: str, status_code: int = 500, details: str = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


# ============================================================================
# FETCHING
# ============================================================================

async def fetch_domain_snapshot(
    client: DataForSEOClient,
    domain: str,
    location_code: int,
) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Overview, keywords and competitors fetched concurrently.

    Returns:
        (overview or None, keywords, competitors); a failed fetch yields
        None / [] and is logged.
    """
    results = await asyncio.gather(
        get_domain_overview(client, domain, location_code),
        get_domain_keywords(client, domain, location_code, CacheLimits.KEYWORDS_FETCHED),
        get_domain_competitors(client, domain, CacheLimits.COMPETITORS_FETCHED),
        return_exceptions=True,
    )

    unpacked = []
    for label, result, empty in zip(("overview", "keywords", "competitors"), results, (None, [], [])):
        if isinstance(result, Exception):
            logger.error(f"[WebsiteData] Failed to get {label} for {domain}: {result}")
            unpacked.append(empty)
        elif not result.ok:
            logger.error(f"[WebsiteData] Failed to get {label} for {domain}: {result.reason}")
            unpacked.append(empty)
        else:
            if result.degraded:
                logger.warning(f"[WebsiteData] {label} for {domain} degraded: {result.reason}")
            unpacked.append(result.data if result.data is not None else empty)

    overview, keywords, competitors = unpacked
    return overview, keywords, competitors


async def populate_cache(
    cache: WebsiteDataCache,
    client: DataForSEOClient,
    website: UserWebsite,
    location_code: int,
    force: bool = False,
) -> Dict[str, Any]:
    """Fetch the snapshot and upsert it. Returns what was fetched."""
    overview, keywords, competitors = await fetch_domain_snapshot(client, website.website_domain, location_code)

    if overview is not None:
        cache.upsert_overview(website.id, location_code, overview, force=force)
        logger.info(
            f"[WebsiteData] Cached overview for {website.website_domain}: "
            f"{overview.get('totalKeywords')} keywords, {overview.get('organicTraffic')} traffic"
        )
    else:
        logger.warning(f"[WebsiteData] No overview data to cache for {website.website_domain}")

    cached_keywords = cache.upsert_keywords(website.id, location_code, keywords, force=force) if keywords else 0
    if competitors:
        cache.upsert_competitors(website.id, location_code, competitors, force=force)

    return {
        "overview": overview,
        "keywordsCount": len(keywords),
        "cachedKeywordsCount": cached_keywords,
        "competitorsCount": len(competitors),
    }


# ============================================================================
# OPERATIONS
# ============================================================================

def _overview_payload(row) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {
        "organicTraffic": float(row.organic_traffic or 0),
        "paidTraffic": float(row.paid_traffic or 0),
        "totalTraffic": float(row.total_traffic or 0),
        "totalKeywords": row.total_keywords or 0,
        "newKeywords": row.new_keywords or 0,
        "lostKeywords": row.lost_keywords or 0,
        "improvedKeywords": row.improved_keywords or 0,
        "declinedKeywords": row.declined_keywords or 0,
        "avgPosition": float(row.avg_position or 0),
        "trafficCost": float(row.traffic_cost or 0),
        "rankingDistribution": {
            "top3": row.top3_count or 0,
            "top10": row.top10_count or 0,
            "top50": row.top50_count or 0,
            "top100": row.top100_count or 0,
        },
        "backlinksInfo": row.backlinks_info,
        "updatedAt": row.data_updated_at.isoformat() if row.data_updated_at else None,
        "expiresAt": row.cache_expires_at.isoformat() if row.cache_expires_at else None,
    }


async def get_overview(
    db: Session,
    clients: ExternalAPIClients,
    website: UserWebsite,
    region: Optional[str] = None,
    force_refresh: bool = False,
) -> Dict[str, Any]:
    """
    Dashboard overview for a website.

    A missing, expired or force-refreshed cache is populated
    synchronously, so the first call already returns data.
    """
    cache = WebsiteDataCache(db)
    location_code = region_to_location_code(region)
    force = force_refresh or not get_cache_config().enabled
    needs_refresh = cache.overview_needs_refresh(website.id, location_code, force=force)

    if needs_refresh:
        client = clients.dataforseo
        if not website.website_domain:
            logger.warning(f"[WebsiteData] Website {website.id} has no domain, skipping fetch")
        elif client is None:
            logger.warning("[WebsiteData] DataForSEO not configured, serving cache only")
        else:
            logger.info(f"[WebsiteData] Populating cache for {website.website_domain} (location {location_code})")
            await populate_cache(cache, client, website, location_code, force=force)

    row = cache.get_overview(website.id, location_code)
    return {
        "hasData": row is not None,
        "website": website.to_summary(),
        "overview": _overview_payload(row),
        "topKeywords": cache.get_top_keywords(website.id, CacheLimits.KEYWORDS_CACHED),
        "competitors": cache.get_competitors(website.id, CacheLimits.COMPETITORS_FETCHED),
        "needsRefresh": needs_refresh,
    }


async def update_metrics(
    db: Session,
    clients: ExternalAPIClients,
    website: UserWebsite,
    region: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Refetch everything for a website and replace its cache.

    Raises:
        WebsiteDataError: 400 when the website has no domain, 503 when
            DataForSEO is not configured
    """
    if not website.website_domain:
        raise WebsiteDataError("Website domain is required", status_code=400)
    client = clients.dataforseo
    if client is None:
        raise WebsiteDataError("DataForSEO is not configured", status_code=503)

    cache = WebsiteDataCache(db)
    location_code = region_to_location_code(region)
    logger.info(f"[WebsiteData] Updating metrics for {website.website_domain} (location {location_code})")

    cache.clear_website(website.id)
    summary = await populate_cache(cache, client, website, location_code, force=True)

    ranked = await get_ranked_keywords(client, website.website_domain, location_code, CacheLimits.RANKED_KEYWORDS_CACHED)
    if ranked.ok and ranked.data:
        cache.upsert_ranked_keywords(website.id, location_code, ranked.data, force=True)
    elif not ranked.ok:
        logger.warning(f"[WebsiteData] Failed to cache ranked keywords: {ranked.reason}")

    cache.touch_website(website.id)

    return {
        "success": True,
        "message": "Website metrics updated successfully",
        "data": {
            "overview": "cached" if summary["overview"] is not None else "failed",
            "keywordsCount": summary["keywordsCount"],
            "cachedKeywordsCount": summary["cachedKeywordsCount"],
            "competitorsCount": summary["competitorsCount"],
            "updatedAt": datetime.utcnow().isoformat() + "Z",
        },
    }


def ranked_keywords(
    db: Session,
    website: UserWebsite,
    limit: int = 100,
    region: Optional[str] = None,
    include_serp_features: bool = True,
    sort_by: str = "searchVolume",
    sort_order: str = "desc",
) -> Dict[str, Any]:
    """Cached ranked keywords; never calls DataForSEO."""
    cache = WebsiteDataCache(db)
    keywords = cache.get_ranked_keywords(
        website.id,
        region_to_location_code(region),
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        include_serp_features=include_serp_features,
    )
    if not keywords:
        return {"success": True, "data": [], "cached": True, "message": NO_RANKED_KEYWORDS_MESSAGE}
    return {"success": True, "data": keywords, "cached": True}


async def keyword_recommendations(
    db: Session,
    clients: ExternalAPIClients,
    website: UserWebsite,
    top_n: int = 10,
) -> Dict[str, Any]:
    """
    Keyword recommendation report for a website, cached for 24 h.

    Raises:
        WebsiteDataError: When the model output is not a complete report
    """
    cache = WebsiteDataCache(db)

    cached = cache.get_recommendations(website.id)
    if cached is not None:
        logger.info(f"[WebsiteData] Using cached recommendations for {website.id}")
        return {"success": True, "data": cached, "cached": True}

    keywords = cache.get_keywords_for_recommendations(website.id, top_n)
    if not keywords:
        return {"success": False, "error": NO_KEYWORDS_MESSAGE, "data": None}

    logger.info(f"[WebsiteData] Analyzing {len(keywords)} keywords for {website.website_domain}")
    try:
        response = await clients.gemini.generate(
            keyword_recommendations_prompt(website.website_domain or website.website_url, keywords, top_n),
            json_mode=True,
        )
    except GeminiError as e:
        raise WebsiteDataError("Failed to analyze keyword recommendations", details=str(e)) from e

    report = parse_json(response.text, expect="object", default=None)
    missing = [f for f in REPORT_REQUIRED_FIELDS if not isinstance(report, dict) or f not in report]
    if missing:
        logger.error(
            f"[WebsiteData] Recommendation report missing {missing}: {truncate_for_log(response.text, 1000)}"
        )
        raise WebsiteDataError(
            "Failed to parse AI response. The AI may have returned invalid JSON format.",
            details=f"Missing required fields: {', '.join(missing)}",
        )

    cache.set_recommendations(website.id, report)
    return {"success": True, "data": report, "cached": False}
