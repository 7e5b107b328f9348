"""
Domain Analytics

DataForSEO calls behind the website-data dashboard:

- get_domain_overview       whois overview, Labs domain_metrics fallback
- get_domain_keywords       Labs keywords_for_site
- get_domain_competitors    backlinks competitors (shared backlink profile)
- get_ranked_keywords       Labs ranked_keywords with SERP features

Every function returns a tagged FetchResult. "Domain not indexed" is an
Ok with no data; upstream failures are Failed with the error message.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from src.models.result import Ok, Degraded, Failed, FetchResult
from src.utils.domains import clean_domain
from .client import DataForSEOClient, DataForSEOError, safe_get_result

logger = logging.getLogger(__name__)


# =============================================================================
# LOCATIONS
# =============================================================================

DEFAULT_LOCATION_CODE = 2840

REGION_LOCATION_CODES: Dict[str, int] = {
    "us": 2840,
    "uk": 2826,
    "ca": 2124,
    "au": 2036,
    "de": 2276,
    "fr": 2250,
    "jp": 2384,
    "cn": 2166,
}

# location_code -> (location_name, language_name)
LOCATION_NAMES: Dict[int, tuple] = {
    2840: ("United States", "English"),
    2826: ("United Kingdom", "English"),
    2124: ("Canada", "English"),
    2036: ("Australia", "English"),
    2276: ("Germany", "German"),
    2250: ("France", "French"),
    2384: ("Japan", "Japanese"),
    2166: ("China", "Chinese"),
    2410: ("South Korea", "Korean"),
    2620: ("Portugal", "Portuguese"),
    2360: ("Indonesia", "Indonesian"),
    2724: ("Spain", "Spanish"),
}

# Midpoints of the DataForSEO position buckets, for a weighted average position
POSITION_BUCKETS = [
    ("pos_1", 1.0),
    ("pos_2_3", 2.5),
    ("pos_4_10", 7.0),
    ("pos_11_20", 15.5),
    ("pos_21_30", 25.5),
    ("pos_31_40", 35.5),
    ("pos_41_50", 45.5),
    ("pos_51_60", 55.5),
    ("pos_61_70", 65.5),
    ("pos_71_80", 75.5),
    ("pos_81_90", 85.5),
    ("pos_91_100", 95.5),
]


def region_to_location_code(region: Optional[str]) -> int:
    """Map a dashboard region ('us', 'uk', ...) to a DataForSEO location code."""
    return REGION_LOCATION_CODES.get((region or "us").lower(), DEFAULT_LOCATION_CODE)


def location_names(location_code: int) -> tuple:
    """(location_name, language_name) for a location code, US English by default."""
    return LOCATION_NAMES.get(location_code, LOCATION_NAMES[DEFAULT_LOCATION_CODE])


# =============================================================================
# KEYWORD CLEANING
# =============================================================================

_ID_PREFIX = re.compile(r"^\d{1,3}-[a-z0-9-]+-\d+(\s+|$)", re.IGNORECASE)
_NUMBER_BEFORE_WORD = re.compile(r"^\d{1,3}\s+(?=[a-zA-Z\u4e00-\u9fa5])")
_LEADING_NUMBER = re.compile(r"^\d+\s+")
_TRAILING_NUMBER = re.compile(r"\s+\d{1,3}$")


def clean_keyword(raw: Optional[str]) -> str:
    """
    Strip numbering artefacts from keywords returned by the Labs API.

    "001-qk7yulqsx9esalil5mxjkg-3342555957 seo tools" -> "seo tools"
    "051 keyword" -> "keyword"
    "keyword 001" -> "keyword"
    "050" -> ""
    """
    if not raw:
        return ""

    cleaned = raw.strip()
    cleaned = _ID_PREFIX.sub("", cleaned)
    cleaned = _NUMBER_BEFORE_WORD.sub("", cleaned)
    cleaned = _LEADING_NUMBER.sub("", cleaned)

    if cleaned.isdigit():
        return ""

    cleaned = _TRAILING_NUMBER.sub("", cleaned)
    return cleaned.strip()


def _is_valid_keyword(keyword: str) -> bool:
    return bool(keyword) and not keyword.strip().isdigit()


def _num(value: Any, default: float = 0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


# =============================================================================
# OVERVIEW
# =============================================================================

def _overview_from_metrics(domain: str, metrics: Dict[str, Any], backlinks_info: Optional[Dict] = None) -> Dict[str, Any]:
    """Build the dashboard overview dict from DataForSEO organic/paid metrics."""
    organic = metrics.get("organic") or {}
    paid = metrics.get("paid") or {}

    buckets = {name: int(_num(organic.get(name))) for name, _ in POSITION_BUCKETS}
    total_keywords = int(_num(organic.get("count")))

    avg_position = 0.0
    if total_keywords > 0:
        weighted = sum(buckets[name] * midpoint for name, midpoint in POSITION_BUCKETS)
        avg_position = weighted / total_keywords

    top3 = buckets["pos_1"] + buckets["pos_2_3"]
    top10 = top3 + buckets["pos_4_10"]
    top50 = top10 + buckets["pos_11_20"] + buckets["pos_21_30"] + buckets["pos_31_40"] + buckets["pos_41_50"]
    top100 = top50 + buckets["pos_51_60"] + buckets["pos_61_70"] + buckets["pos_71_80"] + buckets["pos_81_90"] + buckets["pos_91_100"]

    organic_traffic = _num(organic.get("etv"))
    paid_traffic = _num(paid.get("etv"))

    overview = {
        "domain": domain,
        "organicTraffic": organic_traffic,
        "paidTraffic": paid_traffic,
        "totalTraffic": organic_traffic + paid_traffic,
        "totalKeywords": total_keywords,
        "newKeywords": 0,
        "lostKeywords": 0,
        "improvedKeywords": 0,
        "declinedKeywords": 0,
        "avgPosition": avg_position,
        "trafficCost": _num(organic.get("estimated_paid_traffic_cost")),
        "rankingDistribution": {
            "top3": top3,
            "top10": top10,
            "top50": top50,
            "top100": top100,
        },
        "backlinksInfo": None,
    }

    if backlinks_info:
        overview["backlinksInfo"] = {
            "referringDomains": int(_num(backlinks_info.get("referring_domains"))),
            "referringMainDomains": int(_num(backlinks_info.get("referring_main_domains"))),
            "referringPages": int(_num(backlinks_info.get("referring_pages"))),
            "dofollow": int(_num(backlinks_info.get("dofollow"))),
            "backlinks": int(_num(backlinks_info.get("backlinks"))),
            "timeUpdate": backlinks_info.get("time_update"),
        }

    return overview


async def _overview_from_labs(
    client: DataForSEOClient,
    domain: str,
    location_code: int,
) -> Optional[Dict[str, Any]]:
    """Labs domain_metrics fallback for domains missing from the whois index."""
    response = await client.post(
        "dataforseo_labs/google/domain_metrics/live",
        [{
            "target": domain,
            "location_code": location_code,
            "language_code": "en",
        }]
    )
    result = safe_get_result(response, get_items=False)
    metrics = result.get("metrics")
    if not metrics:
        logger.warning(f"No metrics in Labs domain_metrics response for {domain}")
        return None
    return _overview_from_metrics(result.get("target") or domain, metrics)


async def get_domain_overview(
    client: DataForSEOClient,
    domain: str,
    location_code: int = DEFAULT_LOCATION_CODE,
) -> FetchResult:
    """
    Get traffic, keyword count and ranking distribution for a domain.

    Returns:
        Ok(overview), Ok(None) when the domain is not indexed anywhere,
        Degraded(overview) when only the Labs fallback answered,
        Failed(reason) on upstream errors.
    """
    target = clean_domain(domain)

    try:
        response = await client.post(
            "domain_analytics/whois/overview/live",
            [{
                "limit": 1,
                "filters": [["domain", "=", target]],
            }]
        )
        items = safe_get_result(response)

        if not items:
            logger.info(f"Domain {target} not in whois index, trying Labs domain_metrics")
            overview = await _overview_from_labs(client, target, location_code)
            if overview is None:
                return Ok(None)
            return Degraded(overview, "whois overview empty, used Labs domain_metrics")

        item = items[0]
        metrics = item.get("metrics")
        if not metrics:
            logger.warning(f"No metrics in whois overview item for {target}")
            return Ok(None)

        overview = _overview_from_metrics(item.get("domain") or target, metrics, item.get("backlinks_info"))
        if overview["totalKeywords"] == 0 and overview["totalTraffic"] == 0:
            logger.warning(f"Overview for {target} has zero keywords and traffic")
        return Ok(overview)

    except DataForSEOError as e:
        if e.status_code == 404:
            return Ok(None)
        logger.error(f"Domain overview failed for {target}: {e}")
        return Failed(str(e))


# =============================================================================
# KEYWORDS
# =============================================================================

async def get_domain_keywords(
    client: DataForSEOClient,
    domain: str,
    location_code: int = DEFAULT_LOCATION_CODE,
    limit: int = 100,
) -> FetchResult:
    """Keywords the domain ranks for, with volume, CPC and difficulty."""
    target = clean_domain(domain)

    try:
        response = await client.post(
            "dataforseo_labs/google/keywords_for_site/live",
            [{
                "target": target,
                "language_code": "en",
                "location_code": location_code,
                "include_serp_info": True,
                "include_subdomains": True,
                "filters": ["serp_info.se_results_count", ">", 0],
                "limit": limit,
            }]
        )
    except DataForSEOError as e:
        if e.status_code in (400, 404):
            return Ok([])
        logger.error(f"Domain keywords failed for {target}: {e}")
        return Failed(str(e))

    keywords = []
    for item in safe_get_result(response):
        keyword_info = item.get("keyword_info") or {}
        properties = item.get("keyword_properties") or {}
        serp_info = item.get("serp_info") or {}
        search_volume = _num(keyword_info.get("search_volume"))

        current = _num(item.get("rank_absolute") or item.get("rank") or serp_info.get("rank"))
        previous = _num(item.get("previous_rank_absolute") or item.get("previous_rank"))
        traffic = item.get("etv") or item.get("estimated_traffic_value") or search_volume * 0.1

        keywords.append({
            "keyword": clean_keyword(item.get("keyword")),
            "currentPosition": int(current),
            "previousPosition": int(previous),
            "positionChange": int(previous - current),
            "searchVolume": int(search_volume),
            "cpc": _num(keyword_info.get("cpc")),
            "competition": _num(keyword_info.get("competition")),
            "difficulty": _num(properties.get("competition_index")),
            "trafficPercentage": _num(traffic),
            "url": item.get("url") or (item.get("ranked_serp_element") or {}).get("url") or serp_info.get("check_url") or "",
        })

    keywords = [k for k in keywords if _is_valid_keyword(k["keyword"])]
    logger.info(f"Parsed {len(keywords)} keywords for {target}")
    return Ok(keywords)


# =============================================================================
# COMPETITORS
# =============================================================================

async def get_domain_competitors(
    client: DataForSEOClient,
    domain: str,
    limit: int = 5,
) -> FetchResult:
    """
    Competitor domains sharing the most backlinks with the target.

    Backlink metrics stand in for keyword metrics: shared backlinks as
    common keywords, backlinks as traffic, referring domains as total
    keywords.
    """
    target = clean_domain(domain)

    try:
        response = await client.post(
            "backlinks/competitors/live",
            [{
                "target": target,
                "limit": limit,
                "filters": ["intersections", ">", 10],
                "order_by": ["rank,desc"],
            }]
        )
    except DataForSEOError as e:
        if e.status_code in (400, 404):
            return Ok([])
        logger.error(f"Competitor discovery failed for {target}: {e}")
        return Failed(str(e))

    competitors = []
    for item in safe_get_result(response):
        competitor = item.get("target") or item.get("domain") or ""
        if not competitor or competitor == target:
            continue
        competitors.append({
            "domain": competitor,
            "title": competitor,
            "commonKeywords": int(_num(item.get("intersections"))),
            "organicTraffic": int(_num(item.get("backlinks"))),
            "totalKeywords": int(_num(item.get("referring_domains"))),
            "gapKeywords": 0,
            "gapTraffic": 0,
            "visibilityScore": item.get("rank"),
        })

    return Ok(competitors)


# =============================================================================
# RANKED KEYWORDS
# =============================================================================

def _serp_features(element: Dict[str, Any], serp_item: Dict[str, Any]) -> Dict[str, bool]:
    types = element.get("serp_item_types") or []
    return {
        "aiOverview": serp_item.get("type") == "ai_overview_reference" or "ai_overview" in types,
        "featuredSnippet": bool(serp_item.get("is_featured_snippet")) or serp_item.get("type") == "featured_snippet",
        "peopleAlsoAsk": "people_also_ask" in types,
        "relatedQuestions": False,
        "video": bool(serp_item.get("is_video")) or "video" in types,
        "image": bool(serp_item.get("is_image")) or "images" in types,
    }


async def get_ranked_keywords(
    client: DataForSEOClient,
    domain: str,
    location_code: int = DEFAULT_LOCATION_CODE,
    limit: int = 100,
) -> FetchResult:
    """
    Ranked keywords with absolute positions, rank changes and SERP features.

    Falls back to keywords_for_site (without SERP features) when the
    Labs endpoint rejects the request.
    """
    target = clean_domain(domain)
    location_name, language_name = location_names(location_code)

    try:
        response = await client.post(
            "dataforseo_labs/google/ranked_keywords/live",
            [{
                "target": target,
                "language_name": language_name,
                "location_name": location_name,
                "load_rank_absolute": True,
                "limit": limit,
            }]
        )
    except DataForSEOError as e:
        if e.status_code in (400, 404):
            logger.warning(f"ranked_keywords unavailable for {target}, falling back to keywords_for_site")
            fallback = await get_domain_keywords(client, target, location_code, limit)
            if not fallback.ok:
                return fallback
            converted = [
                {
                    "keyword": kw["keyword"],
                    "currentPosition": kw["currentPosition"],
                    "previousPosition": kw["previousPosition"],
                    "positionChange": kw["positionChange"],
                    "searchVolume": kw["searchVolume"],
                    "etv": kw["trafficPercentage"],
                    "serpFeatures": {},
                    "url": kw["url"],
                    "cpc": kw["cpc"],
                    "competition": kw["competition"],
                    "difficulty": kw["difficulty"],
                }
                for kw in fallback.data
            ]
            return Degraded(converted, "ranked_keywords unavailable, used keywords_for_site")
        logger.error(f"Ranked keywords failed for {target}: {e}")
        return Failed(str(e))

    keywords = []
    for item in safe_get_result(response):
        keyword_data = item.get("keyword_data") or {}
        keyword_info = keyword_data.get("keyword_info") or {}
        properties = keyword_data.get("keyword_properties") or {}
        element = item.get("ranked_serp_element") or {}
        serp_item = element.get("serp_item") or {}
        rank_changes = serp_item.get("rank_changes") or {}

        current = serp_item.get("rank_absolute") or element.get("rank_absolute") or item.get("rank_absolute")
        previous = rank_changes.get("previous_rank_absolute")
        if previous is None:
            previous = element.get("previous_rank_absolute")
        change = previous - current if current is not None and previous is not None else 0

        keywords.append({
            "keyword": clean_keyword(keyword_data.get("keyword")),
            "currentPosition": current or 0,
            "previousPosition": previous or 0,
            "positionChange": change or 0,
            "searchVolume": keyword_info.get("search_volume") or 0,
            "etv": serp_item.get("etv") or 0,
            "serpFeatures": _serp_features(element, serp_item),
            "url": serp_item.get("url") or "",
            "cpc": keyword_info.get("cpc"),
            "competition": keyword_info.get("competition"),
            "difficulty": properties.get("competition_index"),
        })

    return Ok([k for k in keywords if _is_valid_keyword(k["keyword"])])
