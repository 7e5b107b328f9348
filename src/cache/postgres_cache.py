"""
Website Data Cache

DataForSEO responses cached per website in the *_cache tables.
No Redis required - uses the same database as the application.

Every write is a single upsert on the table's unique key. Unless the
caller forces a refresh, the update half only fires for rows whose
cache_expires_at has passed, so concurrent refreshes cannot clobber
fresh data with a slower, older response.

Reads only return rows with cache_expires_at in the future (the
overview read returns the newest row regardless so callers can tell
"stale" from "missing").
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import asc, delete, desc, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from src.cache.config import CacheTTL, CacheLimits
from src.collector.domain import clean_keyword
from src.database.models import (
    UserWebsite,
    DomainOverviewCache,
    DomainKeywordsCache,
    DomainCompetitorsCache,
    RankedKeywordsCache,
    DomainKeywordRecommendationsCache,
)

logger = logging.getLogger(__name__)

RANKED_SORT_COLUMNS = {
    "cpc": RankedKeywordsCache.cpc,
    "difficulty": RankedKeywordsCache.difficulty,
    "searchVolume": RankedKeywordsCache.search_volume,
}


def clamp_decimal(value: Any) -> Optional[float]:
    """Clamp into [0, 99999999.99]; None stays None, junk becomes 0."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    return min(max(number, 0.0), CacheLimits.MAX_DECIMAL)


def _number(value: Any) -> Any:
    return float(value) if isinstance(value, Decimal) else value


class WebsiteDataCache:
    """
    Read and write the website data cache tables for one session.

    Usage:
        cache = WebsiteDataCache(db)
        if cache.overview_needs_refresh(website_id, 2840):
            cache.upsert_overview(website_id, 2840, overview)
        row = cache.get_overview(website_id, 2840)
    """

    def __init__(self, db: Session):
        self.db = db
        self._stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
        }

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _insert(self, model):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(model)
        return sqlite_insert(model)

    def _upsert(
        self,
        model,
        values: Dict[str, Any],
        conflict_columns: List[str],
        expires_column: str = "cache_expires_at",
        force: bool = False,
    ) -> None:
        stmt = self._insert(model).values(**values)
        updated = {
            name: stmt.excluded[name]
            for name in values
            if name not in conflict_columns and name != "id"
        }
        expires = getattr(model, expires_column)
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_columns,
            set_=updated,
            where=None if force else expires < datetime.utcnow(),
        )
        self.db.execute(stmt)

    def _commit(self, label: str, count: int) -> None:
        self.db.commit()
        self._stats["writes"] += count
        logger.debug(f"Cached {count} {label} rows")

    # =========================================================================
    # OVERVIEW
    # =========================================================================

    def get_overview(self, website_id: UUID, location_code: int) -> Optional[DomainOverviewCache]:
        """Newest overview row for the website and location, fresh or not."""
        row = (
            self.db.query(DomainOverviewCache)
            .filter(
                DomainOverviewCache.website_id == website_id,
                DomainOverviewCache.location_code == location_code,
            )
            .order_by(desc(DomainOverviewCache.data_date))
            .first()
        )
        self._stats["hits" if row else "misses"] += 1
        return row

    def overview_needs_refresh(self, website_id: UUID, location_code: int, force: bool = False) -> bool:
        if force:
            return True
        row = self.get_overview(website_id, location_code)
        return row is None or row.cache_expires_at < datetime.utcnow()

    def upsert_overview(
        self,
        website_id: UUID,
        location_code: int,
        overview: Dict[str, Any],
        force: bool = False,
    ) -> None:
        now = datetime.utcnow()
        distribution = overview.get("rankingDistribution") or {}
        self._upsert(
            DomainOverviewCache,
            {
                "website_id": website_id,
                "location_code": location_code,
                "data_date": now.date(),
                "organic_traffic": overview.get("organicTraffic") or 0,
                "paid_traffic": overview.get("paidTraffic") or 0,
                "total_traffic": overview.get("totalTraffic") or 0,
                "total_keywords": overview.get("totalKeywords") or 0,
                "new_keywords": overview.get("newKeywords") or 0,
                "lost_keywords": overview.get("lostKeywords") or 0,
                "improved_keywords": overview.get("improvedKeywords") or 0,
                "declined_keywords": overview.get("declinedKeywords") or 0,
                "avg_position": overview.get("avgPosition") or 0,
                "traffic_cost": overview.get("trafficCost") or 0,
                "top3_count": distribution.get("top3") or 0,
                "top10_count": distribution.get("top10") or 0,
                "top50_count": distribution.get("top50") or 0,
                "top100_count": distribution.get("top100") or 0,
                "backlinks_info": overview.get("backlinksInfo"),
                "data_updated_at": now,
                "cache_expires_at": now + CacheTTL.OVERVIEW,
            },
            ["website_id", "data_date", "location_code"],
            force=force,
        )
        self._commit("overview", 1)

    # =========================================================================
    # TOP KEYWORDS
    # =========================================================================

    def upsert_keywords(
        self,
        website_id: UUID,
        location_code: int,
        keywords: List[Dict[str, Any]],
        force: bool = False,
    ) -> int:
        """Cache the first KEYWORDS_CACHED keywords. Returns the number written."""
        now = datetime.utcnow()
        selected = keywords[:CacheLimits.KEYWORDS_CACHED]
        for kw in selected:
            self._upsert(
                DomainKeywordsCache,
                {
                    "website_id": website_id,
                    "location_code": location_code,
                    "keyword": kw["keyword"],
                    "current_position": kw.get("currentPosition") or 0,
                    "previous_position": kw.get("previousPosition") or 0,
                    "position_change": kw.get("positionChange") or 0,
                    "search_volume": kw.get("searchVolume") or 0,
                    "cpc": kw.get("cpc"),
                    "competition": clamp_decimal(kw.get("competition")),
                    "difficulty": int(kw["difficulty"]) if kw.get("difficulty") is not None else None,
                    "traffic_percentage": clamp_decimal(kw.get("trafficPercentage")),
                    "ranking_url": kw.get("url") or "",
                    "data_updated_at": now,
                    "cache_expires_at": now + CacheTTL.KEYWORDS,
                },
                ["website_id", "keyword", "location_code"],
                force=force,
            )
        self._commit("keyword", len(selected))
        return len(selected)

    def get_top_keywords(self, website_id: UUID, limit: int = 20) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(DomainKeywordsCache)
            .filter(
                DomainKeywordsCache.website_id == website_id,
                DomainKeywordsCache.cache_expires_at > datetime.utcnow(),
            )
            .order_by(desc(DomainKeywordsCache.search_volume))
            .limit(limit)
            .all()
        )
        return [
            {
                "keyword": row.keyword,
                "currentPosition": row.current_position,
                "previousPosition": row.previous_position,
                "positionChange": row.position_change,
                "searchVolume": row.search_volume,
                "cpc": _number(row.cpc),
                "competition": _number(row.competition),
                "difficulty": row.difficulty,
                "trafficPercentage": _number(row.traffic_percentage),
            }
            for row in rows
        ]

    def get_keywords_for_recommendations(self, website_id: UUID, top_n: int = 10) -> List[Dict[str, Any]]:
        """Best-positioned fresh keywords (positions 1..100) in the shape the report prompt expects."""
        rows = (
            self.db.query(DomainKeywordsCache)
            .filter(
                DomainKeywordsCache.website_id == website_id,
                DomainKeywordsCache.current_position > 0,
                DomainKeywordsCache.current_position <= 100,
                DomainKeywordsCache.cache_expires_at > datetime.utcnow(),
            )
            .order_by(asc(DomainKeywordsCache.current_position))
            .limit(top_n)
            .all()
        )
        return [
            {
                "keyword": row.keyword,
                "msv": row.search_volume or 0,
                "kd": row.difficulty or 0,
                "competition": float(row.competition or 0),
                "cpc": float(row.cpc or 0),
                "currentPosition": row.current_position or 0,
            }
            for row in rows
        ]

    # =========================================================================
    # COMPETITORS
    # =========================================================================

    def upsert_competitors(
        self,
        website_id: UUID,
        location_code: int,
        competitors: List[Dict[str, Any]],
        force: bool = False,
    ) -> int:
        now = datetime.utcnow()
        for comp in competitors:
            self._upsert(
                DomainCompetitorsCache,
                {
                    "website_id": website_id,
                    "location_code": location_code,
                    "competitor_domain": comp["domain"],
                    "competitor_title": comp.get("title") or comp["domain"],
                    "common_keywords": comp.get("commonKeywords") or 0,
                    "organic_traffic": comp.get("organicTraffic") or 0,
                    "total_keywords": comp.get("totalKeywords") or 0,
                    "gap_keywords": comp.get("gapKeywords") or 0,
                    "gap_traffic": comp.get("gapTraffic") or 0,
                    "data_updated_at": now,
                    "cache_expires_at": now + CacheTTL.COMPETITORS,
                },
                ["website_id", "competitor_domain", "location_code"],
                force=force,
            )
        self._commit("competitor", len(competitors))
        return len(competitors)

    def get_competitors(self, website_id: UUID, limit: int = 5) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(DomainCompetitorsCache)
            .filter(
                DomainCompetitorsCache.website_id == website_id,
                DomainCompetitorsCache.cache_expires_at > datetime.utcnow(),
            )
            .order_by(desc(DomainCompetitorsCache.organic_traffic))
            .limit(limit)
            .all()
        )
        return [
            {
                "domain": row.competitor_domain,
                "title": row.competitor_title,
                "commonKeywords": row.common_keywords,
                "organicTraffic": row.organic_traffic,
                "totalKeywords": row.total_keywords,
                "gapKeywords": row.gap_keywords,
                "gapTraffic": row.gap_traffic,
            }
            for row in rows
        ]

    # =========================================================================
    # RANKED KEYWORDS
    # =========================================================================

    def upsert_ranked_keywords(
        self,
        website_id: UUID,
        location_code: int,
        keywords: List[Dict[str, Any]],
        force: bool = False,
    ) -> int:
        now = datetime.utcnow()
        selected = keywords[:CacheLimits.RANKED_KEYWORDS_CACHED]
        for kw in selected:
            self._upsert(
                RankedKeywordsCache,
                {
                    "website_id": website_id,
                    "location_code": location_code,
                    "keyword": kw["keyword"],
                    "current_position": kw.get("currentPosition"),
                    "previous_position": kw.get("previousPosition"),
                    "search_volume": kw.get("searchVolume"),
                    "etv": kw.get("etv"),
                    "serp_features": kw.get("serpFeatures") or {},
                    "ranking_url": kw.get("url"),
                    "cpc": kw.get("cpc") or None,
                    "competition": clamp_decimal(kw.get("competition") or None),
                    "difficulty": int(kw["difficulty"]) if kw.get("difficulty") else None,
                    "data_updated_at": now,
                    "cache_expires_at": now + CacheTTL.RANKED_KEYWORDS,
                },
                ["website_id", "keyword", "location_code"],
                force=force,
            )
        self._commit("ranked keyword", len(selected))
        return len(selected)

    def get_ranked_keywords(
        self,
        website_id: UUID,
        location_code: int,
        limit: int = 100,
        sort_by: str = "searchVolume",
        sort_order: str = "desc",
        include_serp_features: bool = True,
    ) -> List[Dict[str, Any]]:
        """Fresh ranked keywords, sorted with NULLS LAST. Junk keywords are dropped."""
        column = RANKED_SORT_COLUMNS.get(sort_by, RankedKeywordsCache.search_volume)
        ordering = (column.asc() if sort_order == "asc" else column.desc()).nulls_last()

        rows = (
            self.db.query(RankedKeywordsCache)
            .filter(
                RankedKeywordsCache.website_id == website_id,
                RankedKeywordsCache.location_code == location_code,
                RankedKeywordsCache.cache_expires_at > datetime.utcnow(),
            )
            .order_by(ordering)
            .limit(limit)
            .all()
        )
        self._stats["hits" if rows else "misses"] += 1

        keywords = []
        for row in rows:
            keyword = clean_keyword(row.keyword or "")
            if not keyword or keyword.isdigit():
                continue
            item = {
                "keyword": keyword,
                "currentPosition": row.current_position,
                "previousPosition": row.previous_position,
                "positionChange": (row.previous_position or 0) - (row.current_position or 0),
                "searchVolume": row.search_volume,
                "etv": float(row.etv or 0),
                "url": row.ranking_url,
                "cpc": _number(row.cpc),
                "competition": _number(row.competition),
                "difficulty": row.difficulty,
            }
            if include_serp_features:
                item["serpFeatures"] = row.serp_features or {}
            keywords.append(item)
        return keywords

    # =========================================================================
    # RECOMMENDATIONS
    # =========================================================================

    def get_recommendations(self, website_id: UUID) -> Optional[Dict[str, Any]]:
        row = (
            self.db.query(DomainKeywordRecommendationsCache)
            .filter(
                DomainKeywordRecommendationsCache.website_id == website_id,
                DomainKeywordRecommendationsCache.expires_at > datetime.utcnow(),
            )
            .order_by(desc(DomainKeywordRecommendationsCache.created_at))
            .first()
        )
        self._stats["hits" if row else "misses"] += 1
        return row.analysis_result if row else None

    def set_recommendations(self, website_id: UUID, report: Dict[str, Any]) -> None:
        now = datetime.utcnow()
        self._upsert(
            DomainKeywordRecommendationsCache,
            {
                "website_id": website_id,
                "analysis_result": report,
                "created_at": now,
                "expires_at": now + CacheTTL.RECOMMENDATIONS,
            },
            ["website_id"],
            expires_column="expires_at",
            force=True,
        )
        self._commit("recommendation", 1)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def clear_website(self, website_id: UUID) -> None:
        """Drop overview, keyword and competitor rows ahead of a full refresh."""
        for model in (DomainOverviewCache, DomainKeywordsCache, DomainCompetitorsCache):
            self.db.execute(delete(model).where(model.website_id == website_id))
        self.db.commit()
        logger.info(f"Cleared website data cache for {website_id}")

    def touch_website(self, website_id: UUID) -> None:
        self.db.execute(
            update(UserWebsite)
            .where(UserWebsite.id == website_id)
            .values(updated_at=datetime.utcnow())
        )
        self.db.commit()

    def get_stats(self) -> Dict:
        """Get cache statistics."""
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0

        return {
            "hits": self._stats["hits"],
            "misses": self._stats["misses"],
            "writes": self._stats["writes"],
            "hit_rate_percent": round(hit_rate, 2),
        }
