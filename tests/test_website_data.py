"""
Website Data Tests

Tests the DataForSEO cache tables, the dashboard service built on them
and the /api/website-data endpoints, including ownership checks.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from conftest import gemini_response, make_clients, make_gemini
from src.cache import CacheLimits, WebsiteDataCache, clamp_decimal
from src.database.models import DomainKeywordsCache, DomainOverviewCache, RankedKeywordsCache
from src.models.result import Degraded, Failed, Ok
from src.services import website_data
from src.services.website_data import (
    NO_KEYWORDS_MESSAGE,
    NO_RANKED_KEYWORDS_MESSAGE,
    WebsiteDataError,
)


OVERVIEW = {
    "domain": "example.com",
    "organicTraffic": 1200.0,
    "paidTraffic": 0.0,
    "totalTraffic": 1200.0,
    "totalKeywords": 340,
    "avgPosition": 18.4,
    "trafficCost": 450.0,
    "rankingDistribution": {"top3": 12, "top10": 40, "top50": 200, "top100": 340},
    "backlinksInfo": {"referringDomains": 80},
}

REPORT = {
    "report_metadata": {"domain": "example.com"},
    "executive_summary": "Focus on grinders",
    "keyword_recommendation_list": [{"keyword": "burr grinder"}],
}


def keyword_row(keyword, volume=100, position=5, **extra):
    return {
        "keyword": keyword,
        "currentPosition": position,
        "previousPosition": position + 2,
        "positionChange": 2,
        "searchVolume": volume,
        "cpc": 1.2,
        "competition": 0.3,
        "difficulty": 25,
        "trafficPercentage": 10.0,
        "url": "https://example.com/page",
        **extra,
    }


def ranked_row(keyword, volume=100, cpc=None, difficulty=None):
    return {
        "keyword": keyword,
        "currentPosition": 4,
        "previousPosition": 6,
        "searchVolume": volume,
        "etv": 12.5,
        "serpFeatures": {"video": True},
        "url": "https://example.com/r",
        "cpc": cpc,
        "competition": 0.5,
        "difficulty": difficulty,
    }


COMPETITOR = {"domain": "rival.com", "title": "rival.com", "commonKeywords": 40, "organicTraffic": 900, "totalKeywords": 300}


def patched_fetchers(overview=None, keywords=None, competitors=None, ranked=None):
    """Patch the four DataForSEO fetchers used by the service."""
    return {
        "overview": patch(
            "src.services.website_data.get_domain_overview",
            AsyncMock(return_value=overview if overview is not None else Ok(OVERVIEW)),
        ),
        "keywords": patch(
            "src.services.website_data.get_domain_keywords",
            AsyncMock(return_value=keywords if keywords is not None else Ok([keyword_row("coffee grinder")])),
        ),
        "competitors": patch(
            "src.services.website_data.get_domain_competitors",
            AsyncMock(return_value=competitors if competitors is not None else Ok([COMPETITOR])),
        ),
        "ranked": patch(
            "src.services.website_data.get_ranked_keywords",
            AsyncMock(return_value=ranked if ranked is not None else Ok([ranked_row("burr grinder")])),
        ),
    }


class Fetchers:
    """Context manager entering all patched fetchers and exposing the mocks."""

    def __init__(self, **kwargs):
        self._patches = patched_fetchers(**kwargs)
        self.mocks = {}

    def __enter__(self):
        self.mocks = {name: p.start() for name, p in self._patches.items()}
        return self.mocks

    def __exit__(self, *exc):
        for p in self._patches.values():
            p.stop()


def dataforseo_clients(gemini=None):
    return make_clients(gemini, dataforseo=MagicMock())


# =============================================================================
# CACHE
# =============================================================================

class TestWebsiteDataCache:
    """Tests for WebsiteDataCache reads and upserts."""

    def test_overview_round_trip(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        assert cache.overview_needs_refresh(website.id, 2840)

        cache.upsert_overview(website.id, 2840, OVERVIEW)

        row = cache.get_overview(website.id, 2840)
        assert row.total_keywords == 340
        assert row.top10_count == 40
        assert row.backlinks_info == {"referringDomains": 80}
        assert row.cache_expires_at > datetime.utcnow() + timedelta(hours=23)
        assert not cache.overview_needs_refresh(website.id, 2840)
        assert cache.overview_needs_refresh(website.id, 2840, force=True)
        assert cache.get_overview(website.id, 2826) is None

    def test_fresh_row_not_overwritten_without_force(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_overview(website.id, 2840, OVERVIEW)

        cache.upsert_overview(website.id, 2840, {**OVERVIEW, "totalKeywords": 1})
        db_session.expire_all()
        assert cache.get_overview(website.id, 2840).total_keywords == 340

        cache.upsert_overview(website.id, 2840, {**OVERVIEW, "totalKeywords": 1}, force=True)
        db_session.expire_all()
        assert cache.get_overview(website.id, 2840).total_keywords == 1

    def test_expired_row_is_replaced(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_overview(website.id, 2840, OVERVIEW)
        row = cache.get_overview(website.id, 2840)
        row.cache_expires_at = datetime.utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert cache.overview_needs_refresh(website.id, 2840)
        cache.upsert_overview(website.id, 2840, {**OVERVIEW, "totalKeywords": 7})
        db_session.expire_all()
        assert cache.get_overview(website.id, 2840).total_keywords == 7

    def test_keywords_capped_and_sorted(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        keywords = [keyword_row(f"kw {chr(97 + i)}", volume=i) for i in range(25)]

        written = cache.upsert_keywords(website.id, 2840, keywords)

        assert written == CacheLimits.KEYWORDS_CACHED
        top = cache.get_top_keywords(website.id)
        assert len(top) == 20
        assert top[0]["searchVolume"] == 19
        assert top[0]["cpc"] == 1.2

    def test_expired_keywords_hidden(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_keywords(website.id, 2840, [keyword_row("old keyword")])
        db_session.query(DomainKeywordsCache).update(
            {DomainKeywordsCache.cache_expires_at: datetime.utcnow() - timedelta(hours=1)}
        )
        db_session.commit()

        assert cache.get_top_keywords(website.id) == []
        assert cache.get_keywords_for_recommendations(website.id) == []

    def test_keywords_for_recommendations(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_keywords(website.id, 2840, [
            keyword_row("far", position=50),
            keyword_row("near", position=2),
            keyword_row("unranked", position=0),
        ])

        rows = cache.get_keywords_for_recommendations(website.id, top_n=5)

        assert [r["keyword"] for r in rows] == ["near", "far"]
        assert rows[0] == {"keyword": "near", "msv": 100, "kd": 25, "competition": 0.3, "cpc": 1.2, "currentPosition": 2}

    def test_competitors(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_competitors(website.id, 2840, [COMPETITOR, {"domain": "small.com", "organicTraffic": 5}])

        competitors = cache.get_competitors(website.id)

        assert [c["domain"] for c in competitors] == ["rival.com", "small.com"]
        assert competitors[1]["title"] == "small.com"

    def test_ranked_keywords_clean_and_sort_nulls_last(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_ranked_keywords(website.id, 2840, [
            ranked_row("051 cheap grinder", cpc=0.5),
            ranked_row("espresso grinder", cpc=3.0),
            ranked_row("no cpc grinder", cpc=None),
            ranked_row("123"),
        ])

        desc_rows = cache.get_ranked_keywords(website.id, 2840, sort_by="cpc", sort_order="desc")
        asc_rows = cache.get_ranked_keywords(website.id, 2840, sort_by="cpc", sort_order="asc")

        assert [r["keyword"] for r in desc_rows] == ["espresso grinder", "cheap grinder", "no cpc grinder"]
        assert [r["keyword"] for r in asc_rows] == ["cheap grinder", "espresso grinder", "no cpc grinder"]
        assert desc_rows[0]["positionChange"] == 2
        assert desc_rows[0]["serpFeatures"] == {"video": True}

    def test_ranked_keywords_without_serp_features(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_ranked_keywords(website.id, 2840, [ranked_row("grinder")])

        [row] = cache.get_ranked_keywords(website.id, 2840, include_serp_features=False)
        assert "serpFeatures" not in row

    def test_recommendations(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        assert cache.get_recommendations(website.id) is None

        cache.set_recommendations(website.id, REPORT)
        cache.set_recommendations(website.id, {**REPORT, "executive_summary": "v2"})

        assert cache.get_recommendations(website.id)["executive_summary"] == "v2"

    def test_clear_website(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_overview(website.id, 2840, OVERVIEW)
        cache.upsert_keywords(website.id, 2840, [keyword_row("a")])

        cache.clear_website(website.id)

        assert db_session.query(DomainOverviewCache).count() == 0
        assert db_session.query(DomainKeywordsCache).count() == 0

    def test_stats(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.get_overview(website.id, 2840)
        cache.upsert_overview(website.id, 2840, OVERVIEW)
        cache.get_overview(website.id, 2840)

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate_percent"] == 50.0

    @pytest.mark.parametrize("value,expected", [
        (None, None),
        ("junk", 0.0),
        (-5, 0.0),
        (12.5, 12.5),
        (1e12, CacheLimits.MAX_DECIMAL),
    ])
    def test_clamp_decimal(self, value, expected):
        assert clamp_decimal(value) == expected


# =============================================================================
# SERVICE
# =============================================================================

class TestGetOverview:
    """Tests for website_data.get_overview()."""

    @pytest.mark.asyncio
    async def test_first_call_populates_cache(self, db_session, website):
        clients = dataforseo_clients()

        with Fetchers() as mocks:
            first = await website_data.get_overview(db_session, clients, website, region="us")
            second = await website_data.get_overview(db_session, clients, website, region="us")

        assert first["hasData"] is True
        assert first["needsRefresh"] is True
        assert first["overview"]["totalKeywords"] == 340
        assert first["overview"]["rankingDistribution"]["top3"] == 12
        assert first["topKeywords"][0]["keyword"] == "coffee grinder"
        assert first["competitors"][0]["domain"] == "rival.com"
        assert first["website"]["domain"] == "example.com"

        assert second["needsRefresh"] is False
        assert mocks["overview"].await_count == 1

    @pytest.mark.asyncio
    async def test_region_selects_location(self, db_session, website):
        with Fetchers() as mocks:
            await website_data.get_overview(db_session, dataforseo_clients(), website, region="de")

        assert mocks["overview"].await_args.args[2] == 2276
        assert WebsiteDataCache(db_session).get_overview(website.id, 2276) is not None

    @pytest.mark.asyncio
    async def test_force_refresh_refetches(self, db_session, website):
        clients = dataforseo_clients()
        with Fetchers() as mocks:
            await website_data.get_overview(db_session, clients, website)
            result = await website_data.get_overview(db_session, clients, website, force_refresh=True)

        assert result["needsRefresh"] is True
        assert mocks["overview"].await_count == 2

    @pytest.mark.asyncio
    async def test_failed_fetch_is_isolated(self, db_session, website):
        with Fetchers(overview=Failed("API request failed: 500")):
            result = await website_data.get_overview(db_session, dataforseo_clients(), website)

        assert result["hasData"] is False
        assert result["overview"] is None
        assert result["topKeywords"][0]["keyword"] == "coffee grinder"
        assert len(result["competitors"]) == 1

    @pytest.mark.asyncio
    async def test_degraded_overview_is_cached(self, db_session, website):
        with Fetchers(overview=Degraded(OVERVIEW, "used Labs")):
            result = await website_data.get_overview(db_session, dataforseo_clients(), website)
        assert result["hasData"] is True

    @pytest.mark.asyncio
    async def test_fetcher_exception_is_isolated(self, db_session, website):
        with Fetchers() as mocks:
            mocks["keywords"].side_effect = RuntimeError("boom")
            result = await website_data.get_overview(db_session, dataforseo_clients(), website)

        assert result["hasData"] is True
        assert result["topKeywords"] == []

    @pytest.mark.asyncio
    async def test_without_dataforseo_serves_empty(self, db_session, website):
        result = await website_data.get_overview(db_session, make_clients(), website)

        assert result["hasData"] is False
        assert result["overview"] is None
        assert result["topKeywords"] == []
        assert result["needsRefresh"] is True

    @pytest.mark.asyncio
    async def test_website_without_domain(self, db_session, user, make_website):
        website = make_website(user, domain=None)
        with Fetchers() as mocks:
            result = await website_data.get_overview(db_session, dataforseo_clients(), website)

        assert result["hasData"] is False
        assert mocks["overview"].await_count == 0


class TestUpdateMetrics:
    """Tests for website_data.update_metrics()."""

    @pytest.mark.asyncio
    async def test_refreshes_everything(self, db_session, website):
        cache = WebsiteDataCache(db_session)
        cache.upsert_keywords(website.id, 2840, [keyword_row("stale keyword")])

        with Fetchers():
            result = await website_data.update_metrics(db_session, dataforseo_clients(), website)

        assert result["success"] is True
        assert result["message"] == "Website metrics updated successfully"
        assert result["data"]["overview"] == "cached"
        assert result["data"]["keywordsCount"] == 1
        assert result["data"]["competitorsCount"] == 1
        assert [k["keyword"] for k in cache.get_top_keywords(website.id)] == ["coffee grinder"]
        assert cache.get_ranked_keywords(website.id, 2840)[0]["keyword"] == "burr grinder"

    @pytest.mark.asyncio
    async def test_failed_overview_reported(self, db_session, website):
        with Fetchers(overview=Failed("down"), ranked=Failed("down")):
            result = await website_data.update_metrics(db_session, dataforseo_clients(), website)

        assert result["data"]["overview"] == "failed"
        assert db_session.query(RankedKeywordsCache).count() == 0

    @pytest.mark.asyncio
    async def test_requires_domain(self, db_session, user, make_website):
        website = make_website(user, domain=None)
        with pytest.raises(WebsiteDataError) as exc_info:
            await website_data.update_metrics(db_session, dataforseo_clients(), website)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_dataforseo(self, db_session, website):
        with pytest.raises(WebsiteDataError) as exc_info:
            await website_data.update_metrics(db_session, make_clients(), website)
        assert exc_info.value.status_code == 503


class TestRankedKeywordsService:

    def test_empty_cache_message(self, db_session, website):
        result = website_data.ranked_keywords(db_session, website)
        assert result == {"success": True, "data": [], "cached": True, "message": NO_RANKED_KEYWORDS_MESSAGE}

    def test_returns_cached(self, db_session, website):
        WebsiteDataCache(db_session).upsert_ranked_keywords(website.id, 2840, [ranked_row("grinder", difficulty=30)])
        result = website_data.ranked_keywords(db_session, website, sort_by="difficulty")
        assert result["data"][0]["difficulty"] == 30
        assert "message" not in result


class TestKeywordRecommendations:
    """Tests for website_data.keyword_recommendations()."""

    @pytest.mark.asyncio
    async def test_no_keywords(self, db_session, website):
        result = await website_data.keyword_recommendations(db_session, make_clients(), website)
        assert result == {"success": False, "error": NO_KEYWORDS_MESSAGE, "data": None}

    @pytest.mark.asyncio
    async def test_generates_then_serves_cache(self, db_session, website):
        WebsiteDataCache(db_session).upsert_keywords(website.id, 2840, [keyword_row("burr grinder")])
        gemini = make_gemini("```json\n" + gemini_response(REPORT).text + "\n```")
        clients = make_clients(gemini)

        first = await website_data.keyword_recommendations(db_session, clients, website)
        second = await website_data.keyword_recommendations(db_session, clients, website)

        assert first == {"success": True, "data": REPORT, "cached": False}
        assert second["cached"] is True
        assert gemini.generate.await_count == 1
        assert gemini.generate.await_args.kwargs["json_mode"] is True
        assert "burr grinder" in gemini.generate.await_args.args[0]

    @pytest.mark.asyncio
    async def test_incomplete_report(self, db_session, website):
        WebsiteDataCache(db_session).upsert_keywords(website.id, 2840, [keyword_row("burr grinder")])
        clients = make_clients(make_gemini({"report_metadata": {}}))

        with pytest.raises(WebsiteDataError) as exc_info:
            await website_data.keyword_recommendations(db_session, clients, website)

        assert exc_info.value.message.startswith("Failed to parse AI response")
        assert "executive_summary" in exc_info.value.details
        assert WebsiteDataCache(db_session).get_recommendations(website.id) is None


# =============================================================================
# ENDPOINTS
# =============================================================================

class TestWebsiteDataEndpoints:
    """Tests for /api/website-data routes."""

    def test_requires_auth(self, client, website):
        response = client.post("/api/website-data/overview", json={"websiteId": str(website.id)})
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_overview(self, authed_client, website):
        response = authed_client.post("/api/website-data/overview", json={"websiteId": str(website.id)})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["hasData"] is False
        assert body["data"]["website"]["id"] == str(website.id)

    def test_unknown_website(self, authed_client):
        response = authed_client.post("/api/website-data/overview", json={"websiteId": str(uuid4())})
        assert response.status_code == 404
        assert response.json() == {"error": "Website not found", "success": False}

    def test_malformed_website_id(self, authed_client):
        response = authed_client.post("/api/website-data/overview", json={"websiteId": "not-a-uuid"})
        assert response.status_code == 404

    def test_foreign_website(self, authed_client, make_user, make_website):
        other = make_website(make_user())
        response = authed_client.post("/api/website-data/overview", json={"websiteId": str(other.id)})
        assert response.status_code == 403
        assert response.json() == {"error": "Website does not belong to user", "success": False}

    def test_missing_website_id(self, authed_client):
        response = authed_client.post("/api/website-data/overview", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields"
        assert response.json()["details"][0]["field"] == "websiteId"

    def test_update_metrics_without_dataforseo(self, authed_client, website):
        response = authed_client.post("/api/website-data/update-metrics", json={"websiteId": str(website.id)})

        assert response.status_code == 503
        assert response.json() == {
            "success": False,
            "error": "Failed to update website metrics",
            "details": "DataForSEO is not configured",
        }

    def test_update_metrics_without_domain(self, authed_client, user, make_website):
        website = make_website(user, domain=None)
        response = authed_client.post("/api/website-data/update-metrics", json={"websiteId": str(website.id)})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Website domain is required"}

    def test_update_metrics(self, authed_client, clients, website):
        clients.dataforseo = MagicMock()
        with Fetchers():
            response = authed_client.post("/api/website-data/update-metrics", json={"websiteId": str(website.id)})

        assert response.status_code == 200
        assert response.json()["data"]["cachedKeywordsCount"] == 1

    def test_ranked_keywords(self, authed_client, db_session, website):
        WebsiteDataCache(db_session).upsert_ranked_keywords(website.id, 2840, [
            ranked_row("big", volume=900),
            ranked_row("small", volume=10),
        ])
        response = authed_client.post("/api/website-data/ranked-keywords", json={
            "websiteId": str(website.id),
            "sortOrder": "asc",
        })

        assert response.status_code == 200
        assert [k["keyword"] for k in response.json()["data"]] == ["small", "big"]

    def test_ranked_keywords_invalid_sort(self, authed_client, website):
        response = authed_client.post("/api/website-data/ranked-keywords", json={
            "websiteId": str(website.id),
            "sortBy": "position",
        })
        assert response.status_code == 400

    def test_recommendations_incomplete_report(self, authed_client, clients, db_session, website):
        WebsiteDataCache(db_session).upsert_keywords(website.id, 2840, [keyword_row("burr grinder")])
        clients.gemini.generate = AsyncMock(return_value=gemini_response("not json"))

        response = authed_client.post(
            "/api/website-data/analyze-keyword-recommendations",
            json={"websiteId": str(website.id)},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Failed to parse AI response")

    def test_recommendations_without_keywords(self, authed_client, website):
        response = authed_client.post(
            "/api/website-data/analyze-keyword-recommendations",
            json={"websiteId": str(website.id)},
        )
        assert response.status_code == 200
        assert response.json()["error"] == NO_KEYWORDS_MESSAGE
