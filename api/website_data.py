"""
API Endpoints for Website Data

Handles (all require auth and website ownership):
1. Dashboard overview (cached, populated on first access)
2. Full metrics refresh
3. Cached ranked keywords
4. Keyword recommendation report
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user, get_owned_website
from src.auth.models import User
from src.database.session import get_db
from src.integrations import ExternalAPIClients
from src.services import website_data
from src.services.website_data import WebsiteDataError

from .dependencies import get_clients

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/website-data", tags=["Website Data"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class OverviewRequest(BaseModel):
    websiteId: str = Field(..., min_length=1)
    region: Optional[str] = None
    forceRefresh: bool = False


class UpdateMetricsRequest(BaseModel):
    websiteId: str = Field(..., min_length=1)
    region: Optional[str] = None


class RankedKeywordsRequest(BaseModel):
    websiteId: str = Field(..., min_length=1)
    limit: int = Field(100, ge=1, le=1000)
    region: Optional[str] = None
    includeSerpFeatures: bool = True
    sortBy: Literal["cpc", "difficulty", "searchVolume"] = "searchVolume"
    sortOrder: Literal["asc", "desc"] = "desc"


class RecommendationsRequest(BaseModel):
    websiteId: str = Field(..., min_length=1)
    topN: int = Field(10, ge=1, le=100)


def error_response(error: WebsiteDataError, fallback: Optional[str] = None) -> JSONResponse:
    body = {"success": False, "error": fallback or error.message}
    if fallback or error.details:
        body["details"] = error.details or error.message
    return JSONResponse(status_code=error.status_code, content=body)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/overview")
async def overview(
    request: OverviewRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clients: ExternalAPIClients = Depends(get_clients),
):
    """Overview, top keywords and competitors for a website."""
    website = get_owned_website(db, request.websiteId, current_user)
    data = await website_data.get_overview(
        db, clients, website, region=request.region, force_refresh=request.forceRefresh
    )
    return {"success": True, "data": data}


@router.post("/update-metrics")
async def update_metrics(
    request: UpdateMetricsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clients: ExternalAPIClients = Depends(get_clients),
):
    """Drop the website's cache and refetch everything from DataForSEO."""
    website = get_owned_website(db, request.websiteId, current_user)
    try:
        return await website_data.update_metrics(db, clients, website, region=request.region)
    except WebsiteDataError as e:
        if e.status_code == 400:
            return error_response(e)
        logger.error(f"[WebsiteData] Update metrics failed for {website.website_domain}: {e}")
        return error_response(e, fallback="Failed to update website metrics")
    except Exception as e:
        logger.exception(f"[WebsiteData] Update metrics failed for {website.website_domain}")
        return error_response(WebsiteDataError(str(e), details=str(e)), fallback="Failed to update website metrics")


@router.post("/ranked-keywords")
async def ranked_keywords(
    request: RankedKeywordsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Cached ranked keywords, sortable; never calls DataForSEO."""
    website = get_owned_website(db, request.websiteId, current_user)
    return website_data.ranked_keywords(
        db,
        website,
        limit=request.limit,
        region=request.region,
        include_serp_features=request.includeSerpFeatures,
        sort_by=request.sortBy,
        sort_order=request.sortOrder,
    )


@router.post("/analyze-keyword-recommendations")
async def analyze_keyword_recommendations(
    request: RecommendationsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clients: ExternalAPIClients = Depends(get_clients),
):
    """Keyword recommendation report over the website's best-ranked keywords."""
    website = get_owned_website(db, request.websiteId, current_user)
    try:
        return await website_data.keyword_recommendations(db, clients, website, top_n=request.topN)
    except WebsiteDataError as e:
        return error_response(e)
