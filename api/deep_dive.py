"""
API Endpoints for Deep Dive

Handles:
1. Strategy report only (/api/deep-dive-strategy)
2. Full deep dive pipeline (/api/deep-dive-enhanced)
"""

import logging
from typing import Any, Dict, Optional, Union

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.agents import SEOResearcherAgent
from src.analyzer.client import GeminiError
from src.integrations import ExternalAPIClients
from src.models.keyword import IntentType, now_ms
from src.services import DeepDiveError, DeepDiveOptions, execute_deep_dive

from .dependencies import get_clients

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Deep Dive"])


class DeepDiveStrategyRequest(BaseModel):
    keyword: str = Field(..., min_length=1)
    uiLanguage: str = "en"
    targetLanguage: str = "en"
    targetMarket: str = "global"
    strategyPrompt: Optional[str] = None


class DeepDiveEnhancedRequest(BaseModel):
    """Keyword as a plain string or a KeywordData object."""
    keyword: Union[str, Dict[str, Any]]
    uiLanguage: str = "en"
    targetLanguage: str = "en"
    targetMarket: str = "global"
    strategyPrompt: Optional[str] = None
    generateImages: bool = False
    stopAfterStrategy: bool = True
    reference: Optional[Dict[str, Any]] = None


def to_keyword_data(keyword: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Wrap a bare keyword string as KeywordData."""
    if isinstance(keyword, dict):
        if not keyword.get("keyword"):
            raise HTTPException(status_code=400, detail="Missing required fields")
        return keyword
    if not keyword.strip():
        raise HTTPException(status_code=400, detail="Missing required fields")
    return {
        "id": f"kw-{now_ms()}",
        "keyword": keyword,
        "translation": keyword,
        "intent": IntentType.INFORMATIONAL.value,
        "volume": 0,
    }


@router.post("/deep-dive-strategy")
async def deep_dive_strategy(
    request: DeepDiveStrategyRequest,
    clients: ExternalAPIClients = Depends(get_clients),
) -> Dict[str, Any]:
    """Generate the SEO strategy report for one keyword."""
    researcher = SEOResearcherAgent(clients.gemini)
    try:
        report = await researcher.generate_strategy(
            request.keyword,
            ui_language=request.uiLanguage,
            target_language=request.targetLanguage,
            target_market=request.targetMarket,
            custom_prompt=request.strategyPrompt,
        )
    except (GeminiError, httpx.HTTPError) as e:
        logger.error(f"Deep dive strategy failed for '{request.keyword}': {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate strategy report: {e}")
    return {"report": report}


@router.post("/deep-dive-enhanced")
async def deep_dive_enhanced(
    request: DeepDiveEnhancedRequest,
    clients: ExternalAPIClients = Depends(get_clients),
) -> Dict[str, Any]:
    """
    Run the deep dive pipeline.

    The report is the strategy report merged with the competition and
    intent findings; content, review and images are added when the run
    does not stop after the strategy.
    """
    keyword = to_keyword_data(request.keyword)
    logger.info(f"Enhanced deep dive for keyword: {keyword['keyword']}")

    options = DeepDiveOptions(
        keyword=keyword,
        ui_language=request.uiLanguage,
        target_language=request.targetLanguage,
        target_market=request.targetMarket,
        strategy_prompt=request.strategyPrompt,
        generate_images=request.generateImages,
        stop_after_strategy=request.stopAfterStrategy,
        reference=request.reference,
    )
    try:
        result = await execute_deep_dive(clients, options)
    except DeepDiveError as e:
        logger.error(f"Deep dive failed at step {e.step}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    data = result.to_dict()
    report = {**data.pop("seoStrategyReport", {}), **data}
    return {"report": report}
