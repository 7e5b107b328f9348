"""
API Endpoints for Keyword Mining

Handles:
1. Keyword generation rounds (generate -> SE-Ranking -> ranking analysis)
2. Ranking analysis for an existing keyword list
3. Batch translate-and-analyze
4. Free text translation
"""

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.analyzer.client import translate_text
from src.integrations import ExternalAPIClients
from src.models.keyword import MiningStrategy
from src.services import (
    KeywordMiningOptions,
    execute_keyword_mining,
    analyze_keywords_ranking,
    execute_batch_analysis,
)
from src.services.keyword_mining import enrich_with_seranking

from .dependencies import get_clients

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Keywords"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class GenerateKeywordsRequest(BaseModel):
    """One keyword mining round."""
    seedKeyword: str = Field(..., min_length=1)
    targetLanguage: str = "en"
    systemInstruction: Optional[str] = None
    existingKeywords: List[str] = Field(default_factory=list)
    roundIndex: int = Field(1, ge=1)
    wordsPerRound: int = Field(10, ge=1, le=50)
    miningStrategy: MiningStrategy = MiningStrategy.HORIZONTAL
    userSuggestion: str = ""
    uiLanguage: str = "en"
    industry: Optional[str] = None
    additionalSuggestions: Optional[str] = None
    analyzeRanking: bool = True
    analyzePrompt: Optional[str] = None
    websiteUrl: Optional[str] = None
    websiteDR: Optional[float] = None
    searchEngine: str = "google"


class AnalyzeRankingRequest(BaseModel):
    keywords: List[Dict[str, Any]] = Field(..., min_length=1)
    systemInstruction: Optional[str] = None
    uiLanguage: str = "en"
    targetLanguage: str = "en"
    targetSearchEngine: str = "google"
    websiteDR: Optional[float] = None


class BatchTranslateAnalyzeRequest(BaseModel):
    """Keywords as a list or a comma-separated string."""
    keywords: Union[List[str], str]
    targetLanguage: str = "en"
    systemInstruction: Optional[str] = None
    uiLanguage: str = "en"


class TranslateTextRequest(BaseModel):
    text: str = Field(..., min_length=1)
    targetLanguage: str = Field(..., min_length=1)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/generate-keywords")
async def generate_keywords(
    request: GenerateKeywordsRequest,
    clients: ExternalAPIClients = Depends(get_clients),
) -> Dict[str, Any]:
    """Run one keyword mining round for a seed keyword."""
    options = KeywordMiningOptions(
        seed_keyword=request.seedKeyword,
        target_language=request.targetLanguage,
        system_instruction=request.systemInstruction,
        existing_keywords=request.existingKeywords,
        round_index=request.roundIndex,
        words_per_round=request.wordsPerRound,
        mining_strategy=request.miningStrategy.value,
        user_suggestion=request.userSuggestion,
        ui_language=request.uiLanguage,
        industry=request.industry,
        additional_suggestions=request.additionalSuggestions,
        analyze_ranking=request.analyzeRanking,
        analyze_prompt=request.analyzePrompt,
        website_url=request.websiteUrl,
        website_dr=request.websiteDR,
        search_engine=request.searchEngine,
    )
    return await execute_keyword_mining(clients, options)


@router.post("/analyze-ranking")
async def analyze_ranking(
    request: AnalyzeRankingRequest,
    clients: ExternalAPIClients = Depends(get_clients),
) -> Dict[str, Any]:
    """Enrich keywords with SE-Ranking data, then score ranking probability."""
    logger.info(f"Analyzing ranking for {len(request.keywords)} keywords ({request.targetLanguage})")
    enriched = await enrich_with_seranking(clients.seranking, request.keywords, request.targetLanguage)
    keywords = await analyze_keywords_ranking(
        clients,
        enriched,
        system_instruction=request.systemInstruction,
        ui_language=request.uiLanguage,
        target_language=request.targetLanguage,
        search_engine=request.targetSearchEngine,
        website_dr=request.websiteDR,
        website_url=request.websiteUrl,
    )
    return {"keywords": keywords}


@router.post("/batch-translate-analyze")
async def batch_translate_analyze(
    request: BatchTranslateAnalyzeRequest,
    clients: ExternalAPIClients = Depends(get_clients),
) -> Dict[str, Any]:
    """Translate a keyword list into the target language and analyze it."""
    try:
        return await execute_batch_analysis(
            clients,
            request.keywords,
            target_language=request.targetLanguage,
            system_instruction=request.systemInstruction,
            ui_language=request.uiLanguage,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/translate-text")
async def translate(
    request: TranslateTextRequest,
    clients: ExternalAPIClients = Depends(get_clients),
) -> Dict[str, str]:
    """Translate a system instruction into Chinese or English."""
    translated = await translate_text(clients.gemini, request.text, request.targetLanguage)
    return {"translated": translated}
