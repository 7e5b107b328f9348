"""
Keyword Mining Service

Orchestrates one keyword mining round:
1. Generate keywords (KeywordMiningAgent)
2. Enrich with SE-Ranking volume / difficulty / CPC
3. Analyze ranking probability (RankingAnalyzer), when enabled

Each step is a standalone function so it can be exercised on its own.
Enrichment and analysis failures keep the keywords from the previous step.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.agents import KeywordMiningAgent, RankingAnalyzer, ProgressCallback
from src.integrations import ExternalAPIClients, SERankingClient, merge_seranking_data
from src.models.keyword import MiningStrategy, keyword_strings

logger = logging.getLogger(__name__)


@dataclass
class KeywordMiningOptions:
    """Inputs for one mining round."""
    seed_keyword: str
    target_language: str = "en"
    system_instruction: Optional[str] = None
    existing_keywords: List[str] = field(default_factory=list)
    round_index: int = 1
    words_per_round: int = 10
    mining_strategy: str = MiningStrategy.HORIZONTAL.value
    user_suggestion: str = ""
    ui_language: str = "en"
    industry: Optional[str] = None
    additional_suggestions: Optional[str] = None
    analyze_ranking: bool = True
    analyze_prompt: Optional[str] = None
    website_url: Optional[str] = None
    website_dr: Optional[float] = None
    search_engine: str = "google"


# ============================================================================
# STEPS
# ============================================================================

async def enrich_with_seranking(
    seranking: Optional[SERankingClient],
    keywords: List[Dict[str, Any]],
    language: str = "en",
    on_progress: Optional[ProgressCallback] = None,
) -> List[Dict[str, Any]]:
    """Attach SE-Ranking data; returns the input unchanged when the fetch fails."""
    if seranking is None or not keywords:
        return keywords

    if on_progress:
        on_progress(f"Fetching volume and difficulty for {len(keywords)} keywords from SE-Ranking...")

    result = await seranking.fetch_keyword_data(keyword_strings(keywords), language)
    if not result.ok:
        logger.warning(f"SE-Ranking enrichment failed: {result.reason}. Continuing without SE-Ranking data.")
        return keywords
    if result.degraded:
        logger.warning(f"SE-Ranking enrichment degraded: {result.reason}")

    return merge_seranking_data(keywords, result.data)


async def analyze_keywords_ranking(
    clients: ExternalAPIClients,
    keywords: List[Dict[str, Any]],
    system_instruction: Optional[str] = None,
    ui_language: str = "en",
    target_language: str = "en",
    industry: Optional[str] = None,
    search_engine: str = "google",
    website_dr: Optional[float] = None,
    website_url: Optional[str] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[Dict[str, Any]]:
    analyzer = RankingAnalyzer(clients.gemini, serp=clients.serp, on_progress=on_progress)
    return await analyzer.analyze(
        keywords,
        system_instruction=system_instruction,
        ui_language=ui_language,
        target_language=target_language,
        industry=industry,
        search_engine=search_engine,
        website_dr=website_dr,
        website_url=website_url,
    )


# ============================================================================
# FULL ROUND
# ============================================================================

async def execute_keyword_mining(
    clients: ExternalAPIClients,
    options: KeywordMiningOptions,
    on_progress: Optional[ProgressCallback] = None,
) -> Dict[str, Any]:
    """
    Run a complete mining round.

    Returns:
        {keywords, count, seedKeyword, targetLanguage, roundIndex, rawResponse}
    """
    logger.info(
        f"Starting keyword mining for '{options.seed_keyword}' "
        f"({options.target_language}, round {options.round_index})"
    )

    if on_progress:
        on_progress("Step 1: Generating keywords...")
    agent = KeywordMiningAgent(clients.gemini, on_progress=on_progress)
    generated = await agent.generate_keywords(
        options.seed_keyword,
        target_language=options.target_language,
        system_instruction=options.system_instruction,
        existing_keywords=options.existing_keywords,
        round_index=options.round_index,
        words_per_round=options.words_per_round,
        mining_strategy=options.mining_strategy,
        user_suggestion=options.user_suggestion,
        ui_language=options.ui_language,
        industry=options.industry,
        additional_suggestions=options.additional_suggestions,
    )
    keywords = generated["keywords"]
    logger.info(f"Generated {len(keywords)} keywords")

    if on_progress:
        on_progress("Step 2: Fetching base SEO data...")
    keywords = await enrich_with_seranking(clients.seranking, keywords, options.target_language, on_progress)

    if options.analyze_ranking and keywords:
        if on_progress:
            on_progress("Step 3: Analyzing ranking probability...")
        try:
            keywords = await analyze_keywords_ranking(
                clients,
                keywords,
                system_instruction=options.analyze_prompt or options.system_instruction,
                ui_language=options.ui_language,
                target_language=options.target_language,
                industry=options.industry,
                search_engine=options.search_engine,
                website_dr=options.website_dr,
                website_url=options.website_url,
                on_progress=on_progress,
            )
        except Exception as e:
            logger.error(f"Ranking analysis failed, returning unanalyzed keywords: {e}")

    return {
        "keywords": keywords,
        "count": len(keywords),
        "seedKeyword": options.seed_keyword,
        "targetLanguage": options.target_language,
        "roundIndex": options.round_index,
        "rawResponse": generated["rawResponse"],
    }
