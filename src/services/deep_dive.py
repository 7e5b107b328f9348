"""
Deep Dive Service

Orchestrates the 8-step deep dive for one keyword:

1. Search engine preferences
2. Competitor analysis (live SERP)
3. SEO strategy report
4. Core keyword extraction
5. SE-Ranking + SERP data for core keywords, then intent / probability
6. Content generation
7. Quality review
8. Image generation (optional)

Steps 1, 2, 5, 7 and 8 degrade: a failure is logged and the step's
output is left out. Steps 3, 4 and 6 are required; a failure there
raises DeepDiveError. With stop_after_strategy the run ends after step 5
and returns the report rendered as HTML.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from src.agents import (
    SEOResearcherAgent,
    ContentWriterAgent,
    QualityReviewerAgent,
    ImageCreativeAgent,
)
from src.analyzer.client import GeminiError
from src.integrations import ExternalAPIClients, index_by_keyword
from src.reporter.strategy import render_strategy_html

logger = logging.getLogger(__name__)

MAX_SERP_KEYWORDS = 5
SERP_DELAY_SECONDS = 0.3

StepCallback = Callable[[int, str], None]


class DeepDiveError(Exception):
    """Raised when a required deep dive step fails."""

    def __init__(self, message: str, step: int = None):
        super().__init__(message)
        self.step = step


@dataclass
class DeepDiveOptions:
    keyword: Dict[str, Any]
    ui_language: str = "en"
    target_language: str = "en"
    target_market: str = "global"
    strategy_prompt: Optional[str] = None
    generate_images: bool = False
    stop_after_strategy: bool = False
    reference: Optional[Dict[str, Any]] = None


@dataclass
class DeepDiveResult:
    seo_strategy_report: Dict[str, Any] = field(default_factory=dict)
    core_keywords: List[str] = field(default_factory=list)
    search_preferences: Optional[Dict[str, Any]] = None
    competitor_analysis: Optional[Dict[str, Any]] = None
    serp_competition_data: List[Dict[str, Any]] = field(default_factory=list)
    ranking_probability: Optional[str] = None
    ranking_analysis: Optional[str] = None
    search_intent: Optional[str] = None
    intent_match: Optional[str] = None
    generated_content: Optional[Dict[str, Any]] = None
    quality_review: Optional[Dict[str, Any]] = None
    visual_themes: Optional[Dict[str, Any]] = None
    image_prompts: Optional[List[Dict[str, str]]] = None
    generated_images: Optional[List[Dict[str, Any]]] = None
    html_content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "seoStrategyReport": self.seo_strategy_report,
            "coreKeywords": self.core_keywords,
            "searchPreferences": self.search_preferences,
            "competitorAnalysis": self.competitor_analysis,
            "serpCompetitionData": self.serp_competition_data,
            "rankingProbability": self.ranking_probability,
            "rankingAnalysis": self.ranking_analysis,
            "searchIntent": self.search_intent,
            "intentMatch": self.intent_match,
            "generatedContent": self.generated_content,
            "qualityReview": self.quality_review,
            "visualThemes": self.visual_themes,
            "imagePrompts": self.image_prompts,
            "generatedImages": self.generated_images,
            "htmlContent": self.html_content,
        }
        return {k: v for k, v in data.items() if v is not None}


# ============================================================================
# STEP 5: CORE KEYWORD COMPETITION
# ============================================================================

async def fetch_core_keyword_competition(
    clients: ExternalAPIClients,
    core_keywords: List[str],
    target_language: str = "en",
    max_keywords: int = MAX_SERP_KEYWORDS,
    delay: float = SERP_DELAY_SECONDS,
) -> List[Dict[str, Any]]:
    """
    SE-Ranking metrics plus the top 3 SERP results for each core keyword.

    Returns:
        [{keyword, serpResults, serankingData?, error?}, ...]
    """
    metrics: Dict[str, Dict[str, Any]] = {}
    if clients.seranking is not None and core_keywords:
        result = await clients.seranking.fetch_keyword_data(core_keywords, target_language)
        if result.ok:
            metrics = index_by_keyword(result.data)
        else:
            logger.warning(f"SE-Ranking lookup for core keywords failed: {result.reason}")

    selected = core_keywords[:max_keywords]
    competition = []
    for i, keyword in enumerate(selected):
        entry: Dict[str, Any] = {"keyword": keyword, "serpResults": []}
        if clients.serp is not None:
            serp = await clients.serp.search(keyword, target_language)
            if serp.ok:
                entry["serpResults"] = [
                    {"title": r.get("title", ""), "url": r.get("url", ""), "snippet": r.get("snippet", "")}
                    for r in serp.data["results"][:3]
                ]
            else:
                entry["error"] = serp.reason

        row = metrics.get(keyword.lower())
        if row:
            entry["serankingData"] = {
                "volume": row.get("volume"),
                "difficulty": row.get("difficulty"),
                "cpc": row.get("cpc"),
                "competition": row.get("competition"),
            }
        competition.append(entry)

        if i < len(selected) - 1:
            await asyncio.sleep(delay)

    return competition


# ============================================================================
# PIPELINE
# ============================================================================

async def execute_deep_dive(
    clients: ExternalAPIClients,
    options: DeepDiveOptions,
    on_progress: Optional[StepCallback] = None,
) -> DeepDiveResult:
    """
    Run the deep dive pipeline.

    Raises:
        DeepDiveError: When the strategy report or content generation fails
    """
    keyword = options.keyword["keyword"]
    result = DeepDiveResult()

    def progress(step: int, message: str):
        logger.info(f"[Deep Dive] Step {step}: {message}")
        if on_progress:
            on_progress(step, message)

    def agent_progress(step: int):
        return lambda message: on_progress(step, message) if on_progress else None

    gemini = clients.gemini
    researcher = SEOResearcherAgent(gemini)

    # Step 1
    progress(1, "Analyzing search engine preferences...")
    researcher.on_progress = agent_progress(1)
    try:
        result.search_preferences = await researcher.analyze_search_preferences(
            keyword, options.target_language, options.target_market
        )
    except (GeminiError, httpx.HTTPError) as e:
        logger.warning(f"[Deep Dive] Search preferences analysis failed: {e}")

    # Step 2
    progress(2, "Analyzing competitors...")
    researcher.on_progress = agent_progress(2)
    try:
        serp_results: List[Dict[str, Any]] = []
        if clients.serp is not None:
            serp_results = (await clients.serp.search(keyword, options.target_language)).value_or({}).get("results", [])
        result.competitor_analysis = await researcher.analyze_competitors(
            keyword, serp_results, options.target_language, options.target_market
        )
    except (GeminiError, httpx.HTTPError) as e:
        logger.warning(f"[Deep Dive] Competitor analysis failed: {e}")

    # Step 3
    progress(3, "Generating SEO strategy report...")
    researcher.on_progress = agent_progress(3)
    try:
        result.seo_strategy_report = await researcher.generate_strategy(
            keyword,
            result.search_preferences,
            result.competitor_analysis,
            ui_language=options.ui_language,
            target_language=options.target_language,
            target_market=options.target_market,
            custom_prompt=options.strategy_prompt,
            reference=options.reference,
        )
    except (GeminiError, httpx.HTTPError) as e:
        raise DeepDiveError(f"Failed to generate strategy report: {e}", step=3) from e

    # Step 4
    progress(4, "Extracting core keywords...")
    result.core_keywords = await researcher.extract_core_keywords(result.seo_strategy_report, options.target_language)
    logger.info(f"[Deep Dive] Extracted {len(result.core_keywords)} core keywords")

    # Step 5
    progress(5, "Fetching SE Ranking and SERP data...")
    result.serp_competition_data = await fetch_core_keyword_competition(
        clients, result.core_keywords, options.target_language
    )

    progress(5, "Analyzing search intent and ranking probability...")
    serp_sample = [r for entry in result.serp_competition_data for r in entry["serpResults"]]
    intent = await researcher.assess_keyword_intent(keyword, serp_sample, options.ui_language)
    result.ranking_probability = intent["probability"]
    result.ranking_analysis = intent["reasoning"]
    result.search_intent = intent["searchIntent"]
    result.intent_match = intent["intentAnalysis"]

    if options.stop_after_strategy:
        progress(5, "Generating strategy HTML content...")
        result.html_content = render_strategy_html(result.seo_strategy_report, options.ui_language)
        return result

    # Step 6
    progress(6, "Generating content...")
    writer = ContentWriterAgent(gemini, on_progress=agent_progress(6))
    try:
        result.generated_content = await writer.write_content(
            result.seo_strategy_report,
            result.search_preferences,
            result.competitor_analysis,
            options.target_market,
        )
    except (GeminiError, httpx.HTTPError) as e:
        raise DeepDiveError(f"Failed to generate content: {e}", step=6) from e

    # Step 7
    progress(7, "Reviewing content quality...")
    reviewer = QualityReviewerAgent(gemini, on_progress=agent_progress(7))
    try:
        result.quality_review = await reviewer.review(result.generated_content, keyword)
    except (GeminiError, httpx.HTTPError) as e:
        logger.warning(f"[Deep Dive] Quality review failed: {e}")

    # Step 8
    if options.generate_images:
        progress(8, "Generating images...")
        artist = ImageCreativeAgent(gemini, on_progress=agent_progress(8))
        try:
            title = result.generated_content.get("title") or result.seo_strategy_report.get("pageTitleH1")
            result.visual_themes = await artist.extract_visual_themes(result.generated_content)
            result.image_prompts = artist.build_image_prompts(result.visual_themes["themes"], keyword, title)
            result.generated_images = await artist.generate_images(result.image_prompts)
        except (GeminiError, httpx.HTTPError) as e:
            logger.warning(f"[Deep Dive] Image generation failed: {e}")

    progress(8, "Generating HTML content...")
    result.html_content = render_strategy_html(result.seo_strategy_report, options.ui_language)
    logger.info(f"[Deep Dive] Completed for '{keyword}'")
    return result
