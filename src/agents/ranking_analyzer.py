"""
Ranking Analyzer Agent

Estimates page-one ranking probability for each keyword.

Flow per keyword:
1. Fetch the live SERP (ThorData) when a SERP client is available
2. Build a system instruction from the SERP sample, SE-Ranking metrics
   and the optional industry filter
3. Ask the model for a JSON verdict
4. Apply the weak-SERP override and attach the blue ocean score

Keywords are processed in batches of 5 with a 300 ms pause between
batches, inside a 55 s wall-clock budget. Every input keyword gets a
result: keywords that fail get a Low-probability fallback, keywords the
budget never reaches get a timeout fallback. Output order matches input.

Weak-SERP override: when the result count is a number in [0, 20) the
probability is forced to High and topDomainType to "Weak Page",
whatever the model said.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from src.analyzer.client import GeminiError
from src.integrations.serp import SerpClient, SerpError
from src.models.keyword import get_language_name

from .base import BaseAgent, ProgressCallback
from .prompts import (
    DEFAULT_SERP_ANALYSIS,
    RANKING_OUTPUT_SCHEMA,
    industry_filter_instruction,
)

logger = logging.getLogger(__name__)

BATCH_SIZE = 5
BATCH_DELAY_SECONDS = 0.3
TIME_BUDGET_SECONDS = 55.0
WEAK_SERP_THRESHOLD = 20
SNIPPETS_KEPT = 3

REASON_API_FAILED = "API Analysis Failed (Timeout or Rate Limit)."
REASON_TASK_FAILED = "Analysis failed due to timeout or error"
REASON_BUDGET = "Analysis timeout - too many keywords to process"

LOW_RELEVANCE_TERMS = [
    "irrelevant", "off-topic", "weakly related", "low relevance",
    "not matching", "mismatch", "wrong intent", "mixed intent",
]
LOW_QUALITY_TERMS = [
    "short", "thin content", "outdated", "old", "shallow", "basic",
    "low quality", "poorly written", "automated", "ai generated",
    "spammy", "lacks depth",
]


# ============================================================================
# SCORING
# ============================================================================

def _difficulty_of(keyword: Dict[str, Any]) -> Optional[float]:
    value = keyword.get("difficulty")
    if value is None:
        value = (keyword.get("serankingData") or {}).get("difficulty")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def calculate_blue_ocean_score(keyword: Dict[str, Any]) -> Dict[str, Any]:
    """
    Score how uncontested a keyword's SERP looks (0-100).

    Returns:
        {"totalScore": int, "factors": [{"name", "score", "reason"}, ...]}
    """
    factors: List[Dict[str, Any]] = []

    domain_type = keyword.get("topDomainType") or ""
    if domain_type in ("Forum/Social", "Weak Page"):
        factors.append({
            "name": "Weak competitors",
            "score": 30,
            "reason": f"Top results are dominated by {domain_type} pages",
        })

    intent_text = f"{keyword.get('intentAssessment') or ''} {keyword.get('intentAnalysis') or ''}".lower()
    if any(term in intent_text for term in LOW_RELEVANCE_TERMS):
        factors.append({
            "name": "Intent mismatch",
            "score": 25,
            "reason": "Ranking pages do not match the search intent",
        })

    reasoning = (keyword.get("reasoning") or "").lower()
    if any(term in reasoning for term in LOW_QUALITY_TERMS):
        factors.append({
            "name": "Low content quality",
            "score": 20,
            "reason": "Ranking content is thin, outdated or low quality",
        })

    snippets = keyword.get("topSerpSnippets")
    if isinstance(snippets, list) and not snippets:
        factors.append({
            "name": "Empty SERP",
            "score": 20,
            "reason": "No organic results were found",
        })

    difficulty = _difficulty_of(keyword)
    if difficulty is not None:
        if difficulty <= 20:
            factors.append({"name": "Low difficulty", "score": 15, "reason": f"Keyword difficulty {difficulty:g}"})
        elif difficulty <= 40:
            factors.append({"name": "Moderate difficulty", "score": 5, "reason": f"Keyword difficulty {difficulty:g}"})

    total = min(100, sum(f["score"] for f in factors))
    return {"totalScore": total, "factors": factors}


def apply_serp_override(analysis: Dict[str, Any]) -> Dict[str, Any]:
    """Force High / Weak Page when the SERP has fewer than 20 results."""
    count = analysis.get("serpResultCount")
    if isinstance(count, (int, float)) and not isinstance(count, bool) and 0 <= count < WEAK_SERP_THRESHOLD:
        analysis["probability"] = "High"
        analysis["topDomainType"] = "Weak Page"
    return analysis


def fallback_result(keyword: Dict[str, Any], reasoning: str) -> Dict[str, Any]:
    return {
        **keyword,
        "probability": "Low",
        "reasoning": reasoning,
        "topDomainType": "Unknown",
        "serpResultCount": -1,
    }


# ============================================================================
# PROMPT BUILDING
# ============================================================================

def serp_context(
    keyword: str,
    results: List[Dict[str, Any]],
    engine: str = "Google",
    website_dr: Optional[float] = None,
    website_url: Optional[str] = None,
) -> str:
    if not results:
        return "Note: SERP data unavailable."
    lines = [f"TOP 3 {engine} RESULTS for \"{keyword}\":"]
    for i, r in enumerate(results[:SNIPPETS_KEPT]):
        lines.append(f"{i + 1}. {r.get('title', '')} | {r.get('url', '')}")
    if website_url:
        lines.append(f"Your site: {website_url}")
    if website_dr is not None:
        lines.append(f"Your DR: {website_dr}")
    return "\n".join(lines)


def keyword_data_context(keyword: Dict[str, Any]) -> str:
    data = keyword.get("serankingData") or {}
    if data.get("is_data_found"):
        return (
            f"Vol={data.get('volume', 0)}, KD={data.get('difficulty', 0)}, "
            f"CPC=${data.get('cpc', 0)}"
        )
    return "No data (volume and difficulty unavailable for this keyword)"


def build_system_instruction(
    keyword: Dict[str, Any],
    results: List[Dict[str, Any]],
    system_instruction: Optional[str] = None,
    ui_language: str = "en",
    industry: Optional[str] = None,
    search_engine: str = "google",
    website_dr: Optional[float] = None,
    website_url: Optional[str] = None,
) -> str:
    engine = (search_engine or "google").capitalize()
    output_lang = "Chinese" if ui_language == "zh" else "English"
    base = system_instruction or DEFAULT_SERP_ANALYSIS

    return f"""{base}{industry_filter_instruction(industry)}

TASK: Analyze {engine} SERP for "{keyword['keyword']}"

{serp_context(keyword['keyword'], results, engine, website_dr, website_url)}

KEYWORD DATA: {keyword_data_context(keyword)}

OUTPUT ({output_lang}, JSON only):
{{
  "searchIntent": "What the searcher wants",
  "intentAnalysis": "Whether the SERP satisfies that intent",
  "intentAssessment": "User Intent: ... | SERP Match: ...",
  "topDomainType": "Big Brand | Niche Site | Forum/Social | Gov/Edu | Weak Page",
  "probability": "High | Medium | Low",
  "relevanceScore": 0.0,
  "reasoning": "1-3 sentences"
}}"""


def build_prompt(keyword: str) -> str:
    return (
        f"Analyze SEO competition for: {keyword}\n\n"
        "CRITICAL: Return ONLY a valid JSON object. No markdown, no text outside the JSON object."
    )


# ============================================================================
# AGENT
# ============================================================================

class RankingAnalyzer(BaseAgent):
    """
    Ranking Analyzer - batch SERP competition analysis.

    Usage:
        analyzer = RankingAnalyzer(gemini, serp=serp_client)
        analyzed = await analyzer.analyze(keywords, ui_language="en")
        assert len(analyzed) == len(keywords)
    """

    def __init__(
        self,
        client,
        serp: Optional[SerpClient] = None,
        on_progress: Optional[ProgressCallback] = None,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
        time_budget: float = TIME_BUDGET_SECONDS,
    ):
        super().__init__(client, on_progress)
        self.serp = serp
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.time_budget = time_budget

    @property
    def name(self) -> str:
        return "ranking_analyzer"

    @property
    def display_name(self) -> str:
        return "Ranking Analyzer"

    async def _fetch_serp(self, keyword: str, language: str) -> Optional[Dict[str, Any]]:
        if self.serp is None:
            return None
        result = await self.serp.search(keyword, language)
        if not result.ok:
            logger.warning(f"[{self.name}] SERP unavailable for '{keyword}': {result.reason}")
            return None
        return result.data

    async def analyze_one(
        self,
        keyword: Dict[str, Any],
        system_instruction: Optional[str] = None,
        ui_language: str = "en",
        target_language: str = "en",
        industry: Optional[str] = None,
        search_engine: str = "google",
        website_dr: Optional[float] = None,
        website_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Analyze one keyword. Never raises; failures produce a Low fallback."""
        try:
            serp = await self._fetch_serp(keyword["keyword"], target_language)
            results = (serp or {}).get("results") or []

            system = build_system_instruction(
                keyword,
                results,
                system_instruction=system_instruction,
                ui_language=ui_language,
                industry=industry,
                search_engine=search_engine,
                website_dr=website_dr,
                website_url=website_url,
            )
            analysis, _ = await self.generate_json(
                build_prompt(keyword["keyword"]),
                system_instruction=system,
                expect="object",
                default=None,
                response_schema=RANKING_OUTPUT_SCHEMA,
            )
            if analysis is None:
                raise ValueError("Ranking analysis returned no JSON object")
        except (GeminiError, SerpError, httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.error(f"[{self.name}] Analysis failed for '{keyword.get('keyword')}': {e}")
            return fallback_result(keyword, REASON_API_FAILED)

        if results:
            analysis["topSerpSnippets"] = results[:SNIPPETS_KEPT]
            total = (serp or {}).get("totalResults")
            if isinstance(total, (int, float)) and total > 0:
                analysis["serpResultCount"] = total
        elif serp is not None:
            analysis["topSerpSnippets"] = []

        analysis.setdefault("serpResultCount", -1)
        analysis.setdefault("topDomainType", "Unknown")
        analysis.setdefault("probability", "Medium")
        analysis.setdefault("reasoning", "Analysis completed")
        analysis.setdefault("searchIntent", "Unknown search intent")
        analysis.setdefault("intentAnalysis", "Intent analysis not available")
        analysis.setdefault("intentAssessment", "User Intent: Unknown | SERP Match: Analysis not available")

        merged = apply_serp_override({**keyword, **analysis})
        score = calculate_blue_ocean_score(merged)
        merged["blueOceanScore"] = score["totalScore"]
        merged["blueOceanScoreBreakdown"] = score
        return merged

    async def analyze(
        self,
        keywords: List[Dict[str, Any]],
        system_instruction: Optional[str] = None,
        ui_language: str = "en",
        target_language: str = "en",
        industry: Optional[str] = None,
        search_engine: str = "google",
        website_dr: Optional[float] = None,
        website_url: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Analyze all keywords in bounded batches.

        Returns:
            One result per input keyword, in input order
        """
        start = time.monotonic()
        results: List[Dict[str, Any]] = []

        logger.info(
            f"[{self.name}] Analyzing {len(keywords)} keywords "
            f"({get_language_name(target_language)}, batch {self.batch_size})"
        )

        for offset in range(0, len(keywords), self.batch_size):
            if time.monotonic() - start > self.time_budget:
                remaining = keywords[offset:]
                logger.warning(f"[{self.name}] Time budget exhausted, {len(remaining)} keywords skipped")
                results.extend(fallback_result(k, REASON_BUDGET) for k in remaining)
                break

            batch = keywords[offset:offset + self.batch_size]
            outcomes = await asyncio.gather(
                *(
                    self.analyze_one(
                        k,
                        system_instruction=system_instruction,
                        ui_language=ui_language,
                        target_language=target_language,
                        industry=industry,
                        search_engine=search_engine,
                        website_dr=website_dr,
                        website_url=website_url,
                    )
                    for k in batch
                ),
                return_exceptions=True,
            )
            for keyword, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    logger.error(f"[{self.name}] Task failed for '{keyword.get('keyword')}': {outcome}")
                    results.append(fallback_result(keyword, REASON_TASK_FAILED))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    results.append(outcome)

            self.progress(f"Analyzed {len(results)}/{len(keywords)} keywords")
            if offset + self.batch_size < len(keywords):
                await asyncio.sleep(self.batch_delay)

        logger.info(f"[{self.name}] Done in {time.monotonic() - start:.1f}s")
        return results
