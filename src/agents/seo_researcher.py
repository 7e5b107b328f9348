"""
SEO Researcher Agent

Research steps of the deep dive and visual article flows:
- search engine preferences (Google / Perplexity / generative AI)
- competitor analysis from the live SERP
- the content strategy report
- core keyword extraction and per-keyword intent checks

Model failures after retries propagate as GeminiError. Output that
cannot be parsed falls back to a usable default so the pipeline keeps
going with degraded data.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from src.models.keyword import get_language_name

from .base import BaseAgent
from .prompts import (
    search_preferences_prompt,
    SEARCH_PREFERENCES_SCHEMA,
    competitor_analysis_prompt,
    COMPETITOR_ANALYSIS_SCHEMA,
    strategy_system_instruction,
    strategy_prompt,
    STRATEGY_REPORT_SCHEMA,
    core_keywords_prompt,
    keyword_intent_prompt,
)

logger = logging.getLogger(__name__)

MAX_CORE_KEYWORDS = 8
REFERENCE_SUMMARY_CHARS = 2000
_BULLET = re.compile(r"^[-•*]\s*")
_ARRAY_CHARS = re.compile(r"[\"\[\],]")


def market_label(target_market: Optional[str]) -> str:
    """'Global Market' for global, otherwise the upper-cased market code."""
    if not target_market or target_market == "global":
        return "Global Market"
    return target_market.upper()


# ============================================================================
# CONTEXT BUILDERS
# ============================================================================

def competitor_serp_context(results: List[Dict[str, Any]]) -> str:
    if not results:
        return "No SERP results available."
    return "\n".join(
        f"{i + 1}. [{r.get('title', '')}]({r.get('url', '')})\n   Snippet: {r.get('snippet', '')}"
        for i, r in enumerate(results[:10])
    )


def analysis_context(
    search_preferences: Optional[Dict[str, Any]] = None,
    competitor_analysis: Optional[Dict[str, Any]] = None,
) -> str:
    text = ""
    if search_preferences:
        text += f"\n\n=== SEARCH ENGINE PREFERENCES ===\n{json.dumps(search_preferences, ensure_ascii=False, indent=2)}"
    if competitor_analysis:
        text += f"\n\n=== COMPETITOR ANALYSIS ===\n{json.dumps(competitor_analysis, ensure_ascii=False, indent=2)}"
        if competitor_analysis.get("winning_formula"):
            text += f"\n\nWINNING FORMULA: {competitor_analysis['winning_formula']}"
        gaps = (competitor_analysis.get("competitorAnalysis") or {}).get("contentGaps")
        if gaps:
            text += f"\n\nCONTENT GAPS TO FILL: {', '.join(str(g) for g in gaps)}"
    return text


def _summary(content: str) -> str:
    if len(content) > REFERENCE_SUMMARY_CHARS:
        return content[:REFERENCE_SUMMARY_CHARS] + "..."
    return content


def reference_context(keyword: str, reference: Optional[Dict[str, Any]]) -> str:
    """
    Render a user-supplied reference document or URL for the strategist.

    reference: {"type": "document", "document": {filename, content}} or
               {"type": "url", "url": {url, content, title}}
    """
    if not reference:
        return ""

    focus = (
        f"\n\nIMPORTANT: Your primary focus must be on the keyword \"{keyword}\". "
        f"Use only the parts of this reference that relate to \"{keyword}\"; "
        "if it is unrelated, treat it as a style reference."
    )

    if reference.get("type") == "document" and reference.get("document"):
        doc = reference["document"]
        return (
            f"\n\n=== USER REFERENCE DOCUMENT ===\nFilename: {doc.get('filename', '')}\n"
            f"Content Summary:\n{_summary(doc.get('content') or '')}{focus}"
        )

    url = reference.get("url") or {}
    if reference.get("type") == "url" and url.get("content") and url.get("url"):
        title = f"Title: {url['title']}\n" if url.get("title") else ""
        return (
            f"\n\n=== USER REFERENCE URL ===\nURL: {url['url']}\n{title}"
            f"Content Summary:\n{_summary(url['content'])}{focus}"
        )
    return ""


def strategy_markdown(report: Dict[str, Any], keyword: str) -> str:
    """Markdown rendering of a strategy report that came back without one."""
    parts = [
        f"# Content Strategy: {report.get('pageTitleH1') or keyword}\n\n",
        f"## Page Title (H1)\n{report.get('pageTitleH1', '')}\n*Translation: {report.get('pageTitleH1_trans', '')}*\n\n",
        f"## Meta Description\n{report.get('metaDescription', '')}\n*Translation: {report.get('metaDescription_trans', '')}*\n\n",
    ]
    if report.get("urlSlug"):
        parts.append(f"## URL Slug\n{report['urlSlug']}\n\n")
    if report.get("userIntentSummary"):
        parts.append(f"## User Intent Analysis\n{report['userIntentSummary']}\n\n")
    sections = report.get("contentStructure")
    if isinstance(sections, list):
        parts.append("## Content Structure\n")
        for i, section in enumerate(sections):
            parts.append(f"### H2 {i + 1}: {section.get('header', '')}\n*Translation: {section.get('header_trans', '')}*\n\n")
            parts.append(f"**Description**: {section.get('description', '')}\n\n")
            if section.get("description_trans"):
                parts.append(f"*Translation: {section['description_trans']}*\n\n")
    if isinstance(report.get("longTailKeywords"), list):
        parts.append(f"## Long-tail Keywords\n{', '.join(report['longTailKeywords'])}\n\n")
    if report.get("recommendedWordCount"):
        parts.append(f"## Recommended Word Count\n{report['recommendedWordCount']} words\n\n")
    return "".join(parts)


# ============================================================================
# AGENT
# ============================================================================

class SEOResearcherAgent(BaseAgent):
    """
    SEO Researcher - the research half of the deep dive.

    Usage:
        researcher = SEOResearcherAgent(gemini, on_progress=log)
        prefs = await researcher.analyze_search_preferences("coffee grinder", "en", "us")
        competitors = await researcher.analyze_competitors("coffee grinder", serp_results)
        report = await researcher.generate_strategy(keyword, prefs, competitors)
    """

    @property
    def name(self) -> str:
        return "seo_researcher"

    @property
    def display_name(self) -> str:
        return "SEO Researcher"

    async def analyze_search_preferences(
        self,
        keyword: str,
        target_language: str = "en",
        target_market: str = "global",
    ) -> Dict[str, Any]:
        market = market_label(target_market)
        self.progress(f"Analyzing search engine preferences for {market} market...")

        parsed, _ = await self.generate_json(
            search_preferences_prompt(keyword, target_language, market),
            response_schema=SEARCH_PREFERENCES_SCHEMA,
            retry_label="Search preferences analysis",
        )
        if not isinstance(parsed, dict):
            return {
                "semantic_landscape": f'Search preferences analysis for "{keyword}" in {market} market.',
                "engine_strategies": {},
                "geo_recommendations": "",
                "searchPreferences": {},
            }

        return {
            "semantic_landscape": parsed.get("semantic_landscape") or "",
            "engine_strategies": parsed.get("engine_strategies") or {},
            "geo_recommendations": parsed.get("geo_recommendations") or "",
            "searchPreferences": parsed.get("searchPreferences") or {},
        }

    async def analyze_competitors(
        self,
        keyword: str,
        serp_results: Optional[List[Dict[str, Any]]] = None,
        target_language: str = "en",
        target_market: str = "global",
    ) -> Dict[str, Any]:
        market = market_label(target_market)
        self.progress(f"Analyzing top competitors for \"{keyword}\"...")

        parsed, text = await self.generate_json(
            competitor_analysis_prompt(keyword, target_language, market, competitor_serp_context(serp_results or [])),
            response_schema=COMPETITOR_ANALYSIS_SCHEMA,
            retry_label="Competitor analysis",
        )
        if not isinstance(parsed, dict):
            return {"markdown": text or f'Competitor analysis for "{keyword}" in {market} market.'}

        result = {
            "winning_formula": parsed.get("winning_formula") or "",
            "recommended_structure": parsed.get("recommended_structure") or [],
            "competitor_benchmark": parsed.get("competitor_benchmark") or [],
            "competitorAnalysis": parsed.get("competitorAnalysis") or {},
        }
        result["markdown"] = parsed.get("markdown") or json.dumps(parsed, ensure_ascii=False, indent=2)
        return result

    async def generate_strategy(
        self,
        keyword: str,
        search_preferences: Optional[Dict[str, Any]] = None,
        competitor_analysis: Optional[Dict[str, Any]] = None,
        ui_language: str = "en",
        target_language: str = "en",
        target_market: str = "global",
        custom_prompt: Optional[str] = None,
        reference: Optional[Dict[str, Any]] = None,
        guidance: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate the SEO content strategy report.

        A custom prompt replaces the whole system instruction (research
        context included). Guidance (tone, audience) is appended to it.
        """
        target_name = get_language_name(target_language)
        ui_name = "Chinese" if ui_language == "zh" else "English"
        market = "Global" if not target_market or target_market == "global" else target_market.upper()

        system = custom_prompt or strategy_system_instruction(
            target_name,
            market,
            analysis_context(search_preferences, competitor_analysis),
            reference_context(keyword, reference),
        )
        if guidance:
            system = f"{system}\n\nADDITIONAL DIRECTION:\n{guidance}"
        self.progress("Generating final SEO content strategy report...")

        parsed, text = await self.generate_json(
            strategy_prompt(keyword, target_name, ui_name, market),
            system_instruction=system,
            response_schema=STRATEGY_REPORT_SCHEMA,
            retry_label="Strategy report generation",
        )
        if not isinstance(parsed, dict):
            return {
                "targetKeyword": keyword,
                "pageTitleH1": keyword,
                "contentStructure": [],
                "markdown": text or f'Content strategy for "{keyword}" in {market} market.',
            }

        parsed.setdefault("targetKeyword", keyword)
        if not parsed.get("markdown"):
            parsed["markdown"] = strategy_markdown(parsed, keyword)
        return parsed

    async def extract_core_keywords(self, report: Dict[str, Any], target_language: str = "en") -> List[str]:
        """Up to 8 ranking-verification keywords; the target keyword when nothing usable comes back."""
        fallback = [report.get("targetKeyword")] if report.get("targetKeyword") else []

        embedded = [k for k in report.get("coreKeywords") or [] if isinstance(k, str) and k.strip()]
        if embedded:
            return embedded[:MAX_CORE_KEYWORDS]

        try:
            text = (await self.generate_text(core_keywords_prompt(get_language_name(target_language), report))).strip()
        except Exception as e:
            logger.error(f"[{self.name}] Failed to extract core keywords: {e}")
            return fallback

        items = self.parse(text, expect="array", default=None)
        if isinstance(items, list):
            keywords = [k.strip() for k in items if isinstance(k, str) and k.strip()]
            if keywords:
                return keywords[:MAX_CORE_KEYWORDS]

        lines = [_ARRAY_CHARS.sub("", _BULLET.sub("", line)).strip() for line in text.split("\n")]
        extracted = [line for line in lines if 0 < len(line) < 50][:MAX_CORE_KEYWORDS]
        return extracted or fallback

    async def assess_keyword_intent(
        self,
        keyword: str,
        serp_results: List[Dict[str, Any]],
        ui_language: str = "en",
    ) -> Dict[str, Any]:
        """Intent and ranking probability for one core keyword."""
        ui_name = "Chinese" if ui_language == "zh" else "English"
        try:
            parsed, _ = await self.generate_json(keyword_intent_prompt(keyword, serp_results, ui_name))
        except Exception as e:
            logger.error(f"[{self.name}] Intent check failed for '{keyword}': {e}")
            parsed = None

        parsed = parsed if isinstance(parsed, dict) else {}
        return {
            "searchIntent": parsed.get("searchIntent") or "Unknown search intent",
            "intentAnalysis": parsed.get("intentAnalysis") or "Intent analysis not available",
            "probability": parsed.get("probability") or "Medium",
            "reasoning": parsed.get("reasoning") or "Analysis completed",
        }
