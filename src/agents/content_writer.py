"""
Content Writer Agent

Turns a strategy report (plus optional research context) into an article.

The writer runs in JSON mode and returns title, meta description and the
Markdown body together with its own SEO notes. Output that is not JSON
falls back to whatever Markdown can be pulled out of it.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from .base import BaseAgent
from .prompts import (
    CONTENT_WRITER_SYSTEM,
    seo_context,
    article_prompt,
)

logger = logging.getLogger(__name__)

_MARKDOWN_FENCE = re.compile(r"```markdown\n([\s\S]*?)\n```")
_MARKDOWN_HEADING = re.compile(r"# .*[\s\S]*")


def research_context(
    search_preferences: Optional[Dict[str, Any]] = None,
    competitor_analysis: Optional[Dict[str, Any]] = None,
) -> str:
    text = ""
    if search_preferences and search_preferences.get("searchPreferences"):
        text += (
            "\nSearch Engine Preferences:\n"
            f"{json.dumps(search_preferences['searchPreferences'], ensure_ascii=False, indent=2)}\n"
        )
    if competitor_analysis and competitor_analysis.get("competitorAnalysis"):
        text += (
            "\nCompetitor Analysis:\n"
            f"{json.dumps(competitor_analysis['competitorAnalysis'], ensure_ascii=False, indent=2)}\n"
        )
    return text


def section_headers(report: Dict[str, Any]) -> List[str]:
    return [s.get("header", "") for s in report.get("contentStructure") or []]


def extract_markdown(text: str) -> str:
    """Best-effort Markdown body from unparseable writer output."""
    match = _MARKDOWN_FENCE.search(text)
    if match:
        return match.group(1)
    match = _MARKDOWN_HEADING.search(text)
    return match.group(0) if match else text


class ContentWriterAgent(BaseAgent):
    """
    Content Writer - drafts the article.

    Usage:
        writer = ContentWriterAgent(gemini)
        content = await writer.write_content(report, prefs, competitors)
        content["content"]  # Markdown article
    """

    @property
    def name(self) -> str:
        return "content_writer"

    @property
    def display_name(self) -> str:
        return "Content Writer"

    async def write_content(
        self,
        report: Dict[str, Any],
        search_preferences: Optional[Dict[str, Any]] = None,
        competitor_analysis: Optional[Dict[str, Any]] = None,
        target_market: str = "global",
    ) -> Dict[str, Any]:
        market = "Global" if not target_market or target_market == "global" else target_market.upper()
        context = seo_context(report) + research_context(search_preferences, competitor_analysis)
        word_count = str(report.get("recommendedWordCount") or "1500-2000")

        self.progress("Writing article content...")
        parsed, text = await self.generate_json(
            article_prompt(market, context, word_count),
            system_instruction=CONTENT_WRITER_SYSTEM,
            retry_label="Content generation",
        )

        if not isinstance(parsed, dict):
            return {
                "title": report.get("pageTitleH1", ""),
                "metaDescription": report.get("metaDescription", ""),
                "content": extract_markdown(text or ""),
                "structure": section_headers(report),
            }

        seo_meta = parsed.get("seo_meta") or {}
        return {
            "title": parsed.get("title") or seo_meta.get("title") or report.get("pageTitleH1", ""),
            "metaDescription": (
                parsed.get("metaDescription") or seo_meta.get("description") or report.get("metaDescription", "")
            ),
            "content": parsed.get("content") or parsed.get("article_body") or "",
            "structure": parsed.get("structure") or section_headers(report),
            "seo_meta": parsed.get("seo_meta"),
            "logic_check": parsed.get("logic_check"),
            "appliedOptimizations": parsed.get("appliedOptimizations"),
        }
