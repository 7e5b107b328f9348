"""
Quality Reviewer Agent

Editorial review of a drafted article: factual gaps, SEO placement,
information gain, AI footprint and readability, ending in a verdict of
PASS, NEEDS_REVISION or REJECT.
"""

import logging
from typing import Any, Dict, Union

from src.output.parser import truncate_for_log

from .base import BaseAgent
from .prompts import QUALITY_REVIEWER_SYSTEM, quality_review_prompt

logger = logging.getLogger(__name__)

VERDICTS = ("PASS", "NEEDS_REVISION", "REJECT")


class QualityReviewerAgent(BaseAgent):

    @property
    def name(self) -> str:
        return "quality_reviewer"

    @property
    def display_name(self) -> str:
        return "Quality Reviewer"

    async def review(self, content: Union[Dict[str, Any], str], target_keyword: str) -> Dict[str, Any]:
        """
        Review article content.

        Args:
            content: Content writer result or a raw Markdown string
            target_keyword: Keyword the article targets
        """
        if isinstance(content, str):
            body, title, meta = content, "", ""
        else:
            seo_meta = content.get("seo_meta") or {}
            body = content.get("content") or content.get("article_body") or ""
            title = content.get("title") or seo_meta.get("title") or ""
            meta = content.get("metaDescription") or seo_meta.get("description") or ""

        self.progress("Reviewing article quality...")
        parsed, text = await self.generate_json(
            quality_review_prompt(target_keyword, title, meta, body),
            system_instruction=QUALITY_REVIEWER_SYSTEM,
            retry_label="Quality review",
        )

        if not isinstance(parsed, dict):
            return {
                "total_score": 0,
                "verdict": "NEEDS_REVISION",
                "fix_list": ["Failed to parse review results"],
                "ai_footprint_analysis": truncate_for_log(text),
            }

        if parsed.get("verdict") not in VERDICTS:
            logger.warning(f"[{self.name}] Unexpected verdict {parsed.get('verdict')!r}, using NEEDS_REVISION")
            parsed["verdict"] = "NEEDS_REVISION"
        parsed.setdefault("total_score", 0)
        parsed.setdefault("fix_list", [])
        return parsed
