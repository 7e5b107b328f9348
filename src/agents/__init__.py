"""
Content Agents Module

Specialized agents for keyword research and content generation:

1. KeywordMiningAgent - Multi-round keyword generation
2. RankingAnalyzer - Batch SERP competition / ranking probability
3. SEOResearcherAgent - Search preferences, competitors, strategy report
4. ContentWriterAgent - Article drafting
5. QualityReviewerAgent - Editorial review
6. ImageCreativeAgent - Visual themes and images

Usage:
    from src.agents import KeywordMiningAgent

    agent = KeywordMiningAgent(gemini_client)
    result = await agent.generate_keywords("best coffee machine", "en")
"""

from .base import BaseAgent, AgentStats, ProgressCallback

from .keyword_mining import KeywordMiningAgent, build_keyword_prompt
from .ranking_analyzer import (
    RankingAnalyzer,
    calculate_blue_ocean_score,
    apply_serp_override,
)
from .seo_researcher import SEOResearcherAgent, market_label
from .content_writer import ContentWriterAgent
from .quality_reviewer import QualityReviewerAgent
from .image_creative import ImageCreativeAgent
from .prompts import get_default_prompt

__all__ = [
    # Base classes
    "BaseAgent",
    "AgentStats",
    "ProgressCallback",
    # Keyword agents
    "KeywordMiningAgent",
    "build_keyword_prompt",
    "RankingAnalyzer",
    "calculate_blue_ocean_score",
    "apply_serp_override",
    # Content agents
    "SEOResearcherAgent",
    "market_label",
    "ContentWriterAgent",
    "QualityReviewerAgent",
    "ImageCreativeAgent",
    # Prompts
    "get_default_prompt",
]
