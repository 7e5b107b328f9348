"""
Niche Mining Services Layer

Workflows behind the API routers. Each service takes an
ExternalAPIClients bundle (and a DB session where it caches) and returns
plain dicts ready for JSON responses.
"""

from .keyword_mining import KeywordMiningOptions, execute_keyword_mining, analyze_keywords_ranking
from .batch_analysis import execute_batch_analysis, parse_keywords
from .deep_dive import DeepDiveError, DeepDiveOptions, DeepDiveResult, execute_deep_dive
from .visual_article import VisualArticleOptions, generate_visual_article
from .website_data import WebsiteDataError

__all__ = [
    "KeywordMiningOptions",
    "execute_keyword_mining",
    "analyze_keywords_ranking",
    "execute_batch_analysis",
    "parse_keywords",
    "DeepDiveError",
    "DeepDiveOptions",
    "DeepDiveResult",
    "execute_deep_dive",
    "VisualArticleOptions",
    "generate_visual_article",
    "WebsiteDataError",
]
