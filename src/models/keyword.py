"""
Keyword Data Types

Keywords travel through the mining pipeline as plain dicts (JSON-shaped,
camelCase keys as the dashboard expects them). This module holds the
enumerations and constructors that keep those dicts consistent.

KeywordData shape:
    {
        "id": "kw-1718000000000-0",
        "keyword": "...",
        "translation": "...",
        "intent": "Informational",
        "volume": 1200,
        # Added by enrichment / ranking analysis:
        "serankingData": {...},
        "serpResultCount": 35,
        "topDomainType": "Niche Site",
        "probability": "Medium",
        "reasoning": "...",
        "topSerpSnippets": [{"title", "url", "snippet"}],
        "searchIntent": "...",
        "intentAnalysis": "...",
    }
"""

import enum
import time
from typing import Any, Dict, List, Optional


# =============================================================================
# ENUMS
# =============================================================================

class IntentType(enum.Enum):
    """Search intent of a keyword."""
    INFORMATIONAL = "Informational"
    TRANSACTIONAL = "Transactional"
    LOCAL = "Local"
    COMMERCIAL = "Commercial"


class ProbabilityLevel(enum.Enum):
    """Estimated chance of ranking on page one."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class DomainType(enum.Enum):
    """Type of the domain holding the top SERP position."""
    BIG_BRAND = "Big Brand"
    NICHE_SITE = "Niche Site"
    FORUM_SOCIAL = "Forum/Social"
    WEAK_PAGE = "Weak Page"
    GOV_EDU = "Gov/Edu"
    UNKNOWN = "Unknown"


class MiningStrategy(enum.Enum):
    """Keyword expansion direction between rounds."""
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


INTENT_VALUES = [i.value for i in IntentType]
PROBABILITY_VALUES = [p.value for p in ProbabilityLevel]
DOMAIN_TYPE_VALUES = [d.value for d in DomainType]


# =============================================================================
# LANGUAGES
# =============================================================================

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "fr": "French",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "pt": "Portuguese",
    "id": "Indonesian",
    "es": "Spanish",
    "ar": "Arabic",
    "zh": "Chinese",
}

SUPPORTED_LANGUAGES = list(LANGUAGE_NAMES.keys())


def get_language_name(code: Optional[str]) -> str:
    """Human-readable language name for a target language code."""
    if not code:
        return "English"
    return LANGUAGE_NAMES.get(code, "English")


# =============================================================================
# CONSTRUCTORS
# =============================================================================

def now_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


def make_keyword_id(index: int, prefix: str = "kw", timestamp: Optional[int] = None) -> str:
    """
    Build a keyword id like "kw-1718000000000-3".

    Ids are unique within one generation call, not across concurrent calls
    landing in the same millisecond.
    """
    ts = timestamp if timestamp is not None else now_ms()
    return f"{prefix}-{ts}-{index}"


def new_keyword(
    keyword: str,
    translation: Optional[str] = None,
    intent: str = IntentType.INFORMATIONAL.value,
    volume: int = 0,
    keyword_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a bare KeywordData dict."""
    return {
        "id": keyword_id or f"kw-{now_ms()}",
        "keyword": keyword,
        "translation": translation if translation is not None else keyword,
        "intent": intent,
        "volume": volume,
    }


_VOLUME_SUFFIXES = {"k": 1_000, "m": 1_000_000}


def coerce_volume(value: Any) -> int:
    """
    Monthly search volume as an int.

    Model estimates arrive as 1200, "1,200" or "1.2K"; anything else is 0.
    """
    multiplier = 1
    if isinstance(value, str):
        value = value.strip().lower().replace(",", "").replace("+", "")
        if value[-1:] in _VOLUME_SUFFIXES:
            multiplier = _VOLUME_SUFFIXES[value[-1]]
            value = value[:-1]
    elif isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    try:
        return max(int(float(value) * multiplier), 0)
    except (ValueError, OverflowError):
        return 0


def coerce_intent(value: Any) -> str:
    """Match an intent label case-insensitively; unknown labels become Informational."""
    if isinstance(value, str):
        for intent in INTENT_VALUES:
            if value.strip().lower() == intent.lower():
                return intent
    return IntentType.INFORMATIONAL.value


def normalize_generated_keyword(item: Dict[str, Any], keyword_id: str) -> Optional[Dict[str, Any]]:
    """
    Shape one model-generated entry as KeywordData.

    Returns None when the entry has no keyword text.
    """
    keyword = item.get("keyword")
    if not isinstance(keyword, str) or not keyword.strip():
        return None
    translation = item.get("translation")
    return {
        **item,
        "id": keyword_id,
        "keyword": keyword.strip(),
        "translation": translation if isinstance(translation, str) and translation else keyword.strip(),
        "intent": coerce_intent(item.get("intent")),
        "volume": coerce_volume(item.get("volume")),
    }


def keyword_strings(keywords: List[Dict[str, Any]]) -> List[str]:
    """Extract the keyword text from a list of KeywordData dicts."""
    return [k.get("keyword", "") for k in keywords if k.get("keyword")]
