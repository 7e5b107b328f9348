"""Keyword types, enumerations and tagged fetch results."""

from .keyword import (
    IntentType,
    ProbabilityLevel,
    DomainType,
    MiningStrategy,
    INTENT_VALUES,
    PROBABILITY_VALUES,
    DOMAIN_TYPE_VALUES,
    LANGUAGE_NAMES,
    SUPPORTED_LANGUAGES,
    get_language_name,
    make_keyword_id,
    new_keyword,
    coerce_volume,
    coerce_intent,
    normalize_generated_keyword,
    keyword_strings,
    now_ms,
)
from .result import Ok, Degraded, Failed, FetchResult, status_of

__all__ = [
    "IntentType",
    "ProbabilityLevel",
    "DomainType",
    "MiningStrategy",
    "INTENT_VALUES",
    "PROBABILITY_VALUES",
    "DOMAIN_TYPE_VALUES",
    "LANGUAGE_NAMES",
    "SUPPORTED_LANGUAGES",
    "get_language_name",
    "make_keyword_id",
    "new_keyword",
    "coerce_volume",
    "coerce_intent",
    "normalize_generated_keyword",
    "keyword_strings",
    "now_ms",
    "Ok",
    "Degraded",
    "Failed",
    "FetchResult",
    "status_of",
]
