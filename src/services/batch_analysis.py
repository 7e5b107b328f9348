"""
Batch Analysis Service

Translate-then-analyze flow for a user-supplied keyword list:
1. Parse the list (array or comma-separated string)
2. Translate each keyword into the target language (batches of 5)
3. Convert translations to KeywordData
4. Enrich with SE-Ranking
5. Analyze ranking probability
"""

import asyncio
import logging
import random
import string
from typing import Any, Dict, List, Optional, Union

from src.analyzer.client import GeminiClient, translate_keyword
from src.models.keyword import IntentType, get_language_name, now_ms
from src.integrations import ExternalAPIClients

from .keyword_mining import enrich_with_seranking, analyze_keywords_ranking

logger = logging.getLogger(__name__)

TRANSLATE_BATCH_SIZE = 5
TRANSLATE_BATCH_DELAY_SECONDS = 0.2


def parse_keywords(keywords: Union[str, List[str], None]) -> List[str]:
    """
    Normalize the keyword input.

    Raises:
        ValueError: When no usable keyword remains
    """
    if isinstance(keywords, str):
        parsed = [k.strip() for k in keywords.split(",") if k.strip()]
    elif isinstance(keywords, list):
        parsed = [k.strip() for k in keywords if isinstance(k, str) and k.strip()]
    else:
        parsed = []

    if not parsed:
        raise ValueError("No valid keywords provided")
    return parsed


async def translate_keywords_batch(
    client: GeminiClient,
    keywords: List[str],
    target_language: str,
    batch_size: int = TRANSLATE_BATCH_SIZE,
    delay: float = TRANSLATE_BATCH_DELAY_SECONDS,
) -> List[Dict[str, str]]:
    """Translate keywords in small concurrent batches, preserving order."""
    language_name = get_language_name(target_language)
    results: List[Dict[str, str]] = []
    for offset in range(0, len(keywords), batch_size):
        batch = keywords[offset:offset + batch_size]
        results.extend(await asyncio.gather(*(translate_keyword(client, k, language_name) for k in batch)))
        if offset + batch_size < len(keywords):
            await asyncio.sleep(delay)
    return results


def _suffix(length: int = 9) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def convert_to_keyword_data(translations: List[Dict[str, str]]) -> List[Dict[str, Any]]:
    timestamp = now_ms()
    return [
        {
            "id": f"bt-{timestamp}-{index}-{_suffix()}",
            "keyword": item["translated"],
            "translation": item["original"],
            "intent": IntentType.INFORMATIONAL.value,
            "volume": 0,
        }
        for index, item in enumerate(translations)
    ]


async def execute_batch_analysis(
    clients: ExternalAPIClients,
    keywords: Union[str, List[str]],
    target_language: str = "en",
    system_instruction: Optional[str] = None,
    ui_language: str = "en",
    analyze_ranking: bool = True,
    analyze_prompt: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run the full batch flow.

    Returns:
        {keywords, translationResults, total, targetLanguage}

    Raises:
        ValueError: When the keyword input is empty
    """
    keyword_list = parse_keywords(keywords)
    logger.info(f"Batch analysis for {len(keyword_list)} keywords ({target_language})")

    translations = await translate_keywords_batch(clients.gemini, keyword_list, target_language)
    converted = convert_to_keyword_data(translations)
    enriched = await enrich_with_seranking(clients.seranking, converted, target_language)

    analyzed = enriched
    if analyze_ranking and enriched:
        try:
            analyzed = await analyze_keywords_ranking(
                clients,
                enriched,
                system_instruction=analyze_prompt or system_instruction,
                ui_language=ui_language,
                target_language=target_language,
            )
        except Exception as e:
            logger.warning(f"Ranking analysis failed: {e}. Returning keywords without analysis.")

    logger.info(f"Batch analysis completed, returning {len(analyzed)} keywords")
    return {
        "keywords": analyzed,
        "translationResults": translations,
        "total": len(analyzed),
        "targetLanguage": target_language,
    }
