"""
Keyword Mining Agent

Generates keyword candidates for one mining round.

Round 1 asks for broad, high-potential keywords around the seed. Later
rounds show the model the last 20 keywords already generated and push it
sideways (SCAMPER) toward "blue ocean" terms. The exclusion list is a hint
to the model only; nothing is de-duplicated here.

A response that cannot be parsed into a JSON array yields no keywords and
is returned raw so the dashboard can show what the model said.
"""

import logging
from typing import Any, Dict, List, Optional

from src.models.keyword import (
    MiningStrategy,
    get_language_name,
    make_keyword_id,
    normalize_generated_keyword,
    now_ms,
)
from src.output.parser import truncate_for_log

from .base import BaseAgent
from .prompts import (
    HORIZONTAL_GUIDANCE,
    VERTICAL_GUIDANCE,
    SCAMPER_BLOCK,
    JSON_ARRAY_INSTRUCTION,
    keyword_mining_system_prompt,
)

logger = logging.getLogger(__name__)

EXCLUSION_HINT_SIZE = 20


# ============================================================================
# PROMPT BUILDING
# ============================================================================

def strategy_guidance(strategy: str) -> str:
    if strategy == MiningStrategy.VERTICAL.value:
        return VERTICAL_GUIDANCE
    return HORIZONTAL_GUIDANCE


def industry_guidance(industry: Optional[str]) -> str:
    if not industry or not industry.strip():
        return ""
    return f"""

USER INDUSTRY CONTEXT:
The user is focusing on the "{industry}" industry.

Please tailor keyword suggestions specifically for this industry by considering:
- Industry-specific terminology and jargon
- Common pain points and challenges in this industry
- Long-tail question keywords relevant to this industry
- Competitor comparison terms
- Industry trends and emerging topics"""


def user_guidance(user_suggestion: Optional[str], additional_suggestions: Optional[str]) -> str:
    text = ""
    if user_suggestion and user_suggestion.strip():
        text += f"""

USER GUIDANCE FOR THIS ROUND:
{user_suggestion}

Please incorporate the user's guidance into your keyword generation."""
    if additional_suggestions and additional_suggestions.strip():
        text += f"""

ADDITIONAL USER SUGGESTIONS:
{additional_suggestions}

Please incorporate these additional requirements into your keyword generation."""
    return text


def build_keyword_prompt(
    seed: str,
    target_language: str = "en",
    existing_keywords: Optional[List[str]] = None,
    round_index: int = 1,
    words_per_round: int = 10,
    mining_strategy: str = MiningStrategy.HORIZONTAL.value,
    user_suggestion: str = "",
    ui_language: str = "en",
    industry: Optional[str] = None,
    additional_suggestions: Optional[str] = None,
) -> str:
    """Build the generation prompt for one mining round."""
    lang = get_language_name(target_language)
    translation_lang = "Chinese" if ui_language == "zh" else "English"
    guidance = (
        strategy_guidance(mining_strategy)
        + industry_guidance(industry)
        + user_guidance(user_suggestion, additional_suggestions)
    )
    fields = f"""Return a JSON array with objects containing:
- keyword: The keyword in {lang}
- translation: Meaning in {translation_lang} (must be in {translation_lang} language)
- intent: One of "Informational", "Transactional", "Local", "Commercial"
- volume: Estimated monthly searches (number)"""

    if round_index <= 1:
        if ui_language == "zh":
            example = '[{"keyword": "example", "translation": "示例", "intent": "Informational", "volume": 1000}]'
        else:
            example = '[{"keyword": "example", "translation": "example meaning", "intent": "Informational", "volume": 1000}]'
        return f"""Generate {words_per_round} high-potential {lang} SEO keywords for the seed term: "{seed}". Focus on commercial and informational intent.
{guidance}

{JSON_ARRAY_INSTRUCTION}

{fields}

Example format:
{example}"""

    recent = (existing_keywords or [])[-EXCLUSION_HINT_SIZE:]
    return f"""
The user is looking for "Blue Ocean" opportunities in the {lang} market.
We have already generated these: {', '.join(recent)}.

{SCAMPER_BLOCK}
{guidance}

Generate {words_per_round} NEW, UNEXPECTED, but SEARCHABLE keywords related to "{seed}" in {lang}.

{JSON_ARRAY_INSTRUCTION}

{fields}"""


# ============================================================================
# AGENT
# ============================================================================

class KeywordMiningAgent(BaseAgent):
    """
    Keyword Mining Agent - produces one round of keyword candidates.

    Usage:
        agent = KeywordMiningAgent(gemini)
        result = await agent.generate_keywords("best coffee machine", "en")
        result["keywords"]  # [{id, keyword, translation, intent, volume}, ...]
    """

    @property
    def name(self) -> str:
        return "keyword_mining"

    @property
    def display_name(self) -> str:
        return "Keyword Mining Agent"

    async def generate_keywords(
        self,
        seed: str,
        target_language: str = "en",
        system_instruction: Optional[str] = None,
        existing_keywords: Optional[List[str]] = None,
        round_index: int = 1,
        words_per_round: int = 10,
        mining_strategy: str = MiningStrategy.HORIZONTAL.value,
        user_suggestion: str = "",
        ui_language: str = "en",
        industry: Optional[str] = None,
        additional_suggestions: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate keywords for one round.

        Returns:
            {"keywords": [...], "rawResponse": str}. At most `words_per_round`
            keywords, each with an intent from IntentType and an int volume.
            Empty when the call fails or the output is not a JSON array.
        """
        prompt = build_keyword_prompt(
            seed,
            target_language=target_language,
            existing_keywords=existing_keywords,
            round_index=round_index,
            words_per_round=words_per_round,
            mining_strategy=mining_strategy,
            user_suggestion=user_suggestion,
            ui_language=ui_language,
            industry=industry,
            additional_suggestions=additional_suggestions,
        )
        system = system_instruction or keyword_mining_system_prompt(ui_language, industry)

        logger.info(f"[{self.name}] Round {round_index} for '{seed}' ({target_language}, {mining_strategy})")

        try:
            text = await self.generate_text(prompt, system_instruction=system, json_mode=True)
        except Exception as e:
            logger.error(f"[{self.name}] Generate keywords failed: {e}")
            return {"keywords": [], "rawResponse": f"Error: {e}"}

        if not text or not text.strip():
            logger.error(f"[{self.name}] Empty response from model")
            return {"keywords": [], "rawResponse": text or ""}

        items = self.parse(text, expect="array", default=None)
        if items is None:
            return {"keywords": [], "rawResponse": text}

        timestamp = now_ms()
        keywords = []
        for item in items:
            if len(keywords) >= words_per_round:
                break
            keyword = None
            if isinstance(item, dict):
                keyword = normalize_generated_keyword(item, make_keyword_id(len(keywords), timestamp=timestamp))
            if keyword is None:
                logger.warning(f"[{self.name}] Dropped malformed entry: {truncate_for_log(str(item), 200)}")
                continue
            keywords.append(keyword)

        if len(items) > words_per_round:
            logger.info(f"[{self.name}] Model returned {len(items)} entries, kept {len(keywords)}")
        logger.info(f"[{self.name}] Generated {len(keywords)} keywords")
        return {"keywords": keywords, "rawResponse": text}
