"""
Keyword Mining Tests

Tests the round prompt builder, the mining agent's parsing and the full
generate -> enrich -> analyze round.
"""

import json
import re
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from conftest import gemini_response, make_clients, make_gemini
from src.agents.keyword_mining import KeywordMiningAgent, build_keyword_prompt
from src.agents.prompts import (
    DEFAULT_DEEP_DIVE_STRATEGY,
    SCAMPER_BLOCK,
    SERP_ANALYSIS_MARKER,
    get_default_prompt,
)
from src.analyzer.client import GeminiClient, GeminiError, RetryConfig
from src.models.keyword import INTENT_VALUES, coerce_intent, coerce_volume
from src.models.result import Failed, Ok
from src.services.keyword_mining import (
    KeywordMiningOptions,
    enrich_with_seranking,
    execute_keyword_mining,
)


KEYWORDS_JSON = [
    {"keyword": "burr coffee grinder", "translation": "burr coffee grinder", "intent": "Commercial", "volume": 5400},
    {"keyword": "manual coffee grinder", "translation": "manual coffee grinder", "intent": "Informational", "volume": 2900},
]


def seranking_mock(result):
    seranking = MagicMock()
    seranking.fetch_keyword_data = AsyncMock(return_value=result)
    return seranking


# =============================================================================
# PROMPT BUILDING
# =============================================================================

class TestBuildKeywordPrompt:
    """Tests for round prompts."""

    def test_first_round_has_no_scamper(self):
        prompt = build_keyword_prompt("coffee grinder", "en", round_index=1)
        assert "SCAMPER" not in prompt
        assert 'seed term: "coffee grinder"' in prompt
        assert "Generate 10 high-potential English SEO keywords" in prompt

    def test_later_round_lists_last_twenty_existing(self):
        existing = [f"kw{i}" for i in range(30)]
        prompt = build_keyword_prompt("coffee grinder", "en", existing_keywords=existing, round_index=2)

        assert SCAMPER_BLOCK in prompt
        assert "kw29" in prompt
        assert "kw10" in prompt
        assert "kw9," not in prompt
        assert "NEW, UNEXPECTED, but SEARCHABLE" in prompt

    def test_target_language_name(self):
        prompt = build_keyword_prompt("咖啡", "ja", round_index=1)
        assert "Japanese" in prompt

    def test_vertical_strategy(self):
        prompt = build_keyword_prompt("coffee grinder", mining_strategy="vertical")
        assert "VERTICAL MINING STRATEGY" in prompt
        assert "HORIZONTAL MINING STRATEGY" not in prompt

    def test_industry_and_user_guidance(self):
        prompt = build_keyword_prompt(
            "coffee grinder",
            industry="Home appliances",
            user_suggestion="Focus on espresso",
            additional_suggestions="No brand names",
        )
        assert 'focusing on the "Home appliances" industry' in prompt
        assert "USER GUIDANCE FOR THIS ROUND:\nFocus on espresso" in prompt
        assert "ADDITIONAL USER SUGGESTIONS:\nNo brand names" in prompt

    def test_chinese_ui_translation_language(self):
        prompt = build_keyword_prompt("coffee grinder", ui_language="zh")
        assert "Meaning in Chinese" in prompt

    def test_words_per_round(self):
        prompt = build_keyword_prompt("coffee grinder", words_per_round=25, round_index=3)
        assert "Generate 25 NEW" in prompt


class TestDefaultPrompts:

    def test_analysis_and_deep_dive(self):
        assert SERP_ANALYSIS_MARKER in get_default_prompt("analysis")
        assert get_default_prompt("deepDive") == DEFAULT_DEEP_DIVE_STRATEGY

    def test_mining_prompt_by_language(self):
        assert get_default_prompt("mining") != get_default_prompt("mining", language="zh")
        assert get_default_prompt("mining", language="fr") == get_default_prompt("mining")

    def test_industry_focus(self):
        prompt = get_default_prompt("mining", industry="Home appliances")
        assert '"Home appliances" industry' in prompt
        assert "Industry Focus" not in get_default_prompt("mining", industry="  ")


class TestKeywordNormalization:

    @pytest.mark.parametrize("raw, expected", [
        (1200, 1200),
        (1200.7, 1200),
        ("1,200", 1200),
        ("2.5K", 2500),
        ("3m", 3_000_000),
        ("10000+", 10000),
        ("lots", 0),
        ("", 0),
        (None, 0),
        (True, 0),
        (-5, 0),
        (float("inf"), 0),
    ])
    def test_coerce_volume(self, raw, expected):
        assert coerce_volume(raw) == expected

    def test_coerce_intent(self):
        assert coerce_intent(" transactional ") == "Transactional"
        assert coerce_intent("Navigational") == "Informational"
        assert coerce_intent(None) == "Informational"


# =============================================================================
# AGENT
# =============================================================================

class TestKeywordMiningAgent:
    """Tests for KeywordMiningAgent.generate_keywords()."""

    @pytest.mark.asyncio
    async def test_parses_fenced_array_and_assigns_ids(self):
        gemini = make_gemini(gemini_response("```json\n" + json.dumps(KEYWORDS_JSON) + "\n```"))
        agent = KeywordMiningAgent(gemini)

        result = await agent.generate_keywords("coffee grinder", "en")

        assert [k["keyword"] for k in result["keywords"]] == ["burr coffee grinder", "manual coffee grinder"]
        ids = [k["id"] for k in result["keywords"]]
        assert all(re.fullmatch(r"kw-\d+-\d", i) for i in ids)
        assert ids[0].endswith("-0") and ids[1].endswith("-1")
        assert agent.stats.tokens_used == 30

    @pytest.mark.asyncio
    async def test_sends_json_mode_and_system_instruction(self):
        gemini = make_gemini(KEYWORDS_JSON)
        agent = KeywordMiningAgent(gemini)

        await agent.generate_keywords("coffee grinder", "en", system_instruction="Custom system")

        kwargs = gemini.generate.call_args.kwargs
        assert kwargs["json_mode"] is True
        assert kwargs["system_instruction"] == "Custom system"

    @pytest.mark.asyncio
    async def test_unparseable_output_returns_raw(self):
        gemini = make_gemini("I could not think of anything.")
        result = await KeywordMiningAgent(gemini).generate_keywords("coffee grinder")

        assert result["keywords"] == []
        assert result["rawResponse"] == "I could not think of anything."

    @pytest.mark.asyncio
    async def test_object_instead_of_array(self):
        gemini = make_gemini({"keyword": "single"})
        result = await KeywordMiningAgent(gemini).generate_keywords("coffee grinder")
        assert result["keywords"] == []

    @pytest.mark.asyncio
    async def test_model_error(self):
        gemini = make_gemini(GeminiError("API request failed: 500"))
        result = await KeywordMiningAgent(gemini).generate_keywords("coffee grinder")

        assert result["keywords"] == []
        assert result["rawResponse"].startswith("Error:")

    @pytest.mark.asyncio
    async def test_non_object_entries_dropped(self):
        gemini = make_gemini([{"keyword": "a"}, "b", 3])
        result = await KeywordMiningAgent(gemini).generate_keywords("seed")
        assert [k["keyword"] for k in result["keywords"]] == ["a"]

    @pytest.mark.asyncio
    async def test_wrapper_object_after_prose(self):
        gemini = make_gemini('Here are the keywords: {"keywords": [{"keyword": "burr grinder"}]}')
        result = await KeywordMiningAgent(gemini).generate_keywords("coffee grinder")
        assert result["keywords"] == []

    @pytest.mark.asyncio
    async def test_unexpected_error_gives_empty_round(self):
        gemini = make_gemini(ValueError("Expecting value: line 1 column 1"))
        result = await KeywordMiningAgent(gemini).generate_keywords("coffee grinder")

        assert result == {"keywords": [], "rawResponse": "Error: Expecting value: line 1 column 1"}

    @pytest.mark.asyncio
    async def test_html_proxy_page_gives_empty_round(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="<html>502 Bad Gateway</html>")

        gemini = GeminiClient(
            api_key="key",
            base_url="https://proxy.test",
            model="gemini-2.5-flash",
            retry_config=RetryConfig(max_retries=1, initial_delay=0),
            transport=httpx.MockTransport(handler),
        )

        result = await KeywordMiningAgent(gemini).generate_keywords("best coffee machine")

        assert result["keywords"] == []
        assert result["rawResponse"].startswith("Error: Invalid JSON")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_first_round_shape(self):
        entries = [
            {"keyword": f"coffee machine {i}", "translation": f"machine {i}", "intent": "Navigational", "volume": "2.5K"}
            for i in range(15)
        ]
        gemini = make_gemini(entries)

        result = await KeywordMiningAgent(gemini).generate_keywords("best coffee machine", "en", round_index=1)

        keywords = result["keywords"]
        assert 0 < len(keywords) <= 10
        for keyword in keywords:
            assert keyword["keyword"] and keyword["translation"]
            assert keyword["intent"] in INTENT_VALUES
            assert isinstance(keyword["volume"], int)
        assert keywords[0]["intent"] == "Informational"
        assert keywords[0]["volume"] == 2500
        assert keywords[-1]["id"].endswith("-9")

    @pytest.mark.asyncio
    async def test_entries_without_keyword_dropped(self):
        gemini = make_gemini([{"keyword": "  "}, {"translation": "x"}, {"keyword": "burr grinder", "intent": "commercial"}])
        result = await KeywordMiningAgent(gemini).generate_keywords("seed")

        assert result["keywords"] == [{
            "id": result["keywords"][0]["id"],
            "keyword": "burr grinder",
            "translation": "burr grinder",
            "intent": "Commercial",
            "volume": 0,
        }]
        assert result["keywords"][0]["id"].endswith("-0")


# =============================================================================
# ENRICHMENT
# =============================================================================

class TestEnrichWithSERanking:

    @pytest.mark.asyncio
    async def test_merges_rows_and_replaces_volume(self):
        keywords = [{"keyword": "Burr Coffee Grinder", "volume": 100}, {"keyword": "unknown", "volume": 50}]
        seranking = seranking_mock(Ok([
            {"keyword": "burr coffee grinder", "is_data_found": True, "volume": 5400, "difficulty": 35, "cpc": 1.2},
        ]))

        enriched = await enrich_with_seranking(seranking, keywords, "en")

        assert enriched[0]["volume"] == 5400
        assert enriched[0]["serankingData"]["difficulty"] == 35
        assert enriched[1]["volume"] == 50
        assert enriched[1]["serankingData"] == {"keyword": "unknown", "is_data_found": False}

    @pytest.mark.asyncio
    async def test_failure_keeps_keywords(self):
        keywords = [{"keyword": "a", "volume": 1}]
        enriched = await enrich_with_seranking(seranking_mock(Failed("rate limited")), keywords)
        assert enriched == keywords

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        keywords = [{"keyword": "a"}]
        assert await enrich_with_seranking(None, keywords) is keywords


# =============================================================================
# FULL ROUND
# =============================================================================

class TestExecuteKeywordMining:
    """Tests for execute_keyword_mining()."""

    @pytest.mark.asyncio
    async def test_round_without_ranking(self):
        clients = make_clients(make_gemini(KEYWORDS_JSON))
        options = KeywordMiningOptions(seed_keyword="coffee grinder", analyze_ranking=False, round_index=2)

        result = await execute_keyword_mining(clients, options)

        assert result["count"] == 2
        assert result["seedKeyword"] == "coffee grinder"
        assert result["roundIndex"] == 2
        assert result["targetLanguage"] == "en"
        assert "probability" not in result["keywords"][0]
        assert clients.gemini.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_round_with_ranking(self):
        def respond(prompt, **kwargs):
            if prompt.startswith("Analyze SEO competition"):
                return gemini_response({
                    "probability": "Medium",
                    "topDomainType": "Niche Site",
                    "reasoning": "Mixed results",
                    "searchIntent": "Buy a grinder",
                    "intentAnalysis": "SERP matches",
                })
            return gemini_response(KEYWORDS_JSON)

        gemini = make_gemini()
        gemini.generate = AsyncMock(side_effect=respond)
        seranking = seranking_mock(Ok([
            {"keyword": "burr coffee grinder", "is_data_found": True, "volume": 6000, "difficulty": 15},
        ]))
        clients = make_clients(gemini, seranking=seranking)
        progress = []

        result = await execute_keyword_mining(
            clients,
            KeywordMiningOptions(seed_keyword="coffee grinder"),
            on_progress=progress.append,
        )

        keywords = result["keywords"]
        assert [k["keyword"] for k in keywords] == ["burr coffee grinder", "manual coffee grinder"]
        assert all(k["probability"] == "Medium" for k in keywords)
        assert keywords[0]["volume"] == 6000
        # Low difficulty adds 15 to the blue ocean score
        assert keywords[0]["blueOceanScore"] == 15
        assert progress[0] == "Step 1: Generating keywords..."
        assert "Step 3: Analyzing ranking probability..." in progress

    @pytest.mark.asyncio
    async def test_ranking_falls_back_to_round_instruction(self):
        clients = make_clients(make_gemini(KEYWORDS_JSON))
        options = KeywordMiningOptions(
            seed_keyword="coffee grinder",
            system_instruction="Round instruction",
            website_url="https://mine.com",
            website_dr=30,
        )

        with patch("src.services.keyword_mining.analyze_keywords_ranking", new=AsyncMock(return_value=[])) as analyze:
            await execute_keyword_mining(clients, options)

        kwargs = analyze.await_args.kwargs
        assert kwargs["system_instruction"] == "Round instruction"
        assert kwargs["website_url"] == "https://mine.com"
        assert kwargs["website_dr"] == 30

    @pytest.mark.asyncio
    async def test_analyze_prompt_wins_over_round_instruction(self):
        clients = make_clients(make_gemini(KEYWORDS_JSON))
        options = KeywordMiningOptions(
            seed_keyword="coffee grinder",
            system_instruction="Round instruction",
            analyze_prompt="Ranking instruction",
        )

        with patch("src.services.keyword_mining.analyze_keywords_ranking", new=AsyncMock(return_value=[])) as analyze:
            await execute_keyword_mining(clients, options)

        assert analyze.await_args.kwargs["system_instruction"] == "Ranking instruction"

    @pytest.mark.asyncio
    async def test_empty_generation_skips_analysis(self):
        clients = make_clients(make_gemini("not json"))
        result = await execute_keyword_mining(clients, KeywordMiningOptions(seed_keyword="x"))

        assert result["keywords"] == []
        assert result["count"] == 0
        assert result["rawResponse"] == "not json"
        assert clients.gemini.generate.await_count == 1
