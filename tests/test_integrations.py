"""
Integration Client Tests

Tests the upstream HTTP clients against mocked transports:
- ThorData SERP parsing and search
- SE-Ranking batching, rate limits and partial failures
- Firecrawl payload normalization and retries
- Credits balance checks and consumption
- Gemini proxy generation, retries and image URLs
- Per-request context and lazy client management
"""

import json

import httpx
import pytest

from conftest import make_gemini
from src.analyzer.client import (
    GeminiClient,
    GeminiError,
    RetryConfig as GeminiRetryConfig,
    SYSTEM_ACK,
    translate_keyword,
)
from src.analyzer.context import RequestContext
from src.integrations import (
    CreditsClient,
    CreditsError,
    ExternalAPIClients,
    ExternalAPIConfig,
    FirecrawlClient,
    FirecrawlError,
    InsufficientCreditsError,
    SERankingClient,
    SerpClient,
    index_by_keyword,
    merge_seranking_data,
    normalize_scrape_response,
    parse_serp_response,
    source_for_language,
)
from src.integrations.firecrawl import RetryConfig as FirecrawlRetryConfig
from src.integrations.seranking import normalize_row
from src.utils.config import Settings


def mock_transport(handler):
    return httpx.MockTransport(handler)


def bare_settings(**overrides) -> Settings:
    """Settings with every upstream credential unset unless given."""
    values = {
        "GEMINI_API_KEY": None,
        "GEMINI_TUZI_API_KEY": None,
        "THORDATA_API_TOKEN": None,
        "SERANKING_API_KEY": None,
        "FIRECRAWL_API_KEY": None,
        "DATAFORSEO_LOGIN": None,
        "DATAFORSEO_PASSWORD": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# =============================================================================
# SERP
# =============================================================================

class TestParseSerpResponse:
    """Tests for parse_serp_response()."""

    def test_organic_list(self):
        data = {"organic": [
            {"title": "Coffee on Reddit", "link": "https://www.reddit.com/r/coffee", "description": "thread"},
            {"title": "Grinder guide", "link": "https://grindguide.com", "snippet": "guide"},
        ]}
        parsed = parse_serp_response(data)

        assert parsed["resultCount"] == 2
        assert parsed["topDomainType"] == "Forum/Social"
        assert parsed["results"][0] == {
            "title": "Coffee on Reddit",
            "url": "https://www.reddit.com/r/coffee",
            "snippet": "thread",
            "position": 1,
        }
        assert parsed["results"][1]["snippet"] == "guide"

    @pytest.mark.parametrize("key", ["organic_results", "results", "snack_pack"])
    def test_alternative_keys(self, key):
        parsed = parse_serp_response({key: [{"title": "A", "url": "https://en.wikipedia.org/wiki/A"}]})
        assert parsed["results"][0]["url"] == "https://en.wikipedia.org/wiki/A"
        assert parsed["topDomainType"] == "Gov/Edu"

    def test_digit_keyed_object(self):
        data = {
            "1": {"title": "Second", "link": "https://b.com"},
            "0": {"title": "First", "link": "https://www.amazon.com/x"},
        }
        parsed = parse_serp_response(data)
        assert [r["title"] for r in parsed["results"]] == ["First", "Second"]
        assert parsed["topDomainType"] == "Big Brand"

    def test_json_string_payload(self):
        parsed = parse_serp_response(json.dumps({"organic": [{"title": "A", "link": "https://niche.io"}]}))
        assert parsed["topDomainType"] == "Niche Site"

    def test_items_without_title_or_url_skipped(self):
        data = {"organic": [
            {"title": "", "link": "https://a.com"},
            {"title": "B"},
            {"title": "C", "link": "https://c.com"},
        ]}
        parsed = parse_serp_response(data)

        assert [r["title"] for r in parsed["results"]] == ["C"]
        assert parsed["results"][0]["position"] == 1
        assert parsed["resultCount"] == 3

    def test_keeps_ten_snippets(self):
        data = {"organic": [{"title": f"T{i}", "link": f"https://s{i}.com"} for i in range(15)]}
        parsed = parse_serp_response(data)
        assert len(parsed["results"]) == 10
        assert parsed["resultCount"] == 15

    @pytest.mark.parametrize("data", [None, [], "not json", {"other": 1}])
    def test_unrecognized(self, data):
        parsed = parse_serp_response(data)
        assert parsed == {"results": [], "resultCount": 0, "topDomainType": "Unknown"}


class TestSerpClient:
    """Tests for SerpClient.search()."""

    @pytest.mark.asyncio
    async def test_search_success(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"code": 200, "data": {
                "organic": [{"title": "Quora answer", "link": "https://quora.com/q"}],
            }})

        client = SerpClient("tok", transport=mock_transport(handler))
        result = await client.search("coffee grinder")
        await client.close()

        assert result.ok
        assert result.data["keyword"] == "coffee grinder"
        assert result.data["totalResults"] == 1
        assert result.data["topDomainType"] == "Forum/Social"
        assert seen["auth"] == "Bearer tok"
        assert "q=coffee+grinder" in seen["body"]

    @pytest.mark.asyncio
    async def test_empty_results_have_no_total(self):
        client = SerpClient("tok", transport=mock_transport(lambda r: httpx.Response(200, json={"organic": []})))
        result = await client.search("zzz")
        assert result.ok
        assert result.data["totalResults"] is None
        assert result.data["topDomainType"] == "Unknown"

    @pytest.mark.asyncio
    async def test_http_error_is_failed(self):
        client = SerpClient("tok", transport=mock_transport(lambda r: httpx.Response(502, text="bad gateway")))
        result = await client.search("coffee")
        assert not result.ok
        assert "502" in result.reason

    @pytest.mark.asyncio
    async def test_error_payload_is_failed(self):
        client = SerpClient("tok", transport=mock_transport(lambda r: httpx.Response(200, json={"error": "quota"})))
        result = await client.search("coffee")
        assert not result.ok
        assert "quota" in result.reason

    @pytest.mark.asyncio
    async def test_missing_token_is_failed(self):
        result = await SerpClient(None).search("coffee")
        assert not result.ok
        assert "THORDATA_API_TOKEN" in result.reason

    @pytest.mark.asyncio
    async def test_closed_client(self):
        client = SerpClient("tok")
        await client.close()
        result = await client.search("coffee")
        assert result.reason == "Client is closed"

    @pytest.mark.asyncio
    async def test_search_batch_keys_by_lowercase(self):
        client = SerpClient("tok", transport=mock_transport(lambda r: httpx.Response(200, json={"organic": []})))
        results = await client.search_batch(["Coffee", "Tea"], delay=0)
        assert set(results) == {"coffee", "tea"}


# =============================================================================
# SE-RANKING
# =============================================================================

class TestSERankingHelpers:

    @pytest.mark.parametrize("language,source", [("en", "us"), ("zh", "cn"), ("ar", "eg"), ("xx", "us"), (None, "us")])
    def test_source_for_language(self, language, source):
        assert source_for_language(language) == source

    def test_normalize_row_infers_found_from_volume(self):
        row = normalize_row({"keyword": "a", "volume": 10, "cpc": "1.2", "difficulty": 30})
        assert row["is_data_found"] is True
        assert row["cpc"] is None
        assert row["difficulty"] == 30

    def test_normalize_row_explicit_flag(self):
        assert normalize_row({"keyword": "a", "is_data_found": False, "volume": 10})["is_data_found"] is False
        assert normalize_row({"keyword": "a"})["is_data_found"] is False

    def test_history_trend_kept(self):
        row = normalize_row({"keyword": "a", "volume": 1, "history_trend": {"2024-01": 5}})
        assert row["history_trend"] == {"2024-01": 5}

    def test_index_by_keyword(self):
        rows = [
            {"keyword": "Coffee", "is_data_found": True, "volume": 10},
            {"keyword": "tea", "is_data_found": False},
        ]
        assert list(index_by_keyword(rows)) == ["coffee"]

    def test_merge_replaces_volume_only_with_data(self):
        keywords = [{"keyword": "Coffee", "volume": 1}, {"keyword": "tea", "volume": 2}]
        rows = [
            {"keyword": "coffee", "is_data_found": True, "volume": 900},
            {"keyword": "tea", "is_data_found": True, "volume": None},
        ]
        merged = merge_seranking_data(keywords, rows)
        assert merged[0]["volume"] == 900
        assert merged[1]["volume"] == 2
        assert keywords[0]["volume"] == 1


class TestSERankingClient:
    """Tests for SERankingClient.fetch_keyword_data()."""

    @pytest.mark.asyncio
    async def test_batches_of_ten(self):
        calls = []

        def handler(request):
            calls.append(request)
            body = request.content.decode()
            count = body.count('name="keywords[]"')
            return httpx.Response(200, json=[{"keyword": f"k{i}", "volume": i} for i in range(count)])

        client = SERankingClient("key", batch_delay=0, transport=mock_transport(handler))
        result = await client.fetch_keyword_data([f"kw{i}" for i in range(25)], "zh")

        assert result.ok and not result.degraded
        assert len(calls) == 3
        assert len(result.data) == 25
        assert calls[0].url.params["source"] == "cn"
        assert calls[0].headers["Authorization"] == "Token key"

    @pytest.mark.asyncio
    async def test_truncates_to_one_hundred(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=[])

        client = SERankingClient("key", batch_delay=0, transport=mock_transport(handler))
        await client.fetch_keyword_data([f"kw{i}" for i in range(130)])
        assert len(calls) == 10

    @pytest.mark.asyncio
    async def test_blank_keywords(self):
        client = SERankingClient("key", transport=mock_transport(lambda r: httpx.Response(500)))
        result = await client.fetch_keyword_data(["", "  "])
        assert result.ok
        assert result.data == []

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after(self):
        responses = [
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json=[{"keyword": "a", "volume": 5}]),
        ]
        client = SERankingClient("key", transport=mock_transport(lambda r: responses.pop(0)))

        result = await client.fetch_keyword_data(["a"])

        assert result.ok
        assert result.data[0]["volume"] == 5

    @pytest.mark.asyncio
    async def test_partial_failure_is_degraded(self):
        def handler(request):
            if "kw0" in request.content.decode():
                return httpx.Response(200, json=[{"keyword": "kw0", "volume": 1}])
            return httpx.Response(500, text="boom")

        client = SERankingClient("key", batch_size=1, batch_delay=0, transport=mock_transport(handler))
        result = await client.fetch_keyword_data(["kw0", "kw1"])

        assert result.degraded
        assert result.data[1] == {"keyword": "kw1", "is_data_found": False}
        assert "1 of 2" in result.reason

    @pytest.mark.asyncio
    async def test_all_batches_failed(self):
        client = SERankingClient("key", batch_delay=0, transport=mock_transport(lambda r: httpx.Response(401)))
        result = await client.fetch_keyword_data(["a"])
        assert not result.ok
        assert "401" in result.reason

    @pytest.mark.asyncio
    async def test_not_configured(self):
        result = await SERankingClient(None).fetch_keyword_data(["a"])
        assert not result.ok


# =============================================================================
# FIRECRAWL
# =============================================================================

class TestNormalizeScrapeResponse:

    def test_success_wrapper(self):
        page = normalize_scrape_response({"success": True, "data": {
            "markdown": "# Hi", "metadata": {"title": "Hi"}, "screenshot": "https://s.png",
        }})
        assert page == {"markdown": "# Hi", "images": [], "screenshot": "https://s.png", "title": "Hi"}

    def test_pages_list(self):
        assert normalize_scrape_response({"pages": [{"markdown": "body"}]})["markdown"] == "body"

    def test_flat_markdown(self):
        assert normalize_scrape_response({"markdown": "flat", "title": "T"})["title"] == "T"

    def test_data_without_success(self):
        assert normalize_scrape_response({"data": {"markdown": "inner"}})["markdown"] == "inner"

    def test_no_content(self):
        with pytest.raises(FirecrawlError, match="No content"):
            normalize_scrape_response({"success": False})

    def test_blank_markdown(self):
        with pytest.raises(FirecrawlError, match="Empty content"):
            normalize_scrape_response({"success": True, "data": {"markdown": "   "}})


class TestFirecrawlClient:
    """Tests for FirecrawlClient.scrape_url()."""

    @pytest.mark.asyncio
    async def test_scrape_with_screenshot(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {"markdown": "content"}})

        client = FirecrawlClient("key", base_url="https://proxy.test/", transport=mock_transport(handler))
        page = await client.scrape_url("https://example.com", include_screenshot=True)

        assert page["markdown"] == "content"
        assert seen["url"] == "https://proxy.test/firecrawl/v1/scrape"
        assert seen["body"]["formats"] == ["markdown", "screenshot"]
        assert seen["body"]["onlyMainContent"] is True

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        responses = [httpx.Response(503), httpx.Response(200, json={"markdown": "ok"})]
        client = FirecrawlClient(
            "key",
            retry_config=FirecrawlRetryConfig(initial_delay=0),
            transport=mock_transport(lambda r: responses.pop(0)),
        )
        page = await client.scrape_url("https://example.com")
        assert page["markdown"] == "ok"

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(402, text="payment required")

        client = FirecrawlClient("key", transport=mock_transport(handler))
        with pytest.raises(FirecrawlError) as exc_info:
            await client.scrape_url("https://example.com")

        assert exc_info.value.status_code == 402
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_map_url_links(self):
        client = FirecrawlClient("key", transport=mock_transport(
            lambda r: httpx.Response(200, json={"links": ["https://a.com/x", 3]})
        ))
        result = await client.map_url("https://a.com")
        assert result["pages"] == [{"url": "https://a.com/x", "type": "page"}]

    def test_from_settings_requires_key(self):
        with pytest.raises(FirecrawlError):
            FirecrawlClient.from_settings(bare_settings())


# =============================================================================
# CREDITS
# =============================================================================

class TestCreditsClient:
    """Tests for balance checks and consumption."""

    @staticmethod
    def client_for(handler):
        return CreditsClient("https://app.test/", transport=mock_transport(handler))

    @pytest.mark.asyncio
    async def test_require_enough(self):
        def handler(request):
            assert request.url.path == "/api/user/dashboard"
            assert request.headers["Authorization"] == "Bearer user-token"
            return httpx.Response(200, json={"credits": {"remaining": 50, "total": 100, "used": 50}})

        balance = await self.client_for(handler).require("user-token", 10)
        assert balance.remaining == 50
        assert balance.used == 50

    @pytest.mark.asyncio
    async def test_require_insufficient(self):
        client = self.client_for(lambda r: httpx.Response(200, json={"credits": {"remaining": 3}}))

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await client.require("t", 10)

        err = exc_info.value
        assert (err.required, err.remaining, err.status_code) == (10, 3, 402)
        assert "requires 10 credits" in str(err)

    @pytest.mark.asyncio
    async def test_balance_failure(self):
        client = self.client_for(lambda r: httpx.Response(401, json={"error": "Invalid token"}))
        with pytest.raises(CreditsError, match="Invalid token"):
            await client.get_balance("t")

    @pytest.mark.asyncio
    async def test_consume(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        await self.client_for(handler).consume("t", 10, "Visual article", {"type": "article"})

        assert seen["path"] == "/api/credits/consume"
        assert seen["body"] == {"credits": 10, "description": "Visual article", "related_entity": {"type": "article"}}

    @pytest.mark.asyncio
    async def test_consume_insufficient(self):
        client = self.client_for(lambda r: httpx.Response(400, json={"error": "Insufficient credits"}))
        with pytest.raises(InsufficientCreditsError):
            await client.consume("t", 10, "x")

    @pytest.mark.asyncio
    async def test_consume_other_error(self):
        client = self.client_for(lambda r: httpx.Response(500, text="oops"))
        with pytest.raises(CreditsError, match="Failed to consume credits"):
            await client.consume("t", 10, "x")


# =============================================================================
# GEMINI
# =============================================================================

def gemini_payload(text: str, prompt_tokens: int = 12, output_tokens: int = 8):
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": prompt_tokens, "candidatesTokenCount": output_tokens},
    }


def gemini_with(handler, **kwargs) -> GeminiClient:
    return GeminiClient(
        api_key=kwargs.pop("api_key", "key"),
        base_url="https://proxy.test/",
        model="gemini-2.5-flash",
        retry_config=GeminiRetryConfig(max_retries=2, initial_delay=0),
        transport=mock_transport(handler),
        **kwargs,
    )


class TestGeminiClient:
    """Tests for GeminiClient.generate() and generate_image()."""

    @pytest.mark.asyncio
    async def test_generate_sends_system_turns(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_payload("hello"))

        client = gemini_with(handler)
        response = await client.generate("Say hi", system_instruction="Be brief")

        assert response.text == "hello"
        assert response.usage.total_tokens == 20
        assert client.total_usage.total_tokens == 20
        assert client.call_count == 1
        assert seen["url"] == "https://proxy.test/v1/v1beta/models/gemini-2.5-flash:generateContent"
        assert seen["key"] == "key"
        roles = [turn["role"] for turn in seen["body"]["contents"]]
        assert roles == ["user", "model", "user"]
        assert seen["body"]["contents"][1]["parts"][0]["text"] == SYSTEM_ACK

    @pytest.mark.asyncio
    async def test_json_mode(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_payload("{}"))

        client = gemini_with(handler)
        await client.generate("List keywords", json_mode=True, model="gemini-3-flash-preview")

        config = seen["body"]["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert seen["body"]["contents"][-1]["parts"][0]["text"].endswith("valid JSON only, no markdown formatting.")

    @pytest.mark.asyncio
    async def test_flat_output_field(self):
        client = gemini_with(lambda r: httpx.Response(200, json={"output": "flat text"}))
        response = await client.generate("x")
        assert response.text == "flat text"

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        responses = [httpx.Response(503, text="busy"), httpx.Response(200, json=gemini_payload("ok"))]
        retries = []

        client = gemini_with(lambda r: responses.pop(0))
        response = await client.generate("x", on_retry=lambda attempt, err, delay: retries.append((attempt, delay)))

        assert response.text == "ok"
        assert retries == [(1, 0)]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, text="bad request")

        client = gemini_with(handler)
        with pytest.raises(GeminiError) as exc_info:
            await client.generate("x")

        assert exc_info.value.status_code == 400
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_empty_text_exhausts_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"candidates": []})

        client = gemini_with(handler)
        with pytest.raises(GeminiError, match="No text content"):
            await client.generate("x")
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_html_body_is_retried_as_gemini_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="<html>502 Bad Gateway</html>")

        client = gemini_with(handler)
        with pytest.raises(GeminiError, match="Invalid JSON") as exc_info:
            await client.generate("x")

        assert len(calls) == 3
        assert "Bad Gateway" in exc_info.value.response

    @pytest.mark.asyncio
    async def test_html_body_then_success(self):
        responses = [
            httpx.Response(200, text="<html>upstream timeout</html>"),
            httpx.Response(200, json=gemini_payload("ok")),
        ]
        client = gemini_with(lambda r: responses.pop(0))
        assert (await client.generate("x")).text == "ok"

    @pytest.mark.asyncio
    async def test_image_html_body(self):
        client = gemini_with(lambda r: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(GeminiError, match="Invalid JSON"):
            await client.generate_image("x", "m")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        client = gemini_with(lambda r: httpx.Response(200), api_key="")
        with pytest.raises(GeminiError, match="GEMINI_API_KEY"):
            await client.generate("x")

    @pytest.mark.asyncio
    async def test_image_url_from_candidates(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [
                {"text": "here"}, {"url": "https://img.test/a.png"},
            ]}}]})

        client = gemini_with(handler)
        url = await client.generate_image("a grinder", "gemini-3-pro-image-preview")

        assert url == "https://img.test/a.png"
        assert seen["url"] == "https://proxy.test/google/v1/models/gemini-3-pro-image-preview?response_format=url"

    @pytest.mark.asyncio
    async def test_image_output_fallback_and_pending(self):
        client = gemini_with(lambda r: httpx.Response(200, json={"output": "https://img.test/b.png"}))
        assert await client.generate_image("x", "m") == "https://img.test/b.png"

        client = gemini_with(lambda r: httpx.Response(200, json={"status": "processing"}))
        with pytest.raises(GeminiError, match="processing"):
            await client.generate_image("x", "m")

    def test_from_context_tuzi(self):
        settings = bare_settings(GEMINI_API_KEY="main", GEMINI_TUZI_API_KEY="tuzi-key")
        client = GeminiClient.from_context(RequestContext(proxy_provider="tuzi", model="m1"), settings)

        assert client.api_key == "tuzi-key"
        assert client.base_url == settings.GEMINI_TUZI_PROXY_URL
        assert client.model == "m1"

    def test_from_context_default(self):
        settings = bare_settings(GEMINI_API_KEY="main")
        client = GeminiClient.from_context(None, settings)

        assert client.api_key == "main"
        assert client.provider == "302"
        assert client.model == settings.GEMINI_MODEL


class TestTranslateKeyword:

    @pytest.mark.asyncio
    async def test_strips_quotes(self):
        result = await translate_keyword(make_gemini('"咖啡研磨机"'), "coffee grinder", "Chinese")
        assert result == {"original": "coffee grinder", "translated": "咖啡研磨机", "translationBack": "coffee grinder"}

    @pytest.mark.asyncio
    async def test_failure_keeps_original(self):
        result = await translate_keyword(make_gemini(GeminiError("down")), "coffee grinder", "Chinese")
        assert result["translated"] == "coffee grinder"


# =============================================================================
# CONTEXT & CLIENT MANAGEMENT
# =============================================================================

class TestRequestContext:
    """Tests for RequestContext.from_headers()."""

    def test_known_provider(self):
        ctx = RequestContext.from_headers({"X-Proxy-Provider": " TUZI ", "X-Gemini-Model": "gemini-3-flash-preview"})
        assert ctx.proxy_provider == "tuzi"
        assert ctx.model == "gemini-3-flash-preview"

    def test_unknown_provider_and_blank_model(self):
        ctx = RequestContext.from_headers({"x-proxy-provider": "openai", "x-gemini-model": "  "})
        assert ctx.proxy_provider is None
        assert ctx.model is None

    def test_with_model(self):
        ctx = RequestContext(proxy_provider="302").with_model("m2")
        assert ctx == RequestContext(proxy_provider="302", model="m2")


class TestExternalAPIClients:

    def test_unconfigured_clients_are_none(self):
        clients = ExternalAPIClients(config=ExternalAPIConfig(settings=bare_settings()))
        assert clients.serp is None
        assert clients.seranking is None
        assert clients.firecrawl is None
        assert clients.dataforseo is None

    def test_clients_created_once(self):
        settings = bare_settings(THORDATA_API_TOKEN="t", DATAFORSEO_LOGIN="l", DATAFORSEO_PASSWORD="p")
        clients = ExternalAPIClients(config=ExternalAPIConfig(settings=settings))

        assert clients.serp is clients.serp
        assert clients.dataforseo is not None

    def test_kill_switch(self, monkeypatch):
        monkeypatch.setenv("SERP_ENABLED", "false")
        config = ExternalAPIConfig(settings=bare_settings(THORDATA_API_TOKEN="t"))
        assert config.has_serp is False

    @pytest.mark.asyncio
    async def test_close_resets_clients(self):
        settings = bare_settings(GEMINI_API_KEY="k", SERANKING_API_KEY="s")
        clients = ExternalAPIClients(RequestContext(model="m"), ExternalAPIConfig(settings=settings))

        assert clients.gemini.model == "m"
        seranking = clients.seranking
        await clients.close()

        assert seranking._closed
        assert clients._gemini is None
        assert clients._seranking is None
