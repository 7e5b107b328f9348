"""
Visual Article Service

Multi-agent article generation streamed as events to the dashboard.

Agents (as shown in the UI):
    tracker     mission lifecycle
    researcher  SERP, search preferences, competitors, keyword metrics
    strategist  strategy report and outline
    artist      visual themes and images
    writer      article body

Every event is {id, agentId, type, timestamp, message?, cardType?, data?}
with type one of log / card / error. The generator yields frames:

    {"type": "event", "data": <event>}
    {"type": "done", "data": {"title", "content", "images"}}

A failure yields a tracker error event and then re-raises, so the
caller can close the stream with an error frame.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from src.agents import SEOResearcherAgent, ContentWriterAgent, ImageCreativeAgent
from src.analyzer.client import GeminiError
from src.integrations import ExternalAPIClients, FirecrawlError
from src.models.keyword import now_ms

logger = logging.getLogger(__name__)

MARKET_LANGUAGES = {
    "global": "en",
    "us": "en",
    "uk": "en",
    "ca": "en",
    "au": "en",
    "de": "de",
    "fr": "fr",
    "jp": "ja",
    "cn": "zh",
}
MAX_IMAGES = 2
STREAMING_SPEED = 3
STREAMING_INTERVAL_MS = 50


def language_for_market(target_market: Optional[str]) -> str:
    return MARKET_LANGUAGES.get((target_market or "global").lower(), "en")


@dataclass
class VisualArticleOptions:
    keyword: str
    tone: str = "professional"
    visual_style: str = "realistic"
    target_audience: str = "beginner"
    target_market: str = "global"
    ui_language: str = "en"
    target_language: Optional[str] = None
    reference: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.target_language:
            self.target_language = language_for_market(self.target_market)

    @property
    def market_name(self) -> str:
        return "Global" if self.target_market == "global" else (self.target_market or "global").upper()


def make_event(
    agent_id: str,
    event_type: str,
    message: Optional[str] = None,
    card_type: Optional[str] = None,
    data: Any = None,
) -> Dict[str, Any]:
    event = {
        "id": secrets.token_hex(4),
        "agentId": agent_id,
        "type": event_type,
        "timestamp": now_ms(),
    }
    if message is not None:
        event["message"] = message
    if card_type is not None:
        event["cardType"] = card_type
    if data is not None:
        event["data"] = data
    return event


def _frame(agent_id: str, event_type: str, message: str = None, card_type: str = None, data: Any = None) -> Dict[str, Any]:
    return {"type": "event", "data": make_event(agent_id, event_type, message, card_type, data)}


async def resolve_reference(
    clients: ExternalAPIClients,
    reference: Optional[Dict[str, Any]],
) -> Optional[Dict[str, Any]]:
    """Scrape a reference URL (with screenshot) when its content was not supplied."""
    if not reference or reference.get("type") != "url":
        return reference
    url = reference.get("url") or {}
    if url.get("content") or not url.get("url") or clients.firecrawl is None:
        return reference

    page = await clients.firecrawl.scrape_url(url["url"], include_screenshot=True)
    return {
        "type": "url",
        "url": {
            "url": url["url"],
            "content": page["markdown"],
            "screenshot": page.get("screenshot"),
            "title": page.get("title") or url.get("title"),
        },
    }


async def generate_visual_article(
    clients: ExternalAPIClients,
    options: VisualArticleOptions,
) -> AsyncIterator[Dict[str, Any]]:
    """Run the pipeline, yielding stream frames."""
    keyword = options.keyword
    market = options.market_name
    gemini = clients.gemini

    try:
        yield _frame("tracker", "log", f'Initializing mission for "{keyword}"...')

        # Research
        yield _frame("researcher", "log", f"Analyzing SERP and Competitors for {market} market...")
        serp_results: List[Dict[str, Any]] = []
        if clients.serp is not None:
            serp = await clients.serp.search(keyword, options.target_language)
            if serp.ok:
                serp_results = serp.data["results"]
            else:
                logger.error(f"[VisualArticle] Failed to fetch SERP results: {serp.reason}")
        yield _frame("researcher", "card", card_type="serp", data={"results": serp_results})

        researcher = SEOResearcherAgent(gemini)
        search_prefs = None
        try:
            search_prefs = await researcher.analyze_search_preferences(
                keyword, options.target_language, options.target_market
            )
        except (GeminiError, httpx.HTTPError) as e:
            logger.error(f"[VisualArticle] Failed to analyze search preferences: {e}")
        if search_prefs:
            yield _frame("researcher", "card", card_type="search-preferences", data=search_prefs)

        competitors = None
        try:
            competitors = await researcher.analyze_competitors(
                keyword, serp_results, options.target_language, options.target_market
            )
        except (GeminiError, httpx.HTTPError) as e:
            logger.error(f"[VisualArticle] Failed to analyze competitors: {e}")
        if competitors:
            yield _frame("researcher", "card", card_type="competitor-analysis", data={
                "winning_formula": competitors.get("winning_formula"),
                "contentGaps": (competitors.get("competitorAnalysis") or {}).get("contentGaps") or [],
                "competitor_benchmark": competitors.get("competitor_benchmark") or [],
            })

        yield _frame("researcher", "log", "Fetching keyword metrics data...")
        metrics = None
        if clients.seranking is not None:
            result = await clients.seranking.fetch_keyword_data([keyword], options.target_language)
            rows = result.value_or([])
            if rows and rows[0].get("is_data_found"):
                metrics = rows[0]
        if metrics:
            volume, difficulty = metrics.get("volume") or 0, metrics.get("difficulty") or 0
            yield _frame("researcher", "log", f"Keyword metrics retrieved - Volume: {volume}, Difficulty: {difficulty}")
            yield _frame("researcher", "card", card_type="data", data={"volume": volume, "difficulty": difficulty})
        else:
            yield _frame("researcher", "log", "No keyword data found, using estimates")

        # Strategy
        yield _frame("strategist", "log", f"Designing content strategy for {market} market to beat Top 3...")
        reference = options.reference
        try:
            reference = await resolve_reference(clients, reference)
        except (FirecrawlError, httpx.HTTPError) as e:
            logger.error(f"[VisualArticle] Failed to scrape reference URL: {e}")
            yield _frame("strategist", "log", "Warning: Reference URL could not be scraped")
        if reference and reference.get("type") == "document" and reference.get("document"):
            yield _frame("strategist", "log", f"Processing reference document: {reference['document'].get('filename', '')}")
        elif reference and (reference.get("url") or {}).get("content"):
            yield _frame("strategist", "log", f"Processing reference URL: {reference['url']['url']}")

        yield _frame("strategist", "log", "Generating comprehensive SEO strategy report...")
        try:
            report = await researcher.generate_strategy(
                keyword,
                search_prefs,
                competitors,
                ui_language=options.ui_language,
                target_language=options.target_language,
                target_market=options.target_market,
                reference=reference,
                guidance=(
                    f"Tone: {options.tone}, Audience: {options.target_audience}, Target Market: {market}. "
                    "Ensure visual opportunities are highlighted and content is tailored for the target market."
                ),
            )
        except (GeminiError, httpx.HTTPError) as e:
            logger.error(f"[VisualArticle] Failed to generate strategy report: {e}")
            report = {"pageTitleH1": keyword, "contentStructure": [], "metaDescription": "", "targetKeyword": keyword}
            yield _frame("strategist", "log", "Warning: Strategy generation failed, using default strategy")

        structure = report.get("contentStructure") if isinstance(report.get("contentStructure"), list) else []
        yield _frame("strategist", "log", f"Strategy report complete: {len(structure)} main sections")
        yield _frame("strategist", "card", card_type="outline", data={
            "h1": report.get("pageTitleH1") or keyword,
            "structure": structure,
        })

        # Images
        yield _frame("artist", "log", "Analyzing structure for visual opportunities...")
        screenshot = (reference or {}).get("url", {}).get("screenshot") if (reference or {}).get("type") == "url" else None
        headers = "\n".join(s.get("header", "") for s in structure if s.get("header"))
        theme_source = (report.get("pageTitleH1") or "") + (f"\n{headers}" if headers else "")

        artist = ImageCreativeAgent(gemini)
        images: List[Dict[str, Any]] = []
        try:
            themes = (await artist.extract_visual_themes(theme_source or keyword))["themes"]
        except (GeminiError, httpx.HTTPError) as e:
            logger.error(f"[VisualArticle] Failed to extract visual themes: {e}")
            themes = []

        if themes:
            selected = themes[:1 if screenshot else MAX_IMAGES]
            prompts = artist.build_image_prompts(selected, keyword, report.get("pageTitleH1"), options.visual_style)
            for p in prompts:
                yield _frame("artist", "card", card_type="image-gen", data={
                    "theme": p["theme"],
                    "prompt": p["prompt"],
                    "description": p["description"],
                    "imageUrl": None,
                    "status": "extracting",
                    "progress": 0,
                })

            yield _frame("artist", "log", f"Generating {len(prompts)} images...")
            results = await artist.generate_images(prompts)
            succeeded = sum(1 for r in results if r.get("imageUrl"))
            yield _frame("artist", "log", f"Image generation complete: {succeeded} succeeded, {len(results) - succeeded} failed")

            images = [{"url": r["imageUrl"], "prompt": r["theme"], "placement": "inline"} for r in results if r.get("imageUrl")]

            if screenshot:
                ref_url = reference["url"]
                images.append({
                    "url": screenshot,
                    "prompt": ref_url.get("title") or ref_url.get("url") or "Reference Screenshot",
                    "placement": "inline",
                    "isScreenshot": True,
                })
                yield _frame("artist", "card", "Reference page screenshot added", "image-gen", {
                    "theme": ref_url.get("title") or "Reference Screenshot",
                    "prompt": ref_url.get("url"),
                    "imageUrl": screenshot,
                    "status": "completed",
                    "progress": 100,
                    "isScreenshot": True,
                })

            for p, r in zip(prompts, results):
                if r.get("imageUrl"):
                    yield _frame("artist", "card", f"Visual generated: {r['theme']}", "image-gen", {
                        "theme": p["theme"],
                        "prompt": p["prompt"],
                        "description": p["description"],
                        "imageUrl": r["imageUrl"],
                        "status": "completed",
                        "progress": 100,
                    })
                else:
                    yield _frame("artist", "card", f"Image generation failed: {r['theme']}", "image-gen", {
                        "theme": p["theme"],
                        "prompt": p["prompt"],
                        "description": p["description"],
                        "imageUrl": None,
                        "status": "failed",
                        "error": r.get("error"),
                        "progress": 0,
                    })

        # Writing
        yield _frame("writer", "log", f"Drafting content with integrated visuals for {market} market...")
        yield _frame("writer", "card", card_type="streaming-text", data={
            "content": "",
            "speed": STREAMING_SPEED,
            "interval": STREAMING_INTERVAL_MS,
        })

        writer = ContentWriterAgent(gemini)
        try:
            content = await writer.write_content(report, search_prefs, competitors, options.target_market)
        except (GeminiError, httpx.HTTPError) as e:
            logger.error(f"[VisualArticle] Failed to generate content: {e}")
            title = report.get("pageTitleH1") or keyword
            content = {"title": title, "content": f"# {title}\n\nContent generation failed. Please try again."}
            yield _frame("writer", "log", "Warning: Content generation failed")

        if content.get("content"):
            yield _frame("writer", "card", card_type="streaming-text", data={
                "content": content["content"],
                "speed": STREAMING_SPEED,
                "interval": STREAMING_INTERVAL_MS,
            })

        yield {
            "type": "done",
            "data": {
                "title": content.get("title") or report.get("pageTitleH1") or keyword,
                "content": content.get("content") or "",
                "images": images,
            },
        }
    except Exception as e:
        yield _frame("tracker", "error", f"Mission failed: {e}")
        raise
