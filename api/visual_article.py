"""
API Endpoint for Visual Article Generation

Streams the multi-agent run as Server-Sent Events:

    data: {"type": "event", "data": {...}}
    data: {"type": "done", "data": {"title", "content", "images"}}
    data: {"type": "error", "message": "..."}

Credits are checked against the main app before the stream opens and
consumed once the article is done.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from src.analyzer.context import RequestContext
from src.integrations import ExternalAPIClients
from src.integrations.credits import CreditsClient, CreditsError, InsufficientCreditsError
from src.services import VisualArticleOptions, generate_visual_article

from .dependencies import get_request_context, bearer_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Visual Article"])

VISUAL_ARTICLE_CREDITS = 10

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class VisualArticleRequest(BaseModel):
    keyword: str = Field(..., min_length=1)
    tone: str = "professional"
    visualStyle: str = "realistic"
    targetAudience: str = "beginner"
    targetMarket: str = "global"
    uiLanguage: str = "en"
    targetLanguage: Optional[str] = None
    reference: Optional[Dict[str, Any]] = None
    skipCreditsCheck: bool = False


def sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def stream_article(
    options: VisualArticleOptions,
    context: RequestContext,
    token: str,
    charge: bool,
) -> AsyncIterator[str]:
    """
    Frames for one run.

    The clients are owned by the stream so they stay open until the last
    frame is written.
    """
    completed = False
    async with ExternalAPIClients(context) as clients:
        try:
            async for frame in generate_visual_article(clients, options):
                if frame["type"] == "done":
                    completed = True
                yield sse(frame)
        except Exception as e:
            logger.error(f"Visual article failed for '{options.keyword}': {e}")
            yield sse({"type": "error", "message": str(e) or "Visual article generation failed"})

    if completed and charge:
        try:
            async with CreditsClient.from_settings() as credits:
                await credits.consume(
                    token,
                    VISUAL_ARTICLE_CREDITS,
                    f'Visual Article - "{options.keyword}" ({options.target_language.upper()})',
                    {"type": "visual_article", "keyword": options.keyword},
                )
        except (CreditsError, httpx.HTTPError) as e:
            logger.error(f"Failed to consume credits for visual article: {e}")


@router.post("/visual-article")
async def visual_article(
    request: VisualArticleRequest,
    http_request: Request,
    context: RequestContext = Depends(get_request_context),
):
    """Generate an illustrated article, streamed as SSE."""
    token = bearer_token(http_request)
    charge = not request.skipCreditsCheck

    if charge:
        if not token:
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "message": "Authorization token required for credits consumption"},
            )
        try:
            async with CreditsClient.from_settings() as credits:
                await credits.require(token, VISUAL_ARTICLE_CREDITS)
        except InsufficientCreditsError as e:
            return JSONResponse(
                status_code=402,
                content={
                    "error": "Insufficient credits",
                    "message": str(e),
                    "required": e.required,
                    "remaining": e.remaining,
                },
            )
        except (CreditsError, httpx.HTTPError) as e:
            logger.error(f"Credits check error: {e}")

    options = VisualArticleOptions(
        keyword=request.keyword,
        tone=request.tone,
        visual_style=request.visualStyle,
        target_audience=request.targetAudience,
        target_market=request.targetMarket,
        ui_language=request.uiLanguage,
        target_language=request.targetLanguage,
        reference=request.reference,
    )
    logger.info(f"Visual article for '{options.keyword}' ({options.market_name}, {options.target_language})")

    return StreamingResponse(
        stream_article(options, context, token, charge),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
