"""
Shared API Dependencies

Per-request LLM context and upstream clients.
"""

from typing import AsyncIterator

from fastapi import Depends, Request

from src.analyzer.context import RequestContext
from src.integrations import ExternalAPIClients


def get_request_context(request: Request) -> RequestContext:
    """Proxy provider and model chosen by the X-Proxy-Provider / X-Gemini-Model headers."""
    return RequestContext.from_headers(request.headers)


async def get_clients(
    context: RequestContext = Depends(get_request_context),
) -> AsyncIterator[ExternalAPIClients]:
    """Upstream clients for one request, closed when the request ends."""
    clients = ExternalAPIClients(context)
    try:
        yield clients
    finally:
        await clients.close()


def bearer_token(request: Request) -> str:
    """Raw bearer token from the Authorization header, '' when absent."""
    header = request.headers.get("authorization") or ""
    if not header.startswith("Bearer "):
        return ""
    return header[len("Bearer "):].strip()
