"""
LLM Access Layer

Gemini proxy client plus the per-request provider/model context.
"""

from .client import (
    GeminiClient,
    GeminiError,
    GeminiResponse,
    RetryConfig,
    TokenUsage,
    extract_text,
    build_contents,
    translate_keyword,
    translate_text,
)
from .context import RequestContext, DEFAULT_CONTEXT, PROXY_PROVIDERS

__all__ = [
    "GeminiClient",
    "GeminiError",
    "GeminiResponse",
    "RetryConfig",
    "TokenUsage",
    "extract_text",
    "build_contents",
    "translate_keyword",
    "translate_text",
    "RequestContext",
    "DEFAULT_CONTEXT",
    "PROXY_PROVIDERS",
]
