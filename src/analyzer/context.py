"""
Per-Request LLM Context

The dashboard lets a user switch between two Gemini proxy providers and
pick a model per request (X-Proxy-Provider / X-Gemini-Model headers).
That choice is captured once at the edge in an immutable RequestContext
and passed explicitly down to every agent, so concurrent requests on the
same worker never see each other's selection.
"""

from dataclasses import dataclass, replace
from typing import Mapping, Optional

PROXY_PROVIDERS = ("302", "tuzi")

PROXY_HEADER = "x-proxy-provider"
MODEL_HEADER = "x-gemini-model"


@dataclass(frozen=True)
class RequestContext:
    """Proxy provider and model selected for one request."""
    proxy_provider: Optional[str] = None
    model: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RequestContext":
        """
        Build a context from request headers.

        Unknown providers fall back to the default (None); blank model
        headers are ignored.
        """
        lowered = {k.lower(): v for k, v in headers.items()}

        provider = lowered.get(PROXY_HEADER)
        provider = provider.lower().strip() if isinstance(provider, str) else None
        if provider not in PROXY_PROVIDERS:
            provider = None

        model = lowered.get(MODEL_HEADER)
        model = model.strip() if isinstance(model, str) else None

        return cls(proxy_provider=provider, model=model or None)

    def with_model(self, model: Optional[str]) -> "RequestContext":
        """Copy of this context with a different model."""
        return replace(self, model=model)


DEFAULT_CONTEXT = RequestContext()
