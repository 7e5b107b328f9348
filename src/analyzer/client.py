"""
Gemini Proxy Client

Async client for Gemini models served through an OpenAI-style proxy
(302.ai or Tu-Zi), including retry logic and token tracking.

Request shape:
    POST {proxy_base}/v1/v1beta/models/{model}:generateContent
    x-goog-api-key: <key>

System instructions are sent as a leading user turn acknowledged by a
model turn, since the proxies do not all honour `systemInstruction`.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from src.utils.config import get_settings, Settings
from .context import RequestContext, DEFAULT_CONTEXT

logger = logging.getLogger(__name__)

SYSTEM_ACK = "Understood. I will follow these instructions."
JSON_SUFFIX = "\n\nPlease respond with valid JSON only, no markdown formatting."
MAX_OUTPUT_TOKENS = 8192

# on_retry(attempt, error, delay_ms)
RetryCallback = Callable[[int, Exception, int], None]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


@dataclass
class TokenUsage:
    """Track token usage reported by the proxy."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class GeminiResponse:
    """Response from a generateContent call."""
    text: str
    model: str
    raw: Dict[str, Any] = field(default_factory=dict)
    usage: TokenUsage = field(default_factory=TokenUsage)


class GeminiError(Exception):
    """Custom exception for Gemini proxy errors."""
    def __init__(self, message: str, status_code: int = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def extract_text(data: Dict[str, Any]) -> str:
    """
    Pull the generated text out of a generateContent response.

    Uses candidates[0].content.parts[0].text, falling back to the
    proxy's flat `output` field.
    """
    content = ""
    candidates = data.get("candidates") or []
    if candidates:
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if parts:
            content = parts[0].get("text") or ""
    if not content and data.get("output"):
        content = data["output"]
    return content


def build_contents(prompt: str, system_instruction: Optional[str] = None) -> List[Dict[str, Any]]:
    """Conversation turns for a prompt with an optional system instruction."""
    contents: List[Dict[str, Any]] = []
    if system_instruction:
        contents.append({"role": "user", "parts": [{"text": system_instruction}]})
        contents.append({"role": "model", "parts": [{"text": SYSTEM_ACK}]})
    contents.append({"role": "user", "parts": [{"text": prompt}]})
    return contents


class GeminiClient:
    """
    Async client for the Gemini proxy.

    Usage:
        async with GeminiClient.from_context(ctx) as client:
            response = await client.generate("Analyze...", system_instruction="...", json_mode=True)
            print(response.text)
    """

    IMAGE_PATH = "/google/v1/models/{model}?response_format=url"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 120.0,
        provider: str = "302",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Proxy API key
            base_url: Proxy base URL (e.g. https://api.302.ai)
            model: Default model for generateContent
            retry_config: Retry configuration (optional)
            timeout: Request timeout in seconds
            provider: Provider id, for logging
            transport: Custom httpx transport (tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.provider = provider
        self.retry_config = retry_config or RetryConfig()

        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

        # Track cumulative usage
        self.total_usage = TokenUsage()
        self.call_count = 0

    @classmethod
    def from_context(
        cls,
        context: Optional[RequestContext] = None,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> "GeminiClient":
        """Create a client for the provider and model selected on the request."""
        settings = settings or get_settings()
        context = context or DEFAULT_CONTEXT

        if context.proxy_provider == "tuzi":
            api_key = settings.GEMINI_TUZI_API_KEY or settings.GEMINI_API_KEY
            base_url = settings.GEMINI_TUZI_PROXY_URL
            provider = "tuzi"
        else:
            api_key = settings.GEMINI_API_KEY
            base_url = settings.GEMINI_PROXY_URL
            provider = "302"

        kwargs.setdefault("timeout", float(settings.LLM_TIMEOUT))
        return cls(
            api_key=api_key,
            base_url=base_url,
            model=context.model or settings.GEMINI_MODEL,
            provider=provider,
            **kwargs,
        )

    # =========================================================================
    # TEXT GENERATION
    # =========================================================================

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        json_mode: bool = False,
        response_schema: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> GeminiResponse:
        """
        Send a prompt to the model, retrying transient failures.

        Args:
            prompt: User prompt
            system_instruction: Instruction sent ahead of the prompt
            json_mode: Ask for JSON output
            response_schema: Optional JSON schema (json_mode only)
            model: Override the client's model
            on_retry: Called as on_retry(attempt, error, delay_ms) before each retry

        Returns:
            GeminiResponse with the generated text

        Raises:
            GeminiError: When no usable text came back after all retries
        """
        if self._closed:
            raise GeminiError("Client is closed")
        if not self.api_key or not self.api_key.strip():
            raise GeminiError("GEMINI_API_KEY is not configured")

        model = model or self.model
        if json_mode and "JSON" not in prompt and "json" not in prompt:
            prompt = prompt + JSON_SUFFIX

        body: Dict[str, Any] = {
            "contents": build_contents(prompt, system_instruction),
            "generationConfig": {"maxOutputTokens": MAX_OUTPUT_TOKENS},
        }
        if json_mode:
            body["generationConfig"]["responseMimeType"] = "application/json"
            if response_schema:
                body["generationConfig"]["responseSchema"] = response_schema

        url = f"{self.base_url}/v1/v1beta/models/{model}:generateContent"
        data = await self._request_with_retry(url, body, on_retry=on_retry)

        text = extract_text(data)
        usage_meta = data.get("usageMetadata") or {}
        usage = TokenUsage(
            input_tokens=usage_meta.get("promptTokenCount", 0) or 0,
            output_tokens=usage_meta.get("candidatesTokenCount", 0) or 0,
        )
        self.total_usage.input_tokens += usage.input_tokens
        self.total_usage.output_tokens += usage.output_tokens
        self.call_count += 1

        logger.info(
            f"Gemini call ({self.provider}/{model}): "
            f"{usage.input_tokens} in, {usage.output_tokens} out"
        )

        return GeminiResponse(text=text, model=model, raw=data, usage=usage)

    async def _make_request(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Make a single generateContent request and validate the payload."""
        response = await self._client.post(
            url,
            json=body,
            headers={"x-goog-api-key": self.api_key},
        )

        if response.status_code != 200:
            raise GeminiError(
                f"API request failed: {response.status_code} {response.text[:500]}",
                status_code=response.status_code,
                response=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            # Proxies answer 200 with an HTML error page when the upstream is down
            raise GeminiError("Invalid JSON in API response", response=response.text[:500])
        if not isinstance(data, dict):
            raise GeminiError("Unexpected API response shape", response=data)
        if data.get("error"):
            raise GeminiError(f"API error: {data['error']}", response=data)
        if not extract_text(data):
            raise GeminiError("No text content found in API response", response=data)
        return data

    async def _request_with_retry(
        self,
        url: str,
        body: Dict[str, Any],
        on_retry: Optional[RetryCallback] = None,
    ) -> Dict[str, Any]:
        """Make request with retry logic."""
        config = self.retry_config
        last_exception: Optional[Exception] = None

        for attempt in range(config.max_retries + 1):
            try:
                return await self._make_request(url, body)

            except GeminiError as e:
                if e.status_code is not None and e.status_code not in config.retryable_status_codes:
                    raise
                last_exception = e
            except httpx.TimeoutException as e:
                last_exception = GeminiError(f"Request timed out: {e}")
            except httpx.RequestError as e:
                last_exception = GeminiError(f"Request failed: {e}")

            if attempt < config.max_retries:
                delay = min(
                    config.initial_delay * (config.exponential_base ** attempt),
                    config.max_delay,
                )
                logger.warning(
                    f"Gemini request failed, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{config.max_retries}): {last_exception}"
                )
                if on_retry:
                    on_retry(attempt + 1, last_exception, int(delay * 1000))
                await asyncio.sleep(delay)

        raise last_exception

    # =========================================================================
    # IMAGE GENERATION
    # =========================================================================

    async def generate_image(self, prompt: str, model: str, aspect_ratio: str = "4:3") -> str:
        """
        Generate one image and return its URL.

        Raises:
            GeminiError: When the proxy returns no image URL
        """
        if not self.api_key:
            raise GeminiError("GEMINI_API_KEY is not configured")

        url = self.base_url + self.IMAGE_PATH.format(model=model)
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio},
            },
        }

        response = await self._client.post(
            url,
            json=body,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        if response.status_code != 200:
            raise GeminiError(
                f"Image API error: {response.status_code} {response.text[:300]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise GeminiError("Invalid JSON in image API response", response=response.text[:500])
        if data.get("error"):
            raise GeminiError(f"Image API error: {data['error']}", response=data)

        candidates = data.get("candidates") or []
        if candidates:
            for part in (candidates[0].get("content") or {}).get("parts") or []:
                if isinstance(part.get("url"), str):
                    return part["url"]
            raise GeminiError("Image URL not found in response candidates", response=data)

        status = data.get("status")
        if status in ("processing", "pending"):
            raise GeminiError(f"Image generation status: {status}", response=data)
        if data.get("output"):
            return data["output"]

        raise GeminiError("Image URL not found in response", response=data)

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


async def translate_keyword(
    client: GeminiClient,
    keyword: str,
    target_language_name: str,
) -> Dict[str, str]:
    """
    Translate a keyword into the target market language.

    Falls back to the original keyword when the call fails.
    """
    prompt = (
        f"Translate the following keyword into {target_language_name} for SEO purposes.\n"
        "Provide ONLY the translated keyword that would be commonly searched by users in that market.\n"
        "Do not explain, just provide the direct translation.\n\n"
        f'Keyword: "{keyword}"\n\n'
        f"Respond with ONLY the translated keyword in {target_language_name}."
    )
    try:
        response = await client.generate(prompt)
        translated = response.text.strip().strip('"')
        return {"original": keyword, "translated": translated or keyword, "translationBack": keyword}
    except GeminiError as e:
        logger.error(f"Translation failed for keyword '{keyword}': {e}")
        return {"original": keyword, "translated": keyword, "translationBack": keyword}


async def translate_text(client: GeminiClient, text: str, target_language: str) -> str:
    """Translate free text (e.g. a system instruction) into Chinese or English."""
    lang_name = "Chinese" if target_language == "zh" else "English"
    response = await client.generate(
        f"Translate the following system instruction text into {lang_name} for reference purposes. "
        f"Preserve the original meaning and formatting:\n\n{text}"
    )
    return response.text or text
