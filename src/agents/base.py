"""
Base Agent Class for the Niche Mining Engine

All content agents inherit from this base class, which provides:
- Standard interface (name, display name)
- Text and JSON calls against the Gemini proxy
- Robust JSON parsing with logged fallbacks
- Token and timing tracking

Architecture:
    BaseAgent (abstract)
    ├── KeywordMiningAgent      (keyword generation rounds)
    ├── RankingAnalyzer         (SERP competition per keyword)
    ├── SEOResearcherAgent      (search preferences, competitors, strategy)
    ├── ContentWriterAgent      (article drafting)
    ├── QualityReviewerAgent    (editorial review)
    └── ImageCreativeAgent      (visual themes and image generation)
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.analyzer.client import GeminiClient, RetryCallback
from src.output.parser import parse_json, truncate_for_log

logger = logging.getLogger(__name__)

# Progress messages surfaced to the dashboard (SSE logs)
ProgressCallback = Callable[[str], None]


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class AgentStats:
    """Per-agent call accounting."""
    calls: int = 0
    failures: int = 0
    tokens_used: int = 0
    seconds: float = 0.0
    parse_failures: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "calls": self.calls,
            "failures": self.failures,
            "tokens_used": self.tokens_used,
            "seconds": round(self.seconds, 2),
            "parse_failures": len(self.parse_failures),
        }


# ============================================================================
# BASE AGENT CLASS
# ============================================================================

class BaseAgent(ABC):
    """
    Abstract base class for all content agents.

    Each agent must implement:
    - name: Unique identifier
    - display_name: Human-readable name
    """

    def __init__(self, client: GeminiClient, on_progress: Optional[ProgressCallback] = None):
        """
        Initialize agent with a Gemini client.

        Args:
            client: GeminiClient bound to the request's provider/model
            on_progress: Optional callback receiving progress messages
        """
        self.client = client
        self.on_progress = on_progress
        self.stats = AgentStats()

    # =========================================================================
    # ABSTRACT PROPERTIES - Must be implemented by each agent
    # =========================================================================

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique agent identifier (e.g., 'keyword_mining')."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name (e.g., 'Keyword Mining Agent')."""
        pass

    # =========================================================================
    # PROGRESS
    # =========================================================================

    def progress(self, message: str) -> None:
        """Send a progress message to the caller, if it listens."""
        if self.on_progress:
            self.on_progress(message)

    def _retry_notifier(self, label: str) -> RetryCallback:
        def notify(attempt: int, error: Exception, delay_ms: int) -> None:
            self.progress(f"{label} error (attempt {attempt}/3), retrying in {delay_ms}ms...")
        return notify

    # =========================================================================
    # MODEL CALLS
    # =========================================================================

    async def generate_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        json_mode: bool = False,
        response_schema: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
        retry_label: Optional[str] = None,
    ) -> str:
        """
        Call the model and return its text.

        Raises:
            GeminiError: When the call fails after retries
        """
        start = time.monotonic()
        self.stats.calls += 1
        try:
            response = await self.client.generate(
                prompt,
                system_instruction=system_instruction,
                json_mode=json_mode,
                response_schema=response_schema,
                model=model,
                on_retry=self._retry_notifier(retry_label) if retry_label else None,
            )
        except Exception:
            self.stats.failures += 1
            raise
        finally:
            self.stats.seconds += time.monotonic() - start

        self.stats.tokens_used += response.usage.total_tokens
        return response.text

    async def generate_json(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        expect: str = "object",
        default: Any = None,
        response_schema: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
        retry_label: Optional[str] = None,
    ) -> Tuple[Any, str]:
        """
        Call the model in JSON mode and parse the result.

        Returns:
            (parsed value or `default`, raw text)

        Raises:
            GeminiError: When the call fails after retries
        """
        text = await self.generate_text(
            prompt,
            system_instruction=system_instruction,
            json_mode=True,
            response_schema=response_schema,
            model=model,
            retry_label=retry_label,
        )
        parsed = self.parse(text, expect=expect, default=default)
        return parsed, text

    def parse(self, text: str, expect: str = "object", default: Any = None) -> Any:
        """Parse model output, logging a truncated copy on failure."""
        value = parse_json(text, expect=expect, default=None)
        if value is None:
            logger.error(
                f"[{self.name}] Failed to parse {expect} from model output: "
                f"{truncate_for_log(text)}"
            )
            self.stats.parse_failures.append(truncate_for_log(text, 200))
            return default
        return value
