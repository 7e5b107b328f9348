"""
JSON Extraction from Model Output

Every agent asks the model for JSON, and every model occasionally wraps it
in something else: markdown code fences, a paragraph of "thinking" before
the payload, citation markers like [1] from grounded search, or a response
cut off by the token limit.

One extractor handles all of them, in this order:
1. Code fences      - ```json ... ``` (or bare ```) are unwrapped
2. Citation markers - "[3]" / "[1, 2]" trailing prose are removed
3. Balanced scan    - each '{' or '[' is scanned string- and escape-aware
                      until its bracket closes; spans that do not decode
                      (leading prose with brackets) are skipped and a span
                      that decodes hides everything nested inside it
4. Truncation repair - an unterminated span gets its open string closed and
                      its open brackets closed in nesting order

Of the outermost spans, the first of the expected container type wins. A
wrapper object such as {"keywords": [...]} therefore never turns into an
array just because one is nested inside it.

extract_json() never raises. With nothing recoverable it returns "[]" when
an array was expected and "{}" otherwise.
"""

import json
import logging
import re
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)

# Only markers glued to prose; "[1, 2]" after ':' or ',' is real JSON
CITATION_PATTERN = re.compile(
    r"(?<=[A-Za-z0-9.!?)\u3002\u4e00-\u9fff])\s?\[\d+(?:\s*,\s*\d+)*\]"
)

CLOSERS = {"{": "}", "[": "]"}
EXPECTED_OPENERS = {"array": "[", "object": "{"}


# =============================================================================
# CLEANING
# =============================================================================

def strip_code_fences(text: str) -> str:
    """Return the contents of the first fenced block, or the text without stray fences."""
    match = CODE_FENCE_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    # Unterminated fence (truncated response)
    return re.sub(r"```(?:json|JSON)?", "", text).strip()


def strip_citations(text: str) -> str:
    """Remove grounded-search citation markers such as "[1]" or "[2, 5]"."""
    return CITATION_PATTERN.sub("", text)


# =============================================================================
# SCANNING
# =============================================================================

def _scan(text: str, start: int) -> Tuple[str, bool, List[str], bool]:
    """
    Scan from an opening bracket until it balances.

    Returns:
        (span, complete, open_stack, in_string)
    """
    stack: List[str] = []
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char in CLOSERS:
            stack.append(char)
        elif char in ("}", "]"):
            if not stack or CLOSERS[stack[-1]] != char:
                # Mismatched closer: not a JSON span
                return text[start:i + 1], False, [], False
            stack.pop()
            if not stack:
                return text[start:i + 1], True, [], False

    return text[start:], False, stack, in_string


def _repair(span: str, stack: List[str], in_string: bool) -> str:
    """Close an unterminated JSON span."""
    repaired = span
    if in_string:
        repaired += '"'
    repaired = repaired.rstrip()
    while repaired.endswith(","):
        repaired = repaired[:-1].rstrip()
    if repaired.endswith(":"):
        repaired += " null"
    for opener in reversed(stack):
        repaired += CLOSERS[opener]
    return repaired


def _loads_ok(candidate: str) -> bool:
    try:
        json.loads(candidate)
        return True
    except (ValueError, TypeError):
        return False


def _outer_spans(text: str) -> List[str]:
    """
    Outermost decodable spans in text order.

    A balanced span that decodes hides everything nested inside it. A
    truncated span that decodes once repaired hides the rest of the text.
    """
    spans: List[str] = []
    covered_until = 0
    for start, char in enumerate(text):
        if start < covered_until or char not in CLOSERS:
            continue
        span, complete, stack, in_string = _scan(text, start)
        if complete:
            if _loads_ok(span):
                spans.append(span)
                covered_until = start + len(span)
        elif stack:
            repaired = _repair(span, stack, in_string)
            if _loads_ok(repaired):
                logger.debug("Repaired truncated JSON response")
                spans.append(repaired)
                covered_until = len(text)
    return spans


# =============================================================================
# PUBLIC API
# =============================================================================

def extract_json(text: Optional[str], expect: Optional[str] = None) -> str:
    """
    Extract a JSON document from free-form model output.

    Only outermost spans are candidates: an array nested in a balanced
    object is never returned on its own. Among candidates the first of the
    expected container type wins, otherwise the first one found.

    Args:
        text: Raw model response
        expect: "array", "object" or None (whichever comes first)

    Returns:
        A JSON string. "[]" / "{}" when nothing recoverable was found.
    """
    default = "[]" if expect == "array" else "{}"
    if not text or not text.strip():
        return default

    try:
        cleaned = strip_citations(strip_code_fences(text))

        if cleaned[:1] in CLOSERS and _loads_ok(cleaned):
            return cleaned

        spans = _outer_spans(cleaned)
        opener = EXPECTED_OPENERS.get(expect)
        for span in spans:
            if opener is None or span[0] == opener:
                return span
        if spans:
            return spans[0]

    except Exception as e:
        logger.warning(f"JSON extraction failed: {e}")

    return default


def parse_json(text: Optional[str], expect: Optional[str] = None, default: Any = None) -> Any:
    """
    Extract and decode JSON from model output.

    Returns `default` when nothing decodes or the decoded type does not
    match `expect`.
    """
    extracted = extract_json(text, expect)
    try:
        value = json.loads(extracted)
    except (ValueError, TypeError):
        return default

    if expect == "array" and not isinstance(value, list):
        return default
    if expect == "object" and not isinstance(value, dict):
        return default
    return value


def truncate_for_log(text: Optional[str], limit: int = 500) -> str:
    """Shorten raw model output for log lines."""
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."
