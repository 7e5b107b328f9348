"""
Tagged Fetch Results

Upstream fetchers return one of three outcomes instead of silently
collapsing failures into empty values:

    Ok(data)                 - call succeeded
    Degraded(data, reason)   - partial data (some batches failed, fallback used)
    Failed(reason)           - nothing usable came back

Callers that only want the data use `.value_or(default)`; callers that
need to tell "no results" from "fetch failed" inspect `.ok` / `.reason`.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T

    ok = True
    degraded = False
    reason: Optional[str] = None

    def value_or(self, default: Any = None) -> T:
        return self.data


@dataclass(frozen=True)
class Degraded(Generic[T]):
    data: T
    reason: str

    ok = True
    degraded = True

    def value_or(self, default: Any = None) -> T:
        return self.data


@dataclass(frozen=True)
class Failed:
    reason: str

    ok = False
    degraded = False
    data = None

    def value_or(self, default: Any = None) -> Any:
        return default


FetchResult = Union[Ok, Degraded, Failed]


def status_of(result: FetchResult) -> str:
    """Short status label for logs and API payloads."""
    if isinstance(result, Failed):
        return "failed"
    if isinstance(result, Degraded):
        return "degraded"
    return "ok"
