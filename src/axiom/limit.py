"""Rate-limit and quota bookkeeping.

Every API response may carry one of three header triplets describing a limit.
They are checked in a fixed order (ingest, query, rate) and the first populated
triplet wins, so a response never carries more than one limit class.

`LimitTracker` remembers the most recent limit per (class, scope) so the
transport can refuse requests that are known to fail until the limit resets.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict

HEADER_RATE_SCOPE = "X-RateLimit-Scope"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"

HEADER_QUERY_LIMIT = "X-QueryLimit-Limit"
HEADER_QUERY_REMAINING = "X-QueryLimit-Remaining"
HEADER_QUERY_RESET = "X-QueryLimit-Reset"

HEADER_INGEST_LIMIT = "X-IngestLimit-Limit"
HEADER_INGEST_REMAINING = "X-IngestLimit-Remaining"
HEADER_INGEST_RESET = "X-IngestLimit-Reset"


class LimitType(str, Enum):
    INGEST = "ingest"
    QUERY = "query"
    RATE = "rate"


class LimitScope(str, Enum):
    UNKNOWN = ""
    USER = "user"
    ORGANIZATION = "organization"
    ANONYMOUS = "anonymous"


class Limit(BaseModel):
    """A quota descriptor parsed from response headers."""

    model_config = ConfigDict(frozen=True)

    type: LimitType
    scope: LimitScope = LimitScope.UNKNOWN
    limit: int = 0
    remaining: int = 0
    reset: datetime | None = None

    def until(self) -> timedelta:
        """Time left until the limit resets (zero if unknown or passed)."""
        if self.reset is None:
            return timedelta(0)
        return max(timedelta(0), self.reset - datetime.now(tz=timezone.utc))

    def __str__(self) -> str:
        return f"{self.remaining}/{self.limit} remaining until {self.reset}"


# Order matters: ingest, then query, then rate.
_TRIPLETS: tuple[tuple[LimitType, str | None, str, str, str], ...] = (
    (LimitType.INGEST, None, HEADER_INGEST_LIMIT, HEADER_INGEST_REMAINING, HEADER_INGEST_RESET),
    (LimitType.QUERY, None, HEADER_QUERY_LIMIT, HEADER_QUERY_REMAINING, HEADER_QUERY_RESET),
    (LimitType.RATE, HEADER_RATE_SCOPE, HEADER_RATE_LIMIT, HEADER_RATE_REMAINING, HEADER_RATE_RESET),
)


def _get(headers: Mapping[str, str], name: str) -> str:
    """Case-insensitive header lookup that tolerates plain dicts."""
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                return candidate.strip()
        return ""
    return value.strip()


def _parse_int(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        return 0


def _parse_scope(raw: str) -> LimitScope:
    try:
        return LimitScope(raw.lower())
    except ValueError:
        return LimitScope.UNKNOWN


def parse_limit(headers: Mapping[str, str]) -> Limit | None:
    """Parse the first populated limit header triplet, or return None."""
    for limit_type, scope_header, limit_header, remaining_header, reset_header in _TRIPLETS:
        raw_limit = _get(headers, limit_header)
        raw_remaining = _get(headers, remaining_header)
        raw_reset = _get(headers, reset_header)
        if not (raw_limit or raw_remaining or raw_reset):
            continue

        reset: datetime | None = None
        if epoch := _parse_int(raw_reset):
            reset = datetime.fromtimestamp(epoch, tz=timezone.utc)

        scope = _parse_scope(_get(headers, scope_header)) if scope_header else LimitScope.UNKNOWN
        return Limit(
            type=limit_type,
            scope=scope,
            limit=_parse_int(raw_limit),
            remaining=_parse_int(raw_remaining),
            reset=reset,
        )
    return None


def limit_type_for_path(path: str) -> LimitType:
    """Classify a request path into the limit class it is accounted against."""
    segments = [s for s in path.split("?", 1)[0].split("/") if s]
    if "ingest" in segments:
        return LimitType.INGEST
    if "_apl" in segments or (segments and segments[-1] == "query"):
        return LimitType.QUERY
    return LimitType.RATE


class LimitTracker:
    """Thread-safe store of the most recent limit per (class, scope)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._limits: dict[tuple[LimitType, LimitScope], Limit] = {}

    def update(self, limit: Limit) -> None:
        with self._lock:
            self._limits[(limit.type, limit.scope)] = limit

    def exhausted(self, limit_type: LimitType) -> Limit | None:
        """Return a tracked limit of the given class that is exhausted right now."""
        now = datetime.now(tz=timezone.utc)
        with self._lock:
            candidates = [lim for (typ, _), lim in self._limits.items() if typ == limit_type]
        for limit in candidates:
            if limit.reset is not None and limit.remaining == 0 and now < limit.reset:
                return limit
        return None
