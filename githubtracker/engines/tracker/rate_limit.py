"""Interpret GitHub rate-limit response headers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

LOW_QUOTA_THRESHOLD = 10

_LIMITED_STATUSES = frozenset({403, 429})


@dataclass(frozen=True)
class RateLimitStatus:
    limited: bool
    reset_at: datetime | None
    remaining: int | None

    @property
    def low(self) -> bool:
        """Fewer than LOW_QUOTA_THRESHOLD requests left in the window."""
        return self.remaining is not None and self.remaining < LOW_QUOTA_THRESHOLD


def inspect_headers(status_code: int, headers: Mapping[str, str]) -> RateLimitStatus:
    """Read ``X-RateLimit-Remaining`` / ``X-RateLimit-Reset`` from a response.

    A response counts as rate-limited only when it was refused (403, or 429
    for secondary limits) *and* the remaining quota is exactly zero.
    """
    remaining = _parse_header_int(_header(headers, "X-RateLimit-Remaining"))
    reset_epoch = _parse_header_int(_header(headers, "X-RateLimit-Reset"))
    reset_at = _to_instant(reset_epoch)
    limited = status_code in _LIMITED_STATUSES and remaining == 0
    return RateLimitStatus(limited=limited, reset_at=reset_at, remaining=remaining)


def low_quota_warning(status: RateLimitStatus) -> str:
    return f"> ⚠️ GitHub API quota is low: {status.remaining} requests remaining."


def _to_instant(epoch: int | None) -> datetime | None:
    if epoch is None:
        return None
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _header(headers: Mapping[str, str], name: str) -> str | None:
    # httpx.Headers is case-insensitive; plain dicts in tests may not be.
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def _parse_header_int(value: str | None) -> int | None:
    """Safely parse an integer header value."""
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None
