"""Custom exceptions for githubtracker."""

from __future__ import annotations

from datetime import datetime


class TrackerError(ValueError):
    """Base exception for malformed tracker input."""


class DateParseError(TrackerError):
    """Raised when a ``YYYY/MM/DD`` literal is malformed or not a real calendar day."""

    def __init__(self, literal: str, reason: str):
        self.literal = literal
        self.reason = reason
        super().__init__(f"invalid date {literal!r}: {reason}")


class DirectiveParseError(TrackerError):
    """Raised when a directive block cannot be turned into a configuration."""


class RemoteUnavailable(Exception):
    """Raised when the GitHub API cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitExceeded(Exception):
    """Raised when the GitHub API quota is exhausted until *reset_at*."""

    def __init__(self, reset_at: datetime | None, remaining: int | None = 0):
        self.reset_at = reset_at
        self.remaining = remaining
        when = reset_at.isoformat() if reset_at else "unknown"
        super().__init__(f"rate limit exceeded, resets at {when}")
