"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///.githubtracker-cache.db"
DEFAULT_CACHE_TTL = 600.0
DEFAULT_HTTP_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    """Process-wide settings.

    Environment variables:
        GITHUB_TOKEN                — API token (anonymous when unset)
        GITHUBTRACKER_API_URL       — REST API root
        GITHUBTRACKER_DATABASE_URL  — SQLAlchemy async URL of the cache store
        GITHUBTRACKER_CACHE_TTL     — seconds a rendered block stays fresh
        GITHUBTRACKER_HTTP_TIMEOUT  — seconds before a remote call is abandoned
    """

    github_token: str | None = None
    api_url: str = DEFAULT_API_URL
    database_url: str = DEFAULT_DATABASE_URL
    cache_ttl: float = DEFAULT_CACHE_TTL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            github_token=os.environ.get("GITHUB_TOKEN") or None,
            api_url=os.environ.get("GITHUBTRACKER_API_URL", DEFAULT_API_URL).rstrip("/"),
            database_url=os.environ.get("GITHUBTRACKER_DATABASE_URL", DEFAULT_DATABASE_URL),
            cache_ttl=_float_env("GITHUBTRACKER_CACHE_TTL", DEFAULT_CACHE_TTL),
            http_timeout=_float_env("GITHUBTRACKER_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        )


def _float_env(name: str, default: float) -> float:
    """Read a positive float from *name*, falling back to *default*."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default
