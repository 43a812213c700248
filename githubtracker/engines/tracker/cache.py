"""Freshness cache for rendered activity blocks.

Lookup policy, in order:

1. An entry stored as *rate limited* is served unconditionally until its
   reset instant; after that it is dropped.
2. An entry younger than the TTL is fresh.
3. An older entry carrying a revalidation token (ETag) is returned as
   *stale*: the caller must ask the API whether it changed, then call
   :meth:`FreshnessCache.touch` on ``304 Not Modified``.
4. Anything else is a miss.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from githubtracker.core.settings import DEFAULT_CACHE_TTL
from githubtracker.core.store import KeyValueStore
from githubtracker.engines.tracker.models import CacheEntry, TrackerConfig

log = structlog.get_logger("githubtracker.cache")

VERSION_KEY = "__githubtracker_cache_version__"
CACHE_SCHEMA_VERSION = "3"


def cache_key(config: TrackerConfig) -> str:
    """Deterministic key for a query.

    Filtered and unfiltered views of the same repository never collide.
    """
    start = str(config.start) if config.start else "-"
    stop = str(config.stop) if config.stop else "-"
    owner = config.source_owner.lower()
    repo = config.source_repo.lower()
    return f"githubtracker:{owner}/{repo}:limit={config.limit}:range={start}..{stop}"


class LookupState(str, enum.Enum):
    FRESH = "fresh"
    RATE_LIMITED = "rate_limited"
    STALE = "stale"


@dataclass(frozen=True)
class CacheLookup:
    entry: CacheEntry
    state: LookupState

    @property
    def usable(self) -> bool:
        """The entry can be returned without touching the network."""
        return self.state is not LookupState.STALE

    @property
    def needs_revalidation(self) -> bool:
        return self.state is LookupState.STALE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FreshnessCache:
    """TTL + ETag + rate-limit aware cache over a :class:`KeyValueStore`."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ttl = timedelta(seconds=ttl)
        self._clock = clock
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def _ensure_initialized(self) -> None:
        """Wipe the store once if it was written by an incompatible version."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            marker = await self._store.get(VERSION_KEY)
            if marker != CACHE_SCHEMA_VERSION:
                log.info("cache.reset", found_version=marker, version=CACHE_SCHEMA_VERSION)
                await self._store.clear()
                await self._store.set(VERSION_KEY, CACHE_SCHEMA_VERSION)
            self._initialized = True

    # ── read ──────────────────────────────────────────────────────────────

    async def lookup(self, key: str) -> CacheLookup | None:
        await self._ensure_initialized()
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.from_json(raw)
        except ValueError as exc:
            log.warning("cache.corrupt_entry", key=key, error=str(exc))
            await self._store.remove(key)
            return None

        now = self._clock()
        if entry.rate_limited:
            reset_at = entry.rate_limit_reset_at
            if reset_at is not None and now < reset_at:
                return CacheLookup(entry, LookupState.RATE_LIMITED)
            # Never let a rate-limit placeholder outlive its window.
            await self._store.remove(key)
            return None

        if now - entry.stored_at <= self._ttl:
            return CacheLookup(entry, LookupState.FRESH)
        if entry.revalidation_token:
            return CacheLookup(entry, LookupState.STALE)
        return None

    # ── write ─────────────────────────────────────────────────────────────

    async def store(
        self,
        key: str,
        rendered_text: str,
        revalidation_token: str | None = None,
        rate_limited: bool = False,
        reset_at: datetime | None = None,
    ) -> CacheEntry:
        """Overwrite whatever is stored under *key*."""
        await self._ensure_initialized()
        entry = CacheEntry(
            key=key,
            rendered_text=rendered_text,
            stored_at=self._clock(),
            revalidation_token=revalidation_token,
            rate_limited=rate_limited,
            rate_limit_reset_at=reset_at,
        )
        await self._store.set(key, entry.to_json())
        return entry

    async def touch(self, key: str) -> CacheEntry | None:
        """Reset the age of an entry after a ``304 Not Modified``."""
        await self._ensure_initialized()
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.from_json(raw)
        except ValueError:
            await self._store.remove(key)
            return None
        entry.stored_at = self._clock()
        await self._store.set(key, entry.to_json())
        return entry

    async def invalidate(self, key: str) -> None:
        await self._ensure_initialized()
        await self._store.remove(key)

    async def clear(self) -> None:
        """Drop every entry, keeping the version marker."""
        await self._store.clear()
        await self._store.set(VERSION_KEY, CACHE_SCHEMA_VERSION)
        self._initialized = True
