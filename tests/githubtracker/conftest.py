"""Shared fixtures for githubtracker tests.

Nothing here touches the network: the GitHub API is replaced with
``httpx.MockTransport`` and the cache lives in memory unless a test asks
for the SQLite store explicitly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from githubtracker.core.store import MemoryKeyValueStore
from githubtracker.engines.tracker.cache import FreshnessCache
from githubtracker.engines.tracker.models import TrackerConfig

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def cache(store, clock) -> FreshnessCache:
    return FreshnessCache(store, ttl=600, clock=clock)


@pytest.fixture
def make_config():
    def _make(**overrides: Any) -> TrackerConfig:
        fields: dict[str, Any] = {"source_owner": "octo", "source_repo": "demo"}
        fields.update(overrides)
        return TrackerConfig(**fields)

    return _make


@pytest.fixture
def make_event():
    """Factory for raw GitHub event dicts as returned by the events API."""

    def _make(
        type: str = "WatchEvent",
        created_at: str = "2024-03-14T10:00:00Z",
        payload: dict[str, Any] | None = None,
        *,
        event_id: str = "1",
        actor: str = "mona",
    ) -> dict[str, Any]:
        return {
            "id": event_id,
            "type": type,
            "created_at": created_at,
            "actor": {"login": actor},
            "repo": {"name": "octo/demo", "url": "https://api.github.com/repos/octo/demo"},
            "payload": payload or {},
        }

    return _make
