"""Tests for ActivityFetcher — cache decisions, remote failures, rendering."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
from structlog.testing import capture_logs

from githubtracker.core.store import MemoryKeyValueStore
from githubtracker.engines.tracker.cache import FreshnessCache, LookupState, cache_key
from githubtracker.engines.tracker.fetcher import (
    NO_EVENTS,
    NO_EVENTS_IN_RANGE,
    ActivityFetcher,
    describe_range,
    render_header,
)
from githubtracker.engines.tracker.github_client import GitHubClient
from githubtracker.engines.tracker.models import CalendarDate

RESET_EPOCH = 1710504000 + 3600  # NOW + 1h


class FakeGitHub:
    """Scripted responses for the events endpoint; records every request."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def client(self) -> GitHubClient:
        return GitHubClient(transport=httpx.MockTransport(self))


def ok(events, *, etag='"v1"', remaining="4000") -> httpx.Response:
    return httpx.Response(
        200, json=events, headers={"ETag": etag, "X-RateLimit-Remaining": remaining}
    )


def limited() -> httpx.Response:
    return httpx.Response(
        403,
        json={"message": "API rate limit exceeded"},
        headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(RESET_EPOCH)},
    )


@pytest.fixture
def watch_events(make_event):
    return [
        make_event(created_at="2024-03-14T10:00:00Z", event_id="a"),
        make_event(created_at="2024-03-01T10:00:00Z", event_id="b"),
    ]


def _fetcher(github: FakeGitHub, cache, clock) -> ActivityFetcher:
    return ActivityFetcher(github.client(), cache, clock=clock)


class TestHeader:
    def test_latest(self, make_config):
        assert render_header(make_config()) == "#### GitHub activity: octo/demo (latest events)"

    def test_ranges(self, make_config):
        d1, d2 = CalendarDate(2024, 1, 1), CalendarDate(2024, 1, 31)
        assert describe_range(make_config(start=d1, stop=d2)) == "2024/01/01 – 2024/01/31"
        assert describe_range(make_config(start=d1)) == "since 2024/01/01"
        assert describe_range(make_config(stop=d2)) == "until 2024/01/31"


class TestRun:
    @pytest.mark.asyncio
    async def test_fetch_render_and_store(self, make_config, cache, clock, watch_events):
        github = FakeGitHub(ok(watch_events))
        config = make_config(limit=10)

        text = await _fetcher(github, cache, clock).run(config)

        lines = text.split("\n")
        assert lines[0] == render_header(config)
        assert lines[1] == ""
        assert len(lines) == 4
        assert github.requests[0].url.params["per_page"] == "10"
        hit = await cache.lookup(cache_key(config))
        assert hit.entry.rendered_text == text
        assert hit.entry.revalidation_token == '"v1"'

    @pytest.mark.asyncio
    async def test_fresh_hit_skips_network(self, make_config, cache, clock):
        config = make_config()
        await cache.store(cache_key(config), "cached block")
        github = FakeGitHub()

        assert await _fetcher(github, cache, clock).run(config) == "cached block"
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_second_run_served_from_cache(self, make_config, cache, clock, watch_events):
        github = FakeGitHub(ok(watch_events))
        fetcher = _fetcher(github, cache, clock)
        first = await fetcher.run(make_config())
        second = await fetcher.run(make_config())
        assert first == second
        assert len(github.requests) == 1

    @pytest.mark.asyncio
    async def test_limit_truncates_oversized_page(self, make_config, cache, clock, make_event):
        events = [make_event(event_id=str(i)) for i in range(5)]
        github = FakeGitHub(ok(events))
        text = await _fetcher(github, cache, clock).run(make_config(limit=2))
        assert text.count("performed Watch") == 2


class TestDateFiltering:
    @pytest.mark.asyncio
    async def test_range_applied(self, make_config, cache, clock, watch_events):
        github = FakeGitHub(ok(watch_events))
        config = make_config(start=CalendarDate(2024, 3, 10))
        text = await _fetcher(github, cache, clock).run(config)
        assert "2024-03-14 10:00" in text
        assert "2024-03-01 10:00" not in text

    @pytest.mark.asyncio
    async def test_empty_range_is_cached(self, make_config, cache, clock, watch_events):
        github = FakeGitHub(ok(watch_events))
        config = make_config(start=CalendarDate(2025, 1, 1), stop=CalendarDate(2025, 1, 31))

        text = await _fetcher(github, cache, clock).run(config)

        assert text == f"{render_header(config)}\n\n{NO_EVENTS_IN_RANGE}"
        hit = await cache.lookup(cache_key(config))
        assert hit.entry.rendered_text == text

    @pytest.mark.asyncio
    async def test_empty_feed_without_range(self, make_config, cache, clock):
        github = FakeGitHub(ok([]))
        text = await _fetcher(github, cache, clock).run(make_config())
        assert text.endswith(NO_EVENTS)

    @pytest.mark.asyncio
    async def test_filtered_view_does_not_reuse_unfiltered_entry(
        self, make_config, cache, clock, watch_events
    ):
        await cache.store(cache_key(make_config()), "unfiltered block")
        github = FakeGitHub(ok(watch_events))
        text = await _fetcher(github, cache, clock).run(
            make_config(stop=CalendarDate(2024, 3, 1))
        )
        assert text != "unfiltered block"
        assert len(github.requests) == 1

    @pytest.mark.asyncio
    async def test_stop_on_last_representable_day(self, make_config, cache, clock, watch_events):
        github = FakeGitHub(ok(watch_events))
        config = make_config(stop=CalendarDate(9999, 12, 31))

        text = await _fetcher(github, cache, clock).run(config)

        assert "Error fetching" not in text
        assert text.count("performed Watch") == 2
        hit = await cache.lookup(cache_key(config))
        assert hit.entry.rendered_text == text


class TestDebug:
    @pytest.mark.asyncio
    async def test_traces_at_info_without_changing_output(
        self, make_config, cache, clock, watch_events
    ):
        plain = await _fetcher(
            FakeGitHub(ok(watch_events)),
            FreshnessCache(MemoryKeyValueStore(), ttl=600, clock=clock),
            clock,
        ).run(make_config())

        github = FakeGitHub(ok(watch_events))
        fetcher = _fetcher(github, cache, clock)
        with capture_logs() as logs:
            first = await fetcher.run(make_config(debug=True))
            second = await fetcher.run(make_config(debug=True))

        assert first == second == plain
        assert len(github.requests) == 1
        traced = [(entry["event"], entry["log_level"]) for entry in logs]
        assert ("fetcher.fetching", "info") in traced
        assert ("fetcher.stored", "info") in traced
        assert ("fetcher.cache_hit", "info") in traced

    @pytest.mark.asyncio
    async def test_traces_at_debug_level_otherwise(self, make_config, cache, clock, watch_events):
        github = FakeGitHub(ok(watch_events))
        with capture_logs() as logs:
            await _fetcher(github, cache, clock).run(make_config())
        levels = {entry["log_level"] for entry in logs if entry["event"].startswith("fetcher.")}
        assert levels == {"debug"}


class TestRevalidation:
    @pytest.mark.asyncio
    async def test_not_modified_keeps_entry(self, make_config, cache, clock):
        config = make_config()
        key = cache_key(config)
        await cache.store(key, "old block", revalidation_token='"v1"')
        clock.advance(3600)
        github = FakeGitHub(httpx.Response(304, headers={"X-RateLimit-Remaining": "4000"}))

        text = await _fetcher(github, cache, clock).run(config)

        assert text == "old block"
        assert github.requests[0].headers["If-None-Match"] == '"v1"'
        hit = await cache.lookup(key)
        assert hit.state is LookupState.FRESH
        assert hit.entry.stored_at == clock()

    @pytest.mark.asyncio
    async def test_changed_feed_replaces_entry(self, make_config, cache, clock, watch_events):
        config = make_config()
        key = cache_key(config)
        await cache.store(key, "old block", revalidation_token='"v1"')
        clock.advance(3600)
        github = FakeGitHub(ok(watch_events, etag='"v2"'))

        text = await _fetcher(github, cache, clock).run(config)

        assert text != "old block"
        hit = await cache.lookup(key)
        assert hit.entry.revalidation_token == '"v2"'

    @pytest.mark.asyncio
    async def test_failed_revalidation_discards_entry(self, make_config, cache, clock):
        config = make_config()
        key = cache_key(config)
        await cache.store(key, "old block", revalidation_token='"v1"')
        clock.advance(3600)
        github = FakeGitHub(httpx.Response(500))

        text = await _fetcher(github, cache, clock).run(config)

        assert "Error fetching GitHub events" in text
        assert await cache.lookup(key) is None

    @pytest.mark.asyncio
    async def test_unsolicited_not_modified_is_error(self, make_config, cache, clock):
        github = FakeGitHub(httpx.Response(304))
        text = await _fetcher(github, cache, clock).run(make_config())
        assert "unexpected 304" in text


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_limited_response_cached_until_reset(self, make_config, cache, clock):
        config = make_config()
        github = FakeGitHub(limited())
        fetcher = _fetcher(github, cache, clock)

        text = await fetcher.run(config)

        assert "rate limit exceeded, retry after 2024-03-15 13:00:00 UTC" in text
        assert text.startswith(render_header(config))
        clock.advance(1800)
        assert await fetcher.run(config) == text
        assert len(github.requests) == 1

    @pytest.mark.asyncio
    async def test_fetches_again_after_reset(self, make_config, cache, clock, watch_events):
        config = make_config()
        github = FakeGitHub(limited(), ok(watch_events))
        fetcher = _fetcher(github, cache, clock)

        await fetcher.run(config)
        clock.advance(3601)
        text = await fetcher.run(config)

        assert "performed Watch" in text
        assert len(github.requests) == 2

    @pytest.mark.asyncio
    async def test_stored_rate_limit_beats_network(self, make_config, cache, clock):
        config = make_config()
        await cache.store(
            cache_key(config),
            "still limited",
            rate_limited=True,
            reset_at=clock() + timedelta(seconds=3600),
        )
        github = FakeGitHub()
        assert await _fetcher(github, cache, clock).run(config) == "still limited"
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_missing_reset_header_uses_fallback(self, make_config, cache, clock):
        github = FakeGitHub(httpx.Response(403, headers={"X-RateLimit-Remaining": "0"}))
        text = await _fetcher(github, cache, clock).run(make_config())
        assert "retry after 2024-03-15 12:01:00 UTC" in text

    @pytest.mark.asyncio
    async def test_low_quota_warning_not_cached(self, make_config, cache, clock, watch_events):
        config = make_config()
        github = FakeGitHub(ok(watch_events, remaining="3"))

        text = await _fetcher(github, cache, clock).run(config)

        assert text.startswith("> ⚠️ GitHub API quota is low: 3 requests remaining.")
        hit = await cache.lookup(cache_key(config))
        assert hit.entry.rendered_text.startswith(render_header(config))


class TestFailures:
    @pytest.mark.asyncio
    async def test_remote_error_not_cached(self, make_config, cache, clock):
        config = make_config()
        github = FakeGitHub(httpx.Response(404, json={"message": "Not Found"}))

        text = await _fetcher(github, cache, clock).run(config)

        assert text.startswith(render_header(config))
        assert "Error fetching GitHub events: GitHub API error: 404" in text
        assert await cache.lookup(cache_key(config)) is None

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_text(self, make_config, cache, clock):
        client = AsyncMock(spec=GitHubClient)
        client.get_events.side_effect = RuntimeError("boom")
        fetcher = ActivityFetcher(client, cache, clock=clock)

        text = await fetcher.run(make_config())

        assert text.endswith("Error fetching GitHub events: boom")

    @pytest.mark.asyncio
    async def test_malformed_event_dropped(self, make_config, cache, clock, make_event):
        events = [make_event(event_id=str(i)) for i in range(5)]
        events[3] = {"type": "PushEvent", "id": "3"}
        github = FakeGitHub(ok(events))
        text = await _fetcher(github, cache, clock).run(make_config())
        assert text.count("performed Watch") == 4


def test_clock_fixture_matches_reset_epoch(clock):
    assert clock() + timedelta(hours=1) == datetime.fromtimestamp(RESET_EPOCH, tz=timezone.utc)
