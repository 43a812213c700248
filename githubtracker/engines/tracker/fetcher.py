"""ActivityFetcher — cache, fetch, filter, format and store one directive."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from githubtracker.engines.tracker.cache import CacheLookup, FreshnessCache, cache_key
from githubtracker.engines.tracker.date_range import filter_events, to_half_open_interval
from githubtracker.engines.tracker.formatter import format_events
from githubtracker.engines.tracker.github_client import EventsResponse, GitHubClient
from githubtracker.engines.tracker.models import TrackerConfig
from githubtracker.engines.tracker.rate_limit import RateLimitStatus, low_quota_warning
from githubtracker.exceptions import RateLimitExceeded, RemoteUnavailable

log = structlog.get_logger("githubtracker.fetcher")

NO_EVENTS = "No events found."
NO_EVENTS_IN_RANGE = "No events found in specified range."

# Used when a refused response carries no X-RateLimit-Reset header.
_RATE_LIMIT_FALLBACK = timedelta(seconds=60)


def describe_range(config: TrackerConfig) -> str:
    if config.start and config.stop:
        return f"{config.start} – {config.stop}"
    if config.start:
        return f"since {config.start}"
    if config.stop:
        return f"until {config.stop}"
    return "latest events"


def render_header(config: TrackerConfig) -> str:
    return f"#### GitHub activity: {config.full_name} ({describe_range(config)})"


def render_rate_limited(config: TrackerConfig, reset_at: datetime) -> str:
    when = reset_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    return (
        f"{render_header(config)}\n\n"
        f"> ⛔ GitHub API rate limit exceeded, retry after {when}."
    )


def render_error(config: TrackerConfig, error: BaseException) -> str:
    return f"{render_header(config)}\n\nError fetching GitHub events: {error}"


def render_events(config: TrackerConfig, lines: list[str]) -> str:
    if not lines:
        message = NO_EVENTS_IN_RANGE if config.has_date_range else NO_EVENTS
        return f"{render_header(config)}\n\n{message}"
    return render_header(config) + "\n\n" + "\n".join(lines)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActivityFetcher:
    """Produce the markdown block for a :class:`TrackerConfig`.

    :meth:`run` never raises; every failure ends as inline text.
    """

    def __init__(
        self,
        client: GitHubClient,
        cache: FreshnessCache,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._cache = cache
        self._clock = clock

    async def run(self, config: TrackerConfig) -> str:
        try:
            return await self._run(config)
        except Exception as exc:
            log.exception("fetcher.failed", repo=config.full_name)
            return render_error(config, exc)

    async def _run(self, config: TrackerConfig) -> str:
        key = cache_key(config)
        trace = _tracer(config, key)

        hit = await self._cache.lookup(key)
        if hit is not None and hit.usable:
            trace("fetcher.cache_hit", state=hit.state.value)
            return hit.entry.rendered_text

        etag = hit.entry.revalidation_token if hit is not None else None
        trace("fetcher.fetching", conditional=etag is not None, limit=config.limit)

        try:
            resp = await self._client.get_events(
                config.source_owner, config.source_repo, per_page=config.limit, etag=etag
            )
        except RateLimitExceeded as exc:
            return await self._store_rate_limited(config, key, exc)
        except RemoteUnavailable as exc:
            trace("fetcher.remote_unavailable", error=str(exc), status=exc.status_code)
            if hit is not None:
                await self._cache.invalidate(key)
            return render_error(config, exc)

        if resp.not_modified:
            return await self._revalidated(config, key, hit, resp)

        text = self._render(config, resp.events)
        await self._cache.store(key, text, revalidation_token=resp.etag)
        trace("fetcher.stored", etag=resp.etag, fetched=len(resp.events))
        return _with_quota_warning(text, resp.rate)

    async def _revalidated(
        self,
        config: TrackerConfig,
        key: str,
        hit: CacheLookup | None,
        resp: EventsResponse,
    ) -> str:
        if hit is None:
            # A 304 to an unconditional request carries no data to show.
            return render_error(config, RemoteUnavailable("unexpected 304 Not Modified", 304))
        await self._cache.touch(key)
        _tracer(config, key)("fetcher.not_modified")
        return _with_quota_warning(hit.entry.rendered_text, resp.rate)

    async def _store_rate_limited(
        self, config: TrackerConfig, key: str, exc: RateLimitExceeded
    ) -> str:
        reset_at = exc.reset_at or self._clock() + _RATE_LIMIT_FALLBACK
        text = render_rate_limited(config, reset_at)
        await self._cache.store(key, text, rate_limited=True, reset_at=reset_at)
        log.warning("fetcher.rate_limited", repo=config.full_name, reset_at=reset_at.isoformat())
        return text

    def _render(self, config: TrackerConfig, events: list[dict[str, Any]]) -> str:
        events = events[: config.limit]
        if config.has_date_range:
            lower, upper = to_half_open_interval(config.start, config.stop)
            events = filter_events(events, lower, upper)
        lines = format_events(events, debug=config.debug)
        return render_events(config, lines)


def _with_quota_warning(text: str, rate: RateLimitStatus | None) -> str:
    if rate is None or not rate.low:
        return text
    return f"{low_quota_warning(rate)}\n\n{text}"


def _tracer(config: TrackerConfig, key: str) -> Callable[..., None]:
    """Decision-point logger: info level for debug directives, debug otherwise."""
    bound = log.bind(key=key)
    emit = bound.info if config.debug else bound.debug

    def trace(event: str, **kw: Any) -> None:
        emit(event, **kw)

    return trace
