"""Async GitHub events client with conditional requests and rate-limit detection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from githubtracker.core.settings import DEFAULT_API_URL, DEFAULT_HTTP_TIMEOUT
from githubtracker.engines.tracker.rate_limit import RateLimitStatus, inspect_headers
from githubtracker.exceptions import RateLimitExceeded, RemoteUnavailable

log = structlog.get_logger("githubtracker.github")

# The events endpoint refuses larger pages.
MAX_PER_PAGE = 100


@dataclass
class EventsResponse:
    """Outcome of one events request that was not refused."""

    status_code: int
    events: list[dict[str, Any]] = field(default_factory=list)
    etag: str | None = None
    rate: RateLimitStatus | None = None

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304


class GitHubClient:
    """Thin async wrapper around ``GET /repos/{owner}/{repo}/events``."""

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"token {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_events(
        self,
        owner: str,
        repo: str,
        *,
        per_page: int,
        etag: str | None = None,
    ) -> EventsResponse:
        """Fetch the most recent events of a repository.

        With *etag* the request is conditional and an unchanged feed comes
        back as ``status_code == 304`` with no events.

        Raises :class:`RateLimitExceeded` when the quota is exhausted and
        :class:`RemoteUnavailable` for transport errors, timeouts, any other
        non-2xx status, or a body that is not a JSON list.
        """
        path = f"/repos/{owner}/{repo}/events"
        params = {"per_page": min(per_page, MAX_PER_PAGE)}
        headers = {"If-None-Match": etag} if etag else None

        try:
            resp = await self._client.get(path, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            log.warning("github.timeout", path=path)
            raise RemoteUnavailable(f"request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            log.warning("github.transport_error", path=path, error=str(exc))
            raise RemoteUnavailable(f"{type(exc).__name__}: {exc}") from exc

        rate = inspect_headers(resp.status_code, resp.headers)
        if rate.limited:
            log.warning("github.rate_limited", path=path, reset_at=rate.reset_at)
            raise RateLimitExceeded(rate.reset_at, rate.remaining)

        if resp.status_code == 304:
            return EventsResponse(status_code=304, etag=etag, rate=rate)

        if not resp.is_success:
            log.warning("github.http_error", path=path, status=resp.status_code)
            raise RemoteUnavailable(
                f"GitHub API error: {resp.status_code} {resp.reason_phrase}".rstrip(),
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise RemoteUnavailable(f"invalid JSON from {path}") from exc
        if not isinstance(data, list):
            raise RemoteUnavailable(f"unexpected payload from {path}: {type(data).__name__}")

        return EventsResponse(
            status_code=resp.status_code,
            events=data,
            etag=resp.headers.get("ETag"),
            rate=rate,
        )
