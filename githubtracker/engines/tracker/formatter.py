"""Render GitHub event records as markdown list items."""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import singledispatch
from typing import Any

import structlog

from githubtracker.engines.tracker.date_range import parse_timestamp
from githubtracker.engines.tracker.models import (
    ActivityEvent,
    BaseEvent,
    Commit,
    CreateEvent,
    DeleteEvent,
    GenericEvent,
    IssueCommentEvent,
    IssuesEvent,
    PullRequestEvent,
    PushEvent,
)

log = structlog.get_logger("githubtracker.formatter")

SHORT_SHA_LEN = 7
COMMENT_PREVIEW_LEN = 60

# https://api.github.com/repos/o/r         → https://github.com/o/r
# https://ghe.example.com/api/v3/repos/o/r → https://ghe.example.com/o/r
_API_REPO_RE = re.compile(r"^(https?://)(?:api\.([^/]+)|([^/]+)/api/v3)/repos/")

_PR_ICONS: dict[str, str] = {
    "opened": "🟢",
    "closed": "🔴",
    "reopened": "🔄",
    "merged": "🟣",
}
_ISSUE_ICONS: dict[str, str] = {
    "opened": "🟢",
    "closed": "🔴",
    "reopened": "🔄",
}
_DEFAULT_ICON = "🔹"


def to_viewer_url(api_url: str) -> str:
    """Map a REST API repository URL to its web viewer URL."""
    return _API_REPO_RE.sub(lambda m: f"{m.group(1)}{m.group(2) or m.group(3)}/", api_url, 1)


# ── parsing ───────────────────────────────────────────────────────────────


def parse_event(raw: dict[str, Any]) -> ActivityEvent:
    """Build the typed variant for one raw event.

    Raises ``KeyError`` / ``TypeError`` / ``ValueError`` when a field the
    variant needs is missing or has the wrong shape.
    """
    kind = raw["type"]
    created_at = parse_timestamp(raw["created_at"])
    if created_at is None:
        raise ValueError(f"unparseable created_at: {raw['created_at']!r}")
    repo = raw["repo"]
    common = {
        "kind": kind,
        "actor": (raw.get("actor") or {}).get("login", "someone"),
        "repo_name": repo["name"],
        "repo_url": to_viewer_url(repo["url"]),
        "created_at": created_at,
    }
    payload = raw.get("payload") or {}

    if kind == "PushEvent":
        # Newer feeds may omit the commit list; the summary line still renders.
        commits = payload.get("commits") or ()
        return PushEvent(
            **common,
            branch=payload["ref"].removeprefix("refs/heads/"),
            commits=tuple(Commit(sha=c["sha"], message=c["message"]) for c in commits),
        )
    if kind == "CreateEvent":
        return CreateEvent(
            **common,
            ref_type=payload["ref_type"],
            ref=payload.get("ref"),
            description=payload.get("description"),
        )
    if kind == "DeleteEvent":
        return DeleteEvent(**common, ref_type=payload["ref_type"], ref=payload["ref"])
    if kind == "PullRequestEvent":
        pr = payload["pull_request"]
        action = payload["action"]
        if action == "closed" and pr.get("merged"):
            action = "merged"
        return PullRequestEvent(
            **common,
            action=action,
            number=int(payload.get("number") or pr["number"]),
            title=pr["title"],
        )
    if kind == "IssuesEvent":
        issue = payload["issue"]
        return IssuesEvent(
            **common,
            action=payload["action"],
            number=int(issue["number"]),
            title=issue["title"],
        )
    if kind == "IssueCommentEvent":
        return IssueCommentEvent(
            **common,
            issue_number=int(payload["issue"]["number"]),
            body=payload["comment"]["body"],
        )
    return GenericEvent(**common)


# ── rendering ─────────────────────────────────────────────────────────────


@singledispatch
def _details(event: BaseEvent) -> str:
    return f" {event.actor} performed {event.label}"


@_details.register
def _(event: PushEvent) -> str:
    lines = [f" by {event.actor} to `{event.branch}`"]
    for commit in event.commits:
        summary = commit.message.splitlines()[0] if commit.message else ""
        short = commit.sha[:SHORT_SHA_LEN]
        lines.append(f"  - {summary} ([{short}]({event.repo_url}/commit/{commit.sha}))")
    return "\n".join(lines)


@_details.register
def _(event: CreateEvent) -> str:
    text = f" {event.ref_type}"
    if event.ref:
        text += f": {event.ref}"
    if event.description:
        text += f"\n  - {event.description}"
    return text


@_details.register
def _(event: DeleteEvent) -> str:
    return f" deleted {event.ref_type}: {event.ref}"


@_details.register
def _(event: PullRequestEvent) -> str:
    icon = _PR_ICONS.get(event.action, _DEFAULT_ICON)
    link = f"[#{event.number}]({event.repo_url}/pull/{event.number})"
    return f" {icon} {link} {event.action}: {event.title}"


@_details.register
def _(event: IssuesEvent) -> str:
    icon = _ISSUE_ICONS.get(event.action, _DEFAULT_ICON)
    link = f"[#{event.number}]({event.repo_url}/issues/{event.number})"
    return f" {icon} {link} {event.action}: {event.title}"


@_details.register
def _(event: IssueCommentEvent) -> str:
    link = f"[#{event.issue_number}]({event.repo_url}/issues/{event.issue_number})"
    return f" on {link}: {truncate(event.body, COMMENT_PREVIEW_LEN)}"


def truncate(text: str, length: int) -> str:
    """Collapse whitespace and cut *text* to *length* characters plus an ellipsis."""
    flat = " ".join(text.split())
    if len(flat) <= length:
        return flat
    return flat[:length] + "..."


def render_event(event: ActivityEvent) -> str:
    stamp = event.created_at.strftime("%Y-%m-%d %H:%M")
    return f"- {stamp}: {event.label} - [{event.repo_name}]({event.repo_url}){_details(event)}"


def format_event(raw: dict[str, Any], *, debug: bool = False) -> str:
    """Render one raw event, or ``""`` if it cannot be rendered."""
    try:
        return render_event(parse_event(raw))
    except Exception as exc:
        if debug:
            log.info(
                "formatter.event_dropped",
                event_id=raw.get("id") if isinstance(raw, dict) else None,
                error=f"{type(exc).__name__}: {exc}",
            )
        return ""


def format_events(raws: Iterable[dict[str, Any]], *, debug: bool = False) -> list[str]:
    """Render a batch, silently dropping events that render to nothing."""
    return [line for line in (format_event(raw, debug=debug) for raw in raws) if line]
