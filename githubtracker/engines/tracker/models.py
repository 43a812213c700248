"""Data models for the activity tracker engine."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timezone
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LIMIT = 50


@dataclass(frozen=True, order=True)
class CalendarDate:
    """A UTC calendar day parsed from a ``YYYY/MM/DD`` literal."""

    year: int
    month: int
    day: int

    def midnight(self) -> datetime:
        """UTC midnight at the start of this day."""
        return datetime.combine(date(self.year, self.month, self.day), time.min, timezone.utc)

    def __str__(self) -> str:
        return f"{self.year:04d}/{self.month:02d}/{self.day:02d}"


class TrackerConfig(BaseModel):
    """One parsed directive block.

    ======================  ========  ==============================
    field                   default   directive key
    ======================  ========  ==============================
    ``source_owner``        required  ``user``
    ``source_repo``         required  ``repo``
    ``limit``               50        ``limit``
    ``start``               None      ``start`` (``YYYY/MM/DD``)
    ``stop``                None      ``stop`` (``YYYY/MM/DD``, inclusive)
    ``debug``               False     ``debug``
    ``extra``               {}        any other key
    ======================  ========  ==============================
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    source_owner: str = Field(min_length=1, pattern=r"^[A-Za-z0-9_.-]+$")
    source_repo: str = Field(min_length=1, pattern=r"^[A-Za-z0-9_.-]+$")
    limit: int = Field(default=DEFAULT_LIMIT, gt=0)
    start: CalendarDate | None = None
    stop: CalendarDate | None = None
    debug: bool = False
    extra: dict[str, str] = Field(default_factory=dict)

    @field_validator("start", "stop")
    @classmethod
    def _real_calendar_day(cls, value: CalendarDate | None) -> CalendarDate | None:
        if value is not None:
            try:
                value.midnight()
            except (ValueError, TypeError) as exc:
                raise ValueError(f"{value} is not a calendar day: {exc}") from exc
        return value

    @property
    def has_date_range(self) -> bool:
        return self.start is not None or self.stop is not None

    @property
    def full_name(self) -> str:
        return f"{self.source_owner}/{self.source_repo}"


@dataclass
class CacheEntry:
    """A rendered block persisted by the freshness cache."""

    key: str
    rendered_text: str
    stored_at: datetime
    revalidation_token: str | None = None
    rate_limited: bool = False
    rate_limit_reset_at: datetime | None = None

    def to_json(self) -> str:
        data = asdict(self)
        data["stored_at"] = self.stored_at.isoformat()
        if self.rate_limit_reset_at is not None:
            data["rate_limit_reset_at"] = self.rate_limit_reset_at.isoformat()
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> CacheEntry:
        """Decode a stored entry.

        Raises ``ValueError`` for anything that is not a well-formed entry.
        """
        try:
            data = json.loads(raw)
            reset = data.get("rate_limit_reset_at")
            return cls(
                key=data["key"],
                rendered_text=data["rendered_text"],
                stored_at=datetime.fromisoformat(data["stored_at"]),
                revalidation_token=data.get("revalidation_token"),
                rate_limited=bool(data.get("rate_limited", False)),
                rate_limit_reset_at=datetime.fromisoformat(reset) if reset else None,
            )
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"malformed cache entry: {exc}") from exc


# ── event variants ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str


@dataclass(frozen=True)
class BaseEvent:
    """Fields shared by every event kind."""

    kind: str
    actor: str
    repo_name: str
    repo_url: str  # viewer URL, not the API URL
    created_at: datetime

    @property
    def label(self) -> str:
        """``PushEvent`` → ``Push``."""
        return self.kind.removesuffix("Event") or self.kind


@dataclass(frozen=True)
class PushEvent(BaseEvent):
    branch: str
    commits: tuple[Commit, ...] = field(default=())


@dataclass(frozen=True)
class CreateEvent(BaseEvent):
    ref_type: str
    ref: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class DeleteEvent(BaseEvent):
    ref_type: str
    ref: str


@dataclass(frozen=True)
class PullRequestEvent(BaseEvent):
    action: str
    number: int
    title: str


@dataclass(frozen=True)
class IssuesEvent(BaseEvent):
    action: str
    number: int
    title: str


@dataclass(frozen=True)
class IssueCommentEvent(BaseEvent):
    issue_number: int
    body: str


@dataclass(frozen=True)
class GenericEvent(BaseEvent):
    """Release, watch, fork, public and any kind not modelled above."""


ActivityEvent = Union[
    PushEvent,
    CreateEvent,
    DeleteEvent,
    PullRequestEvent,
    IssuesEvent,
    IssueCommentEvent,
    GenericEvent,
]
