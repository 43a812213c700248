"""Day-granularity date parsing and half-open interval filtering."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from githubtracker.engines.tracker.models import CalendarDate
from githubtracker.exceptions import DateParseError

BEGINNING_OF_TIME = datetime.min.replace(tzinfo=timezone.utc)
_ONE_DAY = timedelta(days=1)


def parse_date(literal: str) -> CalendarDate:
    """Parse ``YYYY/MM/DD`` into a :class:`CalendarDate`.

    Raises :class:`DateParseError` for non-numeric or zero components and
    for combinations that are not a real calendar day (``2024/02/30``).
    """
    parts = literal.strip().split("/")
    if len(parts) != 3:
        raise DateParseError(literal, "expected YYYY/MM/DD")
    if not all(p.isdigit() for p in parts):
        raise DateParseError(literal, "components must be numeric")
    year, month, day = (int(p) for p in parts)
    if not (year and month and day):
        raise DateParseError(literal, "components must be non-zero")
    candidate = CalendarDate(year, month, day)
    try:
        candidate.midnight()
    except ValueError as exc:
        raise DateParseError(literal, str(exc)) from exc
    return candidate


def format_date(value: CalendarDate) -> str:
    return str(value)


def to_half_open_interval(
    start: CalendarDate | None, stop: CalendarDate | None
) -> tuple[datetime, datetime | None]:
    """Return ``(lower, upper)`` instants for a start/stop pair.

    The stop day is inclusive, so *upper* is midnight of the following day.
    ``None`` as *upper* means unbounded, which is also what a stop on the
    last representable day (9999/12/31) yields.
    """
    lower = start.midnight() if start is not None else BEGINNING_OF_TIME
    upper: datetime | None = None
    if stop is not None:
        try:
            upper = stop.midnight() + _ONE_DAY
        except OverflowError:
            upper = None
    return lower, upper


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp, returning None on failure."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def in_interval(instant: datetime, lower: datetime, upper: datetime | None) -> bool:
    if instant < lower:
        return False
    return upper is None or instant < upper


def filter_events(
    events: Iterable[dict[str, Any]],
    lower: datetime,
    upper: datetime | None,
) -> list[dict[str, Any]]:
    """Keep raw events whose ``created_at`` lies in ``[lower, upper)``.

    Events without a parseable timestamp cannot be placed in the range
    and are dropped.
    """
    kept: list[dict[str, Any]] = []
    for event in events:
        created_at = parse_timestamp(event.get("created_at"))
        if created_at is not None and in_interval(created_at, lower, upper):
            kept.append(event)
    return kept
