"""Locate and parse ```githubtracker fenced blocks in a markdown document."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass

import structlog
from pydantic import ValidationError

from githubtracker.engines.tracker.date_range import parse_date
from githubtracker.engines.tracker.models import TrackerConfig
from githubtracker.exceptions import DateParseError, DirectiveParseError

log = structlog.get_logger("githubtracker.directive")

FENCE_TAG = "githubtracker"
FENCE_RE = re.compile(rf"```{FENCE_TAG}[ \t]*\r?\n(.*?)\r?\n```", re.DOTALL)

RECOGNIZED_KEYS = frozenset({"user", "repo", "limit", "debug", "start", "stop"})
_TRUTHY = frozenset({"true", "1", "yes", "on"})


@dataclass(frozen=True)
class Directive:
    """One block found in a document.

    *token* identifies the block independently of its content, so identical
    blocks are still told apart. Exactly one of *config* / *error* is set.
    """

    token: str
    raw: str
    start: int
    end: int
    config: TrackerConfig | None = None
    error: str | None = None


def parse_directive_body(body: str) -> TrackerConfig:
    """Turn the ``key: value`` lines of a block into a :class:`TrackerConfig`.

    Malformed lines and unparseable values are skipped with a warning; the
    affected setting keeps its default. Raises :class:`DirectiveParseError`
    when ``user`` or ``repo`` is missing or invalid.
    """
    values: dict[str, str] = {}
    extra: dict[str, str] = {}
    for line in body.splitlines():
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        key, value = key.strip().lower(), value.strip()
        if not sep or not key or not value:
            log.warning("directive.malformed_line", line=line)
            continue
        if key in RECOGNIZED_KEYS:
            values[key] = value
        else:
            extra[key] = value

    for required in ("user", "repo"):
        if required not in values:
            raise DirectiveParseError(f"missing '{required}'")

    kwargs: dict[str, object] = {
        "source_owner": values["user"],
        "source_repo": values["repo"],
        "extra": extra,
    }
    if "limit" in values:
        limit = _parse_limit(values["limit"])
        if limit is not None:
            kwargs["limit"] = limit
    if "debug" in values:
        kwargs["debug"] = values["debug"].lower() in _TRUTHY
    for bound in ("start", "stop"):
        if bound in values:
            try:
                kwargs[bound] = parse_date(values[bound])
            except DateParseError as exc:
                log.warning("directive.bad_date", bound=bound, error=str(exc))

    try:
        return TrackerConfig(**kwargs)
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        raise DirectiveParseError(f"invalid value for {fields or 'directive'}") from exc


def _parse_limit(value: str) -> int | None:
    try:
        limit = int(value)
    except ValueError:
        log.warning("directive.bad_limit", value=value)
        return None
    if limit <= 0:
        log.warning("directive.bad_limit", value=value)
        return None
    return limit


def parse_directives(text: str) -> list[Directive]:
    """Return every directive block of *text* in document order."""
    directives: list[Directive] = []
    for match in FENCE_RE.finditer(text):
        token = uuid.uuid4().hex
        try:
            config = parse_directive_body(match.group(1))
        except DirectiveParseError as exc:
            log.warning("directive.invalid", error=str(exc))
            directives.append(
                Directive(token, match.group(0), match.start(), match.end(), error=str(exc))
            )
            continue
        directives.append(
            Directive(token, match.group(0), match.start(), match.end(), config=config)
        )
    return directives
