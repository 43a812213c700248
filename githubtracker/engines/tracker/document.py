"""Render every directive of a document concurrently and splice the results in."""

from __future__ import annotations

import asyncio

import structlog

from githubtracker.engines.tracker.directive import Directive, parse_directives
from githubtracker.engines.tracker.fetcher import ActivityFetcher

log = structlog.get_logger("githubtracker.document")

_MAX_CONCURRENCY = 5


def render_invalid(directive: Directive) -> str:
    return f"> Invalid githubtracker block: {directive.error}"


async def render_document(text: str, fetcher: ActivityFetcher) -> str:
    """Replace each ```githubtracker block of *text* with its rendered activity.

    Results are matched back to their block by identity token, so repeated
    identical blocks are each replaced. Text without blocks is returned as is.
    """
    directives = parse_directives(text)
    if not directives:
        return text

    sem = asyncio.Semaphore(_MAX_CONCURRENCY)

    async def _render_one(directive: Directive) -> tuple[str, str]:
        if directive.config is None:
            return directive.token, render_invalid(directive)
        async with sem:
            return directive.token, await fetcher.run(directive.config)

    results = dict(await asyncio.gather(*(_render_one(d) for d in directives)))
    log.debug("document.rendered", directives=len(directives))

    parts: list[str] = []
    cursor = 0
    for directive in directives:
        parts.append(text[cursor : directive.start])
        parts.append(results[directive.token])
        cursor = directive.end
    parts.append(text[cursor:])
    return "".join(parts)
