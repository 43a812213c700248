"""CLI entry point: githubtracker.

Subcommands:
    githubtracker render README.md -o README.out.md   # Replace every ```githubtracker block
    githubtracker events octocat hello-world          # Print one rendered block
    githubtracker clear-cache                         # Drop every cached block
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import click
from dotenv import load_dotenv

from githubtracker.core.database import make_engine
from githubtracker.core.logging import setup_logging
from githubtracker.core.settings import Settings
from githubtracker.core.store import KeyValueStore, MemoryKeyValueStore
from githubtracker.dao.kv_store_dao import SqlKeyValueStore
from githubtracker.engines.tracker.cache import FreshnessCache
from githubtracker.engines.tracker.date_range import parse_date
from githubtracker.engines.tracker.document import render_document
from githubtracker.engines.tracker.fetcher import ActivityFetcher
from githubtracker.engines.tracker.github_client import GitHubClient
from githubtracker.engines.tracker.models import CalendarDate, TrackerConfig
from githubtracker.exceptions import DateParseError


@asynccontextmanager
async def open_fetcher(
    settings: Settings, *, use_cache: bool = True
) -> AsyncIterator[ActivityFetcher]:
    """Wire client, store and cache together for the duration of one command."""
    store: KeyValueStore
    if use_cache:
        store = SqlKeyValueStore(make_engine(settings.database_url))
    else:
        store = MemoryKeyValueStore()
    cache = FreshnessCache(store, ttl=settings.cache_ttl)
    try:
        async with GitHubClient(
            settings.github_token, base_url=settings.api_url, timeout=settings.http_timeout
        ) as client:
            yield ActivityFetcher(client, cache)
    finally:
        if isinstance(store, SqlKeyValueStore):
            await store.close()


def _date_option(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> CalendarDate | None:
    if value is None:
        return None
    try:
        return parse_date(value)
    except DateParseError as exc:
        raise click.BadParameter(str(exc)) from exc


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option("--no-cache", is_flag=True, help="Keep cached blocks in memory only")
@click.pass_context
def main(ctx: click.Context, verbose: bool, no_cache: bool) -> None:
    """githubtracker: render GitHub repository activity into markdown."""
    load_dotenv()
    setup_logging("DEBUG" if verbose else None)
    ctx.obj = {"settings": Settings.from_env(), "use_cache": not no_cache}


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o", "--output", type=click.Path(dir_okay=False, path_type=Path), help="Output file"
)
@click.pass_obj
def render(obj: dict, path: Path, output: Path | None) -> None:
    """Render every githubtracker block of a markdown document."""

    async def _render() -> str:
        async with open_fetcher(obj["settings"], use_cache=obj["use_cache"]) as fetcher:
            return await render_document(path.read_text(encoding="utf-8"), fetcher)

    rendered = asyncio.run(_render())
    if output is None:
        click.echo(rendered, nl=False)
    else:
        output.write_text(rendered, encoding="utf-8")
        click.echo(f"Rendered {path} → {output}", err=True)


@main.command()
@click.argument("owner")
@click.argument("repo")
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True)
@click.option("--start", callback=_date_option, help="First day, YYYY/MM/DD")
@click.option("--stop", callback=_date_option, help="Last day (inclusive), YYYY/MM/DD")
@click.option("--debug", is_flag=True, help="Trace cache decisions")
@click.pass_obj
def events(
    obj: dict,
    owner: str,
    repo: str,
    limit: int,
    start: CalendarDate | None,
    stop: CalendarDate | None,
    debug: bool,
) -> None:
    """Print the rendered activity block for OWNER/REPO."""
    try:
        config = TrackerConfig(
            source_owner=owner,
            source_repo=repo,
            limit=limit,
            start=start,
            stop=stop,
            debug=debug,
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    async def _run() -> str:
        async with open_fetcher(obj["settings"], use_cache=obj["use_cache"]) as fetcher:
            return await fetcher.run(config)

    click.echo(asyncio.run(_run()))


@main.command("clear-cache")
@click.pass_obj
def clear_cache(obj: dict) -> None:
    """Drop every cached block."""
    settings: Settings = obj["settings"]

    async def _clear() -> None:
        store = SqlKeyValueStore(make_engine(settings.database_url))
        try:
            await FreshnessCache(store, ttl=settings.cache_ttl).clear()
        finally:
            await store.close()

    asyncio.run(_clear())
    click.echo("Cache cleared.")
