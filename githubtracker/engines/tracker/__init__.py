"""Activity tracker engine — cached GitHub event feeds rendered as markdown."""

from githubtracker.engines.tracker.cache import CacheLookup, FreshnessCache, LookupState, cache_key
from githubtracker.engines.tracker.date_range import (
    filter_events,
    format_date,
    parse_date,
    to_half_open_interval,
)
from githubtracker.engines.tracker.directive import Directive, parse_directives
from githubtracker.engines.tracker.document import render_document
from githubtracker.engines.tracker.fetcher import ActivityFetcher
from githubtracker.engines.tracker.formatter import format_event, format_events
from githubtracker.engines.tracker.github_client import EventsResponse, GitHubClient
from githubtracker.engines.tracker.models import CacheEntry, CalendarDate, TrackerConfig
from githubtracker.engines.tracker.rate_limit import RateLimitStatus

__all__ = [
    "ActivityFetcher",
    "CacheEntry",
    "CacheLookup",
    "CalendarDate",
    "Directive",
    "EventsResponse",
    "FreshnessCache",
    "GitHubClient",
    "LookupState",
    "RateLimitStatus",
    "TrackerConfig",
    "cache_key",
    "filter_events",
    "format_date",
    "format_event",
    "format_events",
    "parse_date",
    "parse_directives",
    "render_document",
    "to_half_open_interval",
]
