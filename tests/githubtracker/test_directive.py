"""Tests for locating and parsing ```githubtracker blocks."""

from __future__ import annotations

import pytest

from githubtracker.engines.tracker.directive import parse_directive_body, parse_directives
from githubtracker.engines.tracker.models import DEFAULT_LIMIT, CalendarDate
from githubtracker.exceptions import DirectiveParseError

BLOCK = "```githubtracker\nuser: octo\nrepo: demo\n```"


class TestParseDirectiveBody:
    def test_all_keys(self):
        config = parse_directive_body(
            "user: octo\nrepo: demo\nlimit: 5\ndebug: true\nstart: 2024/01/01\nstop: 2024/01/31"
        )
        assert config.source_owner == "octo"
        assert config.source_repo == "demo"
        assert config.limit == 5
        assert config.debug is True
        assert config.start == CalendarDate(2024, 1, 1)
        assert config.stop == CalendarDate(2024, 1, 31)
        assert config.has_date_range

    def test_defaults(self):
        config = parse_directive_body("user: octo\nrepo: demo")
        assert config.limit == DEFAULT_LIMIT
        assert config.debug is False
        assert config.start is None and config.stop is None
        assert not config.has_date_range

    def test_unknown_keys_pass_through(self):
        config = parse_directive_body("user: octo\nrepo: demo\ntheme: dark\nnote: a: b")
        assert config.extra == {"theme": "dark", "note": "a: b"}

    def test_malformed_lines_skipped(self):
        config = parse_directive_body("user: octo\njust text\n: orphan\nempty:\nrepo: demo")
        assert config.full_name == "octo/demo"

    @pytest.mark.parametrize("limit", ["many", "0", "-3", "2.5"])
    def test_bad_limit_keeps_default(self, limit):
        config = parse_directive_body(f"user: octo\nrepo: demo\nlimit: {limit}")
        assert config.limit == DEFAULT_LIMIT

    def test_bad_date_drops_only_that_bound(self):
        config = parse_directive_body(
            "user: octo\nrepo: demo\nstart: 2024/02/30\nstop: 2024/03/01"
        )
        assert config.start is None
        assert config.stop == CalendarDate(2024, 3, 1)

    @pytest.mark.parametrize("value", ["false", "no", "0", "whatever"])
    def test_debug_falsy(self, value):
        assert parse_directive_body(f"user: o\nrepo: r\ndebug: {value}").debug is False

    @pytest.mark.parametrize("body, missing", [("repo: demo", "user"), ("user: octo", "repo")])
    def test_missing_required(self, body, missing):
        with pytest.raises(DirectiveParseError, match=missing):
            parse_directive_body(body)

    def test_invalid_owner(self):
        with pytest.raises(DirectiveParseError, match="source_owner"):
            parse_directive_body("user: octo/../x\nrepo: demo")


class TestParseDirectives:
    def test_no_blocks(self):
        assert parse_directives("# Title\n\n```python\nprint(1)\n```\n") == []

    def test_block_span_and_raw(self):
        text = f"intro\n{BLOCK}\noutro"
        (directive,) = parse_directives(text)
        assert directive.raw == BLOCK
        assert text[directive.start : directive.end] == BLOCK
        assert directive.config.full_name == "octo/demo"
        assert directive.error is None

    def test_identical_blocks_get_distinct_tokens(self):
        first, second = parse_directives(f"{BLOCK}\n\n{BLOCK}")
        assert first.config == second.config
        assert first.token != second.token
        assert first.start < second.start

    def test_invalid_block_carries_error(self):
        (directive,) = parse_directives("```githubtracker\nrepo: demo\n```")
        assert directive.config is None
        assert "user" in directive.error

    def test_crlf_document(self):
        text = "```githubtracker\r\nuser: octo\r\nrepo: demo\r\n```"
        (directive,) = parse_directives(text)
        assert directive.config.source_repo == "demo"
