"""Unit tests for the runner: composition root, single parses and batches.

Feature: content-parser
"""

import io
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from content_parser.agent.runner import (
    EXIT_CONFIG_ERROR,
    EXIT_PARSE_ERROR,
    EXIT_SUCCESS,
    build_pipeline,
    parse,
    run,
    run_batch,
)
from content_parser.config.settings import ConfigurationError, RateLimitSettings, Settings
from content_parser.engines.cancellation import current_deadline
from content_parser.engines.errors import FetchError, ValidationError
from content_parser.engines.http_client import FetchResponse, HttpClient
from content_parser.engines.models import ParseRequest
from content_parser.engines.parsers import MultiUrlParser


SAMPLE_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>t</title>
<item><title>One</title><link>https://x.test/1</link></item>
<item><title>Two</title><link>https://x.test/2</link></item>
<item><title>Three</title><link>https://x.test/3</link></item>
</channel></rss>
"""

FEED_URL = "https://x.test/feed.xml"
BROKEN_URL = "https://down.test/feed.xml"
SLOW_URL = "https://slow.test/feed.xml"


def fake_http_client() -> MagicMock:
    """Client serving one feed, failing one host and stalling on another."""
    http_client = MagicMock(spec=HttpClient)

    def fetch(url, headers=None):
        if url == BROKEN_URL:
            raise FetchError("HTTP connection failed after 3 attempts: refused", url=url)
        if url == SLOW_URL:
            current_deadline().sleep(30)
        return FetchResponse(url=url, status_code=200, text=SAMPLE_RSS_FEED)

    http_client.fetch.side_effect = fetch
    return http_client


def make_pipeline(settings: Settings | None = None):
    return build_pipeline(settings or Settings(), http_client=fake_http_client())


class TestComposition:
    """Unit tests for the composition root."""

    def test_all_parsers_are_registered(self):
        pipeline = make_pipeline()

        assert pipeline.registry.names() == [
            "feeds", "reddit", "single_page", "medium", "telegram", "bing", "multi",
        ]

    def test_multi_wraps_single_page(self):
        registry = make_pipeline().registry

        multi = registry.get("multi")

        assert isinstance(multi, MultiUrlParser)
        assert multi.single_page is registry.get("single_page")


class TestParse:
    """Unit tests for single parses at the boundary."""

    def test_parse_accepts_wire_payload(self):
        result = parse(make_pipeline(), "feeds", {"source": FEED_URL, "type": "rss", "limit": 2})

        assert result.success
        assert [item["title"] for item in result.items] == ["One", "Two"]
        assert result.total == 3
        assert result.next_offset == 2

    def test_parse_accepts_request_object(self):
        result = parse(make_pipeline(), "Feeds", ParseRequest(source=FEED_URL, type="auto", offset=2))

        assert result.success
        assert [item["title"] for item in result.items] == ["Three"]
        assert result.next_offset is None

    def test_unknown_parser_is_a_failure(self):
        result = parse(make_pipeline(), "craigslist", {"source": "x", "type": "auto"})

        assert result.success is False
        assert result.error == "Parser 'craigslist' not found"
        assert result.error_kind == "not_found"
        assert result.items == []

    def test_malformed_payload_is_a_validation_failure(self):
        result = parse(make_pipeline(), "feeds", {"source": FEED_URL, "type": "rss", "limit": "ten"})

        assert result.success is False
        assert result.error_kind == "validation"

    def test_zero_timeout_is_an_immediate_deadline(self):
        result = parse(make_pipeline(), "feeds", {"source": FEED_URL, "type": "rss"}, timeout=0)

        assert result.success is False
        assert result.error_kind == "cancelled"

    def test_fetch_failure_is_reported(self):
        result = parse(make_pipeline(), "feeds", {"source": BROKEN_URL, "type": "rss"})

        assert result.success is False
        assert result.error_kind == "fetch"
        assert result.error == "HTTP connection failed after 3 attempts: refused"


class TestRunBatch:
    """Unit tests for concurrent batches."""

    def test_siblings_are_isolated(self):
        """One failing item SHALL not affect the other items."""
        batch = [
            {"parser": "feeds", "source": FEED_URL, "type": "rss"},
            {"parser": "feeds", "source": BROKEN_URL, "type": "rss"},
            {"parser": "nope", "source": FEED_URL, "type": "rss"},
            {"parser": "feeds", "source": "", "type": "rss"},
            "not an object",
            {"source": FEED_URL},
        ]

        result = run_batch(make_pipeline(), batch, max_workers=3)

        assert [entry["success"] for entry in result.results] == [True, False, False, False, False, False]
        assert result.results[0]["data"]["total"] == 3
        assert result.results[1]["error_kind"] == "fetch"
        assert result.results[2]["error_kind"] == "not_found"
        assert result.results[3]["error_kind"] == "validation"
        assert result.results[5]["error"] == "Batch item validation failed: parser is required"
        assert result.summary == {"total": 6, "successful": 1, "failed": 5}
        assert result.metrics.items_by_parser == {"feeds": 3}
        assert result.metrics.errors_by_kind == {"fetch": 1, "not_found": 1, "validation": 3}

    def test_timed_out_item_does_not_affect_siblings(self):
        """An item outliving its deadline SHALL fail as cancelled while siblings succeed."""
        batch = [
            {"parser": "feeds", "source": FEED_URL, "type": "rss"},
            {"parser": "feeds", "source": SLOW_URL, "type": "rss"},
            {"parser": "feeds", "source": FEED_URL, "type": "rss", "limit": 1},
        ]

        result = run_batch(make_pipeline(), batch, max_workers=3, item_timeout=0.2)

        assert [entry["success"] for entry in result.results] == [True, False, True]
        assert result.results[1]["error_kind"] == "cancelled"
        assert result.results[1]["data"] is None
        assert result.results[2]["data"]["next_offset"] == 1
        assert result.summary == {"total": 3, "successful": 2, "failed": 1}

    def test_rate_limited_items_carry_retry_hint(self):
        settings = Settings(rate_limit=RateLimitSettings(short_limit=1))
        settings.parser_rate_limits = {}
        batch = [{"parser": "feeds", "source": FEED_URL, "type": "rss"} for _ in range(3)]

        result = run_batch(make_pipeline(settings), batch, max_workers=1)

        assert result.summary == {"total": 3, "successful": 1, "failed": 2}
        limited = [entry for entry in result.results if not entry["success"]]
        assert all(entry["error_kind"] == "rate_limited" for entry in limited)
        assert all(entry["retry_after"] and entry["retry_after"] > 0 for entry in limited)

    def test_empty_batch_is_rejected(self):
        with pytest.raises(ValidationError, match="at least one request"):
            run_batch(make_pipeline(), [])

    def test_oversized_batch_is_rejected(self):
        batch = [{"parser": "feeds", "source": FEED_URL, "type": "rss"}] * 3

        with pytest.raises(ValidationError, match="maximum 2 requests"):
            run_batch(make_pipeline(), batch, max_requests=2)

    def test_to_dict(self):
        result = run_batch(make_pipeline(), [{"parser": "feeds", "source": FEED_URL, "type": "rss"}])

        data = result.to_dict()

        assert data["summary"] == {"total": 1, "successful": 1, "failed": 0}
        assert data["results"][0]["parser"] == "feeds"


class TestRunCommand:
    """Unit tests for the run entry point."""

    def run_with(self, *args, **kwargs):
        output = io.StringIO()
        with patch("content_parser.agent.runner.load_settings", return_value=Settings()), \
             patch("content_parser.agent.runner.build_pipeline", return_value=make_pipeline()):
            code = run(*args, output=output, **kwargs)
        return code, output.getvalue()

    def test_list_command(self):
        code, out = self.run_with("list")

        assert code == EXIT_SUCCESS
        names = [entry["name"] for entry in json.loads(out)]
        assert "feeds" in names and "multi" in names

    def test_parse_command_success(self):
        code, out = self.run_with("parse", parser_name="feeds", payload={"source": FEED_URL, "type": "rss"})

        assert code == EXIT_SUCCESS
        assert json.loads(out)["total"] == 3

    def test_parse_command_failure(self):
        code, out = self.run_with("parse", parser_name="feeds", payload={"source": BROKEN_URL, "type": "rss"})

        assert code == EXIT_PARSE_ERROR
        assert json.loads(out)["success"] is False

    def test_batch_command_writes_log(self, tmp_path: Path):
        batch = [
            {"parser": "feeds", "source": FEED_URL, "type": "rss"},
            {"parser": "feeds", "source": BROKEN_URL, "type": "rss"},
        ]

        code, out = self.run_with("batch", batch=batch, log_dir=str(tmp_path))

        assert code == EXIT_PARSE_ERROR
        assert json.loads(out)["summary"] == {"total": 2, "successful": 1, "failed": 1}
        logs = list(tmp_path.glob("batch_log_*.json"))
        assert len(logs) == 1

    def test_empty_batch_command(self):
        code, out = self.run_with("batch", batch=[])

        assert code == EXIT_PARSE_ERROR
        assert json.loads(out)["error_kind"] == "validation"

    def test_configuration_error(self):
        with patch("content_parser.agent.runner.load_settings", side_effect=ConfigurationError("bad")):
            assert run("list", output=io.StringIO()) == EXIT_CONFIG_ERROR

    def test_unknown_command(self):
        code, _ = self.run_with("explode")
        assert code == EXIT_CONFIG_ERROR
