"""Unit tests for the resilient HTTP client.

Feature: content-parser
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
import requests

from content_parser.config.settings import HttpSettings
from content_parser.engines.cancellation import Deadline, deadline_scope
from content_parser.engines.errors import CancelledError, FetchError
from content_parser.engines.http_client import FetchResponse, HttpClient, decode_body


def make_response(status_code: int = 200, body: bytes = b"ok", url: str = "https://x.test/"):
    """Build a mocked requests response usable as a context manager."""
    response = MagicMock()
    response.status_code = status_code
    response.content = body
    response.url = url
    response.encoding = "utf-8"
    response.headers = {"Content-Type": "text/html; charset=utf-8"}
    context = MagicMock()
    context.__enter__.return_value = response
    context.__exit__.return_value = False
    return context


def make_client(outcomes, settings: HttpSettings | None = None):
    """Client whose session yields ``outcomes`` in order and records backoff sleeps."""
    session = MagicMock(spec=requests.Session)
    session.get.side_effect = outcomes
    sleeps: list[float] = []
    client = HttpClient(settings or HttpSettings(), session=session, sleep=sleeps.append)
    return client, session, sleeps


class TestRetryPolicy:
    """Tests for retry and backoff behavior."""

    def test_retries_retryable_statuses_with_exponential_backoff(self):
        """429, 429, 200 SHALL succeed on the third attempt after sleeping 1s then 2s."""
        client, session, sleeps = make_client([
            make_response(429),
            make_response(429),
            make_response(200, b"<html>done</html>"),
        ])

        response = client.fetch("https://x.test/page")

        assert response.status_code == 200
        assert response.text == "<html>done</html>"
        assert session.get.call_count == 3
        assert sleeps == [1.0, 2.0]

    def test_exhausted_status_retries_raise_fetch_error(self):
        """Retryable statuses on every attempt SHALL raise FetchError naming the last status."""
        client, session, sleeps = make_client([make_response(503)] * 3)

        with pytest.raises(FetchError) as exc_info:
            client.fetch("https://x.test/page")

        assert exc_info.value.message == "HTTP request failed after 3 attempts with status: 503"
        assert exc_info.value.status_code == 503
        assert session.get.call_count == 3
        assert len(sleeps) == 2

    def test_non_retryable_status_is_returned(self):
        """A 404 SHALL be returned after one attempt without retrying."""
        client, session, sleeps = make_client([make_response(404, b"missing")])

        response = client.fetch("https://x.test/nope")

        assert response.status_code == 404
        assert not response.ok
        assert session.get.call_count == 1
        assert sleeps == []

    def test_connection_errors_are_retried(self):
        """A connection failure followed by success SHALL succeed."""
        client, session, sleeps = make_client([
            requests.ConnectionError("reset"),
            make_response(200, b"ok"),
        ])

        assert client.get("https://x.test/") == "ok"
        assert sleeps == [1.0]

    def test_exhausted_connection_errors_raise_fetch_error(self):
        """Connection failures on every attempt SHALL raise FetchError with the cause."""
        client, _, _ = make_client([requests.ConnectionError("refused")] * 3)

        with pytest.raises(FetchError) as exc_info:
            client.fetch("https://x.test/")

        assert exc_info.value.message.startswith("HTTP connection failed after 3 attempts:")
        assert isinstance(exc_info.value.cause, requests.ConnectionError)

    def test_invalid_request_is_not_retried(self):
        """Non-transport request errors SHALL raise FetchError after one attempt."""
        client, session, sleeps = make_client([requests.exceptions.InvalidURL("bad url")])

        with pytest.raises(FetchError):
            client.fetch("https://x.test/")

        assert session.get.call_count == 1
        assert sleeps == []

    def test_max_attempts_is_configurable(self):
        client, session, _ = make_client([make_response(500)] * 5, HttpSettings(max_attempts=5))

        with pytest.raises(FetchError, match="after 5 attempts"):
            client.fetch("https://x.test/")

        assert session.get.call_count == 5


class TestHeaders:
    """Tests for header merging and user-agent rotation."""

    def test_user_agents_rotate_round_robin(self):
        """Consecutive requests SHALL use consecutive pool entries."""
        client = HttpClient(HttpSettings(user_agents=["a", "b"]), session=MagicMock())

        assert [client.next_user_agent() for _ in range(5)] == ["a", "b", "a", "b", "a"]

    def test_user_agent_rotation_is_exact_under_concurrency(self):
        """Concurrent callers SHALL each receive a pool entry, evenly distributed."""
        pool = ["a", "b", "c", "d"]
        client = HttpClient(HttpSettings(user_agents=pool), session=MagicMock())
        threads, calls = 8, 200

        with ThreadPoolExecutor(max_workers=threads) as executor:
            batches = list(executor.map(
                lambda _: [client.next_user_agent() for _ in range(calls)],
                range(threads),
            ))

        counts = Counter(agent for batch in batches for agent in batch)
        assert counts == {agent: threads * calls // len(pool) for agent in pool}

    def test_caller_headers_override_defaults(self):
        """Caller headers SHALL win over defaults and the rotated User-Agent."""
        client = HttpClient(
            HttpSettings(user_agents=["rotated"], default_headers={"Accept-Language": "en", "X-A": "1"}),
            session=MagicMock(),
        )

        headers = client.build_headers({"X-A": "2", "User-Agent": "custom"})

        assert headers == {"Accept-Language": "en", "X-A": "2", "User-Agent": "custom"}

    def test_get_json_asks_for_json(self):
        client, session, _ = make_client([make_response(200, b'{"a": 1}')])

        assert client.get_json("https://x.test/api") == '{"a": 1}'
        sent = session.get.call_args.kwargs["headers"]
        assert sent["Accept"] == "application/json"

    def test_request_uses_configured_timeout(self):
        client, session, _ = make_client([make_response()], HttpSettings(timeout=7.5))

        client.fetch("https://x.test/")

        assert session.get.call_args.kwargs["timeout"] == 7.5


class TestDeadlines:
    """Tests for cancellation through the current deadline."""

    def test_expired_deadline_stops_before_request(self):
        """An expired deadline SHALL raise CancelledError without issuing a request."""
        client, session, _ = make_client([make_response()])

        with deadline_scope(Deadline(timeout=0)):
            with pytest.raises(CancelledError):
                client.fetch("https://x.test/")

        assert session.get.call_count == 0

    def test_deadline_lapsing_after_check_is_a_cancellation(self):
        """A deadline expiring between check and timeout capping SHALL raise CancelledError."""
        readings = iter([0.0, 0.5, 1.0, 1.0, 1.0, 1.0])
        deadline = Deadline(timeout=1.0, clock=lambda: next(readings))
        client, session, _ = make_client([make_response()], HttpSettings(max_attempts=1))

        with deadline_scope(deadline):
            with pytest.raises(CancelledError):
                client.fetch("https://x.test/")

        assert session.get.call_count == 0

    def test_deadline_caps_request_timeout(self):
        """The request timeout SHALL not exceed the deadline's remaining time."""
        client, session, _ = make_client([make_response()], HttpSettings(timeout=20.0))

        with deadline_scope(Deadline(timeout=5)):
            client.fetch("https://x.test/")

        assert session.get.call_args.kwargs["timeout"] <= 5

    def test_cancellation_during_backoff_stops_retrying(self):
        """Cancelling the deadline between attempts SHALL raise CancelledError."""
        deadline = Deadline(timeout=60)
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = [make_response(503), make_response(200)]
        client = HttpClient(HttpSettings(), session=session, sleep=lambda seconds: deadline.cancel())

        with deadline_scope(deadline):
            with pytest.raises(CancelledError):
                client.fetch("https://x.test/")

        assert session.get.call_count == 1


class TestDecoding:
    """Tests for response body decoding."""

    def test_declared_encoding_is_used(self):
        assert decode_body("café".encode("latin-1"), "latin-1") == "café"

    def test_undeclared_utf8_is_sniffed(self):
        assert decode_body("naïve".encode("utf-8")) == "naïve"

    def test_empty_body(self):
        assert decode_body(b"") == ""

    def test_fetch_response_ok(self):
        assert FetchResponse(url="u", status_code=302, text="").ok
        assert not FetchResponse(url="u", status_code=500, text="").ok
