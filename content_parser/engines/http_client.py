"""Resilient HTTP client with retry, exponential backoff and user-agent rotation."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

import requests
from bs4 import UnicodeDammit
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from content_parser.config.settings import HttpSettings
from content_parser.engines.cancellation import current_deadline
from content_parser.engines.errors import CancelledError, FetchError


logger = logging.getLogger(__name__)


# Transport failures worth another attempt
RETRYABLE_EXCEPTIONS = (requests.ConnectionError, requests.Timeout)


@dataclass
class FetchResponse:
    """A completed HTTP response, already read and closed.

    Attributes:
        url: Final URL after redirects
        status_code: HTTP status code
        text: Decoded response body
        headers: Response headers
    """

    url: str
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


def decode_body(content: bytes, declared_encoding: str | None = None) -> str:
    """Decode a response body, sniffing the charset when none was declared.

    Args:
        content: Raw response bytes
        declared_encoding: Charset from the Content-Type header, if any

    Returns:
        Body as text; undecodable bytes are replaced rather than raised
    """
    if not content:
        return ""
    if declared_encoding:
        try:
            return content.decode(declared_encoding)
        except (LookupError, UnicodeDecodeError):
            logger.debug(f"Declared encoding {declared_encoding!r} failed, sniffing instead")
    dammit = UnicodeDammit(content, ["utf-8", "windows-1252", "iso-8859-1"])
    if dammit.unicode_markup is not None:
        return dammit.unicode_markup
    return content.decode("utf-8", errors="replace")


class HttpClient:
    """Performs logical GET requests against upstream sources.

    Each call merges the configured default headers, a rotated User-Agent and
    caller overrides, then retries retryable statuses and connection failures
    with exponential backoff. Non-retryable statuses such as 404 are returned
    as normal responses; callers decide whether a status is acceptable.

    The only shared mutable state is the user-agent cursor, which is
    lock-guarded so one client can serve concurrent executions.

    Attributes:
        settings: HTTP settings (timeouts, retry policy, user agents)
    """

    def __init__(
        self,
        settings: HttpSettings | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: HTTP settings; defaults are used when omitted
            session: Session to issue requests on; a new one when omitted
            sleep: Backoff sleep override; defaults to a deadline-aware sleep
        """
        self.settings = settings or HttpSettings()
        self._session = session or requests.Session()
        self._sleep = sleep
        self._ua_index = 0
        self._ua_lock = threading.Lock()

    def next_user_agent(self) -> str:
        """Return the next User-Agent from the pool, advancing the cursor."""
        agents = self.settings.user_agents
        with self._ua_lock:
            agent = agents[self._ua_index % len(agents)]
            self._ua_index += 1
        return agent

    def build_headers(self, headers: dict[str, str] | None = None) -> dict[str, str]:
        """Merge default headers, a rotated User-Agent and caller overrides."""
        merged = dict(self.settings.default_headers)
        merged["User-Agent"] = self.next_user_agent()
        merged.update(headers or {})
        return merged

    def get(self, url: str, headers: dict[str, str] | None = None) -> str:
        """Fetch ``url`` and return the response body.

        Raises:
            FetchError: On exhausted retries or transport failure.
            CancelledError: If the current deadline expires.
        """
        return self.fetch(url, headers).text

    def get_json(self, url: str, headers: dict[str, str] | None = None) -> str:
        """Fetch ``url`` asking for JSON; returns the raw body for the caller to decode."""
        merged = {"Accept": "application/json"}
        merged.update(headers or {})
        return self.fetch(url, merged).text

    def fetch(self, url: str, headers: dict[str, str] | None = None) -> FetchResponse:
        """Fetch ``url`` with retries, returning the structured response.

        Args:
            url: URL to fetch
            headers: Headers overriding the defaults and the rotated User-Agent

        Returns:
            FetchResponse for the first non-retryable outcome

        Raises:
            FetchError: When retries are exhausted or the request is invalid.
            CancelledError: If the current deadline expires before completion.
        """
        retryable = self.settings.retryable_statuses
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.max_attempts),
            wait=wait_exponential(
                multiplier=self.settings.backoff_base_delay,
                exp_base=self.settings.backoff_multiplier,
            ),
            retry=(
                retry_if_exception_type(RETRYABLE_EXCEPTIONS)
                | retry_if_result(lambda response: response.status_code in retryable)
            ),
            sleep=self._backoff_sleep,
            before_sleep=self._log_retry,
        )

        try:
            return retrying(self._attempt, url, headers)
        except RetryError as e:
            raise self._exhausted(url, e) from e
        except requests.RequestException as e:
            raise FetchError(f"HTTP request to {url} failed: {e}", url=url, cause=e) from e

    def _attempt(self, url: str, headers: dict[str, str] | None) -> FetchResponse:
        """Issue a single request under the configured (or deadline-capped) timeout."""
        timeout = self.settings.timeout
        deadline = current_deadline()
        if deadline is not None:
            deadline.check()
            remaining = deadline.remaining()
            if remaining is not None:
                # The deadline can lapse between check() and remaining()
                if remaining <= 0:
                    raise CancelledError()
                timeout = min(timeout, remaining)

        try:
            with self._session.get(
                url,
                headers=self.build_headers(headers),
                timeout=timeout,
                allow_redirects=True,
            ) as response:
                encoding = response.encoding if "charset" in response.headers.get("Content-Type", "") else None
                return FetchResponse(
                    url=response.url or url,
                    status_code=response.status_code,
                    text=decode_body(response.content, encoding),
                    headers=dict(response.headers),
                )
        except requests.Timeout:
            # A timeout caused by the caller deadline is a cancellation, not a retry
            if deadline is not None and deadline.expired:
                raise CancelledError()
            raise

    def _backoff_sleep(self, seconds: float) -> None:
        if self._sleep is not None:
            deadline = current_deadline()
            if deadline is not None:
                deadline.check()
            self._sleep(seconds)
            return

        deadline = current_deadline()
        if deadline is None:
            time.sleep(seconds)
        else:
            deadline.sleep(seconds)

    def _log_retry(self, retry_state) -> None:
        outcome = retry_state.outcome
        if outcome.failed:
            reason = f"{type(outcome.exception()).__name__}: {outcome.exception()}"
        else:
            reason = f"status {outcome.result().status_code}"
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{self.settings.max_attempts} "
            f"for {retry_state.args[0]} failed ({reason}), backing off "
            f"{retry_state.next_action.sleep:.2f}s"
        )

    def _exhausted(self, url: str, error: RetryError) -> FetchError:
        attempts = self.settings.max_attempts
        last = error.last_attempt
        if last.failed:
            cause = last.exception()
            logger.error(f"HTTP connection to {url} failed after {attempts} attempts: {cause}")
            return FetchError(
                f"HTTP connection failed after {attempts} attempts: {cause}",
                url=url,
                cause=cause,
            )
        status = last.result().status_code
        logger.error(f"HTTP request to {url} failed after {attempts} attempts with status {status}")
        return FetchError(
            f"HTTP request failed after {attempts} attempts with status: {status}",
            url=url,
            status_code=status,
        )
