"""Caller deadlines that propagate into in-flight fetches.

A Deadline is installed for the duration of one pipeline execution with
``deadline_scope``; the HTTP client reads it through ``current_deadline`` to
cap request timeouts and to interrupt backoff sleeps. The value lives in a
context variable so concurrent executions on different threads never see
each other's deadline.
"""

import threading
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator

from content_parser.engines.errors import CancelledError


_current_deadline: ContextVar["Deadline | None"] = ContextVar("current_deadline", default=None)


class Deadline:
    """A point in time after which work for one request must stop.

    Attributes:
        timeout: Seconds from creation until expiry, or None for no expiry
    """

    def __init__(
        self,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        """True once the deadline passed or cancel() was called."""
        if self.cancelled:
            return True
        return self._expires_at is not None and self._clock() >= self._expires_at

    def cancel(self) -> None:
        """Cancel explicitly; wakes any sleep in progress."""
        self._cancelled.set()

    def remaining(self) -> float | None:
        """Seconds left before expiry, None when unbounded, 0.0 when expired."""
        if self.cancelled:
            return 0.0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self) -> None:
        """Raise CancelledError if the deadline has expired.

        Raises:
            CancelledError: If the deadline passed or was cancelled.
        """
        if self.cancelled:
            raise CancelledError("Parse cancelled by caller")
        if self.expired:
            raise CancelledError()

    def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early and raising on cancellation.

        Raises:
            CancelledError: If the deadline expires before the sleep ends.
        """
        self.check()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._cancelled.wait(remaining)
            self.check()
            # Expiry falls inside the sleep window
            raise CancelledError()
        if self._cancelled.wait(seconds):
            self.check()


def current_deadline() -> Deadline | None:
    """Return the deadline installed for the current execution, if any."""
    return _current_deadline.get()


@contextmanager
def deadline_scope(deadline: Deadline | None) -> Iterator[Deadline | None]:
    """Install ``deadline`` as the current deadline for the enclosed block."""
    token = _current_deadline.set(deadline)
    try:
        yield deadline
    finally:
        _current_deadline.reset(token)
