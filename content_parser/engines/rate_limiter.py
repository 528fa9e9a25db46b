"""Dual-window rate limiter keyed by source name."""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable


logger = logging.getLogger(__name__)


SHORT_WINDOW = "short"
LONG_WINDOW = "long"


@dataclass
class RateWindowState:
    """Counter for one window of one key.

    Attributes:
        count: Admissions recorded in the current window
        expires_at: Clock reading at which the window resets
        length: Window length in seconds
    """

    count: int
    expires_at: float
    length: float


class RateLimiter:
    """Admits or rejects attempts under a short and a long window per key.

    Window state is created lazily on first admission and treated as reset
    once its expiry passes; nothing sweeps expired windows. Each key has its
    own lock so the read-then-increment of an admission is atomic per key
    while different keys proceed in parallel.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, dict[str, RateWindowState]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _live_count(self, key: str, window: str, now: float) -> int:
        state = self._windows.get(key, {}).get(window)
        if state is None or now >= state.expires_at:
            return 0
        return state.count

    def _increment(self, key: str, window: str, length: float, now: float) -> None:
        windows = self._windows.setdefault(key, {})
        state = windows.get(window)
        if state is None or now >= state.expires_at:
            windows[window] = RateWindowState(count=1, expires_at=now + length, length=length)
        else:
            state.count += 1

    def admit(
        self,
        key: str,
        short_limit: int,
        short_window: float,
        long_limit: int,
        long_window: float,
    ) -> bool:
        """Attempt one admission for ``key``.

        Both windows must have capacity; on success both counters are
        incremented, and a window created (or restarted) here expires after
        its own length.

        Args:
            key: Rate-limit key, usually the parser name
            short_limit: Maximum admissions per short window
            short_window: Short window length in seconds
            long_limit: Maximum admissions per long window
            long_window: Long window length in seconds

        Returns:
            True if admitted, False if either window is exhausted
        """
        with self._lock_for(key):
            now = self._clock()
            if self._live_count(key, SHORT_WINDOW, now) >= short_limit:
                logger.debug(f"Rate limit '{key}': short window exhausted")
                return False
            if self._live_count(key, LONG_WINDOW, now) >= long_limit:
                logger.debug(f"Rate limit '{key}': long window exhausted")
                return False

            self._increment(key, SHORT_WINDOW, short_window, now)
            self._increment(key, LONG_WINDOW, long_window, now)
            return True

    def remaining(
        self,
        key: str,
        short_limit: int,
        short_window: float,
        long_limit: int,
        long_window: float,
    ) -> int:
        """Return the more restrictive of the two remaining capacities."""
        with self._lock_for(key):
            now = self._clock()
            short_remaining = max(0, short_limit - self._live_count(key, SHORT_WINDOW, now))
            long_remaining = max(0, long_limit - self._live_count(key, LONG_WINDOW, now))
        return min(short_remaining, long_remaining)

    def available_in(self, key: str, short_limit: int | None = None, long_limit: int | None = None) -> int:
        """Seconds until ``key`` may be admitted again.

        When limits are given, only exhausted windows count; otherwise the
        short window's reset time is reported if it is live.

        Returns:
            Whole seconds, rounded up; 0 when no window blocks admission
        """
        with self._lock_for(key):
            now = self._clock()
            windows = self._windows.get(key, {})
            waits = []
            for window, limit in ((SHORT_WINDOW, short_limit), (LONG_WINDOW, long_limit)):
                state = windows.get(window)
                if state is None or now >= state.expires_at:
                    continue
                if limit is None and window == LONG_WINDOW:
                    continue
                if limit is not None and state.count < limit:
                    continue
                waits.append(state.expires_at - now)
        return math.ceil(max(waits)) if waits else 0

    def hits(self, key: str) -> int:
        """Return the short-window admission count for ``key``."""
        with self._lock_for(key):
            return self._live_count(key, SHORT_WINDOW, self._clock())

    def clear(self, key: str) -> None:
        """Reset both windows for ``key`` immediately."""
        with self._lock_for(key):
            self._windows.pop(key, None)

    def clear_all(self) -> None:
        """Reset every key."""
        with self._registry_lock:
            keys = list(self._windows)
        for key in keys:
            self.clear(key)
