"""Property-based tests for the dual-window rate limiter.

Feature: content-parser
"""

import threading

from hypothesis import given, settings, strategies as st

from content_parser.engines.rate_limiter import RateLimiter


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Feature: content-parser, Property: Rate-Limit Admission Bound
class TestAdmissionBound:
    """Property tests for the admission bound."""

    @given(
        short_limit=st.integers(min_value=1, max_value=20),
        long_limit=st.integers(min_value=1, max_value=40),
        attempts=st.integers(min_value=0, max_value=60),
    )
    @settings(max_examples=100)
    def test_admissions_never_exceed_limits_within_window(
        self, short_limit: int, long_limit: int, attempts: int
    ):
        """For any N attempts inside one short window, at most min(S, L) SHALL be admitted."""
        limiter = RateLimiter(clock=FakeClock())

        admitted = sum(
            limiter.admit("k", short_limit, 60, long_limit, 3600) for _ in range(attempts)
        )

        assert admitted == min(attempts, short_limit, long_limit)

    @given(
        short_limit=st.integers(min_value=1, max_value=10),
        windows=st.integers(min_value=1, max_value=8),
    )
    @settings(max_examples=50)
    def test_long_window_caps_across_short_windows(self, short_limit: int, windows: int):
        """Admissions across many short windows SHALL never exceed the long limit."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        long_limit = short_limit * 2

        admitted = 0
        for _ in range(windows):
            admitted += sum(
                limiter.admit("k", short_limit, 60, long_limit, 3600) for _ in range(short_limit + 3)
            )
            clock.advance(61)

        assert admitted == min(short_limit * windows, long_limit)

    def test_concurrent_admissions_respect_limit(self):
        """Concurrent admits for one key SHALL never exceed the short limit."""
        limiter = RateLimiter()
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(10):
                outcome = limiter.admit("shared", 25, 60, 1000, 3600)
                with lock:
                    results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 80
        assert sum(results) == 25


class TestWindowExpiry:
    """Unit tests for window reset behavior."""

    def test_short_window_resets_after_expiry(self):
        """After a rejection, admission SHALL succeed once the short window has passed."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        assert limiter.admit("k", 2, 60, 100, 3600)
        assert limiter.admit("k", 2, 60, 100, 3600)
        assert not limiter.admit("k", 2, 60, 100, 3600)

        clock.advance(60)

        assert limiter.admit("k", 2, 60, 100, 3600)
        assert limiter.hits("k") == 1

    def test_keys_are_independent(self):
        """Exhausting one key SHALL not affect another."""
        limiter = RateLimiter(clock=FakeClock())

        assert limiter.admit("a", 1, 60, 10, 3600)
        assert not limiter.admit("a", 1, 60, 10, 3600)
        assert limiter.admit("b", 1, 60, 10, 3600)

    def test_rejected_attempts_do_not_count(self):
        """A rejection SHALL not increment either counter."""
        limiter = RateLimiter(clock=FakeClock())
        limiter.admit("k", 1, 60, 10, 3600)
        for _ in range(5):
            limiter.admit("k", 1, 60, 10, 3600)

        assert limiter.hits("k") == 1
        assert limiter.remaining("k", 1, 60, 10, 3600) == 0
        assert limiter.remaining("k", 5, 60, 10, 3600) == 4


class TestRetryHints:
    """Unit tests for available_in and clearing."""

    def test_available_in_reports_short_window_reset(self):
        """available_in SHALL report whole seconds until the exhausted window resets."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.admit("k", 1, 60, 10, 3600)

        clock.advance(15.5)

        assert limiter.available_in("k", 1, 10) == 45

    def test_available_in_reports_long_window_when_it_blocks(self):
        """When only the long window is exhausted, its reset time SHALL be reported."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.admit("k", 5, 60, 1, 3600)

        assert limiter.available_in("k", 5, 1) == 3600

    def test_available_in_is_zero_without_pressure(self):
        limiter = RateLimiter(clock=FakeClock())
        assert limiter.available_in("unknown", 1, 1) == 0

    def test_clear_resets_key(self):
        """clear SHALL reset both windows immediately."""
        limiter = RateLimiter(clock=FakeClock())
        limiter.admit("k", 1, 60, 1, 3600)

        limiter.clear("k")

        assert limiter.hits("k") == 0
        assert limiter.admit("k", 1, 60, 1, 3600)

    def test_clear_all_resets_every_key(self):
        limiter = RateLimiter(clock=FakeClock())
        limiter.admit("a", 1, 60, 1, 3600)
        limiter.admit("b", 1, 60, 1, 3600)

        limiter.clear_all()

        assert limiter.admit("a", 1, 60, 1, 3600)
        assert limiter.admit("b", 1, 60, 1, 3600)
