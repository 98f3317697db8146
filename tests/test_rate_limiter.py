"""Tests for RateLimiter class."""

import time
import threading

from league_engine.main import RateLimiter


class TestRateLimiter:
    """Tests for RateLimiter functionality."""

    def test_rate_limiter_init_default(self):
        """Initialize with default cooldown."""
        limiter = RateLimiter()
        assert limiter.cooldown_seconds == 60

    def test_try_acquire_first_request(self):
        """First request is allowed."""
        limiter = RateLimiter(cooldown_seconds=10)

        allowed, wait_seconds = limiter.try_acquire()

        assert allowed is True
        assert wait_seconds == 0

    def test_try_acquire_within_cooldown(self):
        """Second request within cooldown is blocked."""
        limiter = RateLimiter(cooldown_seconds=10)
        limiter.try_acquire()

        allowed, wait_seconds = limiter.try_acquire()

        assert allowed is False
        assert 0 < wait_seconds <= 10

    def test_try_acquire_after_cooldown(self):
        """Request allowed after cooldown expires."""
        limiter = RateLimiter(cooldown_seconds=1)
        limiter.try_acquire()

        time.sleep(1.1)

        allowed, wait_seconds = limiter.try_acquire()
        assert allowed is True
        assert wait_seconds == 0

    def test_reset_clears_state(self):
        """Reset allows immediate request."""
        limiter = RateLimiter(cooldown_seconds=10)
        limiter.try_acquire()

        limiter.reset()

        allowed, _ = limiter.try_acquire()
        assert allowed is True

    def test_concurrent_acquire_single_winner(self):
        """Only one of many simultaneous requests gets through."""
        limiter = RateLimiter(cooldown_seconds=10)
        results = []
        lock = threading.Lock()

        def worker():
            allowed, _ = limiter.try_acquire()
            with lock:
                results.append(allowed)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 9
