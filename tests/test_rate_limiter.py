from __future__ import annotations

import pytest

from quizmaker.core.errors import RateLimitExceededError
from quizmaker.core.services.rate_limiter import RateLimiter

from conftest import FakeClock


def test_limit_within_one_window():
    clock = FakeClock()
    limiter = RateLimiter(clock)
    for _ in range(3):
        limiter.check("bucket", "client", limit_per_minute=3)

    clock.advance(seconds=20)
    with pytest.raises(RateLimitExceededError) as excinfo:
        limiter.check("bucket", "client", limit_per_minute=3)
    assert excinfo.value.retry_after_seconds == 40


def test_window_resets_after_a_minute():
    clock = FakeClock()
    limiter = RateLimiter(clock)
    limiter.check("bucket", "client", limit_per_minute=1)
    clock.advance(seconds=60)
    limiter.check("bucket", "client", limit_per_minute=1)


def test_buckets_and_keys_are_independent():
    limiter = RateLimiter(FakeClock())
    limiter.check("start", "client", limit_per_minute=1)
    limiter.check("answer", "client", limit_per_minute=1)
    limiter.check("start", "other", limit_per_minute=1)
    with pytest.raises(RateLimitExceededError):
        limiter.check("start", "client", limit_per_minute=1)


def test_retry_after_is_at_least_one_second():
    clock = FakeClock()
    limiter = RateLimiter(clock)
    limiter.check("bucket", "client", limit_per_minute=1)
    clock.advance(seconds=59, milliseconds=900)
    with pytest.raises(RateLimitExceededError) as excinfo:
        limiter.check("bucket", "client", limit_per_minute=1)
    assert excinfo.value.retry_after_seconds == 1


def test_reset_clears_counters():
    limiter = RateLimiter(FakeClock())
    limiter.check("bucket", "client", limit_per_minute=1)
    limiter.reset()
    limiter.check("bucket", "client", limit_per_minute=1)
