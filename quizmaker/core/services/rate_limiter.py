"""Fixed-window request limiter used in front of the share-link routes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock

from quizmaker.core.clock import Clock, SystemClock
from quizmaker.core.errors import RateLimitExceededError

_WINDOW = timedelta(minutes=1)


@dataclass(slots=True)
class _Window:
    started_at: datetime
    count: int = 0


class RateLimiter:
    """Counts requests per (bucket, key) in one-minute windows."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._lock = Lock()
        self._windows: dict[tuple[str, str], _Window] = {}

    def check(self, bucket: str, key: str, limit_per_minute: int) -> None:
        """Count one request, raising RateLimitExceededError past the limit."""
        now = self._clock.now()
        with self._lock:
            window = self._windows.get((bucket, key))
            if window is None or now - window.started_at >= _WINDOW:
                window = _Window(started_at=now)
                self._windows[(bucket, key)] = window
            if window.count >= limit_per_minute:
                remaining = (window.started_at + _WINDOW - now).total_seconds()
                raise RateLimitExceededError(retry_after_seconds=max(1, math.ceil(remaining)))
            window.count += 1

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
