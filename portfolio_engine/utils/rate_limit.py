"""Per-provider minimum-interval limiter for candle and quote fetches."""

from __future__ import annotations

import time
from threading import Lock
from typing import Callable


class RateLimiterRegistry:
    """Spaces consecutive calls to the same provider.

    Each provider gets the default interval unless ``provider_intervals`` names its own.
    Calls to one provider never delay calls to another.
    """

    def __init__(
        self,
        min_interval_seconds: float = 0.2,
        provider_intervals: dict[str, float] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._provider_intervals = {key: max(0.0, value) for key, value in (provider_intervals or {}).items()}
        self._sleep = sleep
        self._clock = clock
        self._next_slot: dict[str, float] = {}
        self._lock = Lock()

    def interval_for(self, provider: str) -> float:
        return self._provider_intervals.get(provider, self.min_interval_seconds)

    def wait(self, provider: str) -> float:
        """Block until the provider's next slot; returns the seconds slept."""
        interval = self.interval_for(provider)
        if interval <= 0:
            return 0.0
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot.get(provider, now))
            self._next_slot[provider] = slot + interval
        delay = slot - now
        if delay > 0:
            self._sleep(delay)
        return max(0.0, delay)
