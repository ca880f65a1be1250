"""In-memory provider disable windows for fallback orchestration."""

from __future__ import annotations

import threading
import time
from typing import Callable


class ProviderStatus:
    """Tracks providers that are sitting out a rate-limit window."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._disabled_until: dict[str, float] = {}

    def disable_provider(self, provider: str, ttl_seconds: int) -> float:
        until = self._clock() + max(1, ttl_seconds)
        with self._lock:
            # never shorten an existing window
            self._disabled_until[provider] = max(self._disabled_until.get(provider, 0.0), until)
            return self._disabled_until[provider]

    def get_disabled_until(self, provider: str) -> float | None:
        with self._lock:
            until = self._disabled_until.get(provider)
            if until is None:
                return None
            if until <= self._clock():
                del self._disabled_until[provider]
                return None
            return until

    def is_disabled(self, provider: str) -> bool:
        return self.get_disabled_until(provider) is not None

    def enable_provider(self, provider: str) -> None:
        with self._lock:
            self._disabled_until.pop(provider, None)
