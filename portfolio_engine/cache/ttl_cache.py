"""Small in-memory TTL caches for provider results."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Generic, TypeVar

from portfolio_engine.portfolio.models import CandleSeries

T = TypeVar("T")
DEFAULT_CANDLE_TTL_SECONDS = 4 * 60 * 60


@dataclass
class _CacheItem(Generic[T]):
    value: T
    expires_at: float


class TTLCache:
    """Thread-safe TTL cache keyed by string."""

    def __init__(self, default_ttl_seconds: int = 60, clock: Callable[[], float] = time.time) -> None:
        self.default_ttl_seconds = max(1, default_ttl_seconds)
        self._clock = clock
        self._data: dict[str, _CacheItem[object]] = {}
        self._lock = Lock()

    def get(self, key: str) -> object | None:
        now = self._clock()
        with self._lock:
            item = self._data.get(key)
            if not item:
                return None
            if item.expires_at <= now:
                self._data.pop(key, None)
                return None
            return item.value

    def set(self, key: str, value: object, ttl_seconds: int | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else max(1, ttl_seconds)
        with self._lock:
            self._data[key] = _CacheItem(value=value, expires_at=self._clock() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


@dataclass(frozen=True)
class _CandleEntry:
    from_unix: int
    series: CandleSeries


class CandleCache:
    """Benchmark candle cache keyed by symbol with a fixed time-to-live.

    An entry only satisfies a request whose range starts at or after the range it
    was fetched for; a wider request is a miss and gets refetched.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_CANDLE_TTL_SECONDS, cache: TTLCache | None = None) -> None:
        self.ttl_seconds = max(1, ttl_seconds)
        self._cache = cache or TTLCache(default_ttl_seconds=self.ttl_seconds)

    @staticmethod
    def _key(symbol: str) -> str:
        return f"candles:{symbol.strip().upper()}"

    def get(self, symbol: str, from_unix: int) -> CandleSeries | None:
        entry = self._cache.get(self._key(symbol))
        if not isinstance(entry, _CandleEntry):
            return None
        if entry.from_unix > from_unix:
            return None
        return entry.series

    def put(self, symbol: str, from_unix: int, series: CandleSeries) -> None:
        self._cache.set(self._key(symbol), _CandleEntry(from_unix=from_unix, series=series), ttl_seconds=self.ttl_seconds)

    def invalidate(self, symbol: str) -> None:
        self._cache.delete(self._key(symbol))
