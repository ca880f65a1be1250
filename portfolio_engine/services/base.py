"""Shared service orchestration helpers."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from portfolio_engine.cache.ttl_cache import TTLCache
from portfolio_engine.utils.rate_limit import RateLimiterRegistry

SYMBOL_PATTERN = re.compile(r"^\^?[A-Z0-9][A-Z0-9.\-=]{0,14}$")
T = TypeVar("T")


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    retriable: bool = True


@dataclass
class ServiceResult(Generic[T]):
    data: T | None
    source: str | None = None
    warning: str | None = None
    error: ErrorEnvelope | None = None
    fetched_at: float | None = None


@dataclass
class ServiceContext:
    providers: dict[str, object]
    cache: TTLCache
    rate_limiter: RateLimiterRegistry
    cache_ttl_seconds: int = 60

    def get_provider(self, name: str) -> object | None:
        return self.providers.get(name)


def validate_symbol(symbol: str) -> str:
    """Upper-case a ticker and check it (index tickers such as ``^GSPC`` are allowed)."""
    clean = (symbol or "").strip().upper()
    if not clean or not SYMBOL_PATTERN.match(clean):
        raise ValueError(f"Invalid symbol {symbol!r}: use 1-15 chars of A-Z, 0-9, dot, hyphen or '=' (optional leading ^).")
    return clean


def validate_symbols(symbols: list[str]) -> list[str]:
    out: list[str] = []
    for symbol in symbols:
        clean = validate_symbol(symbol)
        if clean not in out:
            out.append(clean)
    return out


def run_with_cache(
    ctx: ServiceContext,
    cache_key: str,
    call: Callable[[], T],
    ttl_seconds: int | None = None,
) -> T:
    """Return the cached value for ``cache_key`` or compute and store it.

    Failed ServiceResults are returned but never cached.
    """
    cached = ctx.cache.get(cache_key)
    if cached is not None:
        return cached  # type: ignore[return-value]
    value = call()
    if isinstance(value, ServiceResult):
        if value.error is not None or value.data is None:
            return value
        value.fetched_at = value.fetched_at or time.time()
    ctx.cache.set(cache_key, value, ttl_seconds=ttl_seconds or ctx.cache_ttl_seconds)
    return value
