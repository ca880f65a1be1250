"""Benchmark candle fetching and portfolio-vs-benchmark comparison."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Protocol, cast

from portfolio_engine.cache.ttl_cache import CandleCache
from portfolio_engine.portfolio.benchmark_alignment import (
    INSUFFICIENT_DATA_MESSAGE,
    align_benchmarks,
    reference_days,
    window_start,
)
from portfolio_engine.portfolio.models import BenchmarkComparison, CandleSeries, ValuationSnapshot
from portfolio_engine.services.base import ServiceContext, ServiceResult, validate_symbols
from portfolio_engine.services.fallback_manager import FallbackManager, ProviderAttempt
from portfolio_engine.utils.async_utils import run_sync
from portfolio_engine.utils.time_utils import SECONDS_PER_DAY, to_unix, utc_now

LOGGER = logging.getLogger(__name__)

CANDLE_PROVIDER_ORDER = ("yahoo", "finnhub")
DEFAULT_BENCHMARK_SYMBOLS = ("SPY",)
DEFAULT_BENCHMARK_LABELS = {
    "SPY": "S&P 500 (SPY)",
    "QQQ": "Nasdaq 100 (QQQ)",
    "VT": "Total World (VT)",
    "BTC-USD": "Bitcoin (BTC-USD)",
}
# daily candles skip weekends and holidays; pad the start so the first day has a prior close
LOOKBACK_PADDING_DAYS = 5
NO_DATA_MESSAGE = "Benchmark data is unavailable right now. Please try again later."


class CandleProvider(Protocol):
    label: str

    def get_candles(self, symbol: str, from_unix: int, to_unix: int) -> CandleSeries | None:
        """Daily candles in ascending order; raises ProviderError on failure."""
        ...


class BenchmarkService:
    def __init__(
        self,
        ctx: ServiceContext,
        candle_cache: CandleCache | None = None,
        fallback: FallbackManager | None = None,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._ctx = ctx
        self.candle_cache = candle_cache or CandleCache()
        self._fallback = fallback or FallbackManager(ctx)
        self._labels = {**DEFAULT_BENCHMARK_LABELS, **(labels or {})}

    def candle_attempts(self, symbol: str, from_unix: int, to_unix: int) -> list[ProviderAttempt[CandleSeries]]:
        attempts: list[ProviderAttempt[CandleSeries]] = []
        for key in CANDLE_PROVIDER_ORDER:
            provider = self._ctx.get_provider(key)
            if provider is None:
                continue
            attempts.append(
                ProviderAttempt(
                    key=key,
                    label=getattr(provider, "label", key),
                    call=lambda p=cast(CandleProvider, provider): p.get_candles(symbol, from_unix, to_unix),
                    is_empty=lambda series: len(series) == 0,
                )
            )
        return attempts

    def fetch_candles(self, symbol: str, from_unix: int, to_unix: int) -> ServiceResult[CandleSeries]:
        cached = self.candle_cache.get(symbol, from_unix)
        if cached is not None:
            LOGGER.debug("candle cache hit: symbol=%s from=%s", symbol, from_unix)
            return ServiceResult(data=cached, source=cached.source)
        result = self._fallback.execute("candles", symbol, self.candle_attempts(symbol, from_unix, to_unix))
        if result.data is not None and len(result.data):
            self.candle_cache.put(symbol, from_unix, result.data)
        return result

    @staticmethod
    def fetch_range(days_start: datetime, window: str, now: datetime) -> tuple[int, int]:
        since = window_start(window, now)
        start = min(days_start, since) if since is not None else days_start
        return to_unix(start) - LOOKBACK_PADDING_DAYS * SECONDS_PER_DAY, to_unix(now)

    async def compare(
        self,
        snapshots: list[ValuationSnapshot],
        symbols: list[str] | tuple[str, ...] = DEFAULT_BENCHMARK_SYMBOLS,
        window: str = "1M",
        labels: dict[str, str] | None = None,
        now: datetime | None = None,
    ) -> BenchmarkComparison:
        now = now or utc_now()
        clean_symbols = validate_symbols(list(symbols))
        days = reference_days(snapshots, window, now)
        if len(days) < 2:
            return BenchmarkComparison(status="insufficient_data", message=INSUFFICIENT_DATA_MESSAGE)

        from_unix, to_unix = self.fetch_range(days[0].timestamp, window, now)
        results = await asyncio.gather(
            *(asyncio.to_thread(self.fetch_candles, symbol, from_unix, to_unix) for symbol in clean_symbols)
        )

        candles: dict[str, CandleSeries] = {}
        failed: list[str] = []
        for symbol, result in zip(clean_symbols, results):
            if result.data is None or not len(result.data):
                LOGGER.warning(
                    "benchmark symbol unavailable: symbol=%s window=%s code=%s",
                    symbol,
                    window,
                    result.error.code if result.error else None,
                )
                failed.append(symbol)
                continue
            candles[symbol] = result.data

        merged_labels = {**self._labels, **(labels or {})}
        comparison = align_benchmarks(snapshots, candles, window, now, merged_labels)
        if comparison.status != "ok":
            return comparison
        comparison.missing_symbols = failed + comparison.missing_symbols
        if clean_symbols and not comparison.benchmarks:
            LOGGER.warning("benchmark comparison has no data: symbols=%s window=%s", ",".join(clean_symbols), window)
            comparison.status = "no_data"
            comparison.message = NO_DATA_MESSAGE
        return comparison

    def compare_sync(
        self,
        snapshots: list[ValuationSnapshot],
        symbols: list[str] | tuple[str, ...] = DEFAULT_BENCHMARK_SYMBOLS,
        window: str = "1M",
        labels: dict[str, str] | None = None,
        now: datetime | None = None,
    ) -> BenchmarkComparison:
        return run_sync(lambda: self.compare(snapshots, symbols, window, labels, now))
