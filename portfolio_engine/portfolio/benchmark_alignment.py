"""Align portfolio valuation history and benchmark candles to comparable % return series."""

from __future__ import annotations

import logging
import math
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from portfolio_engine.portfolio.models import BenchmarkComparison, BenchmarkSeries, CandleSeries, ValuationSnapshot
from portfolio_engine.utils.time_utils import parse_timestamp, to_unix, utc_now

LOGGER = logging.getLogger(__name__)

TimeWindow = Literal["7D", "1M", "3M", "ALL"]
TIME_WINDOW_DAYS: dict[str, int | None] = {"7D": 7, "1M": 30, "3M": 90, "ALL": None}
INSUFFICIENT_DATA_MESSAGE = "Not enough portfolio history in this window. At least two days of snapshots are required."


@dataclass(frozen=True)
class ReferenceDay:
    day: str
    timestamp: datetime
    value_base: float

    @property
    def unix(self) -> int:
        return to_unix(self.timestamp)


def window_start(window: str, now: datetime | None = None) -> datetime | None:
    if window not in TIME_WINDOW_DAYS:
        raise ValueError(f"Time window must be one of: {', '.join(TIME_WINDOW_DAYS)}.")
    days = TIME_WINDOW_DAYS[window]
    if days is None:
        return None
    return (now or utc_now()) - timedelta(days=days)


def filter_window(
    snapshots: list[ValuationSnapshot],
    window: str = "1M",
    now: datetime | None = None,
) -> list[tuple[datetime, float]]:
    """Parsed (timestamp, value) pairs inside the window, oldest first."""
    since = window_start(window, now)
    parsed: list[tuple[datetime, float]] = []
    for snapshot in snapshots:
        ts = parse_timestamp(snapshot.timestamp)
        value = float(snapshot.value_base)
        if ts is None or not math.isfinite(value):
            LOGGER.warning("snapshot skipped (unparsable): timestamp=%s value=%s", snapshot.timestamp, snapshot.value_base)
            continue
        if since is not None and ts < since:
            continue
        parsed.append((ts, value))
    parsed.sort(key=lambda item: item[0])
    return parsed


def daily_close_series(points: list[tuple[datetime, float]]) -> list[ReferenceDay]:
    """Keep the last point of each UTC calendar day."""
    by_day: dict[str, ReferenceDay] = {}
    for ts, value in sorted(points, key=lambda item: item[0]):
        day = ts.date().isoformat()
        by_day[day] = ReferenceDay(day=day, timestamp=ts, value_base=value)
    return [by_day[day] for day in sorted(by_day)]


def reference_days(
    snapshots: list[ValuationSnapshot],
    window: str = "1M",
    now: datetime | None = None,
) -> list[ReferenceDay]:
    return daily_close_series(filter_window(snapshots, window, now))


def find_close_at_or_before(timestamps: list[int], closes: list[float], target: int) -> float | None:
    """Close of the last sample at or before ``target``, clamped to the first and last samples."""
    if not timestamps or not closes:
        return None
    idx = bisect_right(timestamps, target) - 1
    idx = min(max(idx, 0), min(len(timestamps), len(closes)) - 1)
    close = closes[idx]
    if close is None or not math.isfinite(close):
        return None
    return float(close)


def percent_returns(values: list[float], base: float) -> list[float]:
    return [(value - base) / base * 100.0 for value in values]


def align_series(days: list[ReferenceDay], candles: CandleSeries) -> list[float] | None:
    """Benchmark % returns on each reference day, relative to its close on the first day.

    Days without a usable close repeat the previous return. None when the base close
    is missing or not positive.
    """
    base = find_close_at_or_before(candles.timestamps, candles.closes, days[0].unix)
    if base is None or base <= 0:
        return None
    returns: list[float] = []
    for day in days:
        close = find_close_at_or_before(candles.timestamps, candles.closes, day.unix)
        if close is None:
            returns.append(returns[-1] if returns else 0.0)
        else:
            returns.append((close - base) / base * 100.0)
    return returns


def align_benchmarks(
    snapshots: list[ValuationSnapshot],
    candles_by_symbol: dict[str, CandleSeries],
    window: str = "1M",
    now: datetime | None = None,
    labels: dict[str, str] | None = None,
) -> BenchmarkComparison:
    days = reference_days(snapshots, window, now)
    if len(days) < 2:
        return BenchmarkComparison(status="insufficient_data", message=INSUFFICIENT_DATA_MESSAGE)
    start_value = days[0].value_base
    if not math.isfinite(start_value) or start_value <= 0:
        return BenchmarkComparison(
            status="insufficient_data",
            message="Portfolio value on the first day of the window is not a positive number.",
        )

    benchmarks: list[BenchmarkSeries] = []
    missing: list[str] = []
    for symbol, candles in candles_by_symbol.items():
        returns = align_series(days, candles) if len(candles) else None
        if returns is None:
            LOGGER.warning("benchmark dropped (no usable base close): symbol=%s", symbol)
            missing.append(symbol)
            continue
        benchmarks.append(
            BenchmarkSeries(
                symbol=symbol,
                label=(labels or {}).get(symbol, symbol),
                returns=returns,
                source=candles.source,
            )
        )

    return BenchmarkComparison(
        status="ok",
        labels=[day.day for day in days],
        portfolio_returns=percent_returns([day.value_base for day in days], start_value),
        benchmarks=benchmarks,
        missing_symbols=missing,
    )
