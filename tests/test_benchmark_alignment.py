from datetime import datetime, timezone

import pytest

from portfolio_engine.portfolio.benchmark_alignment import (
    align_benchmarks,
    find_close_at_or_before,
    reference_days,
    window_start,
)
from portfolio_engine.portfolio.models import CandleSeries, ValuationSnapshot

NOW = datetime(2024, 3, 31, 20, 0, tzinfo=timezone.utc)


def _ts(day: int, hour: int = 21) -> int:
    return int(datetime(2024, 3, day, hour, 0, tzinfo=timezone.utc).timestamp())


def _snap(day: int, value: float, hour: int = 18) -> ValuationSnapshot:
    return ValuationSnapshot(timestamp=f"2024-03-{day:02d}T{hour:02d}:00:00Z", value_base=value)


def _candles(symbol: str, closes_by_day: dict[int, float]) -> CandleSeries:
    days = sorted(closes_by_day)
    return CandleSeries(
        symbol=symbol,
        timestamps=[_ts(day) for day in days],
        closes=[closes_by_day[day] for day in days],
        source="Test",
    )


def test_find_close_at_or_before_clamps_to_ends() -> None:
    timestamps = [100, 200, 300]
    closes = [1.0, 2.0, 3.0]
    assert find_close_at_or_before(timestamps, closes, 50) == 1.0
    assert find_close_at_or_before(timestamps, closes, 200) == 2.0
    assert find_close_at_or_before(timestamps, closes, 250) == 2.0
    assert find_close_at_or_before(timestamps, closes, 999) == 3.0
    assert find_close_at_or_before([], [], 10) is None


def test_reference_days_keep_last_snapshot_per_day() -> None:
    days = reference_days([_snap(10, 100.0, 9), _snap(10, 105.0, 17), _snap(11, 110.0)], "1M", NOW)
    assert [day.day for day in days] == ["2024-03-10", "2024-03-11"]
    assert days[0].value_base == 105.0


def test_reference_days_filter_by_window() -> None:
    snapshots = [_snap(1, 90.0), _snap(26, 100.0), _snap(30, 110.0)]
    assert [day.day for day in reference_days(snapshots, "7D", NOW)] == ["2024-03-26", "2024-03-30"]
    assert len(reference_days(snapshots, "ALL", NOW)) == 3


def test_unknown_window_raises() -> None:
    with pytest.raises(ValueError):
        window_start("2Y", NOW)


def test_aligned_series_share_length_and_start_at_zero() -> None:
    snapshots = [_snap(25, 100.0), _snap(26, 110.0), _snap(27, 99.0)]
    comparison = align_benchmarks(
        snapshots,
        {"SPY": _candles("SPY", {24: 400.0, 25: 404.0, 26: 408.0, 27: 412.0})},
        "1M",
        NOW,
    )
    assert comparison.status == "ok"
    assert comparison.labels == ["2024-03-25", "2024-03-26", "2024-03-27"]
    assert comparison.portfolio_returns == pytest.approx([0.0, 10.0, -1.0])
    series = comparison.benchmarks[0]
    assert len(series.returns) == len(comparison.portfolio_returns)
    # snapshots at 18:00 fall before the 21:00 close, so each day matches the prior close
    assert series.returns == pytest.approx([0.0, 1.0, 2.0])


def test_constant_benchmark_gives_zero_returns() -> None:
    snapshots = [_snap(day, 100.0 + day) for day in (20, 21, 22)]
    comparison = align_benchmarks(snapshots, {"VT": _candles("VT", {19: 50.0, 20: 50.0, 21: 50.0, 22: 50.0})}, "1M", NOW)
    assert comparison.benchmarks[0].returns == [0.0, 0.0, 0.0]


def test_single_day_is_insufficient() -> None:
    comparison = align_benchmarks([_snap(30, 100.0, 9), _snap(30, 101.0, 15)], {}, "1M", NOW)
    assert comparison.status == "insufficient_data"
    assert comparison.benchmarks == []


def test_zero_start_value_is_insufficient() -> None:
    comparison = align_benchmarks([_snap(29, 0.0), _snap(30, 100.0)], {}, "1M", NOW)
    assert comparison.status == "insufficient_data"


def test_non_finite_close_is_forward_filled() -> None:
    snapshots = [_snap(day, 100.0) for day in (25, 26, 27)]
    candles = _candles("SPY", {24: 100.0, 25: 110.0, 26: float("nan")})
    comparison = align_benchmarks(snapshots, {"SPY": candles}, "1M", NOW)
    assert comparison.benchmarks[0].returns == pytest.approx([0.0, 10.0, 10.0])


def test_symbol_without_positive_base_is_missing() -> None:
    snapshots = [_snap(day, 100.0) for day in (25, 26)]
    comparison = align_benchmarks(snapshots, {"BAD": _candles("BAD", {24: 0.0, 25: 5.0})}, "1M", NOW)
    assert comparison.status == "ok"
    assert comparison.benchmarks == []
    assert comparison.missing_symbols == ["BAD"]


def test_non_finite_snapshot_values_are_skipped() -> None:
    nan_first = [_snap(25, float("nan")), _snap(26, 1100.0)]
    comparison = align_benchmarks(nan_first, {}, "1M", NOW)
    assert comparison.status == "insufficient_data"

    with_gap = [_snap(25, 1000.0), _snap(26, float("inf")), _snap(27, 1100.0)]
    comparison = align_benchmarks(with_gap, {}, "1M", NOW)
    assert comparison.status == "ok"
    assert comparison.labels == ["2024-03-25", "2024-03-27"]
    assert comparison.portfolio_returns == pytest.approx([0.0, 10.0])
