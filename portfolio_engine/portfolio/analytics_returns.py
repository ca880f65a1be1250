"""Time-weighted return and Sharpe ratio over valuation snapshots."""

from __future__ import annotations

import logging
import math
from datetime import datetime

import numpy as np
import pandas as pd

from portfolio_engine.portfolio.models import SharpeResult, Transaction, TWRRResult, ValuationSnapshot
from portfolio_engine.portfolio.valuation import rate_to_base
from portfolio_engine.utils.time_utils import SECONDS_PER_DAY, parse_timestamp

LOGGER = logging.getLogger(__name__)
DAYS_PER_YEAR = 365.25
DEFAULT_RISK_FREE_RATE = 0.045
DEFAULT_MIN_SHARPE_SAMPLES = 20
CASH_FLOW_SIGN = {"buy": 1.0, "sell": -1.0}


def _parsed_snapshots(snapshots: list[ValuationSnapshot]) -> list[tuple[datetime, float]]:
    points: list[tuple[datetime, float]] = []
    for snapshot in snapshots:
        ts = parse_timestamp(snapshot.timestamp)
        if ts is None or not math.isfinite(snapshot.value_base):
            LOGGER.warning("snapshot skipped (unparsable): timestamp=%s", snapshot.timestamp)
            continue
        points.append((ts, float(snapshot.value_base)))
    return sorted(points, key=lambda item: item[0])


def _span_days(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def external_cash_flows(
    transactions: list[Transaction],
    base_currency: str | None = None,
    fx_rates: dict[str, float] | None = None,
) -> list[tuple[datetime, float]]:
    """Net external cash flows: buys add money to the portfolio, sells take it out.

    Dividends are treated as reinvested and carry no flow. Amounts are converted
    to the base currency when both a base currency and a rate map are supplied.
    """
    flows: list[tuple[datetime, float]] = []
    for txn in transactions:
        sign = CASH_FLOW_SIGN.get(txn.type)
        if sign is None:
            continue
        ts = parse_timestamp(txn.date)
        if ts is None:
            LOGGER.warning("transaction skipped (unparsable date): id=%s date=%s", txn.id, txn.date)
            continue
        amount = float(txn.total_amount)
        if base_currency and fx_rates is not None:
            rate = rate_to_base(txn.currency, base_currency, fx_rates)
            if rate is None:
                LOGGER.warning("transaction skipped (no fx rate): id=%s currency=%s", txn.id, txn.currency)
                continue
            amount *= rate
        flows.append((ts, sign * amount))
    return sorted(flows, key=lambda item: item[0])


def compute_twrr(
    snapshots: list[ValuationSnapshot],
    transactions: list[Transaction],
    base_currency: str | None = None,
    fx_rates: dict[str, float] | None = None,
) -> TWRRResult | None:
    """Chain sub-period returns between consecutive snapshots, net of external flows.

    A flow dated in (previous snapshot, current snapshot] belongs to that sub-period.
    Sub-periods starting at a non-positive value are skipped. Returns None with fewer
    than two snapshots or when no sub-period is usable.
    """
    points = _parsed_snapshots(snapshots)
    if len(points) < 2:
        return None

    flows = external_cash_flows(transactions, base_currency, fx_rates)
    growth = 1.0
    usable = 0
    for (start_ts, start_value), (end_ts, end_value) in zip(points, points[1:]):
        if start_value <= 0:
            continue
        net_flow = sum(amount for ts, amount in flows if start_ts < ts <= end_ts)
        growth *= 1.0 + (end_value - start_value - net_flow) / start_value
        usable += 1

    if usable == 0:
        return None

    twrr = growth - 1.0
    span = _span_days(points[0][0], points[-1][0])
    annualized: float | None = None
    if span > 0 and growth > 0:
        annualized = growth ** (DAYS_PER_YEAR / span) - 1.0
        if not math.isfinite(annualized):
            annualized = None
    return TWRRResult(twrr=twrr, annualized_twrr=annualized, period_count=usable, span_days=span)


def interval_returns(snapshots: list[ValuationSnapshot]) -> pd.Series:
    """Simple returns between consecutive snapshots; intervals starting at or below zero are dropped."""
    points = _parsed_snapshots(snapshots)
    if len(points) < 2:
        return pd.Series(dtype=float)
    values = pd.Series([value for _, value in points], dtype=float)
    previous = values.shift(1)
    returns = (values - previous) / previous
    return returns[previous > 0].dropna().reset_index(drop=True)


def compute_sharpe(
    snapshots: list[ValuationSnapshot],
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    min_samples: int = DEFAULT_MIN_SHARPE_SAMPLES,
) -> SharpeResult | None:
    """Annualized Sharpe ratio from snapshot-to-snapshot returns.

    The sampling frequency comes from the average snapshot spacing. The result is
    withheld (None) below ``min_samples`` returns, for a zero-length span, or when
    the returns have no variance.
    """
    returns = interval_returns(snapshots)
    sample_count = int(len(returns))
    if sample_count < max(2, min_samples):
        return None

    points = _parsed_snapshots(snapshots)
    span = _span_days(points[0][0], points[-1][0])
    if span <= 0:
        return None
    periods_per_year = DAYS_PER_YEAR / (span / (len(points) - 1))

    mean = float(returns.mean())
    std = float(returns.std(ddof=1))
    if not math.isfinite(std) or std <= 0:
        return None
    annualized_return = mean * periods_per_year
    annualized_volatility = std * float(np.sqrt(periods_per_year))
    return SharpeResult(
        sharpe=(annualized_return - risk_free_rate) / annualized_volatility,
        annualized_return=annualized_return,
        annualized_volatility=annualized_volatility,
        sample_count=sample_count,
        periods_per_year=periods_per_year,
    )
