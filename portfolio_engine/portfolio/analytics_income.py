"""Dividend income analytics."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta

import pandas as pd

from portfolio_engine.portfolio.models import (
    DividendAnalytics,
    DividendHoldingRow,
    Holding,
    MonthlyIncome,
    Transaction,
)
from portfolio_engine.utils.time_utils import parse_timestamp, utc_now

LOGGER = logging.getLogger(__name__)
TTM_DAYS = 365
HISTOGRAM_MONTHS = 12


def _dividends(transactions: list[Transaction]) -> list[tuple[Transaction, datetime]]:
    out: list[tuple[Transaction, datetime]] = []
    for txn in transactions:
        if txn.type != "dividend":
            continue
        ts = parse_timestamp(txn.date)
        if ts is None:
            LOGGER.warning("dividend skipped (unparsable date): id=%s date=%s", txn.id, txn.date)
            continue
        out.append((txn, ts))
    return out


def monthly_dividend_income(
    transactions: list[Transaction],
    now: datetime | None = None,
    months: int = HISTOGRAM_MONTHS,
) -> list[MonthlyIncome]:
    """Dividend totals per calendar month, ending with the current month. Empty months are 0."""
    now = parse_timestamp(now) if now is not None else utc_now()
    periods = pd.period_range(end=pd.Period(f"{now:%Y-%m}", freq="M"), periods=months, freq="M")
    totals = {str(period): 0.0 for period in periods}
    for txn, ts in _dividends(transactions):
        key = f"{ts:%Y-%m}"
        if key in totals:
            totals[key] += float(txn.total_amount)
    return [MonthlyIncome(month=month, amount=amount) for month, amount in totals.items()]


def compute_dividend_analytics(
    transactions: list[Transaction],
    holdings: list[Holding],
    now: datetime | None = None,
) -> DividendAnalytics:
    now = parse_timestamp(now) if now is not None else utc_now()
    cutoff = now - timedelta(days=TTM_DAYS)
    dividends = _dividends(transactions)

    ttm_by_holding: defaultdict[str, float] = defaultdict(float)
    paying_holdings: list[str] = []
    ttm_income = 0.0
    for txn, ts in dividends:
        if txn.holding_id not in paying_holdings:
            paying_holdings.append(txn.holding_id)
        if ts >= cutoff:
            ttm_income += float(txn.total_amount)
            ttm_by_holding[txn.holding_id] += float(txn.total_amount)

    holdings_by_id = {holding.id: holding for holding in holdings}
    rows: list[DividendHoldingRow] = []
    for holding_id in paying_holdings:
        holding = holdings_by_id.get(holding_id)
        if holding is None:
            continue
        ttm_amount = ttm_by_holding.get(holding_id, 0.0)
        cost_basis = holding.cost_basis
        yield_on_cost = ttm_amount / cost_basis * 100.0 if cost_basis is not None and cost_basis > 0 else None
        rows.append(
            DividendHoldingRow(
                holding_id=holding_id,
                name=holding.name,
                symbol=holding.symbol,
                ttm_amount=ttm_amount,
                yield_on_cost=yield_on_cost,
            )
        )
    rows.sort(key=lambda row: row.ttm_amount, reverse=True)

    return DividendAnalytics(
        ttm_income=ttm_income,
        monthly=monthly_dividend_income(transactions, now=now),
        holding_rows=rows,
    )
