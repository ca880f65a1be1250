from datetime import datetime, timedelta, timezone

import pytest

from portfolio_engine.portfolio.analytics_income import compute_dividend_analytics, monthly_dividend_income
from portfolio_engine.portfolio.models import Holding, Transaction

NOW = datetime(2024, 6, 15, tzinfo=timezone.utc)


def _dividend(idx: int, holding_id: str, date: str, amount: float) -> Transaction:
    return Transaction(id=f"d{idx}", holding_id=holding_id, type="dividend", date=date, total_amount=amount, currency="USD")


def _holdings() -> list[Holding]:
    return [
        Holding(id="ko", asset_class="stock", name="Coca-Cola", currency="USD", symbol="KO", quantity=10, cost_basis=500.0),
        Holding(id="t", asset_class="stock", name="AT&T", currency="USD", symbol="T", quantity=10, cost_basis=0.0),
        Holding(id="old", asset_class="stock", name="Old Co", currency="USD", symbol="OLD", quantity=1, cost_basis=100.0),
    ]


def test_ttm_income_and_rows() -> None:
    transactions = [
        _dividend(1, "ko", "2024-04-01T00:00:00Z", 10.0),
        _dividend(2, "ko", "2024-01-01T00:00:00Z", 10.0),
        _dividend(3, "t", "2024-05-01T00:00:00Z", 25.0),
        _dividend(4, "old", "2022-05-01T00:00:00Z", 3.0),
        _dividend(5, "ghost", "2024-05-01T00:00:00Z", 7.0),
        Transaction(id="b1", holding_id="ko", type="buy", date="2024-05-01T00:00:00Z", total_amount=999.0, currency="USD"),
    ]
    result = compute_dividend_analytics(transactions, _holdings(), now=NOW)
    assert result.ttm_income == pytest.approx(52.0)
    assert [row.holding_id for row in result.holding_rows] == ["t", "ko", "old"]
    rows = {row.holding_id: row for row in result.holding_rows}
    assert rows["ko"].ttm_amount == pytest.approx(20.0)
    assert rows["ko"].yield_on_cost == pytest.approx(4.0)
    assert rows["t"].yield_on_cost is None
    assert rows["old"].ttm_amount == 0.0


def test_monthly_histogram_has_twelve_months_ending_now() -> None:
    monthly = monthly_dividend_income([_dividend(1, "ko", "2024-06-02T00:00:00Z", 4.0), _dividend(2, "ko", "2023-07-30T00:00:00Z", 2.0)], now=NOW)
    assert len(monthly) == 12
    assert monthly[0].month == "2023-07"
    assert monthly[-1].month == "2024-06"
    assert monthly[0].amount == pytest.approx(2.0)
    assert monthly[-1].amount == pytest.approx(4.0)
    assert sum(item.amount for item in monthly) == pytest.approx(6.0)


def test_no_dividends() -> None:
    result = compute_dividend_analytics([], _holdings(), now=NOW)
    assert result.ttm_income == 0.0
    assert result.holding_rows == []
    assert len(result.monthly) == 12


def test_ttm_window_includes_exact_cutoff_only() -> None:
    cutoff = NOW - timedelta(days=365)
    transactions = [
        _dividend(1, "ko", cutoff.isoformat(), 5.0),
        _dividend(2, "ko", (cutoff - timedelta(seconds=1)).isoformat(), 100.0),
    ]
    result = compute_dividend_analytics(transactions, _holdings(), now=NOW)
    assert result.ttm_income == pytest.approx(5.0)
    assert result.holding_rows[0].ttm_amount == pytest.approx(5.0)


def test_monthly_histogram_drops_month_before_window() -> None:
    monthly = monthly_dividend_income(
        [_dividend(1, "ko", "2023-06-30T23:59:59Z", 9.0), _dividend(2, "ko", "2023-07-01T00:00:00Z", 1.0)],
        now=NOW,
    )
    assert [item.month for item in monthly][:1] == ["2023-07"]
    assert sum(item.amount for item in monthly) == pytest.approx(1.0)
