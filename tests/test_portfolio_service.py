import json
from datetime import datetime, timezone

import pytest

from portfolio_engine.cache.ttl_cache import CandleCache, TTLCache
from portfolio_engine.portfolio.data_loader import FilePortfolioStore
from portfolio_engine.portfolio.models import CandleSeries
from portfolio_engine.portfolio.portfolio_service import CURRENT_RESOURCE_URI, PortfolioService
from portfolio_engine.services.base import ServiceContext
from portfolio_engine.services.benchmark_service import BenchmarkService
from portfolio_engine.utils.rate_limit import RateLimiterRegistry

NOW = datetime(2024, 3, 31, 20, 0, tzinfo=timezone.utc)


class LiveMarket:
    def __init__(self) -> None:
        self.price_calls: list[str] = []

    def get_price(self, symbol: str) -> float | None:
        self.price_calls.append(symbol)
        return {"BTC-USD": 1000.0}.get(symbol)

    def get_rates(self) -> dict[str, float]:
        return {"USD": 1.0, "EUR": 0.9, "GBP": 0.8}


class StubYahoo:
    label = "Yahoo Finance"

    def get_candles(self, symbol: str, from_unix: int, to_unix: int) -> CandleSeries | None:
        timestamps = [int(datetime(2024, 3, day, 21, 0, tzinfo=timezone.utc).timestamp()) for day in (24, 25, 26)]
        return CandleSeries(symbol=symbol, timestamps=timestamps, closes=[100.0, 110.0, 120.0], source=self.label)


def _export() -> dict:
    return {
        "portfolio": {"id": "p1", "name": "Main", "baseCurrency": "USD"},
        "holdings": [
            {
                "id": "aapl",
                "assetClass": "stock",
                "name": "Apple",
                "currency": "USD",
                "symbol": "AAPL",
                "quantity": 10,
                "metadata": {"country": "US", "sector": "Technology"},
            },
            {"id": "flat", "assetClass": "real_estate", "name": "Flat", "currency": "EUR", "manualValue": 1000},
            {"id": "btc", "assetClass": "crypto", "name": "Bitcoin", "currency": "USD", "symbol": "BTC-USD", "quantity": 1},
        ],
        "transactions": [],
        "snapshots": [
            {"timestamp": "2024-03-25T18:00:00Z", "valueBase": 1000},
            {"timestamp": "2024-03-26T18:00:00Z", "valueBase": 1100},
            {"timestamp": "2024-03-27T18:00:00Z", "valueBase": 1050},
        ],
        "prices": {"AAPL": 100},
        "fxRates": {"USD": 1.0, "EUR": 0.5},
    }


@pytest.fixture
def export_path(tmp_path):
    path = tmp_path / "portfolio.json"
    path.write_text(json.dumps(_export()), encoding="utf-8")
    return str(path)


def _service(updates: list[str] | None = None, market: LiveMarket | None = None) -> PortfolioService:
    ctx = ServiceContext(
        providers={"yahoo": StubYahoo()},
        cache=TTLCache(),
        rate_limiter=RateLimiterRegistry(0.0),
    )
    market = market or LiveMarket()
    return PortfolioService(
        ctx,
        prices=market,
        fx_rates=market,
        benchmark_service=BenchmarkService(ctx, CandleCache()),
        resource_updated_callback=updates.append if updates is not None else None,
    )


def test_validate_file_counts_records(export_path) -> None:
    payload = _service().validate_file(export_path)
    assert payload["ok"] is True
    assert (payload["holdings"], payload["transactions"], payload["snapshots"]) == (3, 0, 3)


def test_validate_file_reports_issues(tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"holdings": [{"id": "x", "asset_class": "stock", "name": "X", "currency": "USD"}]}))
    payload = _service().validate_file(str(path))

    assert payload["ok"] is False
    assert payload["error"]["type"] == "validation_error"
    assert {error["code"] for error in payload["error"]["errors"]} == {"missing_symbol", "missing_quantity"}


def test_validate_file_missing_file(tmp_path) -> None:
    payload = _service().validate_file(str(tmp_path / "nope.json"))
    assert payload["error"]["errors"][0]["code"] == "file_error"


def test_analyze_file_layers_export_and_live_data(export_path) -> None:
    market = LiveMarket()
    updates: list[str] = []
    payload = _service(updates, market).analyze_file(export_path, now=NOW)

    assert payload["ok"] is True
    assert payload["portfolio_id"] == "p1"
    # flat: 1000 EUR at the export's EUR rate of 0.5 per USD
    assert payload["total_value"] == pytest.approx(4000.0)
    assert [item["id"] for item in payload["holdings"]] == ["flat", "aapl", "btc"]
    assert [item["weight_percent"] for item in payload["holdings"]] == pytest.approx([50.0, 25.0, 25.0])
    assert market.price_calls == ["BTC-USD"]
    assert payload["diversification"]["insights"][0] == "Top holding is 50.0%, consider diversifying."
    assert payload["twrr"]["twrr"] == pytest.approx(0.05)
    assert payload["sharpe"] is None
    assert payload["exposure"]["country"] == pytest.approx({"US": 25.0})
    assert "real estate" in payload["exposure"]["asset_class"]
    assert updates == [CURRENT_RESOURCE_URI]


def test_analyze_file_stores_current_resource(export_path) -> None:
    service = _service()
    assert service.get_current_resource_snapshot() is None
    service.analyze_file(export_path, now=NOW)

    snapshot = service.get_current_resource_snapshot()
    assert snapshot["uri"] == CURRENT_RESOURCE_URI
    assert snapshot["report_type"] == "analysis"
    assert snapshot["payload"]["portfolio_id"] == "p1"


def test_benchmark_file_compares_against_candles(export_path) -> None:
    service = _service()
    payload = service.benchmark_file(export_path, symbols=["SPY"], window="7d", now=NOW)

    assert payload["ok"] is True
    assert payload["window"] == "7D"
    assert payload["status"] == "ok"
    assert payload["labels"] == ["2024-03-25", "2024-03-26", "2024-03-27"]
    assert payload["benchmarks"][0]["returns"] == pytest.approx([0.0, 10.0, 20.0])
    assert service.get_current_resource_snapshot()["report_type"] == "benchmark"


def test_benchmark_file_rejects_unknown_window(export_path) -> None:
    payload = _service().benchmark_file(export_path, symbols=["SPY"], window="2Y", now=NOW)
    assert payload["ok"] is False
    assert payload["error"]["type"] == "validation_error"


def test_score_holdings_inline() -> None:
    payload = _service().score_holdings(
        [
            {"name": "BTC", "asset_class": "crypto", "value": 600},
            {"name": "ETF", "asset_class": "etf", "value": 400, "country": "US", "sector": "Broad"},
        ]
    )
    assert payload["ok"] is True
    assert payload["concentration"]["top_holding_percent"] == pytest.approx(60.0)
    assert payload["diversification"]["crypto_percent"] == pytest.approx(60.0)
    assert "Crypto is 60.0% of portfolio, volatility may be high." in payload["diversification"]["insights"]


def test_score_holdings_rejects_bad_rows() -> None:
    payload = _service().score_holdings([{"name": "X", "asset_class": "stock", "value": -1}, {"asset_class": "yacht", "value": 5}])
    assert payload["ok"] is False
    assert [error["code"] for error in payload["error"]["errors"]] == ["invalid_value", "invalid_asset_class"]


def test_analyze_and_benchmark_through_stores(export_path) -> None:
    store = FilePortfolioStore.from_file(export_path)
    ctx = ServiceContext(providers={"yahoo": StubYahoo()}, cache=TTLCache(), rate_limiter=RateLimiterRegistry(0.0))
    service = PortfolioService(
        ctx,
        holdings=store.holdings,
        transactions=store.transactions,
        snapshots=store.snapshots,
        prices=store,
        fx_rates=store,
    )

    analysis = service.analyze("p1", now=NOW)
    # BTC-USD has no export price and no live source here, so it is valued at zero
    assert analysis["total_value"] == pytest.approx(3000.0)
    assert analysis["holdings"][-1]["value_base"] == 0.0

    comparison = service.benchmark("p1", symbols=["SPY"], window="7D", now=NOW)
    assert comparison["status"] == "ok"
    assert comparison["portfolio_returns"] == pytest.approx([0.0, 10.0, 5.0])
    assert service.benchmark("other", symbols=["SPY"], window="7D", now=NOW)["status"] == "insufficient_data"
