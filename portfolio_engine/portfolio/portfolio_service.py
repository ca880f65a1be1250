"""Portfolio analytics orchestration service."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable

from portfolio_engine.config.settings import Settings
from portfolio_engine.portfolio.analytics_exposure import compute_concentration, exposure_breakdown, exposure_by_type
from portfolio_engine.portfolio.analytics_income import compute_dividend_analytics
from portfolio_engine.portfolio.analytics_returns import compute_sharpe, compute_twrr
from portfolio_engine.portfolio.benchmark_alignment import window_start
from portfolio_engine.portfolio.data_loader import FilePortfolioStore, PortfolioFileError, parse_export, read_export
from portfolio_engine.portfolio.intelligence import ScoreRules, score_portfolio
from portfolio_engine.portfolio.models import ASSET_CLASSES, Holding, Transaction, ValuationSnapshot, ValuedHolding
from portfolio_engine.portfolio.sources import FxRateSource, HoldingStore, PriceSource, SnapshotStore, TransactionStore
from portfolio_engine.portfolio.validation import validate_export
from portfolio_engine.portfolio.valuation import value_holdings
from portfolio_engine.services.base import ServiceContext
from portfolio_engine.services.benchmark_service import BenchmarkService
from portfolio_engine.utils.async_utils import run_sync
from portfolio_engine.utils.time_utils import utc_now

LOGGER = logging.getLogger(__name__)
CURRENT_RESOURCE_URI = "portfolio://current"


def _json_validation_error(errors: list[dict[str, Any]]) -> dict[str, Any]:
    return {"ok": False, "error": {"type": "validation_error", "errors": errors}}


def score_rules_from_settings(settings: Settings) -> ScoreRules:
    return ScoreRules(
        top_holding_threshold=settings.top_holding_threshold,
        top3_threshold=settings.top3_threshold,
        country_threshold=settings.country_threshold,
        sector_threshold=settings.sector_threshold,
        crypto_threshold=settings.crypto_threshold,
        top_holding_penalty=settings.top_holding_penalty,
        top3_penalty=settings.top3_penalty,
        country_penalty=settings.country_penalty,
        sector_penalty=settings.sector_penalty,
        crypto_penalty=settings.crypto_penalty,
    )


class _LayeredPrices:
    """Export prices first, then the live source for anything the export lacks."""

    def __init__(self, primary: PriceSource, fallback: PriceSource | None) -> None:
        self._primary = primary
        self._fallback = fallback

    def get_price(self, symbol: str) -> float | None:
        price = self._primary.get_price(symbol)
        if price is None and self._fallback is not None:
            price = self._fallback.get_price(symbol)
        return price


class _LayeredRates:
    def __init__(self, primary: FxRateSource, fallback: FxRateSource | None) -> None:
        self._primary = primary
        self._fallback = fallback

    def get_rates(self) -> dict[str, float]:
        rates = dict(self._fallback.get_rates()) if self._fallback is not None else {}
        rates.update(self._primary.get_rates())
        return rates


class PortfolioService:
    def __init__(
        self,
        ctx: ServiceContext,
        settings: Settings | None = None,
        holdings: HoldingStore | None = None,
        transactions: TransactionStore | None = None,
        snapshots: SnapshotStore | None = None,
        prices: PriceSource | None = None,
        fx_rates: FxRateSource | None = None,
        benchmark_service: BenchmarkService | None = None,
        resource_updated_callback: Callable[[str], None] | None = None,
    ) -> None:
        self.ctx = ctx
        self.settings = settings or Settings()
        self.holdings = holdings
        self.transactions = transactions
        self.snapshots = snapshots
        self.prices = prices
        self.fx_rates = fx_rates
        self.benchmark_service = benchmark_service or BenchmarkService(ctx)
        self.score_rules = score_rules_from_settings(self.settings)
        self._current_resource_cache_key = "portfolio:current_resource"
        self._resource_updated_callback = resource_updated_callback

    def _store_current_resource_snapshot(self, report_type: str, source: str, payload: dict[str, Any]) -> None:
        snapshot = {
            "uri": CURRENT_RESOURCE_URI,
            "report_type": report_type,
            "source": source,
            "payload": payload,
        }
        self.ctx.cache.set(self._current_resource_cache_key, snapshot, ttl_seconds=self.ctx.cache_ttl_seconds)
        if self._resource_updated_callback is not None:
            self._resource_updated_callback(CURRENT_RESOURCE_URI)

    def get_current_resource_snapshot(self) -> dict[str, Any] | None:
        cached = self.ctx.cache.get(self._current_resource_cache_key)
        return cached if isinstance(cached, dict) else None

    async def _collect_prices(self, holdings: list[Holding], prices: PriceSource | None) -> dict[str, float]:
        if prices is None:
            return {}
        symbols = sorted({holding.symbol.strip().upper() for holding in holdings if holding.symbol and holding.quantity})
        quotes = await asyncio.gather(*(asyncio.to_thread(prices.get_price, symbol) for symbol in symbols))
        price_map = {symbol: float(price) for symbol, price in zip(symbols, quotes) if price is not None}
        missing = [symbol for symbol in symbols if symbol not in price_map]
        if missing:
            LOGGER.warning("prices unavailable, holdings valued at zero: symbols=%s", ",".join(missing))
        return price_map

    def build_report(
        self,
        valued: list[ValuedHolding],
        transactions: list[Transaction],
        snapshots: list[ValuationSnapshot],
        holdings: list[Holding],
        base_currency: str,
        fx_rates: dict[str, float] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Assemble every analytic for an already valued portfolio."""
        now = now or utc_now()
        concentration = compute_concentration(valued)
        slices = exposure_breakdown(valued)
        diversification = score_portfolio(valued, self.score_rules)
        twrr = compute_twrr(snapshots, transactions, base_currency, fx_rates)
        sharpe = compute_sharpe(snapshots, self.settings.risk_free_rate, self.settings.sharpe_min_samples)
        dividends = compute_dividend_analytics(transactions, holdings, now=now)
        return {
            "ok": True,
            "base_currency": base_currency,
            "total_value": sum(item.value_base for item in valued),
            "holdings": [
                {
                    "id": item.holding.id,
                    "name": item.holding.name,
                    "symbol": item.holding.symbol,
                    "asset_class": item.holding.asset_class,
                    "value_base": item.value_base,
                    "weight_percent": item.weight_percent,
                }
                for item in valued
            ],
            "concentration": asdict(concentration),
            "exposure": {
                exposure_type: exposure_by_type(slices, exposure_type)
                for exposure_type in ("asset_class", "currency", "country", "sector")
            },
            "diversification": asdict(diversification),
            "twrr": asdict(twrr) if twrr else None,
            "sharpe": asdict(sharpe) if sharpe else None,
            "dividends": asdict(dividends),
        }

    async def _analyze_async(
        self,
        portfolio_id: str,
        holding_store: HoldingStore,
        transaction_store: TransactionStore,
        snapshot_store: SnapshotStore,
        prices: PriceSource | None,
        fx_source: FxRateSource | None,
        base_currency: str,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        holdings = holding_store.list_by_portfolio(portfolio_id)
        transactions = transaction_store.list_by_portfolio(portfolio_id)
        snapshots = snapshot_store.list_since(portfolio_id, None)
        fx_rates = await asyncio.to_thread(fx_source.get_rates) if fx_source is not None else {}
        price_map = await self._collect_prices(holdings, prices)
        valued = value_holdings(holdings, price_map, base_currency, fx_rates)
        payload = self.build_report(valued, transactions, snapshots, holdings, base_currency, fx_rates, now)
        payload["portfolio_id"] = portfolio_id
        LOGGER.info(
            "portfolio analyzed: portfolio=%s holdings=%s snapshots=%s score=%s",
            portfolio_id,
            len(valued),
            len(snapshots),
            payload["diversification"]["score"],
        )
        return payload

    def _require_stores(self) -> tuple[HoldingStore, TransactionStore, SnapshotStore]:
        if self.holdings is None or self.transactions is None or self.snapshots is None:
            raise RuntimeError("PortfolioService was created without holding, transaction and snapshot stores.")
        return self.holdings, self.transactions, self.snapshots

    def analyze(self, portfolio_id: str, base_currency: str | None = None, now: datetime | None = None) -> dict[str, Any]:
        holding_store, transaction_store, snapshot_store = self._require_stores()
        payload = run_sync(
            lambda: self._analyze_async(
                portfolio_id,
                holding_store,
                transaction_store,
                snapshot_store,
                self.prices,
                self.fx_rates,
                (base_currency or self.settings.base_currency).upper(),
                now,
            )
        )
        self._store_current_resource_snapshot("analysis", portfolio_id, payload)
        return payload

    def _benchmark_payload(
        self,
        snapshots: list[ValuationSnapshot],
        symbols: list[str] | None,
        window: str,
        now: datetime | None,
    ) -> dict[str, Any]:
        try:
            comparison = self.benchmark_service.compare_sync(
                snapshots,
                symbols or list(self.settings.benchmark_symbols),
                window,
                now=now,
            )
        except ValueError as error:
            return _json_validation_error([{"field": "benchmark", "message": str(error), "code": "invalid_argument"}])
        return {"ok": True, "window": window, **asdict(comparison)}

    def benchmark(
        self,
        portfolio_id: str,
        symbols: list[str] | None = None,
        window: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        _, _, snapshot_store = self._require_stores()
        window = (window or self.settings.default_time_window).upper()
        try:
            since = window_start(window, now)
        except ValueError as error:
            return _json_validation_error([{"field": "window", "message": str(error), "code": "invalid_window"}])
        payload = self._benchmark_payload(snapshot_store.list_since(portfolio_id, since), symbols, window, now)
        if payload.get("ok"):
            self._store_current_resource_snapshot("benchmark", portfolio_id, payload)
        return payload

    def _load_file(self, file_path: str) -> tuple[FilePortfolioStore | None, dict[str, Any] | None]:
        try:
            raw = read_export(file_path)
        except PortfolioFileError as error:
            return None, _json_validation_error([{"field": "file_path", "message": str(error), "code": "file_error"}])
        issues = validate_export(raw)
        if issues:
            return None, _json_validation_error([asdict(issue) for issue in issues])
        return FilePortfolioStore(parse_export(raw)), None

    def validate_file(self, file_path: str) -> dict[str, Any]:
        store, error = self._load_file(file_path)
        if error is not None:
            return error
        export = store.export
        return {
            "ok": True,
            "message": "Portfolio file validated.",
            "holdings": len(export.holdings),
            "transactions": len(export.transactions),
            "snapshots": len(export.snapshots),
        }

    def analyze_file(self, file_path: str, now: datetime | None = None) -> dict[str, Any]:
        store, error = self._load_file(file_path)
        if error is not None:
            return error
        payload = run_sync(
            lambda: self._analyze_async(
                store.portfolio_id,
                store.holdings,
                store.transactions,
                store.snapshots,
                _LayeredPrices(store, self.prices),
                _LayeredRates(store, self.fx_rates),
                store.base_currency,
                now,
            )
        )
        self._store_current_resource_snapshot("analysis", file_path, payload)
        return payload

    def benchmark_file(
        self,
        file_path: str,
        symbols: list[str] | None = None,
        window: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        store, error = self._load_file(file_path)
        if error is not None:
            return error
        window = (window or self.settings.default_time_window).upper()
        payload = self._benchmark_payload(store.export.snapshots, symbols, window, now)
        if payload.get("ok"):
            self._store_current_resource_snapshot("benchmark", file_path, payload)
        return payload

    def score_holdings(self, holdings: list[dict[str, Any]]) -> dict[str, Any]:
        """Score inline holdings given as ``{"name", "asset_class", "value", "country"?, "sector"?}``."""
        errors: list[dict[str, Any]] = []
        models: list[Holding] = []
        for row, item in enumerate(holdings, start=1):
            value = item.get("value")
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                errors.append({"field": "value", "row": row, "code": "invalid_value", "message": "value must be a non-negative number."})
                continue
            asset_class = str(item.get("asset_class") or "other").strip().lower()
            if asset_class not in ASSET_CLASSES:
                errors.append(
                    {"field": "asset_class", "row": row, "code": "invalid_asset_class", "message": f"Unknown asset class: {asset_class}"}
                )
                continue
            metadata = {key: str(item[key]) for key in ("country", "sector") if item.get(key)}
            models.append(
                Holding(
                    id=str(item.get("id") or row),
                    asset_class=asset_class,  # type: ignore[arg-type]
                    name=str(item.get("name") or item.get("symbol") or f"Holding {row}"),
                    currency=self.settings.base_currency,
                    symbol=str(item["symbol"]).strip().upper() if item.get("symbol") else None,
                    manual_value=float(value),
                    metadata=metadata,
                )
            )
        if errors:
            return _json_validation_error(errors)
        valued = value_holdings(models, {}, self.settings.base_currency)
        slices = exposure_breakdown(valued)
        return {
            "ok": True,
            "concentration": asdict(compute_concentration(valued)),
            "exposure": [asdict(item) for item in slices],
            "diversification": asdict(score_portfolio(valued, self.score_rules)),
        }
