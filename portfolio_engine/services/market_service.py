"""Live prices and FX rates for portfolio valuation."""

from __future__ import annotations

import logging

from portfolio_engine.providers.frankfurter import FrankfurterClient
from portfolio_engine.providers.models import FxRateTable, NormalizedQuote
from portfolio_engine.services.base import ServiceContext, ServiceResult, run_with_cache, validate_symbol
from portfolio_engine.services.fallback_manager import FallbackManager, ProviderAttempt

LOGGER = logging.getLogger(__name__)

QUOTE_PROVIDER_ORDER = ("yahoo", "finnhub")
DEFAULT_QUOTE_TTL_SECONDS = 60
DEFAULT_FX_TTL_SECONDS = 4 * 60 * 60


class MarketService:
    """Implements the price and FX sources on top of the provider clients."""

    def __init__(
        self,
        ctx: ServiceContext,
        fallback: FallbackManager | None = None,
        quote_ttl_seconds: int = DEFAULT_QUOTE_TTL_SECONDS,
        fx_ttl_seconds: int = DEFAULT_FX_TTL_SECONDS,
    ) -> None:
        self.ctx = ctx
        self.fallback_manager = fallback or FallbackManager(ctx)
        self.quote_ttl_seconds = quote_ttl_seconds
        self.fx_ttl_seconds = fx_ttl_seconds

    def _frankfurter(self) -> FrankfurterClient | None:
        client = self.ctx.get_provider("frankfurter")
        return client if isinstance(client, FrankfurterClient) else None

    def get_quote(self, symbol: str) -> ServiceResult[NormalizedQuote]:
        symbol = validate_symbol(symbol)
        attempts: list[ProviderAttempt[NormalizedQuote]] = []
        for key in QUOTE_PROVIDER_ORDER:
            provider = self.ctx.get_provider(key)
            if provider is None:
                continue
            attempts.append(
                ProviderAttempt(key, getattr(provider, "label", key), lambda p=provider: p.get_quote(symbol))
            )
        return run_with_cache(
            self.ctx,
            f"market:quote:{symbol}",
            lambda: self.fallback_manager.execute("get_quote", symbol, attempts),
            ttl_seconds=self.quote_ttl_seconds,
        )

    def get_price(self, symbol: str) -> float | None:
        try:
            result = self.get_quote(symbol)
        except ValueError:
            LOGGER.warning("price lookup skipped (invalid symbol): symbol=%s", symbol)
            return None
        if result.data is None:
            LOGGER.warning(
                "price unavailable: symbol=%s code=%s",
                symbol,
                result.error.code if result.error else None,
            )
            return None
        return result.data.price

    def get_rate_table(self) -> ServiceResult[FxRateTable]:
        client = self._frankfurter()
        attempts = [ProviderAttempt("frankfurter", "Frankfurter", client.get_rates)] if client else []
        return run_with_cache(
            self.ctx,
            "market:fx:USD",
            lambda: self.fallback_manager.execute("get_rates", "USD", attempts),
            ttl_seconds=self.fx_ttl_seconds,
        )

    def get_rates(self) -> dict[str, float]:
        """USD-anchored rates; empty when no FX provider answered."""
        result = self.get_rate_table()
        if result.data is None:
            LOGGER.warning("fx rates unavailable: code=%s", result.error.code if result.error else None)
            return {}
        return dict(result.data.rates)
