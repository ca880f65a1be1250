"""Holding valuation in the portfolio base currency."""

from __future__ import annotations

import logging

from portfolio_engine.portfolio.models import Holding, ValuedHolding

LOGGER = logging.getLogger(__name__)


def rate_to_base(currency: str, base_currency: str, fx_rates: dict[str, float] | None) -> float | None:
    """Multiplier converting ``currency`` amounts to ``base_currency``.

    ``fx_rates`` is quoted against a single anchor currency (units per anchor unit),
    so any pair can be crossed through it. None when either leg is missing.
    """
    source = (currency or "").strip().upper()
    target = (base_currency or "").strip().upper()
    if source == target:
        return 1.0
    rates = {key.upper(): value for key, value in (fx_rates or {}).items()}
    source_rate = rates.get(source)
    target_rate = rates.get(target)
    if not source_rate or not target_rate or source_rate <= 0 or target_rate <= 0:
        return None
    return float(target_rate) / float(source_rate)


def holding_value_in_base(
    holding: Holding,
    price: float | None,
    base_currency: str,
    fx_rates: dict[str, float] | None = None,
) -> float:
    """Listed holdings are quantity x price, manual holdings use their manual value; both converted to base."""
    rate = rate_to_base(holding.currency, base_currency, fx_rates)
    if rate is None:
        LOGGER.warning(
            "holding valued at zero (no fx rate): holding=%s currency=%s base=%s",
            holding.id,
            holding.currency,
            base_currency,
        )
        return 0.0
    if holding.symbol and holding.quantity is not None and price is not None:
        return float(holding.quantity) * float(price) * rate
    if holding.manual_value is not None:
        return float(holding.manual_value) * rate
    if holding.symbol and holding.quantity:
        LOGGER.info("holding valued at zero (price unavailable): holding=%s symbol=%s", holding.id, holding.symbol)
    return 0.0


def value_holdings(
    holdings: list[Holding],
    prices: dict[str, float],
    base_currency: str,
    fx_rates: dict[str, float] | None = None,
) -> list[ValuedHolding]:
    """Value and weight every live holding, sorted by value descending."""
    normalized_prices = {symbol.strip().upper(): price for symbol, price in prices.items()}
    valued: list[tuple[Holding, float]] = []
    for holding in holdings:
        if holding.deleted:
            continue
        price = normalized_prices.get(holding.symbol.strip().upper()) if holding.symbol else None
        valued.append((holding, holding_value_in_base(holding, price, base_currency, fx_rates)))

    total = sum(value for _, value in valued)
    out = [
        ValuedHolding(
            holding=holding,
            value_base=value,
            weight_percent=(value / total * 100.0) if total > 0 else 0.0,
        )
        for holding, value in valued
    ]
    return sorted(out, key=lambda item: item.value_base, reverse=True)
