"""Normalized provider payloads shared by the fetch layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ProviderName = Literal["yahoo", "finnhub", "frankfurter"]


@dataclass
class NormalizedQuote:
    symbol: str
    price: float
    previous_close: float | None
    percent_change: float | None
    currency: str
    timestamp: int | None
    source: ProviderName


@dataclass
class FxRateTable:
    """Exchange rates quoted as units of each currency per one unit of ``anchor``."""

    anchor: str
    rates: dict[str, float]
    fetched_at: float | None = None
    source: ProviderName = "frankfurter"
