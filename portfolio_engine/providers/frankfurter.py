"""Frankfurter (ECB reference rates) adapter."""

from __future__ import annotations

import time

from portfolio_engine.providers.http import fetch_json
from portfolio_engine.providers.models import FxRateTable

FRANKFURTER_URL = "https://api.frankfurter.app/latest"


class FrankfurterClient:
    def __init__(self, anchor: str = "USD", timeout_seconds: float = 15.0) -> None:
        self.anchor = anchor.upper()
        self.timeout_seconds = timeout_seconds

    def get_rates(self) -> FxRateTable | None:
        data = fetch_json(
            FRANKFURTER_URL,
            provider="frankfurter",
            timeout_seconds=self.timeout_seconds,
            params={"base": self.anchor},
        )
        rates = (data or {}).get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict) or not rates:
            return None
        out = {str(code).upper(): float(value) for code, value in rates.items() if isinstance(value, (int, float))}
        # the anchor currency is omitted from the response
        out[self.anchor] = 1.0
        return FxRateTable(anchor=self.anchor, rates=out, fetched_at=time.time())
