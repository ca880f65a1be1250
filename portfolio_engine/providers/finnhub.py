"""Finnhub API client for daily candles and quotes."""

from __future__ import annotations

from portfolio_engine.portfolio.models import CandleSeries
from portfolio_engine.providers.http import ProviderError, fetch_json
from portfolio_engine.providers.models import NormalizedQuote

FINNHUB_BASE_URL = "https://finnhub.io/api/v1"


class FinnhubClient:
    """Thin wrapper around the Finnhub REST endpoints the benchmark and pricing layers use."""

    name = "finnhub"
    label = "Finnhub"

    def __init__(self, api_key: str, timeout_seconds: float = 15.0) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    def _request(self, endpoint: str, query: dict[str, str | int | float | None]) -> dict:
        params = {key: value for key, value in query.items() if value is not None}
        params["token"] = self.api_key
        data = fetch_json(
            f"{FINNHUB_BASE_URL}{endpoint}",
            provider="finnhub",
            timeout_seconds=self.timeout_seconds,
            params=params,
        )
        if isinstance(data, dict) and data.get("error"):
            text = str(data["error"])
            lower = text.lower()
            if "limit" in lower:
                raise ProviderError("finnhub", "RATE_LIMIT", text)
            if "token" in lower or "auth" in lower or "access" in lower:
                raise ProviderError("finnhub", "AUTH", text)
            raise ProviderError("finnhub", "UPSTREAM", text)
        return data if isinstance(data, dict) else {}

    def get_candles(self, symbol: str, from_unix: int, to_unix: int) -> CandleSeries | None:
        data = self._request(
            "/stock/candle",
            {"symbol": symbol, "resolution": "D", "from": int(from_unix), "to": int(to_unix)},
        )
        timestamps = data.get("t") or []
        closes = data.get("c") or []
        if data.get("s") != "ok" or not timestamps or len(closes) != len(timestamps):
            return None

        def _column(key: str) -> list[float]:
            values = data.get(key) or []
            return [float(value) for value in values] if len(values) == len(timestamps) else []

        return CandleSeries(
            symbol=symbol,
            timestamps=[int(ts) for ts in timestamps],
            closes=[float(value) for value in closes],
            opens=_column("o"),
            highs=_column("h"),
            lows=_column("l"),
            volumes=_column("v"),
            source=self.label,
        )

    def get_quote(self, symbol: str) -> NormalizedQuote | None:
        data = self._request("/quote", {"symbol": symbol})
        price = data.get("c")
        if not isinstance(price, (int, float)) or price <= 0:
            return None
        previous_close = data.get("pc")
        return NormalizedQuote(
            symbol=symbol,
            price=float(price),
            previous_close=float(previous_close) if isinstance(previous_close, (int, float)) else None,
            percent_change=float(data["dp"]) if isinstance(data.get("dp"), (int, float)) else None,
            currency="USD",
            timestamp=int(data["t"]) if isinstance(data.get("t"), (int, float)) else None,
            source="finnhub",
        )
