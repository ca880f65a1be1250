"""Yahoo Finance chart adapter (daily candles and last price, no API key)."""

from __future__ import annotations

import math
from urllib.parse import quote_plus

from portfolio_engine.portfolio.models import CandleSeries
from portfolio_engine.providers.http import ProviderError, fetch_json
from portfolio_engine.providers.models import NormalizedQuote

YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class YahooFinanceClient:
    name = "yahoo"
    label = "Yahoo Finance"

    def __init__(self, timeout_seconds: float = 15.0) -> None:
        self.timeout_seconds = timeout_seconds

    def _chart(self, symbol: str, params: dict[str, str | int]) -> dict | None:
        url = f"{YAHOO_CHART_URL}/{quote_plus(symbol)}"
        data = fetch_json(url, provider="yahoo", timeout_seconds=self.timeout_seconds, params=params)
        chart = (data or {}).get("chart") or {}
        error = chart.get("error")
        if error:
            description = str((error or {}).get("description") or "chart error")
            code = "NOT_FOUND" if "no data" in description.lower() or "delisted" in description.lower() else "UPSTREAM"
            raise ProviderError("yahoo", code, description)
        results = chart.get("result") or []
        return results[0] if results else None

    def get_candles(self, symbol: str, from_unix: int, to_unix: int) -> CandleSeries | None:
        item = self._chart(
            symbol,
            {"period1": int(from_unix), "period2": int(to_unix), "interval": "1d", "includePrePost": "false"},
        )
        if not item:
            return None
        timestamps = item.get("timestamp") or []
        quote = ((item.get("indicators") or {}).get("quote") or [{}])[0]
        opens = quote.get("open") or []
        highs = quote.get("high") or []
        lows = quote.get("low") or []
        closes = quote.get("close") or []
        volumes = quote.get("volume") or []

        series = CandleSeries(symbol=symbol, timestamps=[], closes=[], source=self.label)
        for idx, ts in enumerate(timestamps):
            o = opens[idx] if idx < len(opens) else None
            h = highs[idx] if idx < len(highs) else None
            l = lows[idx] if idx < len(lows) else None
            c = closes[idx] if idx < len(closes) else None
            v = volumes[idx] if idx < len(volumes) else None
            # holidays and halted sessions come back as nulls
            if not all(_is_number(x) for x in (o, h, l, c)):
                continue
            series.timestamps.append(int(ts))
            series.opens.append(float(o))
            series.highs.append(float(h))
            series.lows.append(float(l))
            series.closes.append(float(c))
            series.volumes.append(float(v) if _is_number(v) else 0.0)
        return series if len(series) else None

    def get_quote(self, symbol: str) -> NormalizedQuote | None:
        item = self._chart(symbol, {"range": "5d", "interval": "1d"})
        meta = (item or {}).get("meta") or {}
        price = meta.get("regularMarketPrice")
        if not _is_number(price) or price <= 0:
            return None
        previous_close = meta.get("chartPreviousClose") or meta.get("previousClose")
        previous_close = float(previous_close) if _is_number(previous_close) else None
        percent_change = (
            (float(price) - previous_close) / previous_close * 100.0 if previous_close else None
        )
        return NormalizedQuote(
            symbol=symbol,
            price=float(price),
            previous_close=previous_close,
            percent_change=percent_change,
            currency=str(meta.get("currency") or "USD").upper(),
            timestamp=int(meta["regularMarketTime"]) if isinstance(meta.get("regularMarketTime"), int) else None,
            source="yahoo",
        )
