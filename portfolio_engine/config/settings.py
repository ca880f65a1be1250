"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Runtime settings for stdio and HTTP-hosted modes."""

    app_name: str = "portfolio-engine"
    app_version: str = "1.0.0"
    transport_mode: str = "auto"
    http_transport: str = "sse"
    host: str = "0.0.0.0"
    port: int = 8000
    health_path: str = "/health"
    finnhub_api_key: str | None = None
    yahoo_finance_enabled: bool = True
    request_timeout_seconds: float = 15.0
    provider_min_interval_seconds: float = 0.2
    cache_ttl_seconds: int = 60
    cache_ttl_quote_seconds: int = 60
    cache_ttl_candles_seconds: int = 4 * 60 * 60
    cache_ttl_fx_seconds: int = 4 * 60 * 60
    base_currency: str = "USD"
    risk_free_rate: float = 0.045
    sharpe_min_samples: int = 20
    top_holding_threshold: float = 25.0
    top3_threshold: float = 60.0
    country_threshold: float = 70.0
    sector_threshold: float = 40.0
    crypto_threshold: float = 30.0
    top_holding_penalty: float = 15.0
    top3_penalty: float = 15.0
    country_penalty: float = 15.0
    sector_penalty: float = 10.0
    crypto_penalty: float = 10.0
    benchmark_symbols: tuple[str, ...] = ("SPY",)
    default_time_window: str = "1M"


def _as_int(value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_symbols(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None or not value.strip():
        return default
    symbols = tuple(part.strip().upper() for part in value.split(",") if part.strip())
    return symbols or default


def get_settings() -> Settings:
    """Load runtime settings from environment variables."""
    load_dotenv()
    defaults = Settings()

    return Settings(
        transport_mode=os.getenv("TRANSPORT_MODE", "auto").strip().lower(),
        http_transport=os.getenv("HTTP_TRANSPORT", "sse").strip().lower(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int(os.getenv("PORT"), 8000),
        health_path=os.getenv("HEALTH_PATH", "/health"),
        finnhub_api_key=os.getenv("FINNHUB_API_KEY") or None,
        yahoo_finance_enabled=_as_bool(os.getenv("YAHOO_FINANCE_ENABLED"), True),
        request_timeout_seconds=_as_float(os.getenv("REQUEST_TIMEOUT_SECONDS"), 15.0),
        provider_min_interval_seconds=_as_float(os.getenv("PROVIDER_MIN_INTERVAL_SECONDS"), 0.2),
        cache_ttl_seconds=_as_int(os.getenv("CACHE_TTL_SECONDS"), 60),
        cache_ttl_quote_seconds=_as_int(os.getenv("CACHE_TTL_QUOTE_SECONDS"), 60),
        cache_ttl_candles_seconds=_as_int(os.getenv("CACHE_TTL_CANDLES_SECONDS"), defaults.cache_ttl_candles_seconds),
        cache_ttl_fx_seconds=_as_int(os.getenv("CACHE_TTL_FX_SECONDS"), defaults.cache_ttl_fx_seconds),
        base_currency=os.getenv("BASE_CURRENCY", "USD").strip().upper() or "USD",
        risk_free_rate=_as_float(os.getenv("RISK_FREE_RATE"), defaults.risk_free_rate),
        sharpe_min_samples=_as_int(os.getenv("SHARPE_MIN_SAMPLES"), defaults.sharpe_min_samples),
        top_holding_threshold=_as_float(os.getenv("SCORE_TOP_HOLDING_THRESHOLD"), defaults.top_holding_threshold),
        top3_threshold=_as_float(os.getenv("SCORE_TOP3_THRESHOLD"), defaults.top3_threshold),
        country_threshold=_as_float(os.getenv("SCORE_COUNTRY_THRESHOLD"), defaults.country_threshold),
        sector_threshold=_as_float(os.getenv("SCORE_SECTOR_THRESHOLD"), defaults.sector_threshold),
        crypto_threshold=_as_float(os.getenv("SCORE_CRYPTO_THRESHOLD"), defaults.crypto_threshold),
        top_holding_penalty=_as_float(os.getenv("SCORE_TOP_HOLDING_PENALTY"), defaults.top_holding_penalty),
        top3_penalty=_as_float(os.getenv("SCORE_TOP3_PENALTY"), defaults.top3_penalty),
        country_penalty=_as_float(os.getenv("SCORE_COUNTRY_PENALTY"), defaults.country_penalty),
        sector_penalty=_as_float(os.getenv("SCORE_SECTOR_PENALTY"), defaults.sector_penalty),
        crypto_penalty=_as_float(os.getenv("SCORE_CRYPTO_PENALTY"), defaults.crypto_penalty),
        benchmark_symbols=_as_symbols(os.getenv("BENCHMARK_SYMBOLS"), defaults.benchmark_symbols),
        default_time_window=os.getenv("DEFAULT_TIME_WINDOW", "1M").strip().upper() or "1M",
    )
