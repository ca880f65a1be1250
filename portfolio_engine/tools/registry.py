"""Tool service wiring and registration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from mcp.server.fastmcp import FastMCP

from portfolio_engine.cache.ttl_cache import CandleCache
from portfolio_engine.config.settings import Settings
from portfolio_engine.portfolio.portfolio_service import PortfolioService
from portfolio_engine.runtime.monitoring import ServerMetrics
from portfolio_engine.services.base import ServiceContext
from portfolio_engine.services.benchmark_service import BenchmarkService
from portfolio_engine.services.fallback_manager import FallbackManager
from portfolio_engine.services.market_service import MarketService
from portfolio_engine.services.provider_status import ProviderStatus
from portfolio_engine.tools.analytics_tools import register_analytics_tools


@dataclass
class ToolServices:
    portfolio: PortfolioService
    benchmark: BenchmarkService
    market: MarketService
    provider_status: ProviderStatus
    metrics: ServerMetrics


def build_tool_services(
    ctx: ServiceContext,
    settings: Settings,
    resource_updated_callback: Callable[[str], None] | None = None,
    metrics: ServerMetrics | None = None,
) -> ToolServices:
    provider_status = ProviderStatus()
    fallback = FallbackManager(ctx, provider_status)
    market = MarketService(
        ctx,
        fallback,
        quote_ttl_seconds=settings.cache_ttl_quote_seconds,
        fx_ttl_seconds=settings.cache_ttl_fx_seconds,
    )
    benchmark = BenchmarkService(ctx, CandleCache(ttl_seconds=settings.cache_ttl_candles_seconds), fallback)
    portfolio = PortfolioService(
        ctx,
        settings=settings,
        prices=market,
        fx_rates=market,
        benchmark_service=benchmark,
        resource_updated_callback=resource_updated_callback,
    )
    return ToolServices(
        portfolio=portfolio,
        benchmark=benchmark,
        market=market,
        provider_status=provider_status,
        metrics=metrics or ServerMetrics(),
    )


def register_all_tools(mcp: FastMCP, services: ToolServices) -> None:
    register_analytics_tools(mcp, services)
