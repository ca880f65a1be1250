"""Application entrypoint for the portfolio analytics MCP server."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import asdict

from mcp.server.fastmcp import FastMCP
from starlette.responses import JSONResponse, Response

from portfolio_engine.cache.ttl_cache import TTLCache
from portfolio_engine.config.settings import Settings, get_settings
from portfolio_engine.providers.finnhub import FinnhubClient
from portfolio_engine.providers.frankfurter import FrankfurterClient
from portfolio_engine.providers.yahoo_finance import YahooFinanceClient
from portfolio_engine.resources.portfolio_resources import register_portfolio_resources
from portfolio_engine.runtime.monitoring import ServerMetrics
from portfolio_engine.services.base import ServiceContext
from portfolio_engine.tools.registry import ToolServices, build_tool_services, register_all_tools
from portfolio_engine.utils.rate_limit import RateLimiterRegistry

LOGGER = logging.getLogger(__name__)


def resolve_transport_mode(configured_mode: str) -> str:
    if configured_mode in {"stdio", "http"}:
        return configured_mode
    if os.getenv("PORT"):
        return "http"
    return "stdio"


def resolve_http_transport(configured_transport: str) -> str:
    if configured_transport in {"sse", "streamable"}:
        return configured_transport
    return "sse"


def build_service_context(settings: Settings) -> ServiceContext:
    finnhub_client = (
        FinnhubClient(settings.finnhub_api_key, settings.request_timeout_seconds)
        if settings.finnhub_api_key
        else None
    )
    yahoo_client = YahooFinanceClient(settings.request_timeout_seconds) if settings.yahoo_finance_enabled else None
    return ServiceContext(
        providers={
            "yahoo": yahoo_client,
            "finnhub": finnhub_client,
            "frankfurter": FrankfurterClient(timeout_seconds=settings.request_timeout_seconds),
        },
        cache=TTLCache(default_ttl_seconds=settings.cache_ttl_seconds),
        rate_limiter=RateLimiterRegistry(min_interval_seconds=settings.provider_min_interval_seconds),
        cache_ttl_seconds=settings.cache_ttl_seconds,
    )


def build_server(settings: Settings) -> tuple[FastMCP, ToolServices]:
    mcp = FastMCP(name=settings.app_name, host=settings.host, port=settings.port)
    service_ctx = build_service_context(settings)
    services = build_tool_services(service_ctx, settings, metrics=ServerMetrics())
    register_all_tools(mcp, services)
    register_portfolio_resources(mcp, services)

    @mcp.custom_route(settings.health_path, methods=["GET"])
    async def health_check(_: object) -> Response:
        tools = await mcp.list_tools()
        disabled = {
            name: until
            for name in ("yahoo", "finnhub", "frankfurter")
            if (until := services.provider_status.get_disabled_until(name)) is not None
        }
        return JSONResponse(
            {
                "status": "ok",
                "service": settings.app_name,
                "version": settings.app_version,
                "tool_count": len(tools),
                "candle_providers": [name for name in ("yahoo", "finnhub") if service_ctx.get_provider(name)],
                "metrics": asdict(services.metrics.snapshot(disabled)),
            }
        )

    return mcp, services


async def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    mcp, _ = build_server(settings)
    resolved_mode = resolve_transport_mode(settings.transport_mode)
    resolved_http_transport = resolve_http_transport(settings.http_transport)

    if not settings.yahoo_finance_enabled and not settings.finnhub_api_key:
        LOGGER.warning("no candle provider configured: enable YAHOO_FINANCE_ENABLED or set FINNHUB_API_KEY")
    LOGGER.info("starting server: mode=%s http_transport=%s", resolved_mode, resolved_http_transport)
    if resolved_mode == "stdio":
        await mcp.run_stdio_async()
    elif resolved_http_transport == "streamable":
        await mcp.run_streamable_http_async()
    else:
        await mcp.run_sse_async()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
