"""Portfolio analytics MCP tools."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any, Callable

from mcp.server.fastmcp import FastMCP

from portfolio_engine.runtime.monitoring import log_tool_event
from portfolio_engine.runtime.response import error_response, success_response

if TYPE_CHECKING:
    from portfolio_engine.tools.registry import ToolServices

SLOW_TOOL_MS = 2000


def run_tool(services: ToolServices, tool: str, subject: str | None, call: Callable[[], dict[str, Any]]) -> str:
    """Run a tool body, record its latency and shape the JSON reply."""
    started = time.perf_counter()
    try:
        payload = call()
    except ValueError as error:
        latency_ms = (time.perf_counter() - started) * 1000.0
        log_tool_event(tool, latency_ms, success=False, subject=subject)
        services.metrics.record(tool, latency_ms, success=False)
        return error_response("invalid_argument", str(error))
    latency_ms = (time.perf_counter() - started) * 1000.0
    success = bool(payload.get("ok"))
    log_tool_event(
        tool,
        latency_ms,
        success=success,
        subject=subject,
        warning="slow_response" if latency_ms > SLOW_TOOL_MS else None,
    )
    services.metrics.record(tool, latency_ms, success=success)
    return success_response(payload)


def parse_holdings_json(holdings_json: str) -> list[dict[str, Any]]:
    try:
        data = json.loads(holdings_json)
    except json.JSONDecodeError as error:
        raise ValueError(f"holdings_json is not valid JSON: {error.msg}") from error
    if isinstance(data, dict):
        data = data.get("holdings")
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("holdings_json must be a list of holding objects.")
    return data


def register_analytics_tools(mcp: FastMCP, services: ToolServices) -> None:
    @mcp.tool(description="Validate a portfolio JSON export (holdings, transactions, value snapshots).")
    def validate_portfolio_file(file_path: str) -> str:
        return run_tool(services, "validate_portfolio_file", file_path, lambda: services.portfolio.validate_file(file_path))

    @mcp.tool(
        description=(
            "Analyze a portfolio JSON export: concentration, exposure, diversification score and insights, "
            "time-weighted return, Sharpe ratio and dividend income."
        )
    )
    def analyze_portfolio_file(file_path: str) -> str:
        return run_tool(services, "analyze_portfolio_file", file_path, lambda: services.portfolio.analyze_file(file_path))

    @mcp.tool(
        description=(
            "Compare a portfolio's value history against benchmark tickers as % returns. "
            "window is one of 7D, 1M, 3M, ALL."
        )
    )
    def portfolio_benchmark_comparison(file_path: str, symbols: list[str] | None = None, window: str = "1M") -> str:
        return run_tool(
            services,
            "portfolio_benchmark_comparison",
            file_path,
            lambda: services.portfolio.benchmark_file(file_path, symbols=symbols, window=window),
        )

    @mcp.tool(
        description=(
            "Score inline holdings for diversification. holdings_json is a JSON list of "
            '{"name", "asset_class", "value", "country", "sector"} objects.'
        )
    )
    def score_holdings(holdings_json: str) -> str:
        return run_tool(
            services,
            "score_holdings",
            None,
            lambda: services.portfolio.score_holdings(parse_holdings_json(holdings_json)),
        )
