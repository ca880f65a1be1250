import asyncio
import json
from types import SimpleNamespace

import pytest
from mcp.server.fastmcp import FastMCP

from portfolio_engine.config.settings import Settings
from portfolio_engine.main import build_server
from portfolio_engine.portfolio.models import ExposureSlice
from portfolio_engine.resources.portfolio_resources import register_portfolio_resources
from portfolio_engine.runtime.monitoring import ServerMetrics, log_tool_event
from portfolio_engine.runtime.response import DISCLAIMER, convert_data
from portfolio_engine.tools.analytics_tools import parse_holdings_json, run_tool


def _services() -> SimpleNamespace:
    return SimpleNamespace(metrics=ServerMetrics())


def test_build_server_registers_portfolio_tools() -> None:
    mcp, services = build_server(Settings(finnhub_api_key=None))
    tools = asyncio.run(mcp.list_tools())

    assert {tool.name for tool in tools} == {
        "validate_portfolio_file",
        "analyze_portfolio_file",
        "portfolio_benchmark_comparison",
        "score_holdings",
    }
    assert services.portfolio.benchmark_service is services.benchmark


def test_run_tool_success_adds_disclaimer_and_records_metrics() -> None:
    services = _services()
    body = json.loads(run_tool(services, "score_holdings", None, lambda: {"ok": True, "score": float("nan")}))

    assert body["disclaimer"] == DISCLAIMER
    assert body["score"] is None
    stats = services.metrics.tool_stats("score_holdings")
    assert (stats.calls, stats.errors) == (1, 0)


def test_run_tool_value_error_becomes_error_payload() -> None:
    services = _services()

    def broken() -> dict:
        raise ValueError("holdings_json must be a list of holding objects.")

    body = json.loads(run_tool(services, "score_holdings", None, broken))

    assert body["ok"] is False
    assert body["error"]["type"] == "invalid_argument"
    assert "disclaimer" not in body
    assert services.metrics.tool_stats("score_holdings").errors == 1


def test_run_tool_validation_failure_is_counted_as_error() -> None:
    services = _services()
    payload = {"ok": False, "error": {"type": "validation_error", "errors": []}}
    body = json.loads(run_tool(services, "validate_portfolio_file", "x.json", lambda: payload))

    assert body == payload
    assert services.metrics.snapshot().error_rate == 1.0


def test_parse_holdings_json_accepts_list_or_wrapper() -> None:
    rows = [{"name": "A", "asset_class": "stock", "value": 1}]
    assert parse_holdings_json(json.dumps(rows)) == rows
    assert parse_holdings_json(json.dumps({"holdings": rows})) == rows
    with pytest.raises(ValueError):
        parse_holdings_json("{oops")
    with pytest.raises(ValueError):
        parse_holdings_json(json.dumps([1, 2]))


def test_current_portfolio_resource_serves_latest_snapshot() -> None:
    snapshot = {"uri": "portfolio://current", "report_type": "analysis", "source": "p.json", "payload": {"ok": True}}
    portfolio = SimpleNamespace(get_current_resource_snapshot=lambda: snapshot)
    mcp = FastMCP(name="test-resources")
    register_portfolio_resources(mcp, SimpleNamespace(portfolio=portfolio))

    contents = list(asyncio.run(mcp.read_resource("portfolio://current")))

    assert json.loads(contents[0].content) == snapshot


def test_log_tool_event_payload() -> None:
    payload = log_tool_event("analyze_portfolio_file", 12.3456, success=True, subject="p.json", warning="slow_response")
    assert payload["latency_ms"] == 12.346
    assert payload["warning"] == "slow_response"


def test_convert_data_handles_dataclasses_and_infinities() -> None:
    data = {"slice": ExposureSlice(label="US", percent=float("inf"), type="country"), "values": (1.0, float("nan"))}
    assert convert_data(data) == {"slice": {"label": "US", "percent": None, "type": "country"}, "values": [1.0, None]}
