"""Portfolio resource definitions."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from portfolio_engine.portfolio.portfolio_service import CURRENT_RESOURCE_URI
from portfolio_engine.runtime.response import convert_data

if TYPE_CHECKING:
    from portfolio_engine.tools.registry import ToolServices


def register_portfolio_resources(mcp: FastMCP, services: ToolServices) -> None:
    @mcp.resource(
        CURRENT_RESOURCE_URI,
        name="current-portfolio",
        title="Current Portfolio Snapshot",
        description="Latest successful analysis or benchmark payload.",
        mime_type="application/json",
    )
    def current_portfolio_resource() -> str:
        snapshot = services.portfolio.get_current_resource_snapshot()
        if not snapshot:
            raise ValueError("Portfolio resource not found. Analyze a portfolio file first.")
        return json.dumps(convert_data(snapshot), ensure_ascii=True)
