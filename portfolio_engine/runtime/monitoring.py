"""Per-tool call counters and structured tool events."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field

LOGGER = logging.getLogger(__name__)


@dataclass
class ToolStats:
    calls: int = 0
    errors: int = 0
    total_latency_ms: float = 0.0
    slowest_ms: float = 0.0


@dataclass
class HealthSnapshot:
    uptime_seconds: float
    total_requests: int
    error_rate: float
    avg_latency_ms: float
    tools: dict[str, ToolStats] = field(default_factory=dict)
    disabled_providers: dict[str, float] = field(default_factory=dict)


class ServerMetrics:
    """Aggregates tool latency and failures for the health route."""

    def __init__(self, started_at: float | None = None) -> None:
        self.started_at = started_at or time.time()
        self._lock = threading.Lock()
        self._tools: dict[str, ToolStats] = {}

    def record(self, tool: str, latency_ms: float, success: bool) -> None:
        latency_ms = max(0.0, latency_ms)
        with self._lock:
            stats = self._tools.setdefault(tool, ToolStats())
            stats.calls += 1
            stats.errors += 0 if success else 1
            stats.total_latency_ms += latency_ms
            stats.slowest_ms = max(stats.slowest_ms, latency_ms)

    def tool_stats(self, tool: str) -> ToolStats:
        with self._lock:
            stats = self._tools.get(tool, ToolStats())
            return ToolStats(stats.calls, stats.errors, stats.total_latency_ms, stats.slowest_ms)

    def snapshot(self, disabled_providers: dict[str, float] | None = None) -> HealthSnapshot:
        with self._lock:
            tools = {
                name: ToolStats(stats.calls, stats.errors, stats.total_latency_ms, stats.slowest_ms)
                for name, stats in self._tools.items()
            }
        calls = sum(stats.calls for stats in tools.values())
        errors = sum(stats.errors for stats in tools.values())
        latency = sum(stats.total_latency_ms for stats in tools.values())
        return HealthSnapshot(
            uptime_seconds=max(0.0, time.time() - self.started_at),
            total_requests=calls,
            error_rate=(errors / calls) if calls else 0.0,
            avg_latency_ms=(latency / calls) if calls else 0.0,
            tools=tools,
            disabled_providers=disabled_providers or {},
        )


def log_tool_event(
    tool: str,
    latency_ms: float,
    success: bool,
    subject: str | None = None,
    warning: str | None = None,
) -> dict[str, object]:
    """One JSON line per tool call, sent to the log since stdout carries the stdio transport."""
    payload: dict[str, object] = {
        "tool": tool,
        "subject": subject,
        "latency_ms": round(latency_ms, 3),
        "success": success,
        "timestamp": int(time.time()),
    }
    if warning:
        payload["warning"] = warning
    LOGGER.info(json.dumps(payload, ensure_ascii=True))
    return payload
