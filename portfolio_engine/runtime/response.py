"""Response shaping helpers for MCP tools."""

from __future__ import annotations

import json
import math
import time
from dataclasses import asdict, is_dataclass
from typing import Any

DISCLAIMER = "Analytics are for informational purposes only and do not constitute financial advice."


def convert_data(data: Any) -> Any:
    """Dataclasses to dicts, non-finite floats to None, recursively."""
    if is_dataclass(data) and not isinstance(data, type):
        return convert_data(asdict(data))
    if isinstance(data, (list, tuple)):
        return [convert_data(item) for item in data]
    if isinstance(data, dict):
        return {key: convert_data(value) for key, value in data.items()}
    if isinstance(data, float) and not math.isfinite(data):
        return None
    return data


def success_response(payload: dict[str, Any]) -> str:
    body = convert_data(payload)
    if body.get("ok"):
        body.setdefault("disclaimer", DISCLAIMER)
    return json.dumps(body, ensure_ascii=True)


def error_response(code: str, message: str) -> str:
    return json.dumps(
        {
            "ok": False,
            "error": {"type": code, "message": message},
            "timestamp": int(time.time()),
        },
        ensure_ascii=True,
    )
