"""Timestamp helpers shared by the analytics and fetch layers."""

from __future__ import annotations

from datetime import datetime, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime, or None when unparsable.

    Naive values are taken to be UTC; a bare ``YYYY-MM-DD`` date means midnight UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_unix(value: datetime) -> int:
    return int(value.timestamp())
