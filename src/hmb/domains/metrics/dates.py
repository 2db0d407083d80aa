"""Timestamp parsing and the canonical stored timestamp format."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

# Health Auto Export: '2024-01-01 08:30:00 -0500'
_EXPORT_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def parse_date(value: Any) -> datetime | None:
    """Parse an incoming timestamp, returning an aware UTC datetime or None.

    Accepts ISO 8601 (``Z`` or offset, date-only included), the Health Auto
    Export format and ``datetime`` objects. Naive values are taken as UTC.
    Anything else, including empty strings and instants that fall outside
    the representable range once shifted to UTC, yields None.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            dt = datetime.strptime(text, _EXPORT_FORMAT)
        except (ValueError, OverflowError):
            try:
                dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except (ValueError, OverflowError):
                return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except OverflowError:
        return None


def format_date(dt: datetime) -> str:
    """Render a datetime in the fixed-width stored form ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    dt = dt.astimezone(timezone.utc)
    # strftime does not zero-pad years before 1000 on every platform
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}T"
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}.{dt.microsecond // 1000:03d}Z"
    )


def normalize_date(value: Any) -> str | None:
    """Parse and re-render a timestamp in stored form; None if unparseable."""
    dt = parse_date(value)
    return format_date(dt) if dt is not None else None
