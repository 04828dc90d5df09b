"""Timestamp helpers for Coding and GitHub API records."""

from datetime import datetime, timezone
from typing import Any, Optional

# Epoch values above this are milliseconds
MILLISECOND_THRESHOLD = 10 ** 10


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalize an API timestamp to an aware ``datetime``.

    Accepts epoch seconds, epoch milliseconds, numeric strings, ISO-8601
    strings and ``datetime`` objects. Returns None for empty or unparseable
    input.
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, bool):
        return None

    if isinstance(value, str):
        text = value.strip()
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
            except ValueError:
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        if value <= 0:
            return None
        if value > MILLISECOND_THRESHOLD:
            value = value / 1000
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    return None


def format_date(value: Any) -> str:
    """Format a timestamp as ``YYYY-MM-DD``, or ``Unknown``."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return 'Unknown'
    return parsed.strftime('%Y-%m-%d')
