"""Millisecond timestamps and their display form."""

import time
from datetime import datetime
from typing import Optional

MINUTE_MS = 60_000
HOUR_MS = 3_600_000
DAY_MS = 86_400_000
WEEK_MS = 7 * DAY_MS


def now_ms() -> int:
    return int(time.time() * 1000)


def format_timestamp(timestamp: int, now: Optional[int] = None) -> str:
    """
    Format a capture time relative to now, e.g. "5m ago" or "Mar 03".

    Args:
        timestamp: Epoch milliseconds.
        now: Reference time in epoch milliseconds, defaults to the current time.
    """
    if now is None:
        now = now_ms()
    diff = now - timestamp
    if diff < MINUTE_MS:
        return "Just now"
    if diff < HOUR_MS:
        return f"{diff // MINUTE_MS}m ago"
    if diff < DAY_MS:
        return f"{diff // HOUR_MS}h ago"
    if diff < WEEK_MS:
        return f"{diff // DAY_MS}d ago"
    return datetime.fromtimestamp(timestamp / 1000).strftime("%b %d")
