# ABOUTME: Display helpers for durations and content identifiers.
# ABOUTME: Raw ids stay the grouping key; these only shape what dashboards show.

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Union

from .settings import SECONDS_PER_DAY, SECONDS_PER_HOUR, UNKNOWN_CONTENT_ID

NOT_AVAILABLE = "N/A"


def format_duration(duration: Optional[Union[timedelta, float, int]]) -> str:
    """
    Render a duration as minutes below one hour, hours below one day, else days.

    Accepts a ``timedelta`` or a number of seconds.
    """

    if duration is None:
        return NOT_AVAILABLE
    seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
    seconds = max(0.0, seconds)

    if seconds < SECONDS_PER_HOUR:
        return f"{round(seconds / 60)}m"
    if seconds < SECONDS_PER_DAY:
        return f"{seconds / SECONDS_PER_HOUR:.1f}h"
    return f"{seconds / SECONDS_PER_DAY:.1f}d"


def humanize_content_id(content_id: str) -> str:
    if content_id == UNKNOWN_CONTENT_ID:
        return "Unknown Content"
    words = content_id.replace("_", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def format_trend(current: int, previous: int) -> str:
    """Signed percentage change, e.g. ``+12.5%``."""

    if previous == 0:
        return "+100%" if current > 0 else "0%"
    change = (current - previous) / previous * 100
    sign = "+" if change >= 0 else ""
    return f"{sign}{round(change, 1)}%"
