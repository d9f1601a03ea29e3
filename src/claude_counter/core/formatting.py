"""Countdown and percentage formatting shared by renderers.

Pure computation module with no I/O. `now` is always passed in.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from claude_counter.core.usage import UsageWindow

WARN_PERCENT = 90.0
FULL_PERCENT = 99.5


def format_seconds(total_seconds: int) -> str:
    """Render a cache countdown as m:ss."""
    total = max(0, int(total_seconds))
    minutes, seconds = divmod(total, 60)
    return f"{minutes}:{seconds:02d}"


def format_reset_countdown(resets_at: datetime, now: datetime) -> str:
    """Render time until a window reset: 0m, 42m, 3h 5m, 2d 4h."""
    diff = (resets_at - now).total_seconds()
    if diff <= 0:
        return "0m"

    total_minutes = math.floor(diff / 60 + 0.5)
    if total_minutes < 60:
        return f"{total_minutes}m"

    hours, minutes = divmod(total_minutes, 60)
    if hours < 24:
        return f"{hours}h {minutes}m"

    days, rem_hours = divmod(hours, 24)
    return f"{days}d {rem_hours}h"


def window_elapsed_fraction(window: UsageWindow, now: datetime) -> float | None:
    """Position of now within the window ending at resets_at, in [0, 1]."""
    if window.resets_at is None:
        return None
    length = timedelta(hours=window.window_hours)
    if length.total_seconds() <= 0:
        return 0.0
    started_at = window.resets_at - length
    elapsed = (now - started_at) / length
    return max(0.0, min(1.0, elapsed))


def display_percent(utilization: float) -> float:
    return math.floor(utilization * 10 + 0.5) / 10


def severity(percent: float) -> str:
    if percent >= FULL_PERCENT:
        return "full"
    if percent >= WARN_PERCENT:
        return "warn"
    return "ok"


def context_percent(total_tokens: int, limit_tokens: int) -> float:
    if limit_tokens <= 0:
        return 100.0
    return max(0.0, min(100.0, total_tokens / limit_tokens * 100))


def format_token_count(total_tokens: int) -> str:
    return f"~{total_tokens:,} tokens"
