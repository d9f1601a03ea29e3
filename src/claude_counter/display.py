"""Rich renderers for conversation metrics and usage windows.

Pure rendering: takes already-computed metrics/snapshots plus `now` and
returns rich Text. No state, no I/O.
"""

from __future__ import annotations

from datetime import datetime

from rich.console import Group
from rich.text import Text

from claude_counter.core.formatting import (
    context_percent,
    display_percent,
    format_reset_countdown,
    format_seconds,
    format_token_count,
    severity,
    window_elapsed_fraction,
)
from claude_counter.core.metrics import ConversationMetrics
from claude_counter.core.usage import UsageSnapshot, UsageWindow

BAR_WIDTH = 20
MINI_BAR_WIDTH = 10

# [LAW:dataflow-not-control-flow] Severity → bar color
_SEVERITY_STYLES = {
    "ok": "cyan",
    "warn": "yellow",
    "full": "red",
}


def _bar(percent: float, width: int, *, marker: float | None = None) -> Text:
    """Block bar filled to percent, with an optional time-position marker (0-1)."""
    filled = round(max(0.0, min(100.0, percent)) / 100 * width)
    marker_idx = None
    if marker is not None:
        marker_idx = min(width - 1, int(marker * width))
    style = _SEVERITY_STYLES[severity(percent)]
    bar = Text()
    for idx in range(width):
        if idx == marker_idx:
            bar.append("│", style="bold white")
        elif idx < filled:
            bar.append("█", style=style)
        else:
            bar.append("░", style="dim")
    return bar


def render_header(
    metrics: ConversationMetrics | None,
    now: datetime,
    *,
    context_limit_tokens: int,
    pending_cache: bool = False,
) -> Text:
    """`~N tokens [bar]  cached for m:ss` for the active conversation."""
    result = Text()
    if metrics is None:
        return result

    pct = context_percent(metrics.total_tokens, context_limit_tokens)
    # Past the limit the conversation has been compacted and the count is stale.
    if pct >= 99.5:
        result.append(format_token_count(metrics.total_tokens), style="dim")
    else:
        result.append(format_token_count(metrics.total_tokens), style="bold")
        result.append("  ")
        result.append_text(_bar(pct, MINI_BAR_WIDTH))

    seconds_left = metrics.cache_seconds_left(now)
    if seconds_left > 0:
        result.append("  cached for ")
        # Unemphasized while a generation is in flight; its reply restarts the window.
        result.append(format_seconds(seconds_left), style="" if pending_cache else "bold")
    return result


def _render_window(label: str, window: UsageWindow, now: datetime) -> Text:
    result = Text()
    result.append(f"{label}: {display_percent(window.utilization)}%")
    if window.resets_at is not None:
        result.append(f" · resets in {format_reset_countdown(window.resets_at, now)}", style="dim")
    result.append("  ")
    result.append_text(
        _bar(window.utilization, BAR_WIDTH, marker=window_elapsed_fraction(window, now))
    )
    return result


def render_usage(snapshot: UsageSnapshot | None, now: datetime) -> Text:
    """`Session: P% · resets in X [bar]   Weekly: ...` line."""
    result = Text()
    if snapshot is None:
        return result
    groups = []
    if snapshot.five_hour is not None:
        groups.append(_render_window("Session", snapshot.five_hour, now))
    if snapshot.seven_day is not None:
        groups.append(_render_window("Weekly", snapshot.seven_day, now))
    for idx, group in enumerate(groups):
        if idx:
            result.append("   ")
        result.append_text(group)
    return result


def render_status(
    metrics: ConversationMetrics | None,
    snapshot: UsageSnapshot | None,
    now: datetime,
    *,
    context_limit_tokens: int,
    pending_cache: bool = False,
) -> Group:
    return Group(
        render_header(
            metrics,
            now,
            context_limit_tokens=context_limit_tokens,
            pending_cache=pending_cache,
        ),
        render_usage(snapshot, now),
    )
