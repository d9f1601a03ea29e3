"""Usage-window normalization and rollover bookkeeping.

Two upstream shapes describe the same quota windows:

- the polled `/usage` snapshot: `five_hour` / `seven_day` objects with
  utilization already in percent and `resets_at` as an ISO-8601 string;
- the streamed `message_limit` event: a `windows` map keyed `5h` / `7d` with
  utilization as a 0-1 ratio and `resets_at` as epoch seconds.

Both converge on UsageSnapshot. A normalizer returns None when neither window
parses; callers then keep their previous snapshot.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from numbers import Real

from claude_counter.core.conversation import parse_timestamp

FIVE_HOUR_WINDOW_HOURS = 5
SEVEN_DAY_WINDOW_HOURS = 24 * 7

WINDOW_FIVE_HOUR = "five_hour"
WINDOW_SEVEN_DAY = "seven_day"
WINDOW_KEYS: tuple[str, ...] = (WINDOW_FIVE_HOUR, WINDOW_SEVEN_DAY)

# [LAW:one-source-of-truth] Stream window codes → canonical window key + length.
_STREAM_WINDOW_CODES: dict[str, tuple[str, int]] = {
    "5h": (WINDOW_FIVE_HOUR, FIVE_HOUR_WINDOW_HOURS),
    "7d": (WINDOW_SEVEN_DAY, SEVEN_DAY_WINDOW_HOURS),
}
_SNAPSHOT_WINDOW_HOURS: dict[str, int] = {
    WINDOW_FIVE_HOUR: FIVE_HOUR_WINDOW_HOURS,
    WINDOW_SEVEN_DAY: SEVEN_DAY_WINDOW_HOURS,
}


class UsageSource(enum.Enum):
    POLL = "poll"
    STREAM = "stream"


@dataclass(frozen=True)
class UsageWindow:
    utilization: float
    resets_at: datetime | None
    window_hours: int


@dataclass(frozen=True)
class UsageSnapshot:
    five_hour: UsageWindow | None = None
    seven_day: UsageWindow | None = None
    source: UsageSource = UsageSource.POLL

    def window(self, key: str) -> UsageWindow | None:
        return getattr(self, key) if key in WINDOW_KEYS else None

    def reset_instants(self) -> dict[str, datetime | None]:
        instants: dict[str, datetime | None] = {}
        for key in WINDOW_KEYS:
            window = self.window(key)
            instants[key] = window.resets_at if window is not None else None
        return instants


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def _finite_number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _epoch_to_datetime(value: object) -> datetime | None:
    seconds = _finite_number(value)
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _snapshot_window(raw: object, hours: int) -> UsageWindow | None:
    if not isinstance(raw, dict):
        return None
    utilization = _finite_number(raw.get("utilization"))
    if utilization is None:
        return None
    return UsageWindow(
        utilization=clamp_percent(utilization),
        resets_at=parse_timestamp(raw.get("resets_at")),
        window_hours=hours,
    )


def _stream_window(raw: object, hours: int) -> UsageWindow | None:
    if not isinstance(raw, dict):
        return None
    ratio = _finite_number(raw.get("utilization"))
    if ratio is None:
        return None
    return UsageWindow(
        utilization=clamp_percent(ratio * 100),
        resets_at=_epoch_to_datetime(raw.get("resets_at")),
        window_hours=hours,
    )


def normalize_snapshot_shape(raw: object) -> UsageSnapshot | None:
    """Normalize a polled `/usage` response."""
    if not isinstance(raw, dict):
        return None
    windows = {
        key: _snapshot_window(raw.get(key), hours)
        for key, hours in _SNAPSHOT_WINDOW_HOURS.items()
    }
    if not any(windows.values()):
        return None
    return UsageSnapshot(source=UsageSource.POLL, **windows)


def normalize_stream_shape(raw: object) -> UsageSnapshot | None:
    """Normalize a streamed `message_limit` payload."""
    if not isinstance(raw, dict) or not isinstance(raw.get("windows"), dict):
        return None
    windows_raw = raw["windows"]
    windows = {
        key: _stream_window(windows_raw.get(code), hours)
        for code, (key, hours) in _STREAM_WINDOW_CODES.items()
    }
    if not any(windows.values()):
        return None
    return UsageSnapshot(source=UsageSource.STREAM, **windows)


@dataclass
class UsageState:
    """Latest usage snapshot, last write wins across poll and stream sources."""

    snapshot: UsageSnapshot | None = None
    last_update_at: datetime | None = None
    last_stream_at: datetime | None = None

    def apply(self, snapshot: UsageSnapshot | None, now: datetime) -> bool:
        """Store snapshot; None is "no usable update" and leaves state untouched."""
        if snapshot is None:
            return False
        self.snapshot = snapshot
        self.last_update_at = now
        if snapshot.source is UsageSource.STREAM:
            self.last_stream_at = now
        return True


@dataclass
class RolloverScheduler:
    """Reports each distinct window reset instant at most once after it passes."""

    handled: dict[str, datetime | None] = field(
        default_factory=lambda: {key: None for key in WINDOW_KEYS}
    )

    def due(self, snapshot: UsageSnapshot | None, now: datetime) -> list[str]:
        """Return the window keys whose reset instant has passed and was not yet acted on."""
        if snapshot is None:
            return []
        rolled: list[str] = []
        for key, resets_at in snapshot.reset_instants().items():
            if resets_at is None or now < resets_at:
                continue
            if self.handled.get(key) == resets_at:
                continue
            self.handled[key] = resets_at
            rolled.append(key)
        return rolled
