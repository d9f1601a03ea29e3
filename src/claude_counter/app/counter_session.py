"""Refresh orchestration: one org, one active conversation.

Wires the API client, the metrics tracker, usage state and the rollover
scheduler. Guards live here, not in the core: a usage refresh that arrives
while one is in flight is dropped, and so is a metrics computation for a
conversation that is already being computed.

// [LAW:single-enforcer] Busy-flag short-circuits are enforced in this module only.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol

from claude_counter.core.metrics import ConversationMetrics, ConversationMetricsTracker
from claude_counter.core.usage import (
    RolloverScheduler,
    UsageSnapshot,
    UsageState,
    normalize_snapshot_shape,
    normalize_stream_shape,
)
from claude_counter.io.claude_api import ClaudeApiError

logger = logging.getLogger(__name__)

SAFETY_REFRESH_AFTER = timedelta(hours=1)
SAFETY_RETRY_INTERVAL = timedelta(minutes=1)


class PayloadSource(Protocol):
    def fetch_usage(self, org_id: str) -> object: ...

    def fetch_conversation(self, org_id: str, conversation_id: str) -> object: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CounterSession:
    def __init__(
        self,
        source: PayloadSource | None,
        tracker: ConversationMetricsTracker,
        *,
        org_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._source = source
        self._tracker = tracker
        self._clock = clock
        self.org_id = org_id
        self.conversation_id: str | None = None
        self.metrics: ConversationMetrics | None = None
        self.pending_cache = False
        self.usage = UsageState()
        self.scheduler = RolloverScheduler()
        self._usage_lock = threading.Lock()
        self._computing_lock = threading.Lock()
        self._computing: set[str] = set()
        self._last_safety_attempt_at: datetime | None = None

    @property
    def snapshot(self) -> UsageSnapshot | None:
        return self.usage.snapshot

    def set_conversation(self, conversation_id: str | None) -> None:
        if conversation_id == self.conversation_id:
            return
        self.conversation_id = conversation_id
        self.metrics = None
        self.pending_cache = False

    # ─── Usage ────────────────────────────────────────────────────────────

    def refresh_usage(self) -> bool:
        """Poll usage once. Returns True when a snapshot was applied."""
        if self._source is None or not self.org_id:
            return False
        if not self._usage_lock.acquire(blocking=False):
            logger.debug("usage refresh already in flight; dropped")
            return False
        try:
            raw = self._source.fetch_usage(self.org_id)
        except ClaudeApiError as exc:
            logger.warning("usage refresh failed: %s", exc)
            return False
        finally:
            self._usage_lock.release()
        return self.usage.apply(normalize_snapshot_shape(raw), self._clock())

    def handle_message_limit(self, raw: object) -> bool:
        """Apply a streamed message_limit payload."""
        return self.usage.apply(normalize_stream_shape(raw), self._clock())

    # ─── Conversation ─────────────────────────────────────────────────────

    def handle_generation_start(self) -> bool:
        """Mark the cache countdown pending until the next conversation payload lands."""
        if not self.conversation_id:
            return False
        self.pending_cache = True
        return True

    def refresh_conversation(self) -> ConversationMetrics | None:
        if not self.conversation_id:
            self.metrics = None
            self.pending_cache = False
            return None
        if self._source is None or not self.org_id:
            return self.metrics
        conversation_id = self.conversation_id
        try:
            payload = self._source.fetch_conversation(self.org_id, conversation_id)
        except ClaudeApiError as exc:
            logger.warning("conversation refresh failed: %s", exc)
            return self.metrics
        return self.handle_conversation_payload(conversation_id, payload)

    def handle_conversation_payload(
        self, conversation_id: str, payload: object
    ) -> ConversationMetrics | None:
        """Compute metrics for a payload of the active conversation.

        Payloads for other conversations are ignored, as are payloads that
        arrive while the same conversation is still being computed.
        """
        if not conversation_id or conversation_id != self.conversation_id:
            return self.metrics
        if payload is None:
            return self.metrics
        with self._computing_lock:
            if conversation_id in self._computing:
                logger.debug("metrics for %s already computing; dropped", conversation_id)
                return self.metrics
            self._computing.add(conversation_id)
        try:
            metrics = self._tracker.compute(conversation_id, payload)
        finally:
            with self._computing_lock:
                self._computing.discard(conversation_id)
        # The active conversation may have switched while computing.
        if conversation_id == self.conversation_id:
            self.metrics = metrics
            self.pending_cache = False
        return metrics

    # ─── Tick ─────────────────────────────────────────────────────────────

    def _usage_is_stale(self, now: datetime) -> bool:
        def _older(ts: datetime | None) -> bool:
            return ts is None or now - ts > SAFETY_REFRESH_AFTER

        if not (_older(self.usage.last_stream_at) and _older(self.usage.last_update_at)):
            return False
        last_try = self._last_safety_attempt_at
        return last_try is None or now - last_try >= SAFETY_RETRY_INTERVAL

    def tick(self, now: datetime | None = None) -> list[str]:
        """Periodic bookkeeping; returns the windows that rolled over this tick.

        Refreshes usage once when any window's reset instant has passed (each
        reset instant is acted on once), or when nothing has updated usage for
        an hour.
        """
        now = now or self._clock()
        rolled = self.scheduler.due(self.usage.snapshot, now)
        if rolled:
            logger.info("usage window rollover: %s", ", ".join(rolled))
            self.refresh_usage()
        elif self._usage_is_stale(now):
            self._last_safety_attempt_at = now
            self.refresh_usage()
        return rolled
