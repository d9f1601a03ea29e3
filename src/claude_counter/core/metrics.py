"""Conversation metrics: trunk token totals and prompt-cache deadline.

Orchestrates trunk building, content extraction and the token cache. The
cache deadline is a display heuristic (last assistant turn + a fixed window),
not an observation of upstream caching.
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta

from claude_counter.core.conversation import Conversation, build_trunk
from claude_counter.core.extraction import stringify_countable_content
from claude_counter.core.fingerprint import Hasher
from claude_counter.core.token_cache import TokenCache
from claude_counter.core.token_counter import TokenCounter, safe_count

logger = logging.getLogger(__name__)

DEFAULT_CACHE_WINDOW = timedelta(minutes=5)
DEFAULT_MAX_TRACKED_CONVERSATIONS = 8


@dataclass(frozen=True)
class ConversationMetrics:
    trunk_message_count: int = 0
    total_tokens: int = 0
    last_assistant_at: datetime | None = None
    cached_until: datetime | None = None

    def cache_seconds_left(self, now: datetime) -> int:
        """Whole seconds until cached_until, rounded up; 0 once passed or unknown."""
        if self.cached_until is None:
            return 0
        remaining = (self.cached_until - now).total_seconds()
        if remaining <= 0:
            return 0
        return math.ceil(remaining)


def compute_metrics(
    conversation: Conversation,
    cache: TokenCache,
    *,
    counter: TokenCounter | None = None,
    cache_window: timedelta = DEFAULT_CACHE_WINDOW,
) -> ConversationMetrics:
    """Total the countable tokens on the conversation's active trunk.

    Prunes cache to the trunk's ids first. Messages without a uuid have no
    stable cache key and are counted directly with counter.
    """
    trunk = build_trunk(conversation)
    cache.prune_to_known_ids(m.uuid for m in trunk if m.uuid)

    total_tokens = 0
    last_assistant_at: datetime | None = None
    for msg in trunk:
        if msg.is_assistant and msg.created_at is not None:
            if last_assistant_at is None or msg.created_at > last_assistant_at:
                last_assistant_at = msg.created_at

        text = stringify_countable_content(msg)
        if msg.uuid:
            total_tokens += cache.get_tokens(msg.uuid, text)
        else:
            total_tokens += safe_count(counter, text)

    cached_until = last_assistant_at + cache_window if last_assistant_at else None
    return ConversationMetrics(
        trunk_message_count=len(trunk),
        total_tokens=total_tokens,
        last_assistant_at=last_assistant_at,
        cached_until=cached_until,
    )


class ConversationMetricsTracker:
    """Owns one TokenCache per conversation id.

    Caches are partitioned so pruning one conversation's trunk never evicts
    another's entries. Only the most recently used conversations keep a cache.
    """

    def __init__(
        self,
        counter: TokenCounter | None,
        *,
        hasher: Hasher | None = None,
        cache_window: timedelta = DEFAULT_CACHE_WINDOW,
        max_conversations: int = DEFAULT_MAX_TRACKED_CONVERSATIONS,
    ) -> None:
        self._counter = counter
        self._hasher = hasher
        self.cache_window = cache_window
        self._max_conversations = max(1, int(max_conversations))
        self._caches: OrderedDict[str, TokenCache] = OrderedDict()

    def cache_for(self, conversation_id: str) -> TokenCache:
        cache = self._caches.get(conversation_id)
        if cache is None:
            cache = TokenCache(self._counter, self._hasher)
            self._caches[conversation_id] = cache
        self._caches.move_to_end(conversation_id)
        while len(self._caches) > self._max_conversations:
            dropped, _ = self._caches.popitem(last=False)
            logger.debug("dropped token cache for conversation %s", dropped)
        return cache

    def tracked_conversations(self) -> list[str]:
        return list(self._caches)

    def compute(self, conversation_id: str, payload: object) -> ConversationMetrics:
        conversation = payload if isinstance(payload, Conversation) else Conversation.from_payload(payload)
        cache = self.cache_for(conversation_id)
        metrics = compute_metrics(
            conversation,
            cache,
            counter=self._counter,
            cache_window=self.cache_window,
        )
        logger.debug(
            "conversation %s: %d messages, %d tokens (cache hits=%d misses=%d)",
            conversation_id,
            metrics.trunk_message_count,
            metrics.total_tokens,
            cache.hits,
            cache.misses,
        )
        return metrics
