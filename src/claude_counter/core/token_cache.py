"""Per-message token count memoization keyed by content fingerprint.

// [LAW:single-enforcer] Token counter calls for cached messages happen only in get_tokens().
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from claude_counter.core.fingerprint import Hasher, fingerprint
from claude_counter.core.token_counter import TokenCounter, safe_count


@dataclass(frozen=True)
class TokenCacheEntry:
    fingerprint: str
    tokens: int


class TokenCache:
    """Maps message uuid to (fingerprint, tokens).

    An entry is reused only while its fingerprint matches the message's
    current countable text. Pruning bounds the cache to the ids on the
    visible trunk.
    """

    def __init__(self, counter: TokenCounter | None, hasher: Hasher | None = None) -> None:
        self._counter = counter
        self._hasher = hasher
        self._by_message_id: dict[str, TokenCacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._by_message_id)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._by_message_id

    def get(self, message_id: str) -> TokenCacheEntry | None:
        return self._by_message_id.get(message_id)

    def get_tokens(self, message_id: str, text: str) -> int:
        fp = fingerprint(text, self._hasher)
        cached = self._by_message_id.get(message_id)
        if cached is not None and cached.fingerprint == fp:
            self.hits += 1
            return cached.tokens

        self.misses += 1
        tokens = safe_count(self._counter, text)
        self._by_message_id[message_id] = TokenCacheEntry(fingerprint=fp, tokens=tokens)
        return tokens

    def prune_to_known_ids(self, keep_ids: Iterable[str]) -> int:
        """Drop every entry whose id is not in keep_ids. Returns the number dropped."""
        keep = set(keep_ids)
        stale = [mid for mid in self._by_message_id if mid not in keep]
        for mid in stale:
            del self._by_message_id[mid]
        return len(stale)
