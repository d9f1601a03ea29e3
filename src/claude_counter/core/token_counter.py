"""Token counting using tiktoken local tokenizer.

Uses the o200k_base encoding by default, which approximates Claude's
tokenizer closely enough for a context-length display. An unavailable
tokenizer (missing package data, offline first run) is a valid outcome:
counts degrade to 0 instead of raising.
"""

from __future__ import annotations

import logging
from typing import Protocol

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "o200k_base"


class TokenCounter(Protocol):
    def count(self, text: str) -> int: ...


class TiktokenCounter:
    """Lazily loads a tiktoken encoding and counts tokens with it."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding_name
        self._encoding = None
        self._unavailable = False

    def _get_encoding(self):
        if self._encoding is None and not self._unavailable:
            try:
                self._encoding = tiktoken.get_encoding(self.encoding_name)
            except Exception as exc:
                # [LAW:dataflow-not-control-flow] Unavailable tokenizer is recorded once, then counts are 0.
                self._unavailable = True
                logger.warning("tokenizer %s unavailable: %s", self.encoding_name, exc)
        return self._encoding

    def count(self, text: str) -> int:
        if not text:
            return 0
        encoding = self._get_encoding()
        if encoding is None:
            return 0
        return len(encoding.encode(text, disallowed_special=()))


def safe_count(counter: TokenCounter | None, text: str) -> int:
    """Count tokens with counter, mapping absence and failure to 0."""
    if not text or counter is None:
        return 0
    try:
        tokens = int(counter.count(text))
    except Exception as exc:
        logger.debug("token counter failed: %s", exc)
        return 0
    return max(0, tokens)

