"""Server-sent event decoding for `message_limit` usage events."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


def iter_lines(chunks: Iterable[str]) -> Iterator[str]:
    """Reassemble complete lines from arbitrarily split text chunks."""
    buffer = ""
    for chunk in chunks:
        buffer += chunk
        lines = _LINE_SPLIT_RE.split(buffer)
        buffer = lines.pop()
        yield from lines
    if buffer:
        yield buffer


def iter_message_limits(chunks: Iterable[str]) -> Iterator[dict]:
    """Yield the `message_limit` payload of every message_limit event.

    Non-data lines and undecodable JSON are skipped.
    """
    for line in iter_lines(chunks):
        if not line.startswith("data:"):
            continue
        raw = line[5:].strip()
        if not raw:
            continue
        try:
            event = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("skipping undecodable event line")
            continue
        if not isinstance(event, dict) or event.get("type") != "message_limit":
            continue
        limit = event.get("message_limit")
        if isinstance(limit, dict) and limit:
            yield limit
