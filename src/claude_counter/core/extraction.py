"""Countable-content extraction for token accounting.

Decides which parts of a message count toward context usage. Reasoning traces
and binary media never count; tool payloads are reduced to their observable
fields and canonicalized so upstream key order cannot change the result.

Pure computation module with no I/O.
"""

from __future__ import annotations

from typing import Callable

from claude_counter.core.canonical import canonicalize
from claude_counter.core.conversation import (
    KIND_DOCUMENT,
    KIND_IMAGE,
    KIND_REDACTED_THINKING,
    KIND_TEXT,
    KIND_THINKING,
    KIND_TOOL_RESULT,
    KIND_TOOL_USE,
    ContentFragment,
    Message,
)

# [LAW:one-source-of-truth] Kinds excluded from token accounting regardless of size.
NON_COUNTABLE_KINDS = frozenset(
    {KIND_THINKING, KIND_REDACTED_THINKING, KIND_IMAGE, KIND_DOCUMENT}
)

_TOOL_USE_FIELDS = ("id", "name", "input")
_TOOL_RESULT_FIELDS = ("tool_use_id", "is_error", "content")


def is_countable(fragment: ContentFragment) -> bool:
    return fragment.kind is not None and fragment.kind not in NON_COUNTABLE_KINDS


def _pick(data: dict, fields: tuple[str, ...]) -> dict:
    # Absent keys are left out rather than encoded as null.
    return {k: data[k] for k in fields if k in data}


def _stringify_text(data: dict) -> str:
    text = data.get("text")
    if isinstance(text, str):
        return text
    return _stringify_fallback(data)


def _stringify_tool_use(data: dict) -> str:
    return canonicalize(_pick(data, _TOOL_USE_FIELDS))


def _stringify_tool_result(data: dict) -> str:
    return canonicalize(_pick(data, _TOOL_RESULT_FIELDS))


def _stringify_fallback(data: dict) -> str:
    """Keep only text-like fields so unknown blocks cannot pull in large blobs."""
    minimal: dict[str, object] = {}
    for key in ("text", "title", "url"):
        if isinstance(data.get(key), str):
            minimal[key] = data[key]
    content = data.get("content")
    if isinstance(content, (str, list)):
        minimal["content"] = content
    if not minimal:
        return ""
    return canonicalize(minimal)


# [LAW:dataflow-not-control-flow] Fragment kind → stringifier dispatch
_STRINGIFIERS: dict[str, Callable[[dict], str]] = {
    KIND_TEXT: _stringify_text,
    KIND_TOOL_USE: _stringify_tool_use,
    KIND_TOOL_RESULT: _stringify_tool_result,
}


def stringify_fragment(fragment: ContentFragment) -> str:
    if not is_countable(fragment):
        return ""
    stringify = _STRINGIFIERS.get(fragment.kind, _stringify_fallback)
    return stringify(fragment.data)


def stringify_countable_content(message: Message) -> str:
    """Return the newline-joined countable text of a message.

    Content fragments come first in message order, then each attachment's
    pre-extracted text. Empty contributions are skipped.
    """
    parts = [s for s in (stringify_fragment(f) for f in message.content) if s]
    parts.extend(a.extracted_content for a in message.attachments if a.extracted_content)
    return "\n".join(parts)
