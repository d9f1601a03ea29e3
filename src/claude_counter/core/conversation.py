"""Conversation tree model and trunk reconstruction.

Messages only point at their parent. The active path is rebuilt on every
call by walking parent pointers backward from the current leaf through a
uuid index, then reversing; no child links or incremental state are kept.

Pure computation module with no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

ROOT_MESSAGE_ID = "00000000-0000-4000-8000-000000000000"

KIND_TEXT = "text"
KIND_TOOL_USE = "tool_use"
KIND_TOOL_RESULT = "tool_result"
KIND_THINKING = "thinking"
KIND_REDACTED_THINKING = "redacted_thinking"
KIND_IMAGE = "image"
KIND_DOCUMENT = "document"

SENDER_ASSISTANT = "assistant"


def _text_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime, or None.

    Naive timestamps are taken as UTC.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ContentFragment:
    """One content block; kind is the upstream `type`, data the raw block."""

    kind: str | None
    data: dict[str, Any]

    @classmethod
    def from_payload(cls, raw: object) -> "ContentFragment":
        if not isinstance(raw, dict):
            return cls(kind=None, data={})
        kind = raw.get("type")
        return cls(kind=kind if isinstance(kind, str) else None, data=raw)


@dataclass(frozen=True)
class Attachment:
    extracted_content: str | None = None

    @classmethod
    def from_payload(cls, raw: object) -> "Attachment":
        if not isinstance(raw, dict):
            return cls()
        return cls(extracted_content=_text_or_none(raw.get("extracted_content")))


@dataclass(frozen=True)
class Message:
    uuid: str | None
    parent_uuid: str | None
    sender: str = ""
    created_at: datetime | None = None
    content: tuple[ContentFragment, ...] = ()
    attachments: tuple[Attachment, ...] = ()

    @classmethod
    def from_payload(cls, raw: object) -> "Message":
        """Build a Message from an upstream chat message; bad fields become absent."""
        if not isinstance(raw, dict):
            return cls(uuid=None, parent_uuid=None)
        content = raw.get("content")
        attachments = raw.get("attachments")
        sender = raw.get("sender")
        return cls(
            uuid=_text_or_none(raw.get("uuid")),
            parent_uuid=_text_or_none(raw.get("parent_message_uuid")),
            sender=sender if isinstance(sender, str) else "",
            created_at=parse_timestamp(raw.get("created_at")),
            content=tuple(ContentFragment.from_payload(c) for c in content)
            if isinstance(content, list)
            else (),
            attachments=tuple(Attachment.from_payload(a) for a in attachments)
            if isinstance(attachments, list)
            else (),
        )

    @property
    def is_assistant(self) -> bool:
        return self.sender == SENDER_ASSISTANT


@dataclass(frozen=True)
class Conversation:
    messages: tuple[Message, ...] = ()
    current_leaf_uuid: str | None = None
    name: str = ""

    @classmethod
    def from_payload(cls, raw: object) -> "Conversation":
        """Build a Conversation from a `?tree=true` conversation payload."""
        if not isinstance(raw, dict):
            return cls()
        messages = raw.get("chat_messages")
        name = raw.get("name")
        return cls(
            messages=tuple(Message.from_payload(m) for m in messages)
            if isinstance(messages, list)
            else (),
            current_leaf_uuid=_text_or_none(raw.get("current_leaf_message_uuid")),
            name=name if isinstance(name, str) else "",
        )


def build_trunk(conversation: Conversation) -> list[Message]:
    """Return the root-to-leaf path ending at the conversation's current leaf.

    Stops at the root sentinel, at a parent id missing from the index, or at
    a parent chain that loops back on itself. Never raises.
    """
    by_id: dict[str, Message] = {}
    for msg in conversation.messages:
        if msg.uuid:
            by_id[msg.uuid] = msg

    trunk: list[Message] = []
    seen: set[str] = set()
    current = conversation.current_leaf_uuid
    while current and current != ROOT_MESSAGE_ID and current not in seen:
        msg = by_id.get(current)
        if msg is None:
            break
        seen.add(current)
        trunk.append(msg)
        current = msg.parent_uuid

    trunk.reverse()
    return trunk
