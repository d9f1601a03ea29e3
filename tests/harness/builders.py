"""Shared builders for conversation and usage payloads."""

from claude_counter.core.conversation import ROOT_MESSAGE_ID


def make_message(
    uuid,
    parent=ROOT_MESSAGE_ID,
    *,
    sender="human",
    text=None,
    content=None,
    attachments=None,
    created_at="2024-01-01T00:00:00Z",
):
    """Create a single chat message payload.

    Args:
        uuid: Message uuid (None to omit the key)
        parent: Parent uuid; defaults to the root sentinel
        sender: "human" or "assistant"
        text: Shorthand for a single text content block
        content: Explicit content block list (overrides text)
        attachments: List of extracted_content strings
        created_at: ISO-8601 timestamp

    Returns:
        Dict shaped like a claude.ai chat_messages entry
    """
    if content is None:
        content = [{"type": "text", "text": text}] if text is not None else []
    msg = {
        "parent_message_uuid": parent,
        "sender": sender,
        "created_at": created_at,
        "content": content,
        "attachments": [{"extracted_content": a} for a in (attachments or [])],
    }
    if uuid is not None:
        msg["uuid"] = uuid
    return msg


def make_conversation(messages, leaf=None, uuid="conv-1"):
    """Wrap messages in a ?tree=true conversation payload.

    The leaf defaults to the last message's uuid.
    """
    if leaf is None and messages:
        leaf = messages[-1].get("uuid")
    return {
        "uuid": uuid,
        "name": "test conversation",
        "chat_messages": list(messages),
        "current_leaf_message_uuid": leaf,
    }


def make_chain(texts, *, start_sender="human"):
    """Linear chain m0 → m1 → ... alternating human/assistant, one minute apart."""
    senders = ["human", "assistant"] if start_sender == "human" else ["assistant", "human"]
    messages = []
    parent = ROOT_MESSAGE_ID
    for i, text in enumerate(texts):
        uuid = f"m{i}"
        messages.append(
            make_message(
                uuid,
                parent,
                sender=senders[i % 2],
                text=text,
                created_at=f"2024-01-01T00:{i:02d}:00Z",
            )
        )
        parent = uuid
    return messages


def make_usage_snapshot(five_hour=None, seven_day=None):
    """Polled /usage payload; each window is (utilization, resets_at) or None."""
    payload = {}
    if five_hour is not None:
        payload["five_hour"] = {"utilization": five_hour[0], "resets_at": five_hour[1]}
    if seven_day is not None:
        payload["seven_day"] = {"utilization": seven_day[0], "resets_at": seven_day[1]}
    return payload


def make_message_limit(five_hour=None, seven_day=None):
    """Streamed message_limit payload; each window is (ratio, epoch_seconds) or None."""
    windows = {}
    if five_hour is not None:
        windows["5h"] = {"utilization": five_hour[0], "resets_at": five_hour[1]}
    if seven_day is not None:
        windows["7d"] = {"utilization": seven_day[0], "resets_at": seven_day[1]}
    return {"type": "window", "windows": windows}
