"""Tests for conversation metrics aggregation."""

import json
from datetime import datetime, timedelta, timezone

from claude_counter.core.canonical import canonicalize
from claude_counter.core.conversation import (
    ROOT_MESSAGE_ID,
    ContentFragment,
    Conversation,
    Message,
)
from claude_counter.core.metrics import (
    ConversationMetrics,
    ConversationMetricsTracker,
    compute_metrics,
)
from claude_counter.core.token_cache import TokenCache
from tests.harness import FakeCounter, make_chain, make_conversation, make_message

TOOL_USE = {"type": "tool_use", "id": "toolu_1", "name": "search", "input": {"q": "x"}}


def _tool_use_text():
    return canonicalize({"id": "toolu_1", "name": "search", "input": {"q": "x"}})


def test_end_to_end_text_plus_tool_use():
    counter = FakeCounter({"ten tokens of text": 10, _tool_use_text(): 5})
    payload = make_conversation(
        [
            make_message("A", text="ten tokens of text"),
            make_message("B", "A", sender="assistant", content=[TOOL_USE]),
        ]
    )
    metrics = compute_metrics(Conversation.from_payload(payload), TokenCache(counter))
    assert metrics.total_tokens == 15
    assert metrics.trunk_message_count == 2


def test_unchanged_payload_is_idempotent_and_all_hits():
    counter = FakeCounter()
    cache = TokenCache(counter)
    conv = Conversation.from_payload(make_conversation(make_chain(["a b", "c d e", "f"])))

    first = compute_metrics(conv, cache)
    calls_after_first = len(counter.calls)
    second = compute_metrics(conv, cache)

    assert first.total_tokens == second.total_tokens == 6
    assert len(counter.calls) == calls_after_first
    assert cache.hits == 3


def test_branch_switch_prunes_cache():
    counter = FakeCounter()
    cache = TokenCache(counter)
    messages = [
        make_message("A", text="root"),
        make_message("B1", "A", sender="assistant", text="branch one"),
        make_message("B2", "A", sender="assistant", text="branch two words"),
    ]
    compute_metrics(Conversation.from_payload(make_conversation(messages, leaf="B1")), cache)
    assert "B1" in cache

    metrics = compute_metrics(
        Conversation.from_payload(make_conversation(messages, leaf="B2")), cache
    )
    assert metrics.total_tokens == 1 + 3
    assert "B1" not in cache
    assert len(cache) == 2


def test_edited_message_is_recounted():
    counter = FakeCounter()
    cache = TokenCache(counter)
    before = make_conversation(make_chain(["one", "two"]))
    after = make_conversation(make_chain(["one", "two three"]))
    compute_metrics(Conversation.from_payload(before), cache)
    metrics = compute_metrics(Conversation.from_payload(after), cache)
    assert metrics.total_tokens == 3
    assert counter.calls[-1] == "two three"


def test_uuidless_trunk_member_is_counted_but_not_cached(monkeypatch):
    anonymous = Message(
        uuid=None,
        parent_uuid=ROOT_MESSAGE_ID,
        content=(ContentFragment("text", {"type": "text", "text": "a b c"}),),
    )
    # The trunk walk needs uuids, so substitute a trunk holding an anonymous message.
    monkeypatch.setattr(
        "claude_counter.core.metrics.build_trunk", lambda conversation: [anonymous]
    )
    counter = FakeCounter()
    cache = TokenCache(counter)
    first = compute_metrics(Conversation(), cache, counter=counter)
    second = compute_metrics(Conversation(), cache, counter=counter)
    assert first.total_tokens == second.total_tokens == 3
    assert len(counter.calls) == 2
    assert len(cache) == 0


def test_cache_deadline_from_latest_assistant_turn():
    messages = [
        make_message("A", text="q", created_at="2024-01-01T10:00:00Z"),
        make_message("B", "A", sender="assistant", text="a", created_at="2024-01-01T10:01:00Z"),
        make_message("C", "B", text="q2", created_at="2024-01-01T10:05:00Z"),
    ]
    metrics = compute_metrics(
        Conversation.from_payload(make_conversation(messages)),
        TokenCache(FakeCounter()),
        cache_window=timedelta(minutes=5),
    )
    assert metrics.last_assistant_at == datetime(2024, 1, 1, 10, 1, tzinfo=timezone.utc)
    assert metrics.cached_until == datetime(2024, 1, 1, 10, 6, tzinfo=timezone.utc)


def test_no_assistant_turn_means_no_deadline():
    metrics = compute_metrics(
        Conversation.from_payload(make_conversation([make_message("A", text="hi")])),
        TokenCache(FakeCounter()),
    )
    assert metrics.last_assistant_at is None
    assert metrics.cached_until is None


def test_empty_conversation():
    metrics = compute_metrics(Conversation(), TokenCache(FakeCounter()))
    assert metrics == ConversationMetrics()


def test_cache_seconds_left_rounds_up(now):
    metrics = ConversationMetrics(cached_until=now + timedelta(seconds=59, milliseconds=100))
    assert metrics.cache_seconds_left(now) == 60
    assert metrics.cache_seconds_left(now + timedelta(minutes=2)) == 0
    assert ConversationMetrics().cache_seconds_left(now) == 0


def test_tracker_partitions_caches_per_conversation():
    counter = FakeCounter()
    tracker = ConversationMetricsTracker(counter)
    conv_a = make_conversation(make_chain(["a"]), uuid="a")
    conv_b = make_conversation(
        [make_message("x", text="b b")], uuid="b"
    )
    tracker.compute("a", conv_a)
    tracker.compute("b", conv_b)
    tracker.compute("a", conv_a)
    # Computing b did not prune a's entries: the second pass over a is all hits.
    assert counter.calls == ["a", "b b"]
    assert tracker.tracked_conversations() == ["b", "a"]


def test_tracker_bounds_tracked_conversations():
    tracker = ConversationMetricsTracker(FakeCounter(), max_conversations=2)
    for cid in ("a", "b", "c"):
        tracker.compute(cid, make_conversation(make_chain([cid]), uuid=cid))
    assert tracker.tracked_conversations() == ["b", "c"]


def test_tracker_uses_configured_cache_window():
    tracker = ConversationMetricsTracker(FakeCounter(), cache_window=timedelta(minutes=60))
    payload = make_conversation(
        [make_message("A", sender="assistant", text="x", created_at="2024-01-01T00:00:00Z")]
    )
    metrics = tracker.compute("c", payload)
    assert metrics.cached_until == datetime(2024, 1, 1, 1, 0, tzinfo=timezone.utc)


def test_lone_surrogate_in_text_is_counted():
    payload = json.loads(
        '{"chat_messages": [{"uuid": "A", "sender": "human",'
        ' "parent_message_uuid": "00000000-0000-4000-8000-000000000000",'
        ' "content": [{"type": "text", "text": "bad \\ud800 half"}]}],'
        ' "current_leaf_message_uuid": "A"}'
    )
    counter = FakeCounter()
    cache = TokenCache(counter)
    metrics = compute_metrics(Conversation.from_payload(payload), cache)
    assert metrics.total_tokens == 3
    assert metrics.trunk_message_count == 1
    compute_metrics(Conversation.from_payload(payload), cache)
    assert cache.hits == 1
