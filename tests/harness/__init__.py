"""Test harness for claude-counter.

Re-exports all public API for convenient imports:
    from tests.harness import make_message, make_conversation, FakeCounter, ...
"""

from tests.harness.builders import (
    make_chain,
    make_conversation,
    make_message,
    make_message_limit,
    make_usage_snapshot,
)
from tests.harness.fakes import BrokenCounter, FakeCounter, FakeSource

__all__ = [
    "make_chain",
    "make_conversation",
    "make_message",
    "make_message_limit",
    "make_usage_snapshot",
    "BrokenCounter",
    "FakeCounter",
    "FakeSource",
]
