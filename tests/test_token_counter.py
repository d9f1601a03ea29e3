"""Tests for token_counter module."""

import pytest

from claude_counter.core.token_counter import (
    TiktokenCounter,
    safe_count,
)
from tests.harness import BrokenCounter, FakeCounter


@pytest.fixture(scope="module")
def tiktoken_counter():
    counter = TiktokenCounter()
    if counter.count("hello") == 0:
        pytest.skip("tiktoken encoding data unavailable")
    return counter


def test_count_tokens_empty_string():
    """Empty string returns 0 tokens without loading the encoding."""
    counter = TiktokenCounter()
    assert counter.count("") == 0
    assert counter._encoding is None


def test_count_tokens_simple_text(tiktoken_counter):
    """Simple text returns reasonable token count."""
    tokens = tiktoken_counter.count("Hello, world!")
    assert 2 <= tokens <= 6


def test_count_tokens_longer_text(tiktoken_counter):
    """Longer text returns proportionally more tokens."""
    short_tokens = tiktoken_counter.count("Hello")
    long_tokens = tiktoken_counter.count("Hello " * 100)
    assert long_tokens > short_tokens * 50


def test_count_tokens_special_token_text(tiktoken_counter):
    """Text that looks like a special token is counted, not rejected."""
    assert tiktoken_counter.count("<|endoftext|>") > 0


def test_count_tokens_is_deterministic(tiktoken_counter):
    text = "test caching"
    assert tiktoken_counter.count(text) == tiktoken_counter.count(text)


def test_unavailable_encoding_counts_zero(monkeypatch):
    calls = []

    def _fail(name):
        calls.append(name)
        raise OSError("offline")

    monkeypatch.setattr("claude_counter.core.token_counter.tiktoken.get_encoding", _fail)
    counter = TiktokenCounter("o200k_base")
    assert counter.count("hello") == 0
    assert counter.count("again") == 0
    # Load is attempted once, then remembered as unavailable.
    assert calls == ["o200k_base"]


def test_safe_count_handles_missing_counter():
    assert safe_count(None, "hello") == 0


def test_safe_count_swallows_counter_failure():
    broken = BrokenCounter()
    assert safe_count(broken, "hello") == 0
    assert broken.calls == 1


def test_safe_count_skips_empty_text():
    fake = FakeCounter()
    assert safe_count(fake, "") == 0
    assert fake.calls == []


def test_safe_count_clamps_negative():
    fake = FakeCounter({"weird": -3})
    assert safe_count(fake, "weird") == 0
