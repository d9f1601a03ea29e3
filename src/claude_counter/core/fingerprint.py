"""Short, length-prefixed content fingerprints.

Fingerprints answer "has this text changed since it was last counted?" without
keeping the text around. They are process-local: never persisted, never
compared across processes, so the two hasher implementations do not need to
agree with each other.

// [LAW:single-enforcer] select_hasher() is the only place the hash primitive is chosen.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Protocol

logger = logging.getLogger(__name__)

EMPTY_FINGERPRINT = "0"

_SHA256_PREFIX_BYTES = 8

_FNV_OFFSET_BASIS = 0x811C9DC5
_FNV_PRIME = 0x01000193


class Hasher(Protocol):
    name: str

    def digest(self, data: bytes) -> str: ...


class Sha256Hasher:
    """SHA-256, truncated to the first 8 bytes, hex-encoded."""

    name = "sha256"

    def digest(self, data: bytes) -> str:
        return hashlib.sha256(data).digest()[:_SHA256_PREFIX_BYTES].hex()


class Fnv1aHasher:
    """32-bit FNV-1a, hex-encoded to 8 characters."""

    name = "fnv1a"

    def digest(self, data: bytes) -> str:
        h = _FNV_OFFSET_BASIS
        for byte in data:
            h ^= byte
            h = (h * _FNV_PRIME) & 0xFFFFFFFF
        return f"{h:08x}"


def select_hasher() -> Hasher:
    """Pick SHA-256 when the runtime provides it, FNV-1a otherwise."""
    try:
        hashlib.new("sha256")
    except ValueError:
        logger.warning("sha256 unavailable; falling back to fnv1a fingerprints")
        return Fnv1aHasher()
    return Sha256Hasher()


_DEFAULT_HASHER: Hasher | None = None


def default_hasher() -> Hasher:
    global _DEFAULT_HASHER
    if _DEFAULT_HASHER is None:
        _DEFAULT_HASHER = select_hasher()
    return _DEFAULT_HASHER


def fingerprint(text: str | None, hasher: Hasher | None = None) -> str:
    """Return "<length>:<digest>" for text, or "0" for empty/None.

    The length prefix keeps differently sized inputs apart even when their
    truncated digests collide.
    """
    if not text:
        return EMPTY_FINGERPRINT
    active = hasher or default_hasher()
    # Lone surrogates are legal in decoded JSON strings; hash their code units as-is.
    data = text.encode("utf-8", errors="surrogatepass")
    return f"{len(text)}:{active.digest(data)}"
