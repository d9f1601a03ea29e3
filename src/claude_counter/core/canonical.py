"""Canonical JSON encoding used as hashing input.

Pure computation module with no I/O and no dependencies on other
claude_counter modules.

// [LAW:one-source-of-truth] canonicalize() is the only encoder whose output feeds fingerprints.
"""

from __future__ import annotations

import json
from collections.abc import Mapping


CIRCULAR_MARKER = "[Circular]"


def _normalize(value: object, active: set[int]) -> object:
    if isinstance(value, Mapping):
        marker = id(value)
        if marker in active:
            return CIRCULAR_MARKER
        active.add(marker)
        try:
            # Keys are stringified before sorting so mixed key types never compare.
            items = sorted((str(k), v) for k, v in value.items())
            return {k: _normalize(v, active) for k, v in items}
        finally:
            active.discard(marker)

    if isinstance(value, (list, tuple)):
        marker = id(value)
        if marker in active:
            return CIRCULAR_MARKER
        active.add(marker)
        try:
            return [_normalize(v, active) for v in value]
        finally:
            active.discard(marker)

    return value


def canonicalize(value: object) -> str:
    """Encode value as compact, key-sorted JSON.

    Structurally equal values produce identical output regardless of mapping
    insertion order. A container that appears again on its own recursion path
    is replaced by CIRCULAR_MARKER; shared (non-cyclic) references are encoded
    in full each time.

    Returns "" when the value cannot be encoded (non-JSON leaves, NaN,
    pathological nesting). Callers treat "" as "no content contributed".
    """
    try:
        normalized = _normalize(value, set())
        return json.dumps(
            normalized,
            ensure_ascii=False,
            separators=(",", ":"),
            allow_nan=False,
        )
    except (TypeError, ValueError, RecursionError):
        return ""
