"""Settings file I/O for claude-counter.

Manages a JSON settings file at XDG_CONFIG_HOME/claude-counter/settings.json.
Import as: import claude_counter.io.settings
"""

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from claude_counter.core.token_counter import DEFAULT_ENCODING

DEFAULT_CACHE_WINDOW_SECONDS = 5 * 60
DEFAULT_CONTEXT_LIMIT_TOKENS = 200_000


def get_config_path() -> Path:
    """Return path to settings file.

    Uses XDG_CONFIG_HOME (default ~/.config) / claude-counter / settings.json.
    """
    config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(config_home) / "claude-counter" / "settings.json"


def load_settings() -> dict:
    """Load settings from JSON file. Returns empty dict on missing/corrupt file."""
    path = get_config_path()
    # [LAW:dataflow-not-control-flow] Always attempt read; empty dict is the "no data" value.
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_settings(data: dict) -> None:
    """Atomic write of settings dict to JSON file.

    Creates parent directories if needed. Writes to temp file then renames
    to avoid partial writes on crash.
    """
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, path)
    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def save_setting(key: str, value) -> None:
    """Save a single setting by key (merge into existing settings)."""
    data = load_settings()
    data[key] = value
    save_settings(data)


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass(frozen=True)
class CounterConfig:
    cache_window_seconds: int = DEFAULT_CACHE_WINDOW_SECONDS
    context_limit_tokens: int = DEFAULT_CONTEXT_LIMIT_TOKENS
    tokenizer_encoding: str = DEFAULT_ENCODING
    organization_id: Optional[str] = None

    @property
    def cache_window(self) -> timedelta:
        return timedelta(seconds=self.cache_window_seconds)


def load_counter_config() -> CounterConfig:
    """Resolve typed settings; invalid values fall back to defaults."""
    data = load_settings()
    encoding = data.get("tokenizer_encoding")
    org = data.get("organization_id")
    return CounterConfig(
        cache_window_seconds=_positive_int(
            data.get("cache_window_seconds"), DEFAULT_CACHE_WINDOW_SECONDS
        ),
        context_limit_tokens=_positive_int(
            data.get("context_limit_tokens"), DEFAULT_CONTEXT_LIMIT_TOKENS
        ),
        tokenizer_encoding=encoding if isinstance(encoding, str) and encoding else DEFAULT_ENCODING,
        organization_id=org if isinstance(org, str) and org else None,
    )


def save_organization_id(org_id: str) -> None:
    """Remember the organization used for usage/conversation fetches."""
    save_setting("organization_id", org_id)
