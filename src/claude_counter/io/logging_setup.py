"""Logging bootstrap for the claude-counter CLI.

Everything goes to a rotating per-command log file. Stderr only carries
warnings and errors so the `watch` live display is not torn up by log lines.

// [LAW:single-enforcer] Handler wiring for the claude_counter logger lives here only.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "claude_counter"
LEVEL_ENV = "CLAUDE_COUNTER_LOG_LEVEL"
LOG_DIR_ENV = "CLAUDE_COUNTER_LOG_DIR"
LOG_FILE_ENV = "CLAUDE_COUNTER_LOG_FILE"
DEFAULT_LOG_DIR = "~/.local/share/claude-counter/logs"
LEVEL_CHOICES = ("DEBUG", "INFO", "WARNING", "ERROR")

_log_file: Path | None = None


def resolve_level(cli_level: str | None = None) -> int:
    """--log-level wins over the environment; unknown names mean INFO."""
    name = (cli_level or os.environ.get(LEVEL_ENV) or "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def log_file_path(command: str) -> Path:
    explicit = os.environ.get(LOG_FILE_ENV)
    if explicit:
        return Path(explicit)
    log_dir = Path(os.environ.get(LOG_DIR_ENV) or os.path.expanduser(DEFAULT_LOG_DIR))
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return log_dir / f"{command}-{stamp}-{os.getpid()}.log"


def configure(command: str = "claude-counter", level: str | None = None) -> Path:
    """Attach the stderr and file handlers once; returns the log file path.

    Later calls are no-ops until reset().
    """
    global _log_file
    if _log_file is not None:
        return _log_file

    resolved = resolve_level(level)
    path = log_file_path(command)
    path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    file_handler.setLevel(resolved)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(max(resolved, logging.WARNING))
    stderr_handler.setFormatter(logging.Formatter("claude-counter: %(levelname)s %(message)s"))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolved)
    logger.propagate = False
    logger.handlers.clear()
    logger.addHandler(file_handler)
    logger.addHandler(stderr_handler)

    _log_file = path
    return path


def reset() -> None:
    """Detach and close handlers so configure() can run again."""
    global _log_file
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    _log_file = None
