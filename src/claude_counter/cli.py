"""CLI entry point for claude-counter.

Usage:
    claude-counter metrics conversation.json
    claude-counter usage usage.json
    claude-counter usage capture.sse --stream
    claude-counter watch --org ORG_ID --conversation CONVERSATION_ID
"""

from __future__ import annotations

import argparse
import enum
import json
import logging
import os
import sys
import time
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.live import Live

from claude_counter.app.counter_session import CounterSession
from claude_counter.core.metrics import ConversationMetricsTracker
from claude_counter.core.token_counter import TiktokenCounter
from claude_counter.core.usage import (
    UsageSnapshot,
    normalize_snapshot_shape,
    normalize_stream_shape,
)
from claude_counter.display import render_header, render_status, render_usage
from claude_counter.io import logging_setup
from claude_counter.io.claude_api import ClaudeApiClient
from claude_counter.io.settings import CounterConfig, load_counter_config, save_organization_id
from claude_counter.io.sse import iter_message_limits

logger = logging.getLogger(__name__)

SESSION_KEY_ENV = "CLAUDE_SESSION_KEY"


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SystemExit(f"claude-counter: cannot read {path}: {exc}")


def _resolve_config(args: argparse.Namespace) -> CounterConfig:
    config = load_counter_config()
    overrides: dict[str, Any] = {}
    if getattr(args, "cache_window", None) is not None:
        overrides["cache_window_seconds"] = args.cache_window
    if getattr(args, "context_limit", None) is not None:
        overrides["context_limit_tokens"] = args.context_limit
    if getattr(args, "encoding", None):
        overrides["tokenizer_encoding"] = args.encoding
    if getattr(args, "org", None):
        overrides["organization_id"] = args.org
    return CounterConfig(**{**asdict(config), **overrides})


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return value


def _make_tracker(config: CounterConfig) -> ConversationMetricsTracker:
    return ConversationMetricsTracker(
        TiktokenCounter(config.tokenizer_encoding),
        cache_window=config.cache_window,
    )


def cmd_metrics(args: argparse.Namespace, console: Console) -> int:
    config = _resolve_config(args)
    payload = _read_json(Path(args.file))
    conversation_id = payload.get("uuid") if isinstance(payload, dict) else None
    metrics = _make_tracker(config).compute(str(conversation_id or args.file), payload)

    if args.json:
        console.print_json(json.dumps(_jsonable(asdict(metrics))))
        return 0
    now = datetime.now(timezone.utc)
    console.print(render_header(metrics, now, context_limit_tokens=config.context_limit_tokens))
    console.print(f"{metrics.trunk_message_count} messages on the active branch")
    return 0


def _load_usage(args: argparse.Namespace) -> UsageSnapshot | None:
    path = Path(args.file)
    if not args.stream:
        return normalize_snapshot_shape(_read_json(path))
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SystemExit(f"claude-counter: cannot read {path}: {exc}")
    latest = None
    for limit in iter_message_limits([text]):
        # Last write wins; unusable events never replace a usable one.
        latest = normalize_stream_shape(limit) or latest
    return latest


def cmd_usage(args: argparse.Namespace, console: Console) -> int:
    snapshot = _load_usage(args)
    if snapshot is None:
        console.print("no usable usage data", style="yellow")
        return 1
    if args.json:
        console.print_json(json.dumps(_jsonable(asdict(snapshot))))
        return 0
    console.print(render_usage(snapshot, datetime.now(timezone.utc)))
    return 0


def cmd_watch(args: argparse.Namespace, console: Console) -> int:
    config = _resolve_config(args)
    session_key = os.environ.get(SESSION_KEY_ENV, "")
    if not session_key:
        console.print(f"{SESSION_KEY_ENV} is not set", style="red")
        return 2
    if not config.organization_id:
        console.print("no organization id (pass --org or set organization_id)", style="red")
        return 2
    if args.org:
        save_organization_id(args.org)

    session = CounterSession(
        ClaudeApiClient(session_key),
        _make_tracker(config),
        org_id=config.organization_id,
    )
    session.set_conversation(args.conversation)
    session.refresh_usage()
    session.refresh_conversation()

    conversation_every = timedelta(seconds=args.conversation_interval)
    last_conversation_at = datetime.now(timezone.utc)

    def _render(now: datetime):
        return render_status(
            session.metrics,
            session.snapshot,
            now,
            context_limit_tokens=config.context_limit_tokens,
            pending_cache=session.pending_cache,
        )

    try:
        with Live(_render(datetime.now(timezone.utc)), console=console, auto_refresh=False) as live:
            while True:
                time.sleep(1.0)
                now = datetime.now(timezone.utc)
                session.tick(now)
                if session.conversation_id and now - last_conversation_at >= conversation_every:
                    last_conversation_at = now
                    session.refresh_conversation()
                live.update(_render(now), refresh=True)
    except KeyboardInterrupt:
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude-counter",
        description="Token and usage-window counter for claude.ai conversations",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=logging_setup.LEVEL_CHOICES,
        default=None,
        help="Log level for the log file (default: $CLAUDE_COUNTER_LOG_LEVEL or INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    tokenizer_opts = argparse.ArgumentParser(add_help=False)
    tokenizer_opts.add_argument(
        "--encoding", type=str, default=None, help="tiktoken encoding (default: o200k_base)"
    )
    tokenizer_opts.add_argument(
        "--cache-window",
        type=_positive_int,
        default=None,
        help="Prompt-cache window in seconds after the last assistant turn (default: 300)",
    )
    tokenizer_opts.add_argument(
        "--context-limit",
        type=_positive_int,
        default=None,
        help="Context size used for the length bar (default: 200000)",
    )

    metrics = sub.add_parser(
        "metrics", parents=[tokenizer_opts], help="Count tokens on a saved conversation tree"
    )
    metrics.add_argument("file", help="Conversation JSON (?tree=true payload)")
    metrics.add_argument("--json", action="store_true", help="Emit JSON")
    metrics.set_defaults(handler=cmd_metrics)

    usage = sub.add_parser("usage", help="Normalize a saved usage payload")
    usage.add_argument("file", help="Usage JSON, or SSE capture with --stream")
    usage.add_argument(
        "--stream", action="store_true", help="Read message_limit events from an SSE capture"
    )
    usage.add_argument("--json", action="store_true", help="Emit JSON")
    usage.set_defaults(handler=cmd_usage)

    watch = sub.add_parser(
        "watch", parents=[tokenizer_opts], help="Live counter for an organization/conversation"
    )
    watch.add_argument("--org", type=str, default=None, help="Organization id")
    watch.add_argument("--conversation", type=str, default=None, help="Conversation id")
    watch.add_argument(
        "--conversation-interval",
        type=_positive_int,
        default=30,
        help="Seconds between conversation refreshes (default: 30)",
    )
    watch.set_defaults(handler=cmd_watch)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    log_file = logging_setup.configure(args.command, args.log_level)
    logger.debug("logging to %s", log_file)
    console = Console()
    return args.handler(args, console)


if __name__ == "__main__":
    sys.exit(main())
