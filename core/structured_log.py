"""
Structured event log (JSON lines).

Operational events from the gateway and the pollers (``gateway_start``,
``upstream_http_error``, ``poll_failed``, ``poll_discarded_stale_response``
...) are appended as one JSON object per line to ``logs/events.jsonl``.
Rotation is size-based. Each event is also echoed as a short console line
unless the caller turns the echo off (the live console dashboard does).
"""
from __future__ import annotations

import json
import logging
import os
from collections import deque
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

LOG_DIR = Path(os.getenv("MARKETPULSE_LOG_DIR", "logs"))
LOG_FILE = LOG_DIR / "events.jsonl"

MAX_LOG_BYTES = int(os.getenv("MARKETPULSE_LOG_MAX_BYTES", 10 * 1024 * 1024))
LOG_BACKUP_COUNT = int(os.getenv("MARKETPULSE_LOG_BACKUP_COUNT", 5))

_file_handler: Optional[RotatingFileHandler] = None
_echo_console = True


def set_console_echo(enabled: bool) -> None:
    global _echo_console
    _echo_console = enabled


def _handler() -> RotatingFileHandler:
    global _file_handler
    if _file_handler is None:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        _file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        _file_handler.setFormatter(logging.Formatter("%(message)s"))
    return _file_handler


def jlog(event: str, level: str = "INFO", **fields: Any) -> None:
    """
    Append one event line.

    ``level`` is a standard level name; unknown names are written as given
    and routed at INFO. Values that are not JSON-native are stringified.
    """
    entry = {"ts": datetime.utcnow().isoformat(), "level": level, "event": event}
    entry.update(fields)
    line = json.dumps(entry, default=str)

    levelno = logging.getLevelName(level.upper())
    record = logging.LogRecord(
        name="marketpulse.events",
        level=levelno if isinstance(levelno, int) else logging.INFO,
        pathname=__file__,
        lineno=0,
        msg=line,
        args=None,
        exc_info=None,
    )
    # emit() performs the size check and rollover before writing
    _handler().handle(record)

    if _echo_console:
        extras = " ".join(f"{k}={v}" for k, v in fields.items())
        print(f"[{level}] {event} {extras}".rstrip())


def read_recent_logs(count: int = 100, level: Optional[str] = None) -> List[Dict[str, Any]]:
    """Last ``count`` entries (oldest first), optionally only one level."""
    if not LOG_FILE.exists():
        return []

    recent: deque = deque(maxlen=count)
    with LOG_FILE.open("r", encoding="utf-8") as f:
        for raw in f:
            try:
                entry = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if level is None or entry.get("level") == level:
                recent.append(entry)
    return list(recent)
