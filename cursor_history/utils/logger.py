"""File-based logging utility."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cursor_history.config.constants.paths import CURSOR_HISTORY_HOME


def write_log(level: str, message: str, data: dict[str, Any] | None = None) -> None:
    """Write log entry to file in CURSOR_HISTORY_HOME/logs directory."""
    if not CURSOR_HISTORY_HOME:
        # No-op when log home is not configured. Library code never prints.
        return

    logs_dir = Path(CURSOR_HISTORY_HOME) / "logs"
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return

    log_entry: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "message": message,
    }

    if data:
        log_entry["data"] = data

    log_file = logs_dir / f"{level}.log"

    try:
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(log_entry, default=str) + "\n")
            f.flush()
    except OSError:
        # Logging must never fail the caller
        return


def log_debug(message: str, data: dict[str, Any] | None = None) -> None:
    """Log a debug message."""
    write_log("debug", message, data)


def log_info(message: str, data: dict[str, Any] | None = None) -> None:
    """Log an info message."""
    write_log("info", message, data)


def log_error(
    error: Exception | str, context: str = "", data: dict[str, Any] | None = None
) -> None:
    """Log an error, either an exception with context or a plain message."""
    if isinstance(error, Exception):
        message = f"{context}: {error}" if context else str(error)
        payload = {"error_type": type(error).__name__, **(data or {})}
    else:
        message = f"{context}: {error}" if context else error
        payload = data
    write_log("error", message, payload)
