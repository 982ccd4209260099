"""Structured run log for snapshot, valuation and assessment writes.

Events are appended as JSON lines under the storage root so support can see
which period snapshots were computed, when a month was closed and why a write
to the store failed.
"""

from __future__ import annotations

import json
import os
import traceback
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator


LOG_DIR = Path(".local_store")
RUNTIME_EVENTS_LOG_FILE = LOG_DIR / "runtime_events.jsonl"

_DEFAULT_LOG_DIR = Path(".local_store")
_STORAGE_ENV_VAR = "WIP_STORAGE_ROOT"

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_json_default(value: Any):
    if isinstance(value, (set, tuple)):
        return list(value)
    return str(value)


def _expand_log_root(path_value: str | Path | None) -> Path:
    if path_value is None:
        return _DEFAULT_LOG_DIR
    text = str(path_value).strip()
    if not text:
        return _DEFAULT_LOG_DIR
    return Path(os.path.expandvars(os.path.expanduser(text)))


def configure_log_root(path_value: str | Path | None) -> Path:
    global LOG_DIR, RUNTIME_EVENTS_LOG_FILE
    LOG_DIR = _expand_log_root(path_value)
    RUNTIME_EVENTS_LOG_FILE = LOG_DIR / "runtime_events.jsonl"
    return LOG_DIR


def runtime_log_path() -> str:
    return str(RUNTIME_EVENTS_LOG_FILE.resolve())


def append_runtime_event(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> None:
    """Append one event record; failures to write the log are ignored."""
    level_text = str(level).upper()
    if level_text not in LEVELS:
        level_text = "INFO"
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        record: dict[str, Any] = {
            "timestamp_utc": _now_iso(),
            "level": level_text,
            "event": str(event),
            "message": str(message),
            "context": context or {},
        }
        if exc is not None:
            record["exception_type"] = type(exc).__name__
            record["exception_message"] = str(exc)
            record["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        with RUNTIME_EVENTS_LOG_FILE.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=_safe_json_default, ensure_ascii=False) + "\n")
    except OSError:
        pass


@contextmanager
def storage_operation(operation: str, context: dict[str, Any]) -> Iterator[None]:
    """Log a failed store call at ERROR and let the exception propagate to the caller."""
    try:
        yield
    except Exception as exc:
        append_runtime_event(
            level="ERROR",
            event=f"{operation}_failed",
            message=f"Store call {operation} failed: {exc}",
            context=context,
            exc=exc,
        )
        raise


def read_runtime_events(limit: int = 200, event: str | None = None, level: str | None = None) -> list[dict[str, Any]]:
    """Most recent events, oldest first, optionally filtered by event name or level."""
    if limit <= 0 or not RUNTIME_EVENTS_LOG_FILE.exists():
        return []
    try:
        lines = RUNTIME_EVENTS_LOG_FILE.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []

    out: list[dict[str, Any]] = []
    for line in lines:
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            record = {
                "timestamp_utc": _now_iso(),
                "level": "ERROR",
                "event": "log_parse_error",
                "message": "Malformed log line encountered.",
                "context": {"line": line},
            }
        if event is not None and record.get("event") != event:
            continue
        if level is not None and record.get("level") != str(level).upper():
            continue
        out.append(record)
    return out[-int(limit) :]


configure_log_root(os.getenv(_STORAGE_ENV_VAR, ""))
