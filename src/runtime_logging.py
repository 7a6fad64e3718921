"""Structured JSONL runtime event log for support and data-issue triage."""

from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from streamlit.runtime.scriptrunner import get_script_run_ctx

from src.app_config import DEFAULT_STORAGE_ROOT, expand_env_path, storage_root_from_env


LOG_DIR = DEFAULT_STORAGE_ROOT
RUNTIME_EVENTS_LOG_FILE = LOG_DIR / "runtime_events.jsonl"

_EXCEPTION_HOOK_INSTALLED = False


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_json_default(value: Any):
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def configure_log_root(path_value: str | Path | None) -> Path:
    global LOG_DIR, RUNTIME_EVENTS_LOG_FILE
    LOG_DIR = expand_env_path(path_value, DEFAULT_STORAGE_ROOT)
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
    """Append one event record; logging failures never reach the wizard."""
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        record: dict[str, Any] = {
            "timestamp_utc": _now_iso(),
            "level": str(level).upper(),
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
    except Exception:
        pass


def read_runtime_events(limit: int = 200) -> list[dict[str, Any]]:
    """Most recent well-formed records for the diagnostics sidebar, oldest first."""
    if limit <= 0 or not RUNTIME_EVENTS_LOG_FILE.exists():
        return []
    try:
        lines = RUNTIME_EVENTS_LOG_FILE.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    records: list[dict[str, Any]] = []
    for line in lines:
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(record, dict):
            records.append(record)
    return records[-int(limit) :]


def install_global_exception_logging() -> None:
    """Record uncaught exceptions raised during a Streamlit script run."""
    global _EXCEPTION_HOOK_INSTALLED
    if _EXCEPTION_HOOK_INSTALLED:
        return
    old_hook = sys.excepthook

    def _hook(exc_type, exc, exc_tb):
        try:
            # Plain scripts and the validator CLI keep the default hook only.
            if get_script_run_ctx() is not None:
                append_runtime_event(
                    level="ERROR",
                    event="uncaught_exception",
                    message=str(exc),
                    exc=exc,
                )
        except Exception:
            pass
        old_hook(exc_type, exc, exc_tb)

    sys.excepthook = _hook
    _EXCEPTION_HOOK_INSTALLED = True


configure_log_root(storage_root_from_env())
