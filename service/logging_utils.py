# service/logging_utils.py
"""
Structured JSONL sinks for activity and error records.

One file per day and kind under LOG_DIR:
    <LOG_DIR>/<ACTIVITY_LOG_PREFIX>-YYYY-MM-DD.jsonl
    <LOG_DIR>/<ERROR_LOG_PREFIX>-YYYY-MM-DD.jsonl

Environment is read on every write so tests (and long-lived containers) can
redirect logs without re-importing.
"""

from __future__ import annotations

import contextlib
import datetime as _dt
import json
import logging
import os
import socket
from collections.abc import Iterable
from typing import Any

_DEFAULT_LOG_DIR = "/app/local/logs"

# Keys/substrings to redact (case-insensitive, substring match)
_DEFAULT_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "cookie",
    "set-cookie",
}
_REDACTED = "***REDACTED***"

# Host + process metadata (fixed per-process)
_HOSTNAME = socket.gethostname()
_PID = os.getpid()


# ---- Public API --------------------------------------------------------------


def write_activity_log(record: dict[str, Any]) -> None:
    """
    Persist a single structured activity record.
    May raise OSError on unrecoverable I/O errors; never mutates `record`.
    """
    _write_jsonl(log_path_for_today(os.getenv("ACTIVITY_LOG_PREFIX", "activity")), record, "ACTIVITY_LOG_MAX_BYTES")


def write_error_log(record: dict[str, Any]) -> None:
    """Persist a single structured error record, parallel to the activity log."""
    _write_jsonl(log_path_for_today(os.getenv("ERROR_LOG_PREFIX", "error")), record, "ERROR_LOG_MAX_BYTES")


def log_path_for_today(prefix: str) -> str:
    today = _dt.date.today().isoformat()  # YYYY-MM-DD
    return os.path.join(os.getenv("LOG_DIR", _DEFAULT_LOG_DIR), f"{prefix}-{today}.jsonl")


def configure_logging(level: str | None = None) -> None:
    """Initialize stdlib logging for operator-facing lines if nothing configured it yet."""
    root = logging.getLogger()
    if root.handlers:
        return
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# ---- Internal helpers --------------------------------------------------------


def _key_matches(name: str, patterns: Iterable[str]) -> bool:
    n = name.lower()
    return any(pat in n for pat in patterns)


def _redact_deep(value: Any, patterns: Iterable[str]) -> Any:
    if isinstance(value, dict):
        return {
            k: _REDACTED if isinstance(k, str) and _key_matches(k, patterns) else _redact_deep(v, patterns)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact_deep(v, patterns) for v in value]
    if isinstance(value, str) and "bearer " in value.lower():
        scheme = value.split(" ", 1)[0]
        return f"{scheme} {_REDACTED}"
    return value


def _rotate_if_needed(path: str, max_bytes_env: str) -> None:
    """Size-based rotation on top of the daily filename (limit read from `max_bytes_env`, 0 = off)."""
    max_bytes = int(os.getenv(max_bytes_env, "0") or 0)
    if max_bytes <= 0:
        return
    try:
        if os.path.getsize(path) < max_bytes:
            return
    except FileNotFoundError:
        return
    ts = _dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    with contextlib.suppress(FileNotFoundError):
        os.replace(path, f"{path}.{ts}")


def _write_jsonl(path: str, record: dict[str, Any], max_bytes_env: str) -> None:
    """
    Redact, stamp host/pid, serialize (datetimes and other objects via str()),
    then append one line with O_APPEND so concurrent writers never interleave.
    Retries once on a transient OSError.
    """
    payload = _redact_deep(record, _DEFAULT_REDACT_KEYS)
    payload["_meta"] = {"host": _HOSTNAME, "pid": _PID}
    data = (json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str) + "\n").encode("utf-8")

    def _append_once() -> None:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        _rotate_if_needed(path, max_bytes_env)
        fd = os.open(path, os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o644)
        try:
            os.write(fd, data)
        finally:
            os.close(fd)

    try:
        _append_once()
    except OSError:
        _append_once()
