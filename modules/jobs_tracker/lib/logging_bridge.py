from __future__ import annotations

import copy
import logging
from typing import Any

# Route to the service's JSONL sink when it is importable; default to stdlib logging.
# No prints; this module should be silent on import.
try:
    from service import logging_utils as _logging_backend
except ImportError:  # pragma: no cover
    _logging_backend = None

_LOG = logging.getLogger("jobs_tracker")

# Keys that should be redacted from structured logs
_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "auth",
    "bearer",
    "cookie",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record and redact obvious secret-like fields at top level.
    The JSONL sink redacts nested values as well.
    """
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret"):
            redacted[k] = "***REDACTED***"
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record to the JSONL activity log if available.
    Falls back to stdlib logging as structured info.
    """
    payload = _redact_record(record)
    _LOG.debug("activity %s", payload)
    if _logging_backend is not None:
        try:
            _logging_backend.write_activity_log(payload)
            return
        except (OSError, TypeError, ValueError):
            _LOG.debug("write_activity_log failed; using stdlib logging", exc_info=True)
    logging.getLogger("jobs_tracker.activity").info(payload)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record to the JSONL error log if available.
    Falls back to stdlib logging as structured error.
    """
    payload = _redact_record(record)
    _LOG.debug("error %s", payload)
    if _logging_backend is not None:
        try:
            _logging_backend.write_error_log(payload)
            return
        except (OSError, TypeError, ValueError):
            _LOG.debug("write_error_log failed; using stdlib logging", exc_info=True)
    logging.getLogger("jobs_tracker.error").error(payload)
