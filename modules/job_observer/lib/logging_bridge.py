from __future__ import annotations

import copy
import logging
from typing import Any

from service import logging_utils as _svc_logging

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
    "proxy",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record and redact obvious secret-like fields at top level.
    """
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret") or lk.endswith("_token"):
            redacted[k] = "***REDACTED***"
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record to the JSONL activity sink.
    Falls back to stdlib logging as structured info.
    """
    payload = _redact_record(record)
    try:
        _svc_logging.write_activity_log(payload)
        return
    except Exception:
        # Fall through to std logging
        pass
    logging.getLogger("job_observer.activity").info(payload)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record to the JSONL error sink.
    Falls back to stdlib logging as structured error.
    """
    payload = _redact_record(record)
    try:
        _svc_logging.write_error_log(payload)
        return
    except Exception:
        # Fall through to std logging
        pass
    logging.getLogger("job_observer.error").error(payload)
