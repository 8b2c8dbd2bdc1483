# service/logging_utils.py
from __future__ import annotations

import contextlib
import datetime as _dt
import json
import logging
import os
import socket
from collections.abc import Iterable
from typing import Any

# ---- Configuration (env-driven, read per write so tests can redirect) -------
#
#   LOG_DIR                  base directory for JSONL logs
#   ACTIVITY_LOG_PREFIX      file prefix for activity records
#   ERROR_LOG_PREFIX         file prefix for error records
#   ACTIVITY_LOG_MAX_BYTES   size-based rotation; <=0 disables it
#   LOG_LEVEL                stdlib logging level used by configure_stdlib_logging()
#
# Date-based rotation is always on via YYYY-MM-DD filenames.

_DEFAULT_LOG_DIR = "/app/local/logs"

# A minimal set of keys/substrings to redact (case-insensitive, substring match)
_DEFAULT_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "cookie",
    "set-cookie",
    "proxy",
}

# Host + process metadata (fixed per-process)
_HOSTNAME = socket.gethostname()
_PID = os.getpid()

_STDLIB_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ---- Public API --------------------------------------------------------------


def write_activity_log(record: dict[str, Any]) -> None:
    """
    Persist a single structured activity record (JSON-safe).

    May raise on unrecoverable I/O/serialization errors.
    Never mutates the passed-in dict.
    """
    _write_jsonl(_log_path_for_today(_activity_prefix()), record)


def write_error_log(record: dict[str, Any]) -> None:
    """Persist a single structured error record, parallel to the activity log."""
    _write_jsonl(_log_path_for_today(_error_prefix()), record)


def get_activity_log_path() -> str:
    """Return the current day's activity log path (YYYY-MM-DD.jsonl)."""
    return _log_path_for_today(_activity_prefix())


def get_error_log_path() -> str:
    return _log_path_for_today(_error_prefix())


def redact(record: dict[str, Any], keys: set[str] | None = None) -> dict[str, Any]:
    """
    Produce a redacted deep copy of `record` by scrubbing values whose KEYS
    contain any of the substrings in `keys` (case-insensitive). Does not mutate input.
    """
    return _redact_deep(record, keys or _DEFAULT_REDACT_KEYS)


def configure_stdlib_logging(level: str | None = None) -> None:
    """
    One-time stdlib logging setup for CLI/service processes.
    Level comes from the argument, then LOG_LEVEL, then INFO.
    """
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=getattr(logging, name, logging.INFO), format=_STDLIB_FORMAT)
    else:
        root.setLevel(getattr(logging, name, logging.INFO))
    # urllib3 is chatty at DEBUG (one line per connection).
    logging.getLogger("urllib3").setLevel(logging.WARNING)


# ---- Internal helpers --------------------------------------------------------


def _log_dir() -> str:
    return os.getenv("LOG_DIR") or _DEFAULT_LOG_DIR


def _activity_prefix() -> str:
    return os.getenv("ACTIVITY_LOG_PREFIX") or "activity"


def _error_prefix() -> str:
    return os.getenv("ERROR_LOG_PREFIX") or "error"


def _max_bytes() -> int:
    try:
        return int(os.getenv("ACTIVITY_LOG_MAX_BYTES", "0"))
    except ValueError:
        return 0


def _log_path_for_today(prefix: str) -> str:
    today = _dt.date.today().isoformat()  # YYYY-MM-DD
    return os.path.join(_log_dir(), f"{prefix}-{today}.jsonl")


def _ensure_dir(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)


def _should_rotate_size(path: str) -> bool:
    limit = _max_bytes()
    if limit <= 0:
        return False
    try:
        return os.path.getsize(path) >= limit
    except FileNotFoundError:
        return False


def _rotate_file_if_needed(path: str) -> None:
    """
    Rotate the current file if it has outgrown ACTIVITY_LOG_MAX_BYTES. The
    rotated file keeps a timestamp suffix so nothing is overwritten.
    """
    if not _should_rotate_size(path):
        return
    ts = _dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    with contextlib.suppress(FileNotFoundError):
        # Atomic rename on POSIX
        os.replace(path, f"{path}.{ts}")


def _json_dumps(obj: Any) -> str:
    # default=str keeps datetimes/enums/paths readable instead of failing the write.
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=str)


def _safe_bearer_scrub(value: str) -> str:
    """Scrub the credential part of "Bearer <token>"-looking strings, keeping the scheme."""
    if "bearer " in value.lower():
        try:
            scheme, _ = value.split(" ", 1)
        except ValueError:
            return "***REDACTED***"
        return f"{scheme} ***REDACTED***"
    return value


def _key_matches(name: str, patterns: Iterable[str]) -> bool:
    n = name.lower()
    return any(pat in n for pat in patterns)


def _redact_deep(value: Any, patterns: Iterable[str]) -> Any:
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if isinstance(k, str) and _key_matches(k, patterns):
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact_deep(v, patterns)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_deep(v, patterns) for v in value]
    if isinstance(value, str):
        return _safe_bearer_scrub(value)
    return value


def _with_metadata(record: dict[str, Any]) -> dict[str, Any]:
    """Add timestamp + host/pid under `_meta` without touching the caller's dict."""
    meta = record.get("_meta", {})
    if not isinstance(meta, dict):
        meta = {}
    out = dict(record)
    out["_meta"] = {
        **meta,
        "ts": _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds"),
        "host": _HOSTNAME,
        "pid": _PID,
    }
    return out


def _write_jsonl(path: str, record: dict[str, Any]) -> None:
    """
    Core writer: redact, add metadata, rotate by size, then append one line
    with O_APPEND (atomic on POSIX). Retries once on a transient OSError.
    """
    _ensure_dir(path)
    _rotate_file_if_needed(path)

    payload = _with_metadata(_redact_deep(record, _DEFAULT_REDACT_KEYS))

    # Serialize first so any serialization errors happen before file ops.
    data = (_json_dumps(payload) + "\n").encode("utf-8")
    flags = os.O_CREAT | os.O_APPEND | os.O_WRONLY

    def _append_once() -> None:
        fd = os.open(path, flags, 0o644)
        try:
            os.write(fd, data)
        finally:
            os.close(fd)

    try:
        _append_once()
    except OSError:
        _ensure_dir(path)
        _rotate_file_if_needed(path)
        _append_once()
