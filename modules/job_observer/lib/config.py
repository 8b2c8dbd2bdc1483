from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .utils import getenv_str


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class Settings:
    """
    Canonical runtime configuration for the job observer.

    Per-site crawl policy (delays, retries, thresholds) lives on the
    source_sites rows, not here, so it can change without a redeploy.
    """

    sqlite_path: str = "/app/local/state/job_observer.db"
    max_workers: int = 1

    # HTTP
    http_timeout: float = 15.0
    user_agent: str = "Mozilla/5.0 (compatible; JobObserver/1.0)"

    # Worker pacing
    backoff_base_seconds: float = 2.0
    record_delay_factor: float = 0.2

    # Read views
    new_window_hours: int = 24
    active_candidate_days: int = 30

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation.

        Expected kwargs (all optional):

            sqlite_path: str            # env fallback JOB_OBSERVER_SQLITE_PATH
            max_workers: int = 1        # env fallback JOB_OBSERVER_MAX_WORKERS
            http_timeout: float = 15
            user_agent: str
            backoff_base_seconds: float = 2.0
            record_delay_factor: float = 0.2
            new_window_hours: int = 24
            active_candidate_days: int = 30
        """
        kw = dict(kwargs or {})
        defaults = cls()

        sqlite_path = str(
            kw.get("sqlite_path") or getenv_str("JOB_OBSERVER_SQLITE_PATH", defaults.sqlite_path)
        ).strip()

        try:
            max_workers = int(kw.get("max_workers") or getenv_str("JOB_OBSERVER_MAX_WORKERS", "1"))
            http_timeout = float(kw.get("http_timeout", defaults.http_timeout))
            backoff_base_seconds = float(kw.get("backoff_base_seconds", defaults.backoff_base_seconds))
            record_delay_factor = float(kw.get("record_delay_factor", defaults.record_delay_factor))
            new_window_hours = int(kw.get("new_window_hours", defaults.new_window_hours))
            active_candidate_days = int(kw.get("active_candidate_days", defaults.active_candidate_days))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        user_agent = str(kw.get("user_agent") or defaults.user_agent)

        settings = cls(
            sqlite_path=sqlite_path,
            max_workers=max_workers,
            http_timeout=http_timeout,
            user_agent=user_agent,
            backoff_base_seconds=backoff_base_seconds,
            record_delay_factor=record_delay_factor,
            new_window_hours=new_window_hours,
            active_candidate_days=active_candidate_days,
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _validate_settings(s: Settings) -> None:
    if not s.sqlite_path:
        raise ConfigError("'sqlite_path' cannot be empty.")
    if s.max_workers <= 0:
        raise ConfigError("'max_workers' must be >= 1.")
    if s.http_timeout <= 0:
        raise ConfigError("'http_timeout' must be > 0.")
    if s.backoff_base_seconds < 0:
        raise ConfigError("'backoff_base_seconds' must be >= 0.")
    if s.record_delay_factor < 0:
        raise ConfigError("'record_delay_factor' must be >= 0.")
    if s.new_window_hours <= 0:
        raise ConfigError("'new_window_hours' must be >= 1.")
    if s.active_candidate_days <= 0:
        raise ConfigError("'active_candidate_days' must be >= 1.")
