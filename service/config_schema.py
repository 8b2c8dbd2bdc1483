# service/config_schema.py
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the config is invalid."""


@dataclass
class _LoadResult:
    """Internal convenience container (not required by callers)."""

    cfg: dict[str, Any]
    source: str


DEFAULT_INTERVAL_MINUTES = 30
DEFAULT_INITIAL_DELAY_SECONDS = 60

_SITE_DEFAULTS: dict[str, Any] = {
    "inactive_threshold_days": 7,
    "repost_threshold_days": 30,
    "crawl_delay_seconds": 3.0,
    "max_retries": 2,
    "crawl_enabled": True,
    "reliability_weight": 0.5,
}


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load the service configuration.

    Resolution order:
      1) Explicit `path` argument (if provided)
      2) os.environ['CONFIG_PATH'] (if set)
      3) Internal default (no sites, no aliases)

    Returns:
        dict with timezone, settings, schedule, sites and aliases always present.
    """
    resolved_path = path or os.environ.get("CONFIG_PATH")
    if not resolved_path:
        logger.info("CONFIG_PATH not provided; using empty default config.")
        cfg: dict[str, Any] = {}
    else:
        cfg = _read_any(resolved_path).cfg

    _apply_top_level_defaults(cfg)
    return cfg


def validate(cfg: dict[str, Any]) -> None:
    """
    Validate the configuration. Raise ConfigError on any problem.
    No prints, no sys.exit().
    """
    if not isinstance(cfg, dict):
        raise ConfigError("Config must be a dict.")

    tz = cfg.get("timezone")
    if tz is not None and not isinstance(tz, str):
        raise ConfigError("'timezone' must be a string if provided.")

    settings = cfg.get("settings", {})
    if not isinstance(settings, dict):
        raise ConfigError("'settings' must be an object if provided.")

    _validate_schedule(cfg.get("schedule", {}))

    sites = cfg.get("sites", [])
    if not isinstance(sites, list):
        raise ConfigError("'sites' must be a list.")

    seen: set[str] = set()
    for idx, site in enumerate(sites):
        if not isinstance(site, dict):
            raise ConfigError(f"Site at index {idx} must be an object/dict.")
        name = site.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ConfigError(f"Site {idx}: 'name' is required and must be a non-empty string.")
        key = name.strip().lower()
        if key in seen:
            raise ConfigError(f"Duplicate site name '{name}'.")
        seen.add(key)
        _validate_site(site, key)

    aliases = cfg.get("aliases", [])
    if not isinstance(aliases, list):
        raise ConfigError("'aliases' must be a list.")
    for idx, entry in enumerate(aliases):
        if not isinstance(entry, dict):
            raise ConfigError(f"Alias entry {idx} must be an object/dict.")
        company = entry.get("company")
        if not isinstance(company, str) or not company.strip():
            raise ConfigError(f"Alias entry {idx}: 'company' is required and must be a non-empty string.")
        values = entry.get("aliases", [])
        if not isinstance(values, list):
            raise ConfigError(f"Alias entry '{company}': 'aliases' must be a list of strings.")
        for j, a in enumerate(values):
            if not isinstance(a, str) or not a.strip():
                raise ConfigError(f"Alias entry '{company}': aliases[{j}] must be a non-empty string.")


def site_rows(cfg: dict[str, Any]) -> list[dict[str, Any]]:
    """Sites with every policy field present and typed (call after validate)."""
    out: list[dict[str, Any]] = []
    for site in cfg.get("sites", []):
        row = {**_SITE_DEFAULTS, **{k: v for k, v in site.items() if k in _SITE_DEFAULTS}}
        row["name"] = site["name"].strip().lower()
        row["inactive_threshold_days"] = int(row["inactive_threshold_days"])
        row["repost_threshold_days"] = int(row["repost_threshold_days"])
        row["crawl_delay_seconds"] = float(row["crawl_delay_seconds"])
        row["max_retries"] = int(row["max_retries"])
        row["crawl_enabled"] = _to_bool(row["crawl_enabled"], field="crawl_enabled", site=row["name"])
        row["reliability_weight"] = float(row["reliability_weight"])
        row["targets"] = _targets(site.get("targets"), row["name"])
        out.append(row)
    return out


# ---- validation helpers ------------------------------------------------------


def _validate_schedule(schedule: Any) -> None:
    if not isinstance(schedule, dict):
        raise ConfigError("'schedule' must be an object if provided.")
    if "interval_minutes" in schedule:
        minutes = _to_number(schedule["interval_minutes"], field="schedule.interval_minutes", site=None)
        if minutes <= 0:
            raise ConfigError("'schedule.interval_minutes' must be > 0.")
    if "initial_delay_seconds" in schedule:
        delay = _to_number(schedule["initial_delay_seconds"], field="schedule.initial_delay_seconds", site=None)
        if delay < 0:
            raise ConfigError("'schedule.initial_delay_seconds' must be >= 0.")


def _validate_site(site: dict[str, Any], name: str) -> None:
    inactive = _to_int(site.get("inactive_threshold_days", 7), field="inactive_threshold_days", site=name)
    repost = _to_int(site.get("repost_threshold_days", 30), field="repost_threshold_days", site=name)
    if inactive <= 0:
        raise ConfigError(f"Site '{name}': 'inactive_threshold_days' must be >= 1.")
    if repost <= 0:
        raise ConfigError(f"Site '{name}': 'repost_threshold_days' must be >= 1.")
    if repost < inactive:
        raise ConfigError(f"Site '{name}': 'repost_threshold_days' must be >= 'inactive_threshold_days'.")

    if _to_number(site.get("crawl_delay_seconds", 3), field="crawl_delay_seconds", site=name) < 0:
        raise ConfigError(f"Site '{name}': 'crawl_delay_seconds' must be >= 0.")
    if _to_int(site.get("max_retries", 2), field="max_retries", site=name) < 0:
        raise ConfigError(f"Site '{name}': 'max_retries' must be >= 0.")

    weight = _to_number(site.get("reliability_weight", 0.5), field="reliability_weight", site=name)
    if not 0.0 <= weight <= 1.0:
        raise ConfigError(f"Site '{name}': 'reliability_weight' must be within [0, 1].")

    if "crawl_enabled" in site:
        _to_bool(site["crawl_enabled"], field="crawl_enabled", site=name)

    _targets(site.get("targets"), name)


def _targets(value: Any, site: str) -> list[dict[str, Any]]:
    """Accept ["url", ...] or [{"url": ..., "active": bool}, ...]."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"Site '{site}': 'targets' must be a list.")
    out: list[dict[str, Any]] = []
    for i, t in enumerate(value):
        if isinstance(t, str):
            url, active = t.strip(), True
        elif isinstance(t, dict):
            url = str(t.get("url") or "").strip()
            active = _to_bool(t.get("active", True), field=f"targets[{i}].active", site=site)
        else:
            raise ConfigError(f"Site '{site}': targets[{i}] must be a URL string or an object.")
        if not url:
            raise ConfigError(f"Site '{site}': targets[{i}] has no 'url'.")
        out.append({"url": url, "active": active})
    return out


def _apply_top_level_defaults(cfg: dict[str, Any]) -> None:
    # Resolve timezone now so scheduler can use cfg['timezone']
    tz = cfg.get("timezone")
    if not isinstance(tz, str) or not tz.strip():
        cfg["timezone"] = os.environ.get("TZ", "UTC")

    if not isinstance(cfg.get("settings"), dict):
        cfg["settings"] = {}

    schedule = cfg.get("schedule")
    if not isinstance(schedule, dict):
        schedule = {}
    schedule.setdefault("interval_minutes", DEFAULT_INTERVAL_MINUTES)
    schedule.setdefault("initial_delay_seconds", DEFAULT_INITIAL_DELAY_SECONDS)
    cfg["schedule"] = schedule

    for key in ("sites", "aliases"):
        if cfg.get(key) is None:
            cfg[key] = []


def _label(site: str | None) -> str:
    return f"Site '{site}': " if site else ""


def _to_bool(value: Any, *, field: str, site: str | None) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"{_label(site)}'{field}' must be a boolean (or boolean-like string).")


def _to_int(value: Any, *, field: str, site: str | None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{_label(site)}'{field}' must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"{_label(site)}'{field}' must be an integer.") from err


def _to_number(value: Any, *, field: str, site: str | None) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{_label(site)}'{field}' must be a number.")
    try:
        return float(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"{_label(site)}'{field}' must be a number.") from err


def _read_any(path: str) -> _LoadResult:
    lower = path.lower()
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}: {e}") from e

    if lower.endswith(".json"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError("Top-level JSON must be an object.")
        return _LoadResult(cfg=data, source=path)

    if lower.endswith(".yml") or lower.endswith(".yaml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Top-level YAML must be a mapping/object.")
        return _LoadResult(cfg=data, source=path)

    # Try JSON as a fallback if extension is unknown
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        return _LoadResult(cfg=data, source=path)

    raise ConfigError(f"Unsupported config format for {path}. Use .json or .yml/.yaml.")
