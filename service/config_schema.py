# service/config_schema.py
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from modules.jobs_tracker.lib import adapters as _adapters
from modules.jobs_tracker.lib.config import ConfigError, Settings

logger = logging.getLogger(__name__)

__all__ = ["ConfigError", "load_config", "load_settings", "validate"]

_TOP_LEVEL_KEYS = {
    "timezone",
    "sqlite_path",
    "schedule",
    "max_workers",
    "synthetic",
    "reachability_timeout_sec",
    "http_timeout_sec",
    "adapters",
}
_TRIGGER_FIELDS = ("cron", "interval", "daily_time")


@dataclass
class _LoadResult:
    """Internal convenience container (not required by callers)."""

    cfg: dict[str, Any]
    source: str


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load the service configuration.

    Resolution order:
      1) Explicit `path` argument (if provided)
      2) os.environ['CONFIG_PATH'] (if set)
      3) Internal default (empty config: every Settings default applies)

    Returns:
        dict, with "timezone" always resolved (config, then env TZ, then UTC).
    """
    resolved_path = path or os.environ.get("CONFIG_PATH")
    if not resolved_path:
        logger.info("CONFIG_PATH not provided; using default config.")
        cfg: dict[str, Any] = {}
    else:
        cfg = _read_any(resolved_path).cfg

    _apply_top_level_defaults(cfg)
    return cfg


def load_settings(path: str | None = None) -> Settings:
    """load_config + validate + typed Settings."""
    cfg = load_config(path)
    validate(cfg)
    return Settings.from_mapping(cfg)


def validate(cfg: dict[str, Any]) -> None:
    """
    Validate the configuration. Raise ConfigError on any problem.
    No prints, no sys.exit().
    """
    if not isinstance(cfg, dict):
        raise ConfigError("Config must be a dict.")

    unknown = set(cfg) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown top-level key(s): {sorted(unknown)}")

    tz = cfg.get("timezone")
    if tz is not None:
        if not isinstance(tz, str):
            raise ConfigError("'timezone' must be a string if provided.")
        try:
            ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError) as err:
            raise ConfigError(f"Unknown timezone {tz!r}.") from err

    schedule = cfg.get("schedule")
    if schedule is not None:
        if not isinstance(schedule, dict):
            raise ConfigError("'schedule' must be an object.")
        present = [k for k in _TRIGGER_FIELDS if schedule.get(k) is not None]
        if len(present) != 1:
            raise ConfigError(f"'schedule' needs exactly one of {', '.join(_TRIGGER_FIELDS)}.")
        # Full trigger parsing lives in the scheduler; reuse it so both agree.
        from service.scheduler import build_trigger

        try:
            build_trigger(schedule, tz or "UTC")
        except ValueError as err:
            raise ConfigError(f"Invalid schedule: {err}") from err

    # Typed fields + adapter list shape
    settings = Settings.from_mapping(cfg, env={})

    known = _adapters.all_kinds()
    for spec in settings.adapters:
        if spec.kind not in known:
            raise ConfigError(f"Unknown adapter kind {spec.kind!r}; known: {sorted(known)}")


def _apply_top_level_defaults(cfg: dict[str, Any]) -> None:
    # Resolve timezone now so the scheduler can use cfg['timezone']
    tz = cfg.get("timezone")
    if not isinstance(tz, str) or not tz.strip():
        cfg["timezone"] = os.environ.get("TZ", "UTC")


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
    else:
        # .yml/.yaml, and anything else: YAML is a superset of JSON.
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level config in {path} must be a mapping/object.")
    return _LoadResult(cfg=data, source=path)
