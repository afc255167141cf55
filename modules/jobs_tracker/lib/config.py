from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .utils import truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided config/env cannot form a valid Settings."""


# -----------------------------
# Defaults
# -----------------------------
DEFAULT_SQLITE_PATH = "/app/local/state/jobs_tracker.db"
DEFAULT_CRON = "0 0 2 * * *"  # daily at 02:00:00 (seconds-first, 6 fields)
DEFAULT_ADAPTER_KINDS = ("linkedin", "indeed", "google_jobs")


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class AdapterSpec:
    """
    One configured adapter.
    - kind: registry key (e.g., "linkedin", "indeed", "google_jobs", "stub")
    - params: arbitrary dict handed to the adapter constructor
    - synthetic: per-adapter override of Settings.synthetic (None = inherit)
    """

    kind: str
    params: dict[str, Any] = field(default_factory=dict)
    synthetic: bool | None = None


@dataclass
class Settings:
    """
    Canonical configuration for the jobs tracker.

    Built from the loaded config mapping (see service.config_schema.load_config);
    two env vars win over the file so containers can flip them without editing it:
        JOBS_TRACKER_SQLITE_PATH, JOBS_TRACKER_SYNTHETIC
    """

    sqlite_path: str = DEFAULT_SQLITE_PATH
    timezone: str = "UTC"
    schedule: dict[str, Any] = field(default_factory=lambda: {"cron": DEFAULT_CRON})

    # Orchestration
    max_workers: int = 4
    adapters: list[AdapterSpec] = field(
        default_factory=lambda: [AdapterSpec(kind=k) for k in DEFAULT_ADAPTER_KINDS]
    )
    synthetic: bool = False

    # Transport
    reachability_timeout_sec: float = 5.0
    http_timeout_sec: float = 15.0

    # ------------- constructors -------------
    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any] | None, env: Mapping[str, str] | None = None) -> Settings:
        """
        Build Settings from a config mapping with validation.

        Recognized keys (all optional):

            sqlite_path: str
            timezone: str = "UTC"
            schedule: {cron: str|dict} | {daily_time: {...}} | {interval: {...}}
            max_workers: int = 4
            synthetic: bool = false
            reachability_timeout_sec: float = 5
            http_timeout_sec: float = 15
            adapters: [{kind: str, params?: {...}, synthetic?: bool} | "kind", ...]
        """
        c = dict(cfg or {})
        e = os.environ if env is None else env

        sqlite_path = str(e.get("JOBS_TRACKER_SQLITE_PATH") or c.get("sqlite_path") or DEFAULT_SQLITE_PATH)
        synthetic_raw = e.get("JOBS_TRACKER_SYNTHETIC")
        synthetic = truthy(synthetic_raw if synthetic_raw not in (None, "") else c.get("synthetic"))

        schedule = c.get("schedule") or {"cron": DEFAULT_CRON}
        if not isinstance(schedule, dict):
            raise ConfigError("'schedule' must be an object with one of cron/daily_time/interval.")

        adapters_raw = c.get("adapters")
        adapters = (
            [AdapterSpec(kind=k) for k in DEFAULT_ADAPTER_KINDS]
            if adapters_raw is None
            else _parse_adapters_list(adapters_raw)
        )

        settings = cls(
            sqlite_path=sqlite_path,
            timezone=str(c.get("timezone") or "UTC"),
            schedule=dict(schedule),
            max_workers=_as_int(c.get("max_workers"), 4, "max_workers"),
            adapters=adapters,
            synthetic=synthetic,
            reachability_timeout_sec=_as_float(c.get("reachability_timeout_sec"), 5.0, "reachability_timeout_sec"),
            http_timeout_sec=_as_float(c.get("http_timeout_sec"), 15.0, "http_timeout_sec"),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _parse_adapters_list(value: Any) -> list[AdapterSpec]:
    """
    Parse a flat list into AdapterSpec objects.
    Accepts: ["linkedin", {"kind": "stub", "params": {...}, "synthetic": false}, ...]
    """
    if not isinstance(value, list):
        raise ConfigError("'adapters' must be a list.")
    out: list[AdapterSpec] = []
    for i, item in enumerate(value):
        if isinstance(item, str):
            item = {"kind": item}
        if not isinstance(item, dict):
            raise ConfigError(f"adapters[{i}] must be a string or an object.")
        kind = str(item.get("kind") or "").strip()
        params = item.get("params") or {}
        if not kind:
            raise ConfigError(f"adapters[{i}] requires 'kind'.")
        if not isinstance(params, dict):
            raise ConfigError(f"adapters[{i}].params must be an object.")
        synthetic = item.get("synthetic")
        out.append(
            AdapterSpec(
                kind=kind.lower(),
                params=dict(params),
                synthetic=None if synthetic is None else truthy(synthetic),
            )
        )
    return out


def _as_int(v: Any, default: int, name: str) -> int:
    if v is None or v == "":
        return default
    try:
        return int(v)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"'{name}' must be an integer (got {v!r}).") from err


def _as_float(v: Any, default: float, name: str) -> float:
    if v is None or v == "":
        return default
    try:
        return float(v)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"'{name}' must be a number (got {v!r}).") from err


def _validate_settings(s: Settings) -> None:
    if s.max_workers <= 0:
        raise ConfigError("'max_workers' must be >= 1.")
    if not s.sqlite_path.strip():
        raise ConfigError("'sqlite_path' cannot be empty.")
    if s.reachability_timeout_sec <= 0:
        raise ConfigError("'reachability_timeout_sec' must be > 0.")
    if s.http_timeout_sec <= 0:
        raise ConfigError("'http_timeout_sec' must be > 0.")
