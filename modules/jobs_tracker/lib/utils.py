from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/config.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime | None) -> str | None:
    """
    UTC ISO-8601 timestamp with 'Z' suffix (None passes through).
    Always microsecond precision so stored values compare correctly as text.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def from_iso(s: str | None) -> datetime | None:
    """Parse what `to_iso` wrote; naive values are taken as UTC."""
    if not s:
        return None
    dt = datetime.fromisoformat(s.strip().replace("Z", "+00:00"))
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def normalize_terms(values: Any) -> frozenset[str]:
    """
    Collapse a keyword/location collection into a set of stripped, non-blank strings.
    A bare string counts as a single term.
    """
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(s for s in (str(v).strip() for v in values) if s)
