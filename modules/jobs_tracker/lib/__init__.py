# modules/jobs_tracker/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience.
# Importing .adapters also registers the built-in adapters.
from .adapters import AdapterError, BaseAdapter
from .config import AdapterSpec, ConfigError, Settings
from .db import ConflictError, InfrastructureError
from .engine import Orchestrator
from .models import GOOGLE_JOBS, INDEED, LINKEDIN, Platform, Posting, SearchCriteria
from .persister import DedupPersister
from .trigger import RunInProgressError, ScrapeTrigger

__all__ = [
    "GOOGLE_JOBS",
    "INDEED",
    "LINKEDIN",
    "AdapterError",
    "AdapterSpec",
    "BaseAdapter",
    "ConfigError",
    "ConflictError",
    "DedupPersister",
    "InfrastructureError",
    "Orchestrator",
    "Platform",
    "Posting",
    "RunInProgressError",
    "ScrapeTrigger",
    "SearchCriteria",
    "Settings",
]
