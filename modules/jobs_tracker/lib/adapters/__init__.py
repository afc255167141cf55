# jobs_tracker/adapters/__init__.py
from __future__ import annotations

from .base import AdapterError, BaseAdapter
from .google_jobs import GoogleJobsAdapter
from .indeed import IndeedAdapter
from .linkedin import LinkedInAdapter
from .registry import all_kinds, build_adapters, get, register
from .stub import StubAdapter

__all__ = [
    "AdapterError",
    "BaseAdapter",
    "GoogleJobsAdapter",
    "IndeedAdapter",
    "LinkedInAdapter",
    "StubAdapter",
    "all_kinds",
    "build_adapters",
    "get",
    "register",
]
