from __future__ import annotations

from .. import logging_bridge
from ..models import GOOGLE_JOBS, Posting
from .base import BaseAdapter
from .registry import register


@register
class GoogleJobsAdapter(BaseAdapter):
    """Google Jobs adapter; synthetic mode only, like IndeedAdapter."""

    kind = "google_jobs"
    platform = GOOGLE_JOBS

    def scrape_pair(self, keyword: str, location: str) -> list[Posting]:
        logging_bridge.activity({
            "component": "jobs_tracker.adapters.google_jobs",
            "op": "live_unavailable",
            "keyword": keyword,
            "location": location,
        })
        return []
