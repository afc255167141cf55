from __future__ import annotations

from .. import logging_bridge
from ..models import INDEED, Posting
from .base import BaseAdapter
from .registry import register


@register
class IndeedAdapter(BaseAdapter):
    """
    Indeed adapter. Only synthetic mode produces postings for now; live mode
    records that it has nothing to offer and returns no postings.
    """

    kind = "indeed"
    platform = INDEED

    def scrape_pair(self, keyword: str, location: str) -> list[Posting]:
        logging_bridge.activity({
            "component": "jobs_tracker.adapters.indeed",
            "op": "live_unavailable",
            "keyword": keyword,
            "location": location,
        })
        return []
