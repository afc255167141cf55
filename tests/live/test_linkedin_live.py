# tests/live/test_linkedin_live.py
from __future__ import annotations

import os

import pytest

from modules.jobs_tracker.lib.adapters.linkedin import LinkedInAdapter
from modules.jobs_tracker.lib.models import LINKEDIN, SearchCriteria
from modules.jobs_tracker.lib.reachability import ReachabilityChecker


def _print_results(label: str, postings, max_items: int | None = None) -> None:
    # allow override via env (e.g., LINKEDIN_MAX_PRINT=999)
    if max_items is None:
        env_max = os.getenv("LINKEDIN_MAX_PRINT")
        max_items = int(env_max) if env_max else 10
    print(f"\n[{label}] items: {len(postings)}")
    for p in postings[:max_items]:
        print(f"      • {p.title} @ {p.company} ({p.location})  [{p.url}]")


@pytest.mark.live
def test_linkedin_reachable_live():
    checker = ReachabilityChecker(timeout=10.0)
    try:
        assert checker.is_reachable(LINKEDIN.url) is True
    finally:
        checker.close()


@pytest.mark.live
def test_linkedin_guest_search_live():
    """
    Live smoke test: one page of the public guest search.
    Verifies shape only; LinkedIn may throttle, in which case AdapterError is the expected failure.
    """
    checker = ReachabilityChecker(timeout=10.0)
    adapter = LinkedInAdapter(checker, params={"max_pages": 1})
    try:
        postings = adapter.scrape_jobs(SearchCriteria(name="live", keywords=["python"], locations=["Remote"]))
    finally:
        adapter.client.close()
        checker.close()

    _print_results("linkedin:python/Remote", postings)
    assert postings, "expected at least one job card"
    assert all(p.external_id.startswith("LinkedIn-") for p in postings)
    assert all(p.url.startswith("https://") for p in postings)
    assert len({p.external_id for p in postings}) == len(postings)
