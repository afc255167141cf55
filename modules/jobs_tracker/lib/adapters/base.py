from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any

from .. import logging_bridge
from ..http_client import HttpClient
from ..models import Platform, Posting, SearchCriteria
from ..reachability import ReachabilityChecker

SYNTHETIC_BATCH_SIZE = 3


class AdapterError(Exception):
    """Raised when an adapter cannot complete a scrape (network, auth rejection, parse failure)."""


class BaseAdapter(ABC):
    """
    Abstract platform adapter.

    One instance serves one platform for the lifetime of the process; the
    orchestrator may call it from several worker threads at once.

    Contract:
      - is_available() never raises; unavailability is False.
      - scrape_jobs(criteria) returns ALL postings found for every keyword x location
        pair (dedupe happens downstream in the persister), [] when either facet is
        empty, and raises AdapterError when the platform cannot be scraped.
      - Do NOT persist, print, or mutate the criteria.
    """

    # Concrete subclasses MUST set these, e.g. kind="linkedin", platform=LINKEDIN
    kind: str = ""
    platform: Platform

    def __init__(
        self,
        checker: ReachabilityChecker,
        *,
        client: HttpClient | None = None,
        synthetic: bool = False,
        params: dict[str, Any] | None = None,
    ) -> None:
        self._checker = checker
        self._client = client
        self.synthetic = bool(synthetic)
        self.params: dict[str, Any] = dict(params or {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(platform={self.platform.tag}, synthetic={self.synthetic})"

    @property
    def client(self) -> HttpClient:
        if self._client is None:
            self._client = HttpClient()
        return self._client

    def is_available(self) -> bool:
        try:
            return self._checker.is_reachable(self.platform.url)
        except Exception as e:
            logging_bridge.error({
                "component": "jobs_tracker.adapters",
                "op": "is_available",
                "platform": self.platform.tag,
                "error": repr(e),
            })
            return False

    def scrape_jobs(self, criteria: SearchCriteria) -> list[Posting]:
        if not criteria.keywords or not criteria.locations:
            return []

        postings: list[Posting] = []
        for keyword, location in criteria.pairs():
            if self.synthetic:
                postings.extend(synthetic_postings(self.platform, keyword, location))
            else:
                postings.extend(self.scrape_pair(keyword, location))

        logging_bridge.activity({
            "component": "jobs_tracker.adapters",
            "op": "scraped",
            "platform": self.platform.tag,
            "criteria": criteria.name,
            "synthetic": self.synthetic,
            "found": len(postings),
        })
        return postings

    @abstractmethod
    def scrape_pair(self, keyword: str, location: str) -> list[Posting]:
        """
        Live scrape for one keyword/location pair.

        Raises:
            AdapterError: the remote platform could not be queried or understood.
        """
        raise NotImplementedError


def synthetic_postings(
    platform: Platform,
    keyword: str,
    location: str,
    count: int = SYNTHETIC_BATCH_SIZE,
) -> list[Posting]:
    """Placeholder postings for dry runs; ids are fresh on every call."""
    out: list[Posting] = []
    for i in range(1, count + 1):
        out.append(
            Posting(
                external_id=f"{platform.name}-{uuid.uuid4()}",
                title=f"{keyword} - Position {i}",
                company=f"Company {i}",
                description=f"Job description for {keyword} in {location}",
                platform=platform,
                url=f"{platform.url}/{uuid.uuid4()}",
                location=location,
            )
        )
    return out
