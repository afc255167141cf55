from __future__ import annotations

from typing import Any

from ..models import Posting, SearchCriteria, platform_by_tag
from ..utils import truthy
from .base import AdapterError, BaseAdapter
from .registry import register


@register
class StubAdapter(BaseAdapter):
    """
    A zero-network adapter used for tests and dry-runs.

    params may contain:
      - platform: str                 # platform tag to report (default "LINKEDIN")
      - available: bool               # what is_available() answers (default true)
      - items: list[{external_id:str, title:str, company?, description?, url?, location?}]
      - error: str                    # if set, scrape_jobs raises AdapterError(error)

    Behavior:
      - Same empty-facet rule as every adapter.
      - Returns the configured items once per criteria (not per keyword/location pair).
      - Items without external_id or title are dropped.
    """

    kind = "stub"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.platform = platform_by_tag(str(self.params.get("platform") or "LINKEDIN"))

    def is_available(self) -> bool:
        return truthy(self.params.get("available", True))

    def scrape_jobs(self, criteria: SearchCriteria) -> list[Posting]:
        if not criteria.keywords or not criteria.locations:
            return []
        if self.params.get("error"):
            raise AdapterError(str(self.params["error"]))

        raw_items = self.params.get("items") or []
        if not isinstance(raw_items, list):
            raw_items = []

        postings: list[Posting] = []
        for item in raw_items:
            if not isinstance(item, dict):
                continue
            external_id = str(item.get("external_id") or "").strip()
            title = str(item.get("title") or "").strip()
            if not external_id or not title:
                continue
            postings.append(
                Posting(
                    external_id=external_id,
                    title=title,
                    company=str(item.get("company") or ""),
                    description=str(item.get("description") or ""),
                    platform=self.platform,
                    url=str(item.get("url") or f"{self.platform.url}/{external_id}"),
                    location=str(item.get("location") or ""),
                )
            )
        return postings

    def scrape_pair(self, keyword: str, location: str) -> list[Posting]:
        raise AdapterError("stub adapter answers per criteria; scrape_pair is not used")
