# jobs_tracker/adapters/linkedin.py
from __future__ import annotations

import time

import requests
from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib

from ..models import LINKEDIN, Posting
from .base import AdapterError, BaseAdapter
from .registry import register

_SEARCH_URL = "https://www.linkedin.com/jobs-guest/jobs/api/seeMoreJobPostings/search"
_PAGE_SIZE = 25


@register
class LinkedInAdapter(BaseAdapter):
    """
    LinkedIn public (guest) job search.

    params:
      max_pages: int        # result pages per keyword/location pair (default 1, 25 cards each)
      delay_seconds: float  # polite pause between pages (default 1.0)

    Live behavior:
      - One GET per page against the guest search fragment endpoint.
      - An empty fragment means "no (more) results".
      - 401/403/429, transport failures and markup without job cards raise AdapterError.
    """

    kind = "linkedin"
    platform = LINKEDIN

    def scrape_pair(self, keyword: str, location: str) -> list[Posting]:
        max_pages = max(1, int(self.params.get("max_pages") or 1))
        delay = float(self.params.get("delay_seconds", 1.0) or 0.0)

        out: list[Posting] = []
        for page in range(max_pages):
            if page > 0 and delay > 0:
                time.sleep(delay)
            try:
                html = self.client.get_text(
                    _SEARCH_URL,
                    params={"keywords": keyword, "location": location, "start": page * _PAGE_SIZE},
                )
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                raise AdapterError(f"LinkedIn search rejected ({status}) for {keyword!r} in {location!r}") from e
            except requests.RequestException as e:
                raise AdapterError(f"LinkedIn search failed for {keyword!r} in {location!r}: {e!r}") from e

            if not html.strip():
                break
            batch, card_count = _parse_page(html, fallback_location=location)
            out.extend(batch)
            # a short page is the last one; skipped cards still count toward the page
            if card_count < _PAGE_SIZE:
                break
        return out


def parse_search_results(html: str, *, fallback_location: str = "") -> list[Posting]:
    """
    Return postings from a guest search fragment (a run of <li> job cards).
    Cards without a job id, title or link are skipped.
    """
    return _parse_page(html, fallback_location=fallback_location)[0]


def _parse_page(html: str, *, fallback_location: str = "") -> tuple[list[Posting], int]:
    soup = BeautifulSoup(html, "html5lib")
    cards = soup.select("div.base-card, div.base-search-card")
    if not cards:
        raise AdapterError("LinkedIn response contained no job cards (layout change or auth wall)")

    out: list[Posting] = []
    seen: set[str] = set()
    for card in cards:
        urn = (card.get("data-entity-urn") or "").strip()
        job_id = urn.rsplit(":", 1)[-1] if urn else ""

        title_el = card.select_one("h3.base-search-card__title")
        company_el = card.select_one("h4.base-search-card__subtitle")
        location_el = card.select_one("span.job-search-card__location")
        link_el = card.select_one("a.base-card__full-link")

        title = title_el.get_text(strip=True) if title_el else ""
        href = (link_el.get("href") or "").strip() if link_el else ""
        url = href.split("?", 1)[0]

        if not job_id or not title or not url or job_id in seen:
            continue
        seen.add(job_id)

        company = company_el.get_text(" ", strip=True) if company_el else ""
        where = location_el.get_text(strip=True) if location_el else fallback_location
        out.append(
            Posting(
                external_id=f"{LINKEDIN.name}-{job_id}",
                title=title,
                company=company,
                description=f"{title} at {company or 'unknown company'} ({where})",
                platform=LINKEDIN,
                url=url,
                location=where,
            )
        )
    return out, len(cards)
