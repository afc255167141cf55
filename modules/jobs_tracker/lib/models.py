from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .utils import normalize_terms


@dataclass(frozen=True)
class Platform:
    """
    A supported job source.
    - tag:  stable identifier stored in the DB and used in config ("LINKEDIN")
    - name: human label, also the external-id prefix for synthesized ids ("LinkedIn")
    - url:  canonical base URL, probed for reachability and used to build listing links
    """

    tag: str
    name: str
    url: str

    def __str__(self) -> str:
        return self.tag


LINKEDIN = Platform("LINKEDIN", "LinkedIn", "https://www.linkedin.com/jobs")
INDEED = Platform("INDEED", "Indeed", "https://www.indeed.com")
GOOGLE_JOBS = Platform("GOOGLE_JOBS", "Google Jobs", "https://careers.google.com/jobs")

PLATFORMS: dict[str, Platform] = {p.tag: p for p in (LINKEDIN, INDEED, GOOGLE_JOBS)}


def platform_by_tag(tag: str) -> Platform:
    """
    Look up a platform by tag (case-insensitive).
    Raises KeyError if not found.
    """
    key = (tag or "").strip().upper()
    if key not in PLATFORMS:
        raise KeyError(f"Unknown platform {tag!r}.")
    return PLATFORMS[key]


@dataclass(frozen=True)
class Posting:
    """
    A single job posting.

    Adapters build these in memory with only the scraped fields; the posting store
    returns a copy carrying `id`, `created_at` and `updated_at` once it is durable.
    Dedupe is by `external_id` alone (adapters namespace ids by platform).
    """

    external_id: str
    title: str
    company: str
    description: str
    platform: Platform
    url: str
    location: str = ""
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class SearchCriteria:
    """
    A saved search: every adapter scrapes each keyword x location pair.
    keywords/locations are sets; blanks are dropped and duplicates collapse.
    """

    name: str
    keywords: frozenset[str] = field(default_factory=frozenset)
    locations: frozenset[str] = field(default_factory=frozenset)
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "name", (self.name or "").strip())
        object.__setattr__(self, "keywords", normalize_terms(self.keywords))
        object.__setattr__(self, "locations", normalize_terms(self.locations))

    def pairs(self) -> list[tuple[str, str]]:
        """Every (keyword, location) combination, sorted for stable output."""
        return [(k, loc) for k in sorted(self.keywords) for loc in sorted(self.locations)]
