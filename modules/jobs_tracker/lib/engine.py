"""
Engine for running every adapter against every saved search criteria and keeping only new postings.

Features:
  - Fan-out of (criteria x adapter) units over a bounded thread pool
  - Reachability gate per unit (unavailable adapters are skipped, not failed)
  - Failure isolation: one adapter blowing up never aborts the run
  - DB deduplication via `DedupPersister.absorb_batch`
  - Cooperative cancellation: `cancel()` stops new units, in-flight ones finish
  - Comprehensive logging via `logging_bridge`
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

from . import logging_bridge
from .adapters.base import AdapterError, BaseAdapter
from .models import Posting, SearchCriteria
from .persister import DedupPersister

LOG = logging.getLogger(__name__)


class CriteriaStore(Protocol):
    def list_all(self) -> list[SearchCriteria]: ...


@dataclass
class _UnitOutcome:
    criteria: str
    platform: str
    status: str  # "ok" | "unavailable" | "failed" | "cancelled"
    found: int = 0
    new: list[Posting] = field(default_factory=list)
    error: str | None = None
    duration_us: int = 0


# =============================================================================
# ORCHESTRATOR
# =============================================================================
class Orchestrator:
    def __init__(
        self,
        criteria_store: CriteriaStore,
        persister: DedupPersister,
        adapters: Sequence[BaseAdapter],
        *,
        max_workers: int = 4,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._criteria_store = criteria_store
        self._persister = persister
        self._adapters = list(adapters)
        self.max_workers = max_workers
        self._cancel = threading.Event()

    @property
    def adapters(self) -> list[BaseAdapter]:
        return list(self._adapters)

    def cancel(self) -> None:
        """
        Stop issuing new units; units already running complete.

        The flag is cleared when a run finishes, so a cancel that lands between
        dispatch and the start of run() still stops that run.
        """
        self._cancel.set()

    def run(self) -> list[Posting]:
        """
        One complete pass over all criteria x all adapters.

        Returns:
            Newly stored postings. Units are gathered in (criteria, adapter) order and
            each adapter's postings keep the order the adapter produced them.
        Raises:
            InfrastructureError: loading criteria or persisting failed.
        """
        try:
            return self._run_once()
        finally:
            self._cancel.clear()

    def _run_once(self) -> list[Posting]:
        start_ns = time.perf_counter_ns()

        # Infrastructure failures here propagate to the trigger.
        criteria_list = self._criteria_store.list_all()
        if not criteria_list:
            logging_bridge.activity({
                "component": "jobs_tracker.engine",
                "op": "no_criteria",
            })
            LOG.warning("No search criteria found; nothing to scrape.")
            return []

        units = [(c, a) for c in criteria_list for a in self._adapters]
        outcomes: list[_UnitOutcome] = []

        # ---------------------------------------------------------------------
        # EXECUTE UNITS (bounded pool; results read back in submission order)
        # ---------------------------------------------------------------------
        if units:
            workers = min(len(units), self.max_workers)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="orchestrator") as pool:
                futures = [pool.submit(self._run_unit, c, a) for c, a in units]
                try:
                    for fut in futures:
                        outcomes.append(fut.result())
                except BaseException:
                    # Store failure in one unit: stop the rest and let it propagate.
                    self._cancel.set()
                    for fut in futures:
                        fut.cancel()
                    raise

        # ---------------------------------------------------------------------
        # MERGE (purely additive)
        # ---------------------------------------------------------------------
        new_postings: list[Posting] = []
        for o in outcomes:
            new_postings.extend(o.new)

        self._log_summary(criteria_list, outcomes, start_ns)
        return new_postings

    # -------------------------------------------------------------------------
    # One (criteria, adapter) unit
    # -------------------------------------------------------------------------
    def _run_unit(self, criteria: SearchCriteria, adapter: BaseAdapter) -> _UnitOutcome:
        t0 = time.perf_counter_ns()
        label = _criteria_label(criteria)
        platform = adapter.platform.tag
        outcome = _UnitOutcome(criteria=label, platform=platform, status="ok")

        if self._cancel.is_set():
            outcome.status = "cancelled"
            return outcome

        if not _safe_is_available(adapter):
            LOG.warning("Platform %s is not reachable; skipping for %s", platform, label)
            logging_bridge.activity({
                "component": "jobs_tracker.engine",
                "op": "adapter_unavailable",
                "platform": platform,
                "criteria": label,
            })
            outcome.status = "unavailable"
            outcome.duration_us = _elapsed_us(t0)
            return outcome

        try:
            postings = adapter.scrape_jobs(criteria)
        except AdapterError as e:
            LOG.error("Error while scraping %s for %s: %s", platform, label, e)
            logging_bridge.error({
                "component": "jobs_tracker.engine",
                "op": "scrape_failed",
                "platform": platform,
                "criteria": label,
                "error": str(e),
            })
            outcome.status = "failed"
            outcome.error = str(e)
            outcome.duration_us = _elapsed_us(t0)
            return outcome
        except Exception as e:
            # Contract breach (adapter raised something other than AdapterError); still unit-local.
            LOG.exception("Adapter %s crashed for %s", platform, label)
            logging_bridge.error({
                "component": "jobs_tracker.engine",
                "op": "scrape_crashed",
                "platform": platform,
                "criteria": label,
                "error": repr(e),
            })
            outcome.status = "failed"
            outcome.error = repr(e)
            outcome.duration_us = _elapsed_us(t0)
            return outcome

        outcome.found = len(postings)
        outcome.new = self._persister.absorb_batch(postings)
        outcome.duration_us = _elapsed_us(t0)
        LOG.info("%d new jobs have been scraped from %s for %s", len(outcome.new), platform, label)
        return outcome

    # -------------------------------------------------------------------------
    # SUMMARY LOG (always emitted)
    # -------------------------------------------------------------------------
    def _log_summary(
        self,
        criteria_list: list[SearchCriteria],
        outcomes: list[_UnitOutcome],
        start_ns: int,
    ) -> None:
        found_by_platform: dict[str, int] = {}
        new_by_platform: dict[str, int] = {}
        durations_us: dict[str, int] = {}
        for o in outcomes:
            found_by_platform[o.platform] = found_by_platform.get(o.platform, 0) + o.found
            new_by_platform[o.platform] = new_by_platform.get(o.platform, 0) + len(o.new)
            durations_us[f"{o.criteria}/{o.platform}"] = o.duration_us

        logging_bridge.activity({
            "component": "jobs_tracker.engine",
            "op": "summary",
            "criteria_count": len(criteria_list),
            "adapters": [a.platform.tag for a in self._adapters],
            "max_workers": self.max_workers,
            "found_by_platform": found_by_platform,
            "new_by_platform": new_by_platform,
            "new_total": sum(new_by_platform.values()),
            "unavailable": [f"{o.criteria}/{o.platform}" for o in outcomes if o.status == "unavailable"],
            "failed": [
                {"criteria": o.criteria, "platform": o.platform, "error": o.error}
                for o in outcomes
                if o.status == "failed"
            ],
            "cancelled": sum(1 for o in outcomes if o.status == "cancelled"),
            "durations_us": durations_us,
            "total_us": _elapsed_us(start_ns),
        })


# =============================================================================
# HELPERS
# =============================================================================
def _safe_is_available(adapter: BaseAdapter) -> bool:
    try:
        return bool(adapter.is_available())
    except Exception as e:
        logging_bridge.error({
            "component": "jobs_tracker.engine",
            "op": "is_available",
            "platform": adapter.platform.tag,
            "error": repr(e),
        })
        return False


def _criteria_label(criteria: SearchCriteria) -> str:
    return f"{criteria.name}#{criteria.id}" if criteria.id is not None else criteria.name


def _elapsed_us(t0: int) -> int:
    return int((time.perf_counter_ns() - t0) // 1000)
