from __future__ import annotations

from dataclasses import dataclass

from .lib import adapters as _adapters
from .lib.config import Settings
from .lib.db import SqliteCriteriaStore, SqlitePostingStore
from .lib.engine import Orchestrator
from .lib.http_client import HttpClient
from .lib.logging_bridge import activity as log_activity
from .lib.models import Posting
from .lib.persister import DedupPersister
from .lib.reachability import ReachabilityChecker
from .lib.trigger import RunLock, ScrapeTrigger, lock_path_for


@dataclass
class JobsTracker:
    """Everything one process needs, wired once at startup."""

    settings: Settings
    postings: SqlitePostingStore
    criteria: SqliteCriteriaStore
    orchestrator: Orchestrator
    trigger: ScrapeTrigger
    client: HttpClient
    checker: ReachabilityChecker

    def trigger_run(self) -> list[Posting]:
        """On-demand run; see ScrapeTrigger.trigger_run."""
        return self.trigger.trigger_run()

    def close(self) -> None:
        self.trigger.cancel()
        self.checker.close()
        self.client.close()


def build(settings: Settings) -> JobsTracker:
    """
    Entry point for wiring the 'jobs_tracker' module.

    Resolves the configured adapters from the registry (config order), opens the
    SQLite stores and assembles persister -> orchestrator -> trigger.

    Raises:
        KeyError: an adapter kind is not registered.
        InfrastructureError: the SQLite file cannot be created/opened.
    """
    client = HttpClient(timeout=settings.http_timeout_sec)
    checker = ReachabilityChecker(timeout=settings.reachability_timeout_sec)
    adapters = _adapters.build_adapters(settings.adapters, checker, client=client, synthetic=settings.synthetic)

    postings = SqlitePostingStore(settings.sqlite_path)
    criteria = SqliteCriteriaStore(settings.sqlite_path)
    orchestrator = Orchestrator(criteria, DedupPersister(postings), adapters, max_workers=settings.max_workers)

    # Log a small start record (structured; no prints)
    log_activity({
        "component": "jobs_tracker.main",
        "op": "build",
        "sqlite_path": settings.sqlite_path,
        "adapters": [repr(a) for a in adapters],
        "max_workers": settings.max_workers,
        "synthetic": settings.synthetic,
    })

    return JobsTracker(
        settings=settings,
        postings=postings,
        criteria=criteria,
        orchestrator=orchestrator,
        trigger=ScrapeTrigger(orchestrator, RunLock(lock_path_for(settings.sqlite_path))),
        client=client,
        checker=checker,
    )
