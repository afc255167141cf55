from __future__ import annotations

import fcntl
import logging
import threading
import time
import uuid
from typing import IO

from . import logging_bridge
from .db import InfrastructureError
from .engine import Orchestrator
from .models import Posting
from .utils import now_utc, to_iso

LOG = logging.getLogger(__name__)


class RunInProgressError(RuntimeError):
    """An on-demand run was requested while another run was still executing."""


def lock_path_for(sqlite_path: str) -> str:
    return f"{sqlite_path}.lock"


class RunLock:
    """
    Non-blocking "one run at a time" lock.

    Without a path it only guards threads of this process. With a path it also
    takes an exclusive flock on that file, so a `scrape` started from the CLI and
    the scheduler inside `serve` see each other when they share a database. The
    OS drops the flock if the holding process dies.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        self._thread_lock = threading.Lock()
        self._fh: IO[str] | None = None

    def locked(self) -> bool:
        return self._thread_lock.locked()

    def acquire(self) -> bool:
        if not self._thread_lock.acquire(blocking=False):
            return False
        if self.path is None:
            return True
        try:
            fh = open(self.path, "a", encoding="utf-8")
        except OSError as e:
            self._thread_lock.release()
            raise InfrastructureError(f"cannot open run lock {self.path}: {e}") from e
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            fh.close()
            self._thread_lock.release()
            return False
        except OSError as e:
            fh.close()
            self._thread_lock.release()
            raise InfrastructureError(f"cannot lock {self.path}: {e}") from e
        self._fh = fh
        return True

    def release(self) -> None:
        fh, self._fh = self._fh, None
        if fh is not None:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
            finally:
                fh.close()
        self._thread_lock.release()


class ScrapeTrigger:
    """
    The two ways a run starts.

      - run_scheduled(): for the scheduler. Never raises; failures are logged.
      - trigger_run():   on-demand. Returns the new postings; infrastructure
                         failures propagate to the caller.

    Overlap policy is skip-if-running for both: a scheduled tick that lands on a
    live run is dropped (logged), an on-demand request raises RunInProgressError.
    "Live run" covers other processes when the RunLock has a file path.
    """

    def __init__(self, orchestrator: Orchestrator, lock: RunLock | None = None) -> None:
        self._orchestrator = orchestrator
        self._running = lock or RunLock()

    @property
    def is_running(self) -> bool:
        """True while this trigger holds the lock (runs in other processes are not visible here)."""
        return self._running.locked()

    def run_scheduled(self) -> None:
        try:
            acquired = self._running.acquire()
        except InfrastructureError:
            LOG.exception("Scheduled scrape skipped: run lock unavailable.")
            return
        if not acquired:
            LOG.warning("Scheduled scrape skipped: previous run still in progress.")
            self._write_activity("scheduled", status="skipped")
            return
        try:
            self._execute("scheduled")
        except Exception:
            LOG.exception("Failed while running the scheduled job scraping.")
        finally:
            self._running.release()

    def trigger_run(self) -> list[Posting]:
        if not self._running.acquire():
            self._write_activity("on_demand", status="rejected")
            raise RunInProgressError("A scraping run is already in progress.")
        try:
            return self._execute("on_demand")
        finally:
            self._running.release()

    def cancel(self) -> None:
        self._orchestrator.cancel()

    def _execute(self, trigger_type: str) -> list[Posting]:
        run_id = uuid.uuid4().hex
        started = time.monotonic()
        LOG.info("Starting scraping (trigger=%s, run_id=%s)...", trigger_type, run_id)
        try:
            new_postings = self._orchestrator.run()
        except Exception as e:
            self._write_activity(
                trigger_type,
                status="error",
                run_id=run_id,
                duration_s=time.monotonic() - started,
                error=repr(e),
            )
            raise

        duration = time.monotonic() - started
        LOG.info("Scraping finished in %.3fs with %d new posting(s).", duration, len(new_postings))
        self._write_activity(
            trigger_type,
            status="ok",
            run_id=run_id,
            duration_s=duration,
            new_total=len(new_postings),
        )
        return new_postings

    @staticmethod
    def _write_activity(trigger_type: str, *, status: str, duration_s: float | None = None, **fields) -> None:
        record = {
            "ts": to_iso(now_utc()),
            "component": "jobs_tracker.trigger",
            "op": "run",
            "trigger_type": trigger_type,
            "status": status,
            **fields,
        }
        if duration_s is not None:
            record["duration_ms"] = int(duration_s * 1000)
        if status == "error":
            logging_bridge.error(record)
        else:
            logging_bridge.activity(record)
