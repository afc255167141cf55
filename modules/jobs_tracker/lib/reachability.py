"""
Reachability probe for platform endpoints.

A HEAD request bounded by a timeout answers "can we talk to this site right now?".
Unreachability is a plain False: the orchestrator only needs skip/proceed, so the
reason is written to the error log here and nowhere else.
"""

from __future__ import annotations

import time

import requests

from . import logging_bridge
from .http_client import HttpClient

DEFAULT_TIMEOUT_SEC = 5.0


class ReachabilityChecker:
    def __init__(self, client: HttpClient | None = None, timeout: float = DEFAULT_TIMEOUT_SEC) -> None:
        # One HEAD per call, no transport retries.
        self._client = client or HttpClient(timeout=timeout, retries=0)
        self.timeout = float(timeout)

    def is_reachable(self, url: str, timeout: float | None = None) -> bool:
        limit = float(timeout or self.timeout)
        t0 = time.perf_counter_ns()
        record = {
            "component": "jobs_tracker.reachability",
            "op": "probe",
            "url": url,
            "timeout_sec": limit,
        }

        try:
            resp = self._client.head(url, timeout=limit, allow_redirects=True)
        except requests.Timeout as e:
            return self._fail(record, t0, reason="timeout", error=repr(e))
        except requests.RequestException as e:
            # ConnectionError covers refused connections and DNS failures.
            return self._fail(record, t0, reason="connection", error=repr(e))

        if not resp.ok:
            return self._fail(record, t0, reason="status", status=resp.status_code)

        logging_bridge.activity({
            **record,
            "reachable": True,
            "status": resp.status_code,
            "elapsed_us": _elapsed_us(t0),
        })
        return True

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _fail(record: dict, t0: int, **detail) -> bool:
        logging_bridge.error({**record, "reachable": False, **detail, "elapsed_us": _elapsed_us(t0)})
        return False


def _elapsed_us(t0: int) -> int:
    return int((time.perf_counter_ns() - t0) // 1000)
