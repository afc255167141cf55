# tests/conftest.py
import os
import tempfile
import threading

import pytest
from freezegun import freeze_time

from modules.jobs_tracker.lib import models
from modules.jobs_tracker.lib.adapters.base import AdapterError, BaseAdapter
from modules.jobs_tracker.lib.db import SqliteCriteriaStore, SqlitePostingStore


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    # Marker registration (so pytest --markers shows it)
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="jt-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")

    # Config/env overrides must come from the test, never the host
    monkeypatch.delenv("CONFIG_PATH", raising=False)
    monkeypatch.delenv("TZ", raising=False)
    monkeypatch.delenv("JOBS_TRACKER_SQLITE_PATH", raising=False)
    monkeypatch.delenv("JOBS_TRACKER_SYNTHETIC", raising=False)
    monkeypatch.delenv("ACTIVITY_LOG_MAX_BYTES", raising=False)
    monkeypatch.delenv("ERROR_LOG_MAX_BYTES", raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "jobs_tracker.db")


@pytest.fixture
def posting_store(db_path):
    return SqlitePostingStore(db_path)


@pytest.fixture
def criteria_store(db_path):
    return SqliteCriteriaStore(db_path)


@pytest.fixture
def make_posting():
    def _make(external_id="LinkedIn-1", title="Python Developer", platform=models.LINKEDIN, **kw):
        return models.Posting(
            external_id=external_id,
            title=title,
            company=kw.pop("company", "Acme"),
            description=kw.pop("description", f"{title} at Acme"),
            platform=platform,
            url=kw.pop("url", f"{platform.url}/{external_id}"),
            **kw,
        )

    return _make


class FakeChecker:
    """Reachability stand-in; answers from a fixed table keyed by platform URL."""

    def __init__(self, reachable=True):
        self.reachable = reachable
        self.calls = []

    def is_reachable(self, url, timeout=None):
        self.calls.append(url)
        if isinstance(self.reachable, dict):
            return self.reachable.get(url, True)
        return self.reachable

    def close(self):
        pass


class FakeAdapter(BaseAdapter):
    """
    Scripted adapter: `results` maps (keyword, location) -> list of postings,
    or an exception instance to raise for that pair.
    """

    kind = "fake"

    def __init__(self, platform=models.LINKEDIN, *, available=True, results=None, on_scrape=None):
        super().__init__(FakeChecker(available), synthetic=False)
        self.platform = platform
        self._results = results or {}
        self._on_scrape = on_scrape
        self.scraped = []
        self.scrape_calls = 0
        self._count_lock = threading.Lock()

    def scrape_jobs(self, criteria):
        with self._count_lock:
            self.scrape_calls += 1
        return super().scrape_jobs(criteria)

    def scrape_pair(self, keyword, location):
        self.scraped.append((keyword, location))
        if self._on_scrape is not None:
            self._on_scrape(keyword, location)
        out = self._results.get((keyword, location), [])
        if isinstance(out, BaseException):
            raise out
        return list(out)


@pytest.fixture
def fake_checker():
    return FakeChecker


@pytest.fixture
def fake_adapter():
    return FakeAdapter


@pytest.fixture
def adapter_error():
    return AdapterError
