import json
import os
import pathlib
from datetime import datetime

from modules.jobs_tracker.lib import logging_bridge
from service import logging_utils


def _lines(prefix):
    path = pathlib.Path(logging_utils.log_path_for_today(prefix))
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_activity_record_is_redacted_and_stamped():
    logging_utils.write_activity_log({
        "event": "probe",
        "ts": datetime(2025, 1, 1),
        "headers": {"Authorization": "Bearer abc", "Accept": "text/html"},
        "api_token": "xyz",
    })
    (rec,) = _lines("activity-test")
    assert rec["event"] == "probe"
    assert rec["ts"] == "2025-01-01 00:00:00"
    assert rec["headers"]["Authorization"] == "***REDACTED***"
    assert rec["headers"]["Accept"] == "text/html"
    assert rec["api_token"] == "***REDACTED***"
    assert rec["_meta"]["pid"] == os.getpid()


def test_bridge_routes_to_error_sink():
    logging_bridge.error({"component": "jobs_tracker.test", "op": "x", "password": "hunter2"})
    (rec,) = _lines("error-test")
    assert rec["component"] == "jobs_tracker.test"
    assert rec["password"] == "***REDACTED***"


def test_size_rotation(monkeypatch):
    monkeypatch.setenv("ACTIVITY_LOG_MAX_BYTES", "10")
    logging_utils.write_activity_log({"n": 1, "padding": "x" * 20})
    logging_utils.write_activity_log({"n": 2})
    assert [r["n"] for r in _lines("activity-test")] == [2]
    rotated = list(pathlib.Path(os.environ["LOG_DIR"]).glob("activity-test-*.jsonl.*"))
    assert len(rotated) == 1


def test_error_log_rotates_on_its_own_limit(monkeypatch):
    monkeypatch.setenv("ACTIVITY_LOG_MAX_BYTES", "10")
    logging_utils.write_error_log({"n": 1, "padding": "x" * 20})
    logging_utils.write_error_log({"n": 2})
    assert [r["n"] for r in _lines("error-test")] == [1, 2]

    monkeypatch.setenv("ERROR_LOG_MAX_BYTES", "10")
    logging_utils.write_error_log({"n": 3})
    assert [r["n"] for r in _lines("error-test")] == [3]
    rotated = list(pathlib.Path(os.environ["LOG_DIR"]).glob("error-test-*.jsonl.*"))
    assert len(rotated) == 1
