# tests/test_trigger.py
import threading

import pytest

from modules.jobs_tracker.lib.db import InfrastructureError
from modules.jobs_tracker.lib.trigger import RunInProgressError, RunLock, ScrapeTrigger


class ScriptedOrchestrator:
    def __init__(self, result=None, error=None, gate=None):
        self.result = result or []
        self.error = error
        self.gate = gate
        self.entered = threading.Event()
        self.runs = 0
        self.cancelled = False

    def run(self):
        self.runs += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return list(self.result)

    def cancel(self):
        self.cancelled = True


def test_on_demand_returns_new_postings(make_posting):
    orch = ScriptedOrchestrator(result=[make_posting("a")])
    trigger = ScrapeTrigger(orch)
    assert [p.external_id for p in trigger.trigger_run()] == ["a"]
    assert trigger.is_running is False


def test_on_demand_surfaces_infrastructure_failure():
    trigger = ScrapeTrigger(ScriptedOrchestrator(error=InfrastructureError("db down")))
    with pytest.raises(InfrastructureError):
        trigger.trigger_run()
    # lock released after failure
    assert trigger.is_running is False


def test_scheduled_swallows_failure():
    orch = ScriptedOrchestrator(error=InfrastructureError("db down"))
    ScrapeTrigger(orch).run_scheduled()
    assert orch.runs == 1


def _start_blocking_run(trigger, orch):
    t = threading.Thread(target=trigger.run_scheduled)
    t.start()
    assert orch.entered.wait(5)
    return t


def test_scheduled_tick_during_run_is_skipped():
    gate = threading.Event()
    orch = ScriptedOrchestrator(gate=gate)
    trigger = ScrapeTrigger(orch)
    t = _start_blocking_run(trigger, orch)

    assert trigger.is_running is True
    trigger.run_scheduled()  # returns immediately
    gate.set()
    t.join(5)
    assert orch.runs == 1


def test_on_demand_during_run_is_rejected():
    gate = threading.Event()
    orch = ScriptedOrchestrator(gate=gate)
    trigger = ScrapeTrigger(orch)
    t = _start_blocking_run(trigger, orch)

    with pytest.raises(RunInProgressError):
        trigger.trigger_run()
    gate.set()
    t.join(5)
    assert orch.runs == 1
    # idle again: on-demand works
    assert trigger.trigger_run() == []


def test_cancel_is_forwarded():
    orch = ScriptedOrchestrator()
    ScrapeTrigger(orch).cancel()
    assert orch.cancelled is True


def test_file_lock_is_shared_between_triggers(tmp_path):
    # Two triggers on one lock file stand in for `serve` and a CLI `scrape`.
    path = str(tmp_path / "jobs.db.lock")
    gate = threading.Event()
    busy = ScriptedOrchestrator(gate=gate)
    other = ScriptedOrchestrator()
    t = _start_blocking_run(ScrapeTrigger(busy, RunLock(path)), busy)

    second = ScrapeTrigger(other, RunLock(path))
    with pytest.raises(RunInProgressError):
        second.trigger_run()
    second.run_scheduled()
    assert other.runs == 0

    gate.set()
    t.join(5)
    assert second.trigger_run() == []
    assert other.runs == 1


def test_run_lock_release_frees_the_file(tmp_path):
    path = str(tmp_path / "jobs.db.lock")
    first, second = RunLock(path), RunLock(path)
    assert first.acquire() is True
    assert first.acquire() is False
    assert second.acquire() is False
    first.release()
    assert second.acquire() is True
    second.release()


def test_unusable_lock_path_is_infrastructure_error(tmp_path):
    orch = ScriptedOrchestrator()
    trigger = ScrapeTrigger(orch, RunLock(str(tmp_path / "missing" / "jobs.db.lock")))
    with pytest.raises(InfrastructureError):
        trigger.trigger_run()
    trigger.run_scheduled()
    assert orch.runs == 0
    assert trigger.is_running is False
