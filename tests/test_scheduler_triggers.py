from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest import mock

import pytest

from modules.jobs_tracker.lib.config import Settings
from service import scheduler as sched
from service.scheduler import build_trigger, preview_fire_times

# Helpers ----------------------------------------------------------------------


def _next_times(trigger, count=5, start=None):
    """Next `count` fire times strictly after `start` (UTC)."""
    return preview_fire_times(trigger, timezone.utc, count=count, start=start)


# Tests ------------------------------------------------------------------------


def test_default_schedule_is_daily_at_two():
    trig = build_trigger(Settings().schedule, "UTC")
    start = datetime(2099, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
    times = _next_times(trig, count=2, start=start)
    assert times == [
        datetime(2099, 1, 1, 2, 0, 0, tzinfo=timezone.utc),
        datetime(2099, 1, 2, 2, 0, 0, tzinfo=timezone.utc),
    ]


def test_build_trigger_accepts_seconds_first_cron_string():
    trig = build_trigger({"cron": "30 15 10 * * mon-fri"}, "UTC")
    # 2099-01-02 is a Friday
    start = datetime(2099, 1, 2, 0, 0, 0, tzinfo=timezone.utc)
    times = _next_times(trig, count=2, start=start)
    assert times[0] == datetime(2099, 1, 2, 10, 15, 30, tzinfo=timezone.utc)
    assert times[1] == datetime(2099, 1, 5, 10, 15, 30, tzinfo=timezone.utc)  # next Monday


def test_build_trigger_accepts_crontab_string():
    trig = build_trigger({"cron": "*/30 6 * * *"}, "UTC")
    start = datetime(2099, 1, 1, 5, 59, 0, tzinfo=timezone.utc)
    times = _next_times(trig, count=3, start=start)
    assert [(t.hour, t.minute) for t in times] == [(6, 0), (6, 30), (6, 0)]


def test_build_trigger_accepts_interval_minutes():
    trig = build_trigger({"interval": {"minutes": 5}}, "UTC")
    # IntervalTrigger exposes 'interval' timedelta
    assert trig.interval.total_seconds() == 300

    ts = datetime(2099, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
    times = _next_times(trig, count=3, start=ts)
    assert times[0] == ts + timedelta(minutes=5)
    assert times[1] == ts + timedelta(minutes=10)
    assert times[2] == ts + timedelta(minutes=15)


def test_build_trigger_accepts_cron_numeric_fields():
    trig = build_trigger(
        {"cron": {"second": 0, "minute": 0, "hour": 3, "day_of_week": "mon-fri"}},
        "UTC",
    )
    # Use a real Monday: 2096-01-02 is Monday
    start = datetime(2096, 1, 2, 0, 0, 0, tzinfo=timezone.utc)
    times = _next_times(trig, count=3, start=start)
    assert times[0] == datetime(2096, 1, 2, 3, 0, 0, tzinfo=timezone.utc)  # Mon
    assert times[1] == datetime(2096, 1, 3, 3, 0, 0, tzinfo=timezone.utc)  # Tue
    assert times[2] == datetime(2096, 1, 4, 3, 0, 0, tzinfo=timezone.utc)  # Wed


def test_build_trigger_daily_time_single_time_is_exact():
    trig = build_trigger({"daily_time": {"time": "03:15", "day_of_week": "mon-fri"}}, "UTC")

    start = datetime(2096, 1, 2, 3, 14, 50, tzinfo=timezone.utc)  # Monday
    times = _next_times(trig, count=3, start=start)
    assert times[0] == datetime(2096, 1, 2, 3, 15, 0, tzinfo=timezone.utc)
    assert times[1] == datetime(2096, 1, 3, 3, 15, 0, tzinfo=timezone.utc)
    assert times[2] == datetime(2096, 1, 4, 3, 15, 0, tzinfo=timezone.utc)


def test_build_trigger_daily_time_multiple_times_no_cross_product():
    """
    Multiple 'time' entries must not cross-product hours x minutes.
    Expect exact pairs: [05:00, 06:30, 08:00] rather than [05:00, 05:30, 06:00, ...].
    """
    from apscheduler.triggers.combining import OrTrigger

    trig = build_trigger(
        {"daily_time": {"time": ["05:00", "06:30", "08:00"], "day_of_week": "mon-sat"}},
        "America/Indiana/Indianapolis",
    )
    assert isinstance(trig, OrTrigger)

    start = datetime(2097, 1, 6, 4, 59, 0, tzinfo=timezone.utc)
    times = _next_times(trig, count=4, start=start)
    hm = [(t.hour, t.minute) for t in times[:3]]
    assert hm == [(5, 0), (6, 30), (8, 0)], f"Unexpected sequence {hm}"


@pytest.mark.parametrize(
    "payload",
    [
        {"daily_time": {}},
        {"daily_time": {"time": "99:99"}},  # invalid time
        {"cron": "*/15 * *"},  # invalid: only 3 fields
        {"cron": "0 0 2 * * * 2099"},  # 7 fields
        {"cron": {"hour": 2, "weekday": "mon"}},  # unknown field
        {"interval": {"minutes": -5}},  # invalid interval
        {"interval": {"minutes": 0}},
        {"cron": "0 2 * * *", "interval": {"hours": 1}},  # two kinds
        {},  # empty
    ],
)
def test_build_trigger_invalid_inputs_raise(payload):
    with pytest.raises(ValueError):
        build_trigger(payload, "UTC")


def test_resolve_timezone_falls_back_to_utc():
    import pytz

    assert sched.resolve_timezone("Europe/Paris").zone == "Europe/Paris"
    assert sched.resolve_timezone("Mars/Olympus") is pytz.UTC


def test_start_registers_single_non_overlapping_job():
    tracker = SimpleNamespace(
        settings=Settings(schedule={"interval": {"hours": 6}}),
        trigger=mock.Mock(),
    )
    controller = sched.start(tracker)
    try:
        jobs = controller.scheduler.get_jobs()
        assert [j.id for j in jobs] == [sched.SCRAPE_JOB_ID]
        assert jobs[0].max_instances == 1
        assert jobs[0].coalesce is True
        assert controller.next_run_time() is not None
    finally:
        controller.stop()

    assert controller.join(timeout=1) is True
    tracker.trigger.cancel.assert_called_once()
    tracker.trigger.run_scheduled.assert_not_called()


def test_scheduled_job_calls_run_scheduled():
    tracker = SimpleNamespace(
        settings=Settings(schedule={"interval": {"hours": 6}}),
        trigger=mock.Mock(),
    )
    controller = sched.start(tracker)
    try:
        job = controller.scheduler.get_job(sched.SCRAPE_JOB_ID)
        job.func()
    finally:
        controller.stop()
    tracker.trigger.run_scheduled.assert_called_once_with()
