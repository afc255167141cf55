# service/scheduler.py
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, time, timedelta
from datetime import tzinfo as _dt_tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from modules.jobs_tracker.main import JobsTracker

from .logging_utils import write_activity_log

LOG = logging.getLogger(__name__)

SCRAPE_JOB_ID = "jobs_tracker.scrape"
DEFAULT_MISFIRE_GRACE_SEC = 300


# ---- Public controller ------------------------------------------------------


class SchedulerController:
    """
    A small façade around APScheduler so the CLI can manage lifecycle cleanly.
    """

    def __init__(self, scheduler: BackgroundScheduler, tracker: JobsTracker) -> None:
        self._scheduler = scheduler
        self._tracker = tracker
        self._stopped_evt = threading.Event()

    @property
    def scheduler(self) -> BackgroundScheduler:
        return self._scheduler

    def stop(self) -> None:
        """
        Promptly shut down APScheduler. A run in flight stops starting new
        (criteria, adapter) units and finishes the ones already running.
        """
        if self._scheduler.running:
            LOG.info("Shutting down scheduler...")
            self._tracker.trigger.cancel()
            self._scheduler.shutdown(wait=False)
        self._stopped_evt.set()
        LOG.info("Scheduler shut down complete.")

    def join(self, timeout: float | None = None) -> bool:
        """
        Block until the scheduler is fully stopped (or timeout).
        Returns True if stopped before timeout, else False.
        """
        return self._stopped_evt.wait(timeout=timeout)

    def next_run_time(self) -> datetime | None:
        job = self._scheduler.get_job(SCRAPE_JOB_ID)
        return getattr(job, "next_run_time", None) if job else None


# ---- Module API -------------------------------------------------------------


def start(tracker: JobsTracker) -> SchedulerController:
    """
    Build an APScheduler instance with the single scrape job and start it.

    Job policy: max_instances=1 and coalesce=True, so missed or overlapping ticks
    collapse into one run; ScrapeTrigger additionally skips if a run (scheduled
    or on-demand) is still executing.
    """
    settings = tracker.settings
    tz = resolve_timezone(settings.timezone)

    scheduler = BackgroundScheduler(
        timezone=tz,
        job_defaults={"coalesce": True, "max_instances": 1},
        executors={"default": ThreadPoolExecutor(2)},
        jobstores={"default": MemoryJobStore()},
    )

    trigger = build_trigger(settings.schedule, tz)
    grace = _int_or(settings.schedule.get("misfire_grace_time"), DEFAULT_MISFIRE_GRACE_SEC)
    _add_scrape_job(scheduler, tracker, trigger, misfire_grace_time=grace)

    scheduler.start()
    LOG.info("Scheduler started with %d job(s).", len(scheduler.get_jobs()))
    return SchedulerController(scheduler, tracker)


def resolve_timezone(tz_name: str | None):
    """
    APScheduler 3.x expects a pytz timezone. Unknown names fall back to UTC.
    """
    try:
        return pytz.timezone(tz_name or "UTC")
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (invalid or missing tz '%s')", tz_name)
        return pytz.UTC


def preview_fire_times(trigger, tz, count: int = 6, start: datetime | None = None) -> list[datetime]:
    """
    Return next `count` fire times for visibility in logs/prints.
    Deterministic: we seed previous_fire_time = now = `start` (or "now" in tz),
    then advance `now` by 1µs after each hit so the next lookup moves forward.
    """
    now = start or datetime.now(tz=tz)
    prev = now
    times = []
    for _ in range(count):
        nxt = trigger.get_next_fire_time(prev, now)
        if nxt is None:
            break
        times.append(nxt)
        prev = nxt
        now = nxt + timedelta(microseconds=1)
    return times


def build_trigger(trig_def: dict[str, Any], tz: Any) -> Any:
    """
    Build an APScheduler trigger from a schedule dict.

    Supported shapes:
      {"cron":     "0 2 * * *"}       # crontab (5 fields)
      {"cron":     "0 0 2 * * *"}     # seconds-first (6 fields)
      {"cron":     {second?, minute?, hour?, day?, day_of_week?, month?, jitter?, start_date?, end_date?, timezone?}}
      {"interval": {weeks|days|hours|minutes|seconds, jitter?, start_date?, end_date?, timezone?}}
      {"daily_time": {"time": "HH:MM[:SS]" | ["..."],
                      "day_of_week"?: "...",
                      "timezone"?: "..."}}  # produces OrTrigger of CronTriggers

    Timezone rules:
      - If a trigger block has its own 'timezone', use it.
      - Else, fall back to the scheduler tz (`tz` argument).
    """
    if not isinstance(trig_def, dict):
        raise ValueError("schedule must be a dict")

    default_tz = _tz(tz)

    present = [k for k in ("interval", "cron", "daily_time") if trig_def.get(k) is not None]
    if len(present) != 1:
        raise ValueError("exactly one of {'interval','cron','daily_time'} must be provided")
    kind = present[0]

    if kind == "interval":
        return _interval_trigger(trig_def["interval"], default_tz)
    if kind == "cron":
        return _cron_trigger(trig_def["cron"], default_tz)
    return _daily_time_trigger(trig_def["daily_time"], default_tz)


# ---- Helpers ----------------------------------------------------------------


def _tz(z):
    if not z:
        return None
    if isinstance(z, _dt_tzinfo):
        return z
    try:
        return ZoneInfo(str(z))
    except Exception as err:
        raise ValueError(f"unknown timezone {z!r}") from err


def _interval_trigger(spec: Any, default_tz) -> IntervalTrigger:
    if not isinstance(spec, dict):
        raise ValueError("interval must be an object with time fields")

    allowed = {"weeks", "days", "hours", "minutes", "seconds", "jitter", "timezone", "start_date", "end_date"}
    unknown = set(spec.keys()) - allowed
    if unknown:
        raise ValueError(f"interval has unknown field(s): {sorted(unknown)}")

    def _as_int_ge0(name: str) -> int:
        if name not in spec:
            return 0
        try:
            v = int(spec[name])
        except (TypeError, ValueError) as err:
            raise ValueError(f"interval.{name} must be an integer") from err
        if v < 0:
            raise ValueError(f"interval.{name} must be >= 0")
        return v

    iv = {k: _as_int_ge0(k) for k in ("weeks", "days", "hours", "minutes", "seconds")}
    if sum(iv.values()) == 0:
        raise ValueError("interval must be greater than 0 (provide at least one nonzero time field)")

    kwargs: dict[str, Any] = {k: v for k, v in iv.items() if v}
    jitter = _as_int_ge0("jitter")
    if jitter:
        kwargs["jitter"] = jitter
    for k in ("start_date", "end_date"):
        if k in spec:
            kwargs[k] = spec[k]

    return IntervalTrigger(timezone=_tz(spec.get("timezone")) or default_tz, **kwargs)


def _cron_trigger(cron_spec: Any, default_tz) -> CronTrigger:
    if isinstance(cron_spec, str):
        fields = cron_spec.strip().split()
        if len(fields) == 5:
            return CronTrigger.from_crontab(cron_spec, timezone=default_tz)
        if len(fields) == 6:
            second, minute, hour, day, month, day_of_week = fields
            return CronTrigger(
                second=second,
                minute=minute,
                hour=hour,
                day=day,
                month=month,
                day_of_week=day_of_week,
                timezone=default_tz,
            )
        raise ValueError(f"cron string must have 5 or 6 fields (got {len(fields)}): {cron_spec!r}")

    if isinstance(cron_spec, dict):
        allowed = {
            "second",
            "minute",
            "hour",
            "day",
            "day_of_week",
            "month",
            "timezone",
            "start_date",
            "end_date",
            "jitter",
        }
        unknown = set(cron_spec.keys()) - allowed
        if unknown:
            raise ValueError(f"cron has unknown field(s): {sorted(unknown)}")

        return CronTrigger(
            second=cron_spec.get("second", 0),
            minute=cron_spec.get("minute", 0),
            hour=cron_spec.get("hour", 0),
            day=cron_spec.get("day"),
            day_of_week=cron_spec.get("day_of_week"),
            month=cron_spec.get("month"),
            start_date=cron_spec.get("start_date"),
            end_date=cron_spec.get("end_date"),
            jitter=cron_spec.get("jitter"),
            timezone=_tz(cron_spec.get("timezone")) or default_tz,
        )
    raise ValueError("cron must be a crontab string or an object")


def _daily_time_trigger(dtdef: Any, default_tz):
    if isinstance(dtdef, str):
        dtdef = {"time": dtdef}
    if not isinstance(dtdef, dict):
        raise ValueError("daily_time must be an object or an 'HH:MM' string")

    allowed = {"time", "day_of_week", "timezone"}
    unknown = set(dtdef.keys()) - allowed
    if unknown:
        raise ValueError(f"daily_time has unknown field(s): {sorted(unknown)}")

    tzinfo = _tz(dtdef.get("timezone")) or default_tz

    def _parse_time(s: str) -> tuple[int, int, int]:
        parts = s.split(":")
        if len(parts) not in (2, 3):
            raise ValueError(f"daily_time.time must be 'HH:MM' or 'HH:MM:SS', got {s!r}")
        try:
            hh = int(parts[0])
            mm = int(parts[1])
            ss = int(parts[2]) if len(parts) == 3 else 0
        except ValueError as err:
            raise ValueError(f"daily_time.time must contain integers: {s!r}") from err
        time(hh, mm, ss)  # validates ranges
        return hh, mm, ss

    times = dtdef.get("time")
    if times is None:
        raise ValueError("daily_time requires 'time'")
    if isinstance(times, str):
        times = [times]
    if not isinstance(times, Iterable):
        raise ValueError("daily_time.time must be a string or list of strings")

    # Normalize: dedup + sort by (hour, minute, second)
    sorted_times = sorted({_parse_time(str(t)) for t in times})
    if not sorted_times:
        raise ValueError("daily_time.time must not be empty")

    per_time_triggers = [
        CronTrigger(second=s, minute=m, hour=h, day_of_week=dtdef.get("day_of_week"), timezone=tzinfo)
        for h, m, s in sorted_times
    ]
    return per_time_triggers[0] if len(per_time_triggers) == 1 else OrTrigger(per_time_triggers)


def _add_scrape_job(
    scheduler: BackgroundScheduler,
    tracker: JobsTracker,
    trigger: Any,
    *,
    misfire_grace_time: int | None,
) -> None:
    """
    Register the scrape job. ScrapeTrigger.run_scheduled never raises, so the
    wrapper only adds start/finish logging and the activity record.
    """

    def _job_wrapper():
        started = datetime.now()
        LOG.info("Job[%s] starting", SCRAPE_JOB_ID)
        tracker.trigger.run_scheduled()
        duration = (datetime.now() - started).total_seconds()
        LOG.info("Job[%s] finished in %.3fs", SCRAPE_JOB_ID, duration)
        _write_activity(status="done", duration_s=duration)

    scheduler.add_job(
        func=_job_wrapper,
        trigger=trigger,
        id=SCRAPE_JOB_ID,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=misfire_grace_time,
        replace_existing=True,
    )

    job = scheduler.get_job(SCRAPE_JOB_ID)
    nrt = getattr(job, "next_run_time", None) if job else None
    if nrt:
        LOG.info("Registered job[%s] next_run_time=%s", SCRAPE_JOB_ID, nrt.isoformat())
    LOG.debug("Registered job[%s] (trigger=%s, misfire_grace_time=%s)", SCRAPE_JOB_ID, trigger, misfire_grace_time)


def _write_activity(status: str, duration_s: float) -> None:
    """Best-effort activity logging; non-fatal on errors."""
    try:
        write_activity_log({
            "ts": datetime.now().isoformat(),
            "source": "scheduler",
            "event": "job_run",
            "fields": {
                "job_id": SCRAPE_JOB_ID,
                "status": status,
                "duration_ms": int(duration_s * 1000),
            },
        })
    except OSError:
        LOG.debug("write_activity_log failed for job[%s]", SCRAPE_JOB_ID, exc_info=True)


def _int_or(v: Any, default: int | None) -> int | None:
    """Return int(v) or default if v is None/invalid (lenient for config)."""
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default
