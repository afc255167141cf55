# service/cli.py
"""
User-facing command-line entrypoints for the container.

Subcommands
-----------
serve
    - Builds the tracker and starts the APScheduler loop via service.scheduler.start()
    - Registers signal handlers for graceful shutdown

scrape
    - One on-demand run; prints the newly stored postings
    - Exit code 2 if a run is already in progress (in `serve` or another `scrape`
      on the same database)

add-criteria --name N --keyword K [--keyword ...] --location L [--location ...]
list-criteria
list-postings [--platform TAG] [--search TEXT] [--since ISO]
show-posting ID
    - Manage saved searches and browse stored postings

validate-config
    - Loads/validates config and returns nonzero on error

show-schedule [--count N]
    - Prints the next fire times of the configured schedule
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from collections.abc import Iterable, Sequence
from datetime import datetime
from types import SimpleNamespace
from typing import Any

from modules.jobs_tracker import build as build_tracker
from modules.jobs_tracker.lib.db import InfrastructureError
from modules.jobs_tracker.lib.models import Posting, SearchCriteria, platform_by_tag
from modules.jobs_tracker.lib.trigger import RunInProgressError
from modules.jobs_tracker.lib.utils import from_iso, now_utc, to_iso
from service import config_schema as _config_schema
from service import logging_utils as L
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BUSY = 2
EXIT_INTERRUPTED = 130


# -------------------------- Utility / glue code ------------------------------
def _print_table(rows: Iterable[Sequence[str]], headers: Sequence[str]) -> None:
    """Very simple fixed-width table printer."""
    rows = [tuple(str(c) for c in r) for r in rows]
    widths = [max(len(h), *(len(r[i]) for r in rows)) if rows else len(h) for i, h in enumerate(headers)]
    sep = "+" + "+".join("-" * (w + 2) for w in widths) + "+"
    print(sep)
    print("| " + " | ".join(h.ljust(w) for h, w in zip(headers, widths)) + " |")
    print(sep)
    for r in rows:
        print("| " + " | ".join(c.ljust(w) for c, w in zip(r, widths)) + " |")
    print(sep)


def _posting_rows(postings: Iterable[Posting]) -> list[tuple[str, ...]]:
    return [
        (str(p.id or ""), p.platform.tag, p.title, p.company, p.location, to_iso(p.created_at) or "")
        for p in postings
    ]


def _print_postings(postings: list[Posting]) -> None:
    if not postings:
        print("No postings.")
        return
    _print_table(_posting_rows(postings), headers=("ID", "PLATFORM", "TITLE", "COMPANY", "LOCATION", "CREATED"))


def _parse_since(raw: str) -> datetime:
    try:
        dt = from_iso(raw)
    except ValueError as err:
        raise argparse.ArgumentTypeError(f"--since must be an ISO-8601 timestamp (got {raw!r})") from err
    if dt is None:
        raise argparse.ArgumentTypeError("--since must not be empty")
    return dt


def _load_tracker(args: argparse.Namespace):
    settings = _config_schema.load_settings(args.config)
    return build_tracker(settings)


# ------------------------------ Subcommands ----------------------------------
def cmd_validate_config(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
        _config_schema.validate(cfg)
        print("OK: configuration is valid.")
        return EXIT_OK
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except _config_schema.ConfigError as e:
        LOG.error("Configuration validation failed: %s", e)
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return EXIT_ERROR


def cmd_show_schedule(args: argparse.Namespace) -> int:
    try:
        settings = _config_schema.load_settings(args.config)
        tz = _scheduler.resolve_timezone(settings.timezone)
        trigger = _scheduler.build_trigger(settings.schedule, tz)
        times = _scheduler.preview_fire_times(trigger, tz, count=args.count)
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except (_config_schema.ConfigError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR

    print(f"Schedule: {settings.schedule} ({settings.timezone})")
    if not times:
        print("No upcoming fire times.")
    for t in times:
        print(f"  {t.isoformat()}")
    return EXIT_OK


def cmd_scrape(args: argparse.Namespace) -> int:
    started = now_utc()
    tracker = None
    try:
        tracker = _load_tracker(args)
        new_postings = tracker.trigger_run()
    except KeyboardInterrupt:
        if tracker is not None:
            tracker.trigger.cancel()
        return EXIT_INTERRUPTED
    except RunInProgressError as e:
        print(f"BUSY: {e}", file=sys.stderr)
        return EXIT_BUSY
    except Exception as e:
        LOG.exception("On-demand scrape failed: %s", e)
        print(f"FAILURE: {e}", file=sys.stderr)
        L.write_error_log({
            "ts": to_iso(now_utc()),
            "where": "cli.scrape",
            "error": repr(e),
            "duration_ms": int((now_utc() - started).total_seconds() * 1000),
        })
        return EXIT_ERROR
    finally:
        if tracker is not None:
            tracker.close()

    _print_postings(new_postings)
    print(f"DONE: {len(new_postings)} new posting(s).")
    return EXIT_OK


def cmd_add_criteria(args: argparse.Namespace) -> int:
    tracker = _load_tracker(args)
    try:
        saved = tracker.criteria.save(
            SearchCriteria(name=args.name, keywords=args.keyword or [], locations=args.location or [])
        )
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        tracker.close()
    print(f"Saved criteria #{saved.id}: {saved.name}")
    return EXIT_OK


def cmd_list_criteria(args: argparse.Namespace) -> int:
    tracker = _load_tracker(args)
    try:
        rows = [
            (str(c.id), c.name, ", ".join(sorted(c.keywords)), ", ".join(sorted(c.locations)))
            for c in tracker.criteria.list_all()
        ]
    finally:
        tracker.close()
    if not rows:
        print("No search criteria saved.")
        return EXIT_OK
    _print_table(rows, headers=("ID", "NAME", "KEYWORDS", "LOCATIONS"))
    return EXIT_OK


def cmd_list_postings(args: argparse.Namespace) -> int:
    try:
        platform = platform_by_tag(args.platform) if args.platform else None
    except KeyError as e:
        print(f"ERROR: {e.args[0]}", file=sys.stderr)
        return EXIT_ERROR

    tracker = _load_tracker(args)
    try:
        store = tracker.postings
        if platform is not None:
            postings = store.find_by_platform(platform)
        elif args.search:
            postings = store.search_by_keyword(args.search)
        elif args.since:
            postings = store.find_new_since(args.since)
        else:
            postings = store.find_all()
    finally:
        tracker.close()

    # Filters combine: the store answers the first one, the rest narrow in memory.
    if platform is not None and args.search:
        needle = args.search.lower()
        postings = [p for p in postings if needle in f"{p.title}\n{p.description}\n{p.company}".lower()]
    if (platform is not None or args.search) and args.since:
        postings = [p for p in postings if p.created_at is not None and p.created_at >= args.since]

    _print_postings(postings)
    return EXIT_OK


def cmd_show_posting(args: argparse.Namespace) -> int:
    tracker = _load_tracker(args)
    try:
        posting = tracker.postings.find_by_id(args.id)
    finally:
        tracker.close()
    if posting is None:
        print(f"Posting {args.id} not found.", file=sys.stderr)
        return EXIT_ERROR

    for label, value in (
        ("id", posting.id),
        ("external_id", posting.external_id),
        ("platform", posting.platform.name),
        ("title", posting.title),
        ("company", posting.company),
        ("location", posting.location),
        ("url", posting.url),
        ("created_at", to_iso(posting.created_at)),
        ("updated_at", to_iso(posting.updated_at)),
    ):
        print(f"{label:>12}: {value}")
    print()
    print(posting.description)
    return EXIT_OK


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the scheduler loop in a daemon-like fashion until a termination
    signal is received. The scheduler and any in-flight run are stopped cleanly.
    """
    L.write_activity_log({"ts": to_iso(now_utc()), "event": "serve_start"})

    stop_event = threading.Event()
    running = SimpleNamespace(sched=None, tracker=None)

    def _graceful_shutdown(signum=None, frame=None):
        LOG.info("Signal %s received; initiating shutdown...", signum)
        stop_event.set()
        _safe_stop("scheduler", running.sched)

    # Register signals early
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _graceful_shutdown)

    try:
        running.tracker = _load_tracker(args)
        running.sched = _scheduler.start(running.tracker)
        LOG.info("Scheduler started; next run at %s", running.sched.next_run_time())

        # Main wait loop (respond quickly to signals)
        while not stop_event.wait(0.3):
            pass

        _safe_stop("scheduler", running.sched)
        L.write_activity_log({"ts": to_iso(now_utc()), "event": "serve_stop"})
        return EXIT_OK

    except KeyboardInterrupt:
        _graceful_shutdown("KeyboardInterrupt")
        return EXIT_INTERRUPTED
    except Exception as e:
        LOG.exception("Fatal error in serve: %s", e)
        _graceful_shutdown("UnhandledException")
        return EXIT_ERROR
    finally:
        if running.tracker is not None:
            running.tracker.close()


def _safe_stop(name: str, handle: Any) -> None:
    """Best-effort stop & join for a scheduler controller."""
    if handle is None:
        return
    try:
        handle.stop()
        handle.join(timeout=10.0)
    except Exception:  # pragma: no cover
        LOG.exception("Error stopping %s", name)


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job postings tracker command-line tools",
    )
    p.add_argument(
        "--config",
        help="Path to config file (fallbacks to CONFIG_PATH env or built-in defaults).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # serve
    sp = sub.add_parser("serve", help="Run the scheduler loop until signalled.")
    sp.set_defaults(func=cmd_serve)

    # scrape
    sp = sub.add_parser("scrape", help="Run one scrape now and print the new postings.")
    sp.set_defaults(func=cmd_scrape)

    # add-criteria
    sp = sub.add_parser("add-criteria", help="Save a search (keywords x locations).")
    sp.add_argument("--name", required=True)
    sp.add_argument("--keyword", action="append", help="Repeatable.")
    sp.add_argument("--location", action="append", help="Repeatable.")
    sp.set_defaults(func=cmd_add_criteria)

    # list-criteria
    sp = sub.add_parser("list-criteria", help="Print saved searches.")
    sp.set_defaults(func=cmd_list_criteria)

    # list-postings
    sp = sub.add_parser("list-postings", help="Print stored postings.")
    sp.add_argument("--platform", help="Platform tag (LINKEDIN, INDEED, GOOGLE_JOBS).")
    sp.add_argument("--search", help="Case-insensitive match on title, description or company.")
    sp.add_argument("--since", type=_parse_since, help="Only postings created at or after this ISO timestamp.")
    sp.set_defaults(func=cmd_list_postings)

    # show-posting
    sp = sub.add_parser("show-posting", help="Print one stored posting.")
    sp.add_argument("id", type=int)
    sp.set_defaults(func=cmd_show_posting)

    # validate-config
    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    # show-schedule
    sp = sub.add_parser("show-schedule", help="Print the next fire times of the schedule.")
    sp.add_argument("--count", type=int, default=5)
    sp.set_defaults(func=cmd_show_schedule)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    L.configure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    try:
        return args.func(args)
    except _config_schema.ConfigError as e:
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return EXIT_ERROR
    except InfrastructureError as e:
        LOG.error("Storage failure: %s", e)
        print(f"ERROR: storage unavailable: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
