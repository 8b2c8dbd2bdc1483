# service/cli.py
"""
User-facing command-line entrypoints for the container.

Subcommands
-----------
serve
    - Starts the fixed-delay crawl scheduler via service.scheduler.start()
    - Registers signal handlers for graceful shutdown

crawl-once [--max-workers N]
    - Runs a single crawl cycle in the foreground and prints its counts

sync-config
    - Upserts configured sites, crawl targets and company aliases

validate-config
    - Loads/validates config and returns nonzero on error

list-targets
    - Prints every crawl target with its site policy

jobs-new [--hours H] | jobs-active | skills | timeline JOB_ID
    - Read views, printed as JSON

Exit codes: 0 ok, 1 internal error (details only in the error log),
2 invalid input or config, 3 not found, 130 interrupted.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
import time
import traceback
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from modules.job_observer.lib import insights
from modules.job_observer.lib.config import ConfigError as SettingsError
from modules.job_observer.lib.config import Settings
from modules.job_observer.lib.db import Store
from modules.job_observer.lib.seed import sync_sites_and_aliases
from service import config_schema as _config_schema
from service import logging_utils as L
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")


# -------------------------- Utility / glue code ------------------------------
def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


def _print_table(rows: Iterable[tuple[str, ...]], headers: tuple[str, ...]) -> None:
    """Very simple fixed-width table printer."""
    rows = [tuple(str(c) for c in r) for r in rows]
    widths = [max([len(h)] + [len(r[i]) for r in rows]) for i, h in enumerate(headers)]
    sep = "+-" + "-+-".join("-" * w for w in widths) + "-+"
    print(sep)
    print("| " + " | ".join(h.ljust(w) for h, w in zip(headers, widths)) + " |")
    print(sep)
    for r in rows:
        print("| " + " | ".join(c.ljust(w) for c, w in zip(r, widths)) + " |")
    print(sep)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _load_config(args: argparse.Namespace) -> dict[str, Any]:
    cfg = _config_schema.load_config(args.config)
    _config_schema.validate(cfg)
    return cfg


def _settings(cfg: dict[str, Any], **overrides: Any) -> Settings:
    kw = dict(cfg.get("settings") or {})
    kw.update({k: v for k, v in overrides.items() if v is not None})
    return Settings.from_env_and_kwargs(kw)


def _open_store(cfg: dict[str, Any]) -> tuple[Store, Settings]:
    settings = _settings(cfg)
    store = Store(settings.sqlite_path)
    store.init()
    return store, settings


# ------------------------------ Subcommands ----------------------------------
def cmd_validate_config(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    _settings(cfg)
    print("OK: configuration is valid.")
    return 0


def cmd_sync_config(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    store, _ = _open_store(cfg)
    counts = sync_sites_and_aliases(store, _config_schema.site_rows(cfg), cfg.get("aliases") or [])
    print(
        f"OK: synced {counts['sites']} site(s), {counts['targets']} target(s), "
        f"{counts['aliases']} new alias(es)."
    )
    return 0


def cmd_list_targets(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    store, _ = _open_store(cfg)
    with store.reader() as uow:
        pairs = uow.list_targets()
    if not pairs:
        print("No crawl targets. Run sync-config first.")
        return 0
    _print_table(
        (
            (
                str(t.id),
                s.name,
                "yes" if (t.active and s.crawl_enabled) else "no",
                f"{s.inactive_threshold_days}/{s.repost_threshold_days}",
                t.url,
            )
            for t, s in pairs
        ),
        headers=("ID", "SITE", "CRAWLED", "INACTIVE/REPOST", "URL"),
    )
    return 0


def cmd_crawl_once(args: argparse.Namespace) -> int:
    # Imported lazily: pulls in requests/bs4 only for commands that crawl.
    from modules.job_observer import main as job_observer_main

    cfg = _load_config(args)
    kw = dict(cfg.get("settings") or {})
    if args.max_workers is not None:
        kw["max_workers"] = args.max_workers
    started = time.monotonic()
    summary = job_observer_main.run(**kw)
    L.write_activity_log({
        "event": "cli_crawl_once",
        "success": summary.success,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "duration_ms": int((time.monotonic() - started) * 1000),
    })
    print(f"DONE: success={summary.success} failed={summary.failed} skipped={summary.skipped}")
    return 0


def cmd_jobs_new(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    store, settings = _open_store(cfg)
    hours = args.hours if args.hours is not None else settings.new_window_hours
    _print_json([s.to_dict() for s in insights.new_jobs(store, hours=hours)])
    return 0


def cmd_jobs_active(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    store, settings = _open_store(cfg)
    _print_json([s.to_dict() for s in insights.active_jobs(store, candidate_days=settings.active_candidate_days)])
    return 0


def cmd_skills(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    store, settings = _open_store(cfg)
    _print_json([f.to_dict() for f in insights.skill_frequency(store, candidate_days=settings.active_candidate_days)])
    return 0


def cmd_timeline(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    store, _ = _open_store(cfg)
    _print_json([e.to_dict() for e in insights.job_timeline(store, args.job_id)])
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the crawl scheduler until a termination signal is received.
    """
    L.write_activity_log({"ts": _now_iso(), "event": "serve_start"})
    stop_event = threading.Event()

    def _graceful_shutdown(signum=None, frame=None):
        LOG.info("Signal %s received; initiating shutdown...", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _graceful_shutdown)

    controller = _scheduler.start(config_path=args.config)
    LOG.info("Scheduler started; next run at %s", controller.next_run_time())
    try:
        # Main wait loop (respond quickly to signals)
        while not stop_event.is_set():
            time.sleep(0.3)
    finally:
        controller.stop()
        controller.join(timeout=10.0)
        L.write_activity_log({"ts": _now_iso(), "event": "serve_stop"})
    return 0


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job observer service tools",
    )
    p.add_argument(
        "--config",
        help="Path to config file (fallbacks to CONFIG_PATH env or an empty default).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("serve", help="Run the fixed-delay crawl scheduler.")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("crawl-once", help="Run one crawl cycle now.")
    sp.add_argument("--max-workers", type=int, default=None, help="Targets crawled in parallel (default 1).")
    sp.set_defaults(func=cmd_crawl_once)

    sp = sub.add_parser("sync-config", help="Upsert sites, targets and company aliases from config.")
    sp.set_defaults(func=cmd_sync_config)

    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    sp = sub.add_parser("list-targets", help="Print crawl targets and site policy.")
    sp.set_defaults(func=cmd_list_targets)

    sp = sub.add_parser("jobs-new", help="Jobs observed in the recent window (JSON).")
    sp.add_argument("--hours", type=int, default=None, help="Window size in hours (default 24).")
    sp.set_defaults(func=cmd_jobs_new)

    sp = sub.add_parser("jobs-active", help="Jobs currently ACTIVE (JSON).")
    sp.set_defaults(func=cmd_jobs_active)

    sp = sub.add_parser("skills", help="Skill demand across ACTIVE jobs (JSON).")
    sp.set_defaults(func=cmd_skills)

    sp = sub.add_parser("timeline", help="Observation timeline for one job (JSON).")
    sp.add_argument("job_id", type=int)
    sp.set_defaults(func=cmd_timeline)

    return p


def _run_command(args: argparse.Namespace) -> int:
    try:
        return args.func(args)
    except KeyboardInterrupt:
        return 130
    except (_config_schema.ConfigError, SettingsError, insights.InvalidQuery) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except insights.JobNotFound as e:
        print(f"NOT FOUND: {e}", file=sys.stderr)
        return 3
    except Exception as e:
        # Full detail goes to the error log only.
        try:
            L.write_error_log({
                "ts": _now_iso(),
                "where": f"cli.{args.cmd}",
                "error": repr(e),
                "traceback": traceback.format_exc(),
            })
        except Exception:
            LOG.debug("write_error_log failed", exc_info=True)
        print("ERROR: internal error (see logs)", file=sys.stderr)
        return 1


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    L.configure_stdlib_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return _run_command(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
