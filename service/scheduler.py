# service/scheduler.py
from __future__ import annotations

import itertools
import logging
import os
import threading
import time as _time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

# Project-local interfaces
from . import config_schema
from .logging_utils import write_activity_log

LOG = logging.getLogger(__name__)

JOB_ID_PREFIX = "job_observer.crawl"

Clock = Callable[[], datetime]


def _utc_clock() -> datetime:
    return datetime.now(timezone.utc)


# ---- Timing policy ----------------------------------------------------------


class FixedDelaySchedule:
    """
    Fixed-delay timing: the next run is `interval` after the previous run
    *finished*, never after it started, so runs cannot overlap. The first run
    is `initial_delay` after the schedule was created.

    Pure and clock-injected; APScheduler only executes what this decides.
    """

    def __init__(
        self,
        interval: timedelta,
        initial_delay: timedelta = timedelta(0),
        *,
        clock: Clock | None = None,
        started_at: datetime | None = None,
        last_completed_at: datetime | None = None,
    ) -> None:
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")
        if initial_delay < timedelta(0):
            raise ValueError("initial_delay must be >= 0")
        self.interval = interval
        self.initial_delay = initial_delay
        self.clock = clock or _utc_clock
        self.started_at = started_at or self.clock()
        self.last_completed_at = last_completed_at

    def next_run_at(self) -> datetime:
        if self.last_completed_at is None:
            return self.started_at + self.initial_delay
        return self.last_completed_at + self.interval

    def is_due(self, now: datetime | None = None) -> bool:
        return (now or self.clock()) >= self.next_run_at()

    def mark_completed(self, when: datetime | None = None) -> None:
        self.last_completed_at = when or self.clock()


# ---- Public controller ------------------------------------------------------


class SchedulerController:
    """
    A small façade around APScheduler so the CLI can manage lifecycle cleanly.
    """

    def __init__(self, scheduler: BackgroundScheduler, stop_event: threading.Event | None = None) -> None:
        self._scheduler = scheduler
        self._stopped_evt = threading.Event()
        # Shared with the crawl worker: setting it interrupts delays and backoff.
        self.stop_event = stop_event or threading.Event()

    def stop(self) -> None:
        """
        Signal in-flight crawls to wind down and shut APScheduler down.
        """
        self.stop_event.set()
        if self._scheduler.running:
            LOG.info("Shutting down scheduler...")
            # wait=False -> return immediately; the in-flight cycle sees stop_event.
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
        jobs = self._scheduler.get_jobs()
        times = [j.next_run_time for j in jobs if getattr(j, "next_run_time", None)]
        return min(times) if times else None


# ---- Module API -------------------------------------------------------------


def start(
    config_path: str | None = None,
    *,
    cycle: Callable[..., Any] | None = None,
    clock: Clock | None = None,
) -> SchedulerController:
    """
    Load configuration, build an APScheduler instance, arm the first crawl
    cycle, and start. Returns a SchedulerController exposing stop()/join().

    `cycle` defaults to modules.job_observer.main.run with the config's
    settings block; it is called with stop_event=<controller.stop_event>.

    Notes:
      * APScheduler 3.x prefers a pytz scheduler timezone.
      * Each run is a one-shot DateTrigger job that re-arms the next one when
        it finishes (success or failure). That is what makes the delay
        measured from completion rather than from start.
    """
    cfg = config_schema.load_config(config_path)
    config_schema.validate(cfg)
    tz = _resolve_timezone(cfg)

    sched_cfg = cfg["schedule"]
    schedule = FixedDelaySchedule(
        interval=timedelta(minutes=float(sched_cfg["interval_minutes"])),
        initial_delay=timedelta(seconds=float(sched_cfg["initial_delay_seconds"])),
        clock=clock,
    )

    if cycle is None:
        from modules.job_observer import main as job_observer_main

        cycle = partial(job_observer_main.run, **dict(cfg.get("settings") or {}))

    scheduler = BackgroundScheduler(
        timezone=tz,
        job_defaults={
            "coalesce": True,  # run only the latest if many were missed
            "max_instances": 1,
        },
        executors={"default": ThreadPoolExecutor(1)},
        jobstores={"default": MemoryJobStore()},
    )
    controller = SchedulerController(scheduler)
    ids = itertools.count(1)

    def _arm() -> None:
        run_at = schedule.next_run_at()
        # Fresh id per arming: the fired one-shot job is removed by APScheduler
        # concurrently with this wrapper running.
        job_id = f"{JOB_ID_PREFIX}.{next(ids)}"
        scheduler.add_job(
            func=_job_wrapper,
            trigger=DateTrigger(run_date=run_at, timezone=tz),
            id=job_id,
            misfire_grace_time=None,
            replace_existing=True,
        )
        LOG.info("Next crawl cycle armed for %s", run_at.isoformat())

    def _job_wrapper() -> None:
        started = _time.monotonic()
        LOG.info("Crawl cycle starting")
        status, result = "ok", None
        try:
            result = cycle(stop_event=controller.stop_event)
        except Exception:
            LOG.exception("Crawl cycle raised an exception.")
            status = "error"
        finally:
            schedule.mark_completed()
            duration = _time.monotonic() - started
            LOG.info("Crawl cycle finished in %.3fs (%s)", duration, status)
            _write_activity(status=status, duration_s=duration, result=result)
            if not controller.stop_event.is_set() and scheduler.running:
                _arm()

    _arm()
    scheduler.start()
    LOG.info(
        "Scheduler started: interval=%s initial_delay=%s tz=%s",
        schedule.interval,
        schedule.initial_delay,
        tz,
    )
    return controller


# ---- Helpers ----------------------------------------------------------------


def _resolve_timezone(cfg: dict[str, Any]):
    """
    APScheduler 3.x expects a pytz timezone. We accept either:
    - config['timezone'] (e.g., 'Asia/Kolkata')
    - env TZ
    - default to UTC
    """
    tz_name = cfg.get("timezone") or os.getenv("TZ") or "UTC"
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (invalid or missing tz '%s')", tz_name)
        return pytz.UTC


def _write_activity(status: str, duration_s: float, result: Any = None) -> None:
    """Best-effort JSONL activity logging; non-fatal on errors."""
    fields: dict[str, Any] = {
        "status": status,
        "duration_ms": int(duration_s * 1000),
    }
    for name in ("success", "failed", "skipped"):
        if hasattr(result, name):
            fields[name] = getattr(result, name)
    try:
        write_activity_log({"source": "scheduler", "event": "crawl_cycle", "fields": fields})
    except Exception:
        LOG.debug("write_activity_log failed for crawl cycle", exc_info=True)
