from __future__ import annotations

import threading
from typing import Any

from .lib.config import Settings
from .lib.db import Store
from .lib.engine import CycleSummary, run_cycle
from .lib.logging_bridge import activity as log_activity
from .lib.worker import CrawlWorker


def run(*, stop_event: threading.Event | None = None, **kwargs: Any) -> CycleSummary:
    """
    Entry point for the 'job_observer' module: one crawl cycle.

    Accepts kwargs (from the scheduler/CLI settings block), including:
      sqlite_path: str = "/app/local/state/job_observer.db"
      max_workers: int = 1
      http_timeout: float = 15
      backoff_base_seconds: float = 2.0
      record_delay_factor: float = 0.2

    stop_event, when set by the caller, interrupts delays and retry backoff.
    """
    settings = Settings.from_env_and_kwargs(kwargs)

    log_activity({
        "component": "job_observer.main",
        "op": "start",
        "sqlite_path": settings.sqlite_path,
        "max_workers": settings.max_workers,
    })

    store = Store(settings.sqlite_path)
    store.init()
    worker = CrawlWorker.from_settings(store, settings, stop_event=stop_event)
    try:
        return run_cycle(store, worker, max_workers=settings.max_workers)
    finally:
        worker.close()
