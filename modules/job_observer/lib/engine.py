"""
One crawl cycle over every active target.

Features:
  - Targets of disabled sites are skipped (counted, not crawled)
  - Bounded fan-out via a thread pool (max_workers=1 is strictly sequential)
  - One target's exception never stops the rest of the cycle
  - Summary record via `logging_bridge`
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from . import logging_bridge
from .db import Store
from .models import CrawlTarget, SourceSite
from .worker import CrawlWorker

LOG = logging.getLogger(__name__)


@dataclass
class CycleSummary:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    # Terminal attempt status -> count, for targets that completed.
    by_status: dict[str, int] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return self.success + self.failed


def run_cycle(store: Store, worker: CrawlWorker, *, max_workers: int = 1) -> CycleSummary:
    """
    Load active targets, crawl each enabled one through `worker`, and return
    aggregate counts. A target counts as `success` when the worker returned
    a finalized attempt (whatever its status) and `failed` when it raised.
    """
    start_ns = time.perf_counter_ns()
    summary = CycleSummary()

    with store.reader() as uow:
        pairs = uow.list_active_targets()

    if not pairs:
        LOG.warning("No active crawl targets; run sync-config to add some")

    runnable: list[tuple[CrawlTarget, SourceSite]] = []
    for target, site in pairs:
        if not site.crawl_enabled:
            LOG.debug("Skipping target %s of disabled site %s", target.id, site.name)
            summary.skipped += 1
            continue
        runnable.append((target, site))

    statuses: Counter[str] = Counter()
    if max_workers <= 1:
        for target, site in runnable:
            _run_one(worker, target, site, summary, statuses)
    else:
        with ThreadPoolExecutor(max_workers=min(len(runnable) or 1, max_workers)) as pool:
            futures = {pool.submit(worker.process, t, s): (t, s) for t, s in runnable}
            for fut in as_completed(futures):
                target, site = futures[fut]
                try:
                    attempt = fut.result()
                    summary.success += 1
                    statuses[attempt.status.value] += 1
                except Exception as e:
                    summary.failed += 1
                    _log_target_failure(target, site, e)

    summary.by_status = dict(statuses)
    total_us = int((time.perf_counter_ns() - start_ns) // 1000)
    LOG.info(
        "Cycle complete: success=%d failed=%d skipped=%d", summary.success, summary.failed, summary.skipped
    )
    logging_bridge.activity({
        "component": "job_observer.engine",
        "op": "summary",
        "targets": len(pairs),
        "success": summary.success,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "by_status": summary.by_status,
        "max_workers": max_workers,
        "total_us": total_us,
    })
    return summary


def _run_one(
    worker: CrawlWorker, target: CrawlTarget, site: SourceSite, summary: CycleSummary, statuses: Counter[str]
) -> None:
    try:
        attempt = worker.process(target, site)
    except Exception as e:
        summary.failed += 1
        _log_target_failure(target, site, e)
        return
    summary.success += 1
    statuses[attempt.status.value] += 1


def _log_target_failure(target: CrawlTarget, site: SourceSite, e: Exception) -> None:
    LOG.error("Target failed %s: %s", target.url, e)
    logging_bridge.error({
        "component": "job_observer.engine",
        "op": "target",
        "site": site.name,
        "target_id": target.id,
        "url": target.url,
        "error": repr(e),
    })
