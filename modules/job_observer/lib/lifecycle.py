from __future__ import annotations

import logging
from datetime import datetime

from .db import Store, UnitOfWork
from .models import Job, LifecycleState
from .utils import utcnow

LOG = logging.getLogger(__name__)

DEFAULT_INACTIVE_THRESHOLD_DAYS = 7
DEFAULT_REPOST_THRESHOLD_DAYS = 30

_SECONDS_PER_DAY = 86400


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Floor of the elapsed days, clamped at zero."""
    seconds = (later - earlier).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // _SECONDS_PER_DAY)


class LifecycleEngine:
    """
    Derives a job's state from its evidence every time it is asked.
    Nothing here is cached or written back.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    def compute_state(
        self, job_id: int, *, now: datetime | None = None, uow: UnitOfWork | None = None
    ) -> LifecycleState:
        if uow is None:
            with self.store.reader() as r:
                return self.compute_state(job_id, now=now, uow=r)
        now = now or utcnow()

        sources = uow.list_sources_for_job(job_id)
        if not sources:
            return LifecycleState.UNKNOWN

        last_seen: datetime | None = None
        inactive: int | None = None
        repost: int | None = None
        for src in sources:
            seen = uow.latest_observation_at(src.id)
            if seen is not None and (last_seen is None or seen > last_seen):
                last_seen = seen

            site = uow.get_site(src.source_site_id)
            site_inactive = site.inactive_threshold_days if site else DEFAULT_INACTIVE_THRESHOLD_DAYS
            site_repost = site.repost_threshold_days if site else DEFAULT_REPOST_THRESHOLD_DAYS
            # Most conservative site wins.
            inactive = site_inactive if inactive is None else min(inactive, site_inactive)
            repost = site_repost if repost is None else min(repost, site_repost)

        if last_seen is None:
            return LifecycleState.UNKNOWN

        days = whole_days_between(last_seen, now)
        if days <= inactive:
            return LifecycleState.ACTIVE
        if days > repost:
            return LifecycleState.NEW_CYCLE
        return LifecycleState.INACTIVE

    # ---- presentation helpers ----
    @staticmethod
    def days_since_last_seen(job: Job, now: datetime | None = None) -> int:
        return whole_days_between(job.last_seen_at, now or utcnow())

    def confirmed_source_count(self, job_id: int, *, uow: UnitOfWork | None = None) -> int:
        if uow is None:
            with self.store.reader() as r:
                return len(r.list_sources_for_job(job_id))
        return len(uow.list_sources_for_job(job_id))
