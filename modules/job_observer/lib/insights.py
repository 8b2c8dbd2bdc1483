"""
Read-only views over the evidence store.

Every view is composed from stored rows plus a fresh lifecycle computation;
nothing here writes.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .db import Store, UnitOfWork
from .lifecycle import LifecycleEngine
from .models import Job, LifecycleState
from .normalizers import UNKNOWN as UNKNOWN_ROLE
from .utils import parse_iso, to_iso, utcnow


class InvalidQuery(ValueError):
    """Caller supplied an argument no view can answer."""


class JobNotFound(LookupError):
    """No observations exist for the requested job."""


@dataclass(frozen=True)
class JobSummary:
    job_id: int
    company: str
    role: str
    location: str
    lifecycle_state: LifecycleState
    days_since_last_seen: int
    source_count: int
    first_seen_at: datetime
    last_seen_at: datetime
    skills: list[str]

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["lifecycle_state"] = self.lifecycle_state.value
        d["first_seen_at"] = to_iso(self.first_seen_at)
        d["last_seen_at"] = to_iso(self.last_seen_at)
        return d


@dataclass(frozen=True)
class SkillFrequency:
    skill: str
    job_count: int
    percentage_share: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TimelineEvent:
    observed_at: datetime
    source_site: str
    source_url: str
    raw_title: str | None
    crawl_status: str

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["observed_at"] = to_iso(self.observed_at)
        return d


# ---- views ------------------------------------------------------------------


def new_jobs(store: Store, *, hours: int = 24, now: datetime | None = None) -> list[JobSummary]:
    """Jobs with at least one observation in the last `hours`, newest first."""
    if isinstance(hours, bool) or not isinstance(hours, int) or hours <= 0:
        raise InvalidQuery(f"hours must be a positive integer, got {hours!r}")
    now = now or utcnow()
    engine = LifecycleEngine(store)
    with store.reader() as uow:
        jobs = uow.list_jobs_observed_since(now - timedelta(hours=hours))
        return _summaries(uow, engine, jobs, now)


def active_jobs(store: Store, *, now: datetime | None = None, candidate_days: int = 30) -> list[JobSummary]:
    """Jobs whose lifecycle state is ACTIVE right now, newest first."""
    if isinstance(candidate_days, bool) or not isinstance(candidate_days, int) or candidate_days <= 0:
        raise InvalidQuery(f"candidate_days must be a positive integer, got {candidate_days!r}")
    now = now or utcnow()
    engine = LifecycleEngine(store)
    with store.reader() as uow:
        jobs = _active_job_rows(uow, engine, now, candidate_days)
        return _summaries(uow, engine, jobs, now)


def skill_frequency(store: Store, *, now: datetime | None = None, candidate_days: int = 30) -> list[SkillFrequency]:
    """
    Skill demand over ACTIVE jobs only: how many active jobs carry each
    skill and what share of all active jobs that is (one decimal, half-up).
    Jobs with an UNKNOWN role are left out of both counts.
    """
    now = now or utcnow()
    engine = LifecycleEngine(store)
    with store.reader() as uow:
        jobs = [
            j for j in _active_job_rows(uow, engine, now, candidate_days) if j.normalized_role != UNKNOWN_ROLE
        ]
        if not jobs:
            return []
        by_job = uow.skill_names_for_jobs(j.id for j in jobs)

    counts = Counter(name for names in by_job.values() for name in names)
    total = Decimal(len(jobs))
    out = [
        SkillFrequency(
            skill=name,
            job_count=n,
            percentage_share=float((Decimal(n) * 100 / total).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)),
        )
        for name, n in counts.items()
    ]
    out.sort(key=lambda f: (-f.job_count, f.skill))
    return out


def job_timeline(store: Store, job_id: int) -> list[TimelineEvent]:
    """Every observation of a job across all sources, most recent first."""
    if isinstance(job_id, bool) or not isinstance(job_id, int) or job_id <= 0:
        raise InvalidQuery(f"job_id must be a positive integer, got {job_id!r}")
    with store.reader() as uow:
        rows = uow.list_observations_for_job(job_id)
    if not rows:
        raise JobNotFound(f"No observations for job {job_id}")

    return [
        TimelineEvent(
            observed_at=parse_iso(r["observed_at"]),
            source_site=r["site_name"],
            source_url=r["source_url"],
            raw_title=r["raw_title"],
            crawl_status=r["crawl_status"],
        )
        for r in rows
    ]


# ---- helpers ----------------------------------------------------------------


def _active_job_rows(uow: UnitOfWork, engine: LifecycleEngine, now: datetime, candidate_days: int) -> list[Job]:
    # A site with a long inactive threshold can keep a job ACTIVE past the
    # default candidate window.
    window = max(candidate_days, uow.max_inactive_threshold_days())
    candidates = uow.list_jobs_seen_since(now - timedelta(days=window + 1))
    return [j for j in candidates if engine.compute_state(j.id, now=now, uow=uow) == LifecycleState.ACTIVE]


def _summaries(uow: UnitOfWork, engine: LifecycleEngine, jobs: list[Job], now: datetime) -> list[JobSummary]:
    skills = uow.skill_names_for_jobs(j.id for j in jobs)
    companies: dict[int, str] = {}
    out: list[JobSummary] = []
    for job in jobs:
        if job.company_id not in companies:
            company = uow.get_company(job.company_id)
            companies[job.company_id] = company.display_name if company else ""
        out.append(
            JobSummary(
                job_id=job.id,
                company=companies[job.company_id],
                role=job.normalized_role,
                location=job.normalized_location,
                lifecycle_state=engine.compute_state(job.id, now=now, uow=uow),
                days_since_last_seen=engine.days_since_last_seen(job, now),
                source_count=engine.confirmed_source_count(job.id, uow=uow),
                first_seen_at=job.first_seen_at,
                last_seen_at=job.last_seen_at,
                skills=skills.get(job.id, []),
            )
        )
    out.sort(key=lambda s: (s.last_seen_at, s.job_id), reverse=True)
    return out
