from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .utils import parse_iso


class CrawlStatus(str, Enum):
    SUCCESS = "SUCCESS"
    HTTP_FAIL = "HTTP_FAIL"  # unreachable: no information about jobs
    PARSE_FAIL = "PARSE_FAIL"  # page fetched but extractor could not read it


class LifecycleState(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    NEW_CYCLE = "NEW_CYCLE"
    UNKNOWN = "UNKNOWN"


# ---- Rows --------------------------------------------------------------------
# Records are independent; relations are plain id fields resolved through the
# Store, never through object references.


@dataclass(frozen=True)
class Company:
    id: int
    normalized_name: str
    display_name: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Company:
        return cls(
            id=row["id"],
            normalized_name=row["normalized_name"],
            display_name=row["display_name"],
            created_at=parse_iso(row["created_at"]),
        )


@dataclass(frozen=True)
class Job:
    """
    One logical opportunity. Identity is the fingerprint; only last_seen_at
    ever moves, and only forward.
    """

    id: int
    fingerprint: str
    company_id: int
    normalized_role: str
    normalized_location: str
    first_seen_at: datetime
    last_seen_at: datetime
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Job:
        return cls(
            id=row["id"],
            fingerprint=row["fingerprint"],
            company_id=row["company_id"],
            normalized_role=row["normalized_role"],
            normalized_location=row["normalized_location"],
            first_seen_at=parse_iso(row["first_seen_at"]),
            last_seen_at=parse_iso(row["last_seen_at"]),
            created_at=parse_iso(row["created_at"]),
        )


@dataclass(frozen=True)
class SourceSite:
    id: int
    name: str
    inactive_threshold_days: int
    repost_threshold_days: int
    crawl_delay_seconds: float
    max_retries: int
    crawl_enabled: bool
    reliability_weight: float

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SourceSite:
        return cls(
            id=row["id"],
            name=row["name"],
            inactive_threshold_days=int(row["inactive_threshold_days"]),
            repost_threshold_days=int(row["repost_threshold_days"]),
            crawl_delay_seconds=float(row["crawl_delay_seconds"]),
            max_retries=int(row["max_retries"]),
            crawl_enabled=bool(row["crawl_enabled"]),
            reliability_weight=float(row["reliability_weight"]),
        )


@dataclass(frozen=True)
class CrawlTarget:
    id: int
    source_site_id: int
    url: str
    active: bool

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> CrawlTarget:
        return cls(
            id=row["id"],
            source_site_id=row["source_site_id"],
            url=row["url"],
            active=bool(row["active"]),
        )


@dataclass(frozen=True)
class CrawlAttempt:
    id: int
    crawl_target_id: int
    started_at: datetime
    finished_at: datetime | None
    status: CrawlStatus
    http_code: int | None
    error_message: str | None
    jobs_found_count: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> CrawlAttempt:
        return cls(
            id=row["id"],
            crawl_target_id=row["crawl_target_id"],
            started_at=parse_iso(row["started_at"]),
            finished_at=parse_iso(row["finished_at"]),
            status=CrawlStatus(row["status"]),
            http_code=row["http_code"],
            error_message=row["error_message"],
            jobs_found_count=int(row["jobs_found_count"] or 0),
        )


@dataclass(frozen=True)
class JobSource:
    id: int
    source_url: str
    job_id: int
    source_site_id: int
    salary_text: str | None
    first_seen_at: datetime
    last_seen_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> JobSource:
        return cls(
            id=row["id"],
            source_url=row["source_url"],
            job_id=row["job_id"],
            source_site_id=row["source_site_id"],
            salary_text=row["salary_text"],
            first_seen_at=parse_iso(row["first_seen_at"]),
            last_seen_at=parse_iso(row["last_seen_at"]),
        )


@dataclass(frozen=True)
class JobObservation:
    id: int
    job_source_id: int
    crawl_attempt_id: int
    observed_at: datetime
    raw_title: str | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> JobObservation:
        return cls(
            id=row["id"],
            job_source_id=row["job_source_id"],
            crawl_attempt_id=row["crawl_attempt_id"],
            observed_at=parse_iso(row["observed_at"]),
            raw_title=row["raw_title"],
        )


@dataclass(frozen=True)
class Skill:
    id: int
    name: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Skill:
        return cls(id=row["id"], name=row["name"])


# ---- Pipeline values ---------------------------------------------------------


@dataclass(frozen=True)
class RawJobRecord:
    """
    One job card as extracted from a listing page. Every field is the raw
    site text; normalization happens downstream.
    """

    raw_title: str | None
    raw_company: str | None
    raw_location: str | None
    listing_url: str | None
    salary_text: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class FetchResult:
    status_code: int
    text: str
    url: str
