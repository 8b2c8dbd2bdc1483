from __future__ import annotations

import contextlib
import os
import sqlite3
from collections.abc import Iterable, Iterator
from datetime import datetime

from .logging_bridge import error as log_error
from .models import (
    Company,
    CrawlAttempt,
    CrawlStatus,
    CrawlTarget,
    Job,
    JobObservation,
    JobSource,
    Skill,
    SourceSite,
)
from .utils import parse_iso, to_iso

# ---- Schema -----------------------------------------------------------------

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS companies (
      id INTEGER PRIMARY KEY,
      normalized_name TEXT NOT NULL,
      display_name TEXT NOT NULL,
      created_at TEXT NOT NULL
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_companies_normalized_name ON companies (normalized_name);",
    """
    CREATE TABLE IF NOT EXISTS company_aliases (
      id INTEGER PRIMARY KEY,
      alias TEXT NOT NULL,
      company_id INTEGER NOT NULL REFERENCES companies (id)
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_company_aliases_alias ON company_aliases (alias);",
    """
    CREATE TABLE IF NOT EXISTS jobs (
      id INTEGER PRIMARY KEY,
      fingerprint TEXT NOT NULL,
      company_id INTEGER NOT NULL REFERENCES companies (id),
      normalized_role TEXT NOT NULL,
      normalized_location TEXT NOT NULL,
      first_seen_at TEXT NOT NULL,
      last_seen_at TEXT NOT NULL,
      created_at TEXT NOT NULL
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_jobs_fingerprint ON jobs (fingerprint);",
    "CREATE INDEX IF NOT EXISTS ix_jobs_last_seen_at ON jobs (last_seen_at);",
    """
    CREATE TRIGGER IF NOT EXISTS tr_jobs_identity_immutable
    BEFORE UPDATE OF fingerprint, company_id, normalized_role, normalized_location, first_seen_at ON jobs
    BEGIN
      SELECT RAISE(ABORT, 'job identity columns are immutable');
    END;
    """,
    """
    CREATE TABLE IF NOT EXISTS skills (
      id INTEGER PRIMARY KEY,
      name TEXT NOT NULL
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_skills_name ON skills (name);",
    """
    CREATE TABLE IF NOT EXISTS job_skills (
      job_id INTEGER NOT NULL REFERENCES jobs (id),
      skill_id INTEGER NOT NULL REFERENCES skills (id),
      PRIMARY KEY (job_id, skill_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS source_sites (
      id INTEGER PRIMARY KEY,
      name TEXT NOT NULL,
      inactive_threshold_days INTEGER NOT NULL DEFAULT 7,
      repost_threshold_days INTEGER NOT NULL DEFAULT 30,
      crawl_delay_seconds REAL NOT NULL DEFAULT 3,
      max_retries INTEGER NOT NULL DEFAULT 2,
      crawl_enabled INTEGER NOT NULL DEFAULT 1,
      reliability_weight REAL NOT NULL DEFAULT 0.5
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_source_sites_name ON source_sites (name);",
    """
    CREATE TABLE IF NOT EXISTS crawl_targets (
      id INTEGER PRIMARY KEY,
      source_site_id INTEGER NOT NULL REFERENCES source_sites (id),
      url TEXT NOT NULL,
      active INTEGER NOT NULL DEFAULT 1
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_crawl_targets_site_url ON crawl_targets (source_site_id, url);",
    """
    CREATE TABLE IF NOT EXISTS crawl_attempts (
      id INTEGER PRIMARY KEY,
      crawl_target_id INTEGER NOT NULL REFERENCES crawl_targets (id),
      started_at TEXT NOT NULL,
      finished_at TEXT,
      status TEXT NOT NULL,
      http_code INTEGER,
      error_message TEXT,
      jobs_found_count INTEGER NOT NULL DEFAULT 0
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS job_sources (
      id INTEGER PRIMARY KEY,
      source_url TEXT NOT NULL,
      job_id INTEGER NOT NULL REFERENCES jobs (id),
      source_site_id INTEGER NOT NULL REFERENCES source_sites (id),
      salary_text TEXT,
      first_seen_at TEXT NOT NULL,
      last_seen_at TEXT NOT NULL
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_job_sources_source_url ON job_sources (source_url);",
    "CREATE INDEX IF NOT EXISTS ix_job_sources_job_id ON job_sources (job_id);",
    """
    CREATE TABLE IF NOT EXISTS job_observations (
      id INTEGER PRIMARY KEY,
      job_source_id INTEGER NOT NULL REFERENCES job_sources (id),
      crawl_attempt_id INTEGER NOT NULL REFERENCES crawl_attempts (id),
      observed_at TEXT NOT NULL,
      raw_title TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS ix_job_observations_source ON job_observations (job_source_id, observed_at);",
    """
    CREATE TRIGGER IF NOT EXISTS tr_job_observations_no_update
    BEFORE UPDATE ON job_observations
    BEGIN
      SELECT RAISE(ABORT, 'job_observations is append-only');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS tr_job_observations_no_delete
    BEFORE DELETE ON job_observations
    BEGIN
      SELECT RAISE(ABORT, 'job_observations is append-only');
    END;
    """,
)

_COUNTABLE_TABLES = frozenset({
    "companies",
    "company_aliases",
    "jobs",
    "skills",
    "job_skills",
    "source_sites",
    "crawl_targets",
    "crawl_attempts",
    "job_sources",
    "job_observations",
})


# ---- Public API -------------------------------------------------------------


class Store:
    """
    Handle on one SQLite file. Every unit of work gets its own connection,
    so a Store can be shared freely between worker threads.
    """

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path

    def init(self) -> None:
        """
        Ensure the SQLite database and schema exist.
        Safe to call multiple times.
        """
        _ensure_dir(self.sqlite_path)
        with contextlib.closing(_connect(self.sqlite_path)) as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            _apply_pragmas(conn)
            for stmt in _SCHEMA:
                conn.execute(stmt)

    @contextlib.contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        """
        All-or-nothing write scope. Commits on clean exit, rolls back on any
        exception (which is re-raised).
        """
        conn = _connect(self.sqlite_path)
        _apply_pragmas(conn)
        uow = UnitOfWork(conn)
        try:
            uow.begin()
            yield uow
            uow.commit()
        except BaseException as e:
            uow.rollback()
            if isinstance(e, sqlite3.Error):
                log_error({
                    "component": "job_observer.db",
                    "op": "unit_of_work",
                    "sqlite_path": self.sqlite_path,
                    "error": repr(e),
                })
            raise
        finally:
            conn.close()

    @contextlib.contextmanager
    def reader(self) -> Iterator[UnitOfWork]:
        """Read-only scope (deferred transaction, consistent snapshot)."""
        conn = _connect(self.sqlite_path)
        _apply_pragmas(conn)
        uow = UnitOfWork(conn)
        try:
            uow.begin(immediate=False)
            yield uow
        finally:
            uow.rollback()
            conn.close()

    def count_rows(self, table: str) -> int:
        """Return total rows in a table; 0 if the DB file is missing."""
        if table not in _COUNTABLE_TABLES:
            raise ValueError(f"Unknown table {table!r}")
        if not os.path.exists(self.sqlite_path):
            return 0
        with self.reader() as uow:
            (n,) = uow.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(n or 0)

    def reset(self) -> None:
        """
        Remove the DB file entirely (for pytest fixtures).
        Safe if it doesn't exist.
        """
        for suffix in ("", "-wal", "-shm"):
            with contextlib.suppress(FileNotFoundError):
                os.remove(self.sqlite_path + suffix)


class UnitOfWork:
    """
    One connection + one transaction. Repository methods never commit on
    their own; the enclosing Store.unit_of_work() decides.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._open = False

    # ---- transaction control ----
    def begin(self, *, immediate: bool = True) -> None:
        self.conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        self._open = True

    def commit(self) -> None:
        if self._open:
            self.conn.execute("COMMIT")
            self._open = False

    def rollback(self) -> None:
        if self._open:
            self.conn.execute("ROLLBACK")
            self._open = False

    # ---- companies ----
    def find_company_by_normalized_name(self, normalized_name: str) -> Company | None:
        row = self.conn.execute(
            "SELECT * FROM companies WHERE normalized_name = ?", (normalized_name,)
        ).fetchone()
        return Company.from_row(row) if row else None

    def get_company(self, company_id: int) -> Company | None:
        row = self.conn.execute("SELECT * FROM companies WHERE id = ?", (company_id,)).fetchone()
        return Company.from_row(row) if row else None

    def insert_company_if_absent(self, normalized_name: str, display_name: str, created_at: datetime) -> bool:
        """True if this call created the row; False if it already existed."""
        cur = self.conn.execute(
            """
            INSERT OR IGNORE INTO companies (normalized_name, display_name, created_at)
            VALUES (?, ?, ?)
            """,
            (normalized_name, display_name, to_iso(created_at)),
        )
        return cur.rowcount == 1

    def find_alias_target(self, alias: str) -> str | None:
        """Canonical normalized company name an alias points at, if any."""
        row = self.conn.execute(
            """
            SELECT c.normalized_name
              FROM company_aliases a
              JOIN companies c ON c.id = a.company_id
             WHERE a.alias = ?
            """,
            (alias,),
        ).fetchone()
        return row[0] if row else None

    def insert_alias_if_absent(self, alias: str, company_id: int) -> bool:
        cur = self.conn.execute(
            "INSERT OR IGNORE INTO company_aliases (alias, company_id) VALUES (?, ?)",
            (alias, company_id),
        )
        return cur.rowcount == 1

    # ---- jobs ----
    def find_job_by_fingerprint(self, fingerprint: str) -> Job | None:
        row = self.conn.execute("SELECT * FROM jobs WHERE fingerprint = ?", (fingerprint,)).fetchone()
        return Job.from_row(row) if row else None

    def get_job(self, job_id: int) -> Job | None:
        row = self.conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return Job.from_row(row) if row else None

    def insert_job_if_absent(
        self,
        *,
        fingerprint: str,
        company_id: int,
        normalized_role: str,
        normalized_location: str,
        seen_at: datetime,
    ) -> bool:
        ts = to_iso(seen_at)
        cur = self.conn.execute(
            """
            INSERT OR IGNORE INTO jobs
              (fingerprint, company_id, normalized_role, normalized_location,
               first_seen_at, last_seen_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (fingerprint, company_id, normalized_role, normalized_location, ts, ts, ts),
        )
        return cur.rowcount == 1

    def advance_job_last_seen(self, job_id: int, seen_at: datetime) -> None:
        # MAX() over fixed-width ISO text never moves the value backwards.
        self.conn.execute(
            "UPDATE jobs SET last_seen_at = MAX(last_seen_at, ?) WHERE id = ?",
            (to_iso(seen_at), job_id),
        )

    def list_jobs_seen_since(self, since: datetime) -> list[Job]:
        rows = self.conn.execute(
            "SELECT * FROM jobs WHERE last_seen_at >= ? ORDER BY last_seen_at DESC, id",
            (to_iso(since),),
        ).fetchall()
        return [Job.from_row(r) for r in rows]

    def list_jobs_observed_since(self, since: datetime) -> list[Job]:
        rows = self.conn.execute(
            """
            SELECT j.*
              FROM jobs j
             WHERE EXISTS (
                   SELECT 1
                     FROM job_sources s
                     JOIN job_observations o ON o.job_source_id = s.id
                    WHERE s.job_id = j.id AND o.observed_at >= ?)
             ORDER BY j.last_seen_at DESC, j.id
            """,
            (to_iso(since),),
        ).fetchall()
        return [Job.from_row(r) for r in rows]

    # ---- sites & targets ----
    def get_site(self, site_id: int) -> SourceSite | None:
        row = self.conn.execute("SELECT * FROM source_sites WHERE id = ?", (site_id,)).fetchone()
        return SourceSite.from_row(row) if row else None

    def find_site_by_name(self, name: str) -> SourceSite | None:
        row = self.conn.execute("SELECT * FROM source_sites WHERE name = ?", (name,)).fetchone()
        return SourceSite.from_row(row) if row else None

    def upsert_site(
        self,
        *,
        name: str,
        inactive_threshold_days: int,
        repost_threshold_days: int,
        crawl_delay_seconds: float,
        max_retries: int,
        crawl_enabled: bool,
        reliability_weight: float,
    ) -> SourceSite:
        self.conn.execute(
            """
            INSERT INTO source_sites
              (name, inactive_threshold_days, repost_threshold_days, crawl_delay_seconds,
               max_retries, crawl_enabled, reliability_weight)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (name) DO UPDATE SET
              inactive_threshold_days = excluded.inactive_threshold_days,
              repost_threshold_days = excluded.repost_threshold_days,
              crawl_delay_seconds = excluded.crawl_delay_seconds,
              max_retries = excluded.max_retries,
              crawl_enabled = excluded.crawl_enabled,
              reliability_weight = excluded.reliability_weight
            """,
            (
                name,
                int(inactive_threshold_days),
                int(repost_threshold_days),
                float(crawl_delay_seconds),
                int(max_retries),
                1 if crawl_enabled else 0,
                float(reliability_weight),
            ),
        )
        row = self.conn.execute("SELECT * FROM source_sites WHERE name = ?", (name,)).fetchone()
        return SourceSite.from_row(row)

    def upsert_target(self, site_id: int, url: str, *, active: bool = True) -> CrawlTarget:
        self.conn.execute(
            """
            INSERT INTO crawl_targets (source_site_id, url, active) VALUES (?, ?, ?)
            ON CONFLICT (source_site_id, url) DO UPDATE SET active = excluded.active
            """,
            (site_id, url, 1 if active else 0),
        )
        row = self.conn.execute(
            "SELECT * FROM crawl_targets WHERE source_site_id = ? AND url = ?", (site_id, url)
        ).fetchone()
        return CrawlTarget.from_row(row)

    def list_active_targets(self) -> list[tuple[CrawlTarget, SourceSite]]:
        rows = self.conn.execute(
            """
            SELECT t.id AS t_id, t.source_site_id AS t_site, t.url AS t_url, t.active AS t_active,
                   s.*
              FROM crawl_targets t
              JOIN source_sites s ON s.id = t.source_site_id
             WHERE t.active = 1
             ORDER BY t.id
            """
        ).fetchall()
        out: list[tuple[CrawlTarget, SourceSite]] = []
        for r in rows:
            target = CrawlTarget(id=r["t_id"], source_site_id=r["t_site"], url=r["t_url"], active=bool(r["t_active"]))
            out.append((target, SourceSite.from_row(r)))
        return out

    def list_targets(self) -> list[tuple[CrawlTarget, SourceSite]]:
        rows = self.conn.execute(
            """
            SELECT t.id AS t_id, t.source_site_id AS t_site, t.url AS t_url, t.active AS t_active,
                   s.*
              FROM crawl_targets t
              JOIN source_sites s ON s.id = t.source_site_id
             ORDER BY s.name, t.id
            """
        ).fetchall()
        return [
            (
                CrawlTarget(id=r["t_id"], source_site_id=r["t_site"], url=r["t_url"], active=bool(r["t_active"])),
                SourceSite.from_row(r),
            )
            for r in rows
        ]

    def max_inactive_threshold_days(self) -> int:
        (n,) = self.conn.execute("SELECT MAX(inactive_threshold_days) FROM source_sites").fetchone()
        return int(n or 0)

    # ---- crawl attempts ----
    def insert_attempt(self, target_id: int, started_at: datetime) -> CrawlAttempt:
        # Pessimistic default: a crash before completion still reads as HTTP_FAIL.
        cur = self.conn.execute(
            """
            INSERT INTO crawl_attempts (crawl_target_id, started_at, status, jobs_found_count)
            VALUES (?, ?, ?, 0)
            """,
            (target_id, to_iso(started_at), CrawlStatus.HTTP_FAIL.value),
        )
        row = self.conn.execute("SELECT * FROM crawl_attempts WHERE id = ?", (cur.lastrowid,)).fetchone()
        return CrawlAttempt.from_row(row)

    def get_attempt(self, attempt_id: int) -> CrawlAttempt | None:
        row = self.conn.execute("SELECT * FROM crawl_attempts WHERE id = ?", (attempt_id,)).fetchone()
        return CrawlAttempt.from_row(row) if row else None

    def complete_attempt(
        self,
        attempt_id: int,
        *,
        status: CrawlStatus,
        finished_at: datetime,
        http_code: int | None,
        error_message: str | None,
        jobs_found_count: int,
    ) -> CrawlAttempt:
        # The terminal transition happens once; a finished attempt is frozen.
        cur = self.conn.execute(
            """
            UPDATE crawl_attempts
               SET status = ?, finished_at = ?, http_code = ?, error_message = ?, jobs_found_count = ?
             WHERE id = ? AND finished_at IS NULL
            """,
            (status.value, to_iso(finished_at), http_code, error_message, int(jobs_found_count), attempt_id),
        )
        if cur.rowcount != 1:
            raise ValueError(f"Crawl attempt {attempt_id} is missing or already completed")
        row = self.conn.execute("SELECT * FROM crawl_attempts WHERE id = ?", (attempt_id,)).fetchone()
        return CrawlAttempt.from_row(row)

    def list_attempts_for_target(self, target_id: int) -> list[CrawlAttempt]:
        rows = self.conn.execute(
            "SELECT * FROM crawl_attempts WHERE crawl_target_id = ? ORDER BY id", (target_id,)
        ).fetchall()
        return [CrawlAttempt.from_row(r) for r in rows]

    # ---- evidence ----
    def find_source_by_url(self, source_url: str) -> JobSource | None:
        row = self.conn.execute("SELECT * FROM job_sources WHERE source_url = ?", (source_url,)).fetchone()
        return JobSource.from_row(row) if row else None

    def insert_source_if_absent(
        self,
        *,
        source_url: str,
        job_id: int,
        source_site_id: int,
        salary_text: str | None,
        seen_at: datetime,
    ) -> bool:
        ts = to_iso(seen_at)
        cur = self.conn.execute(
            """
            INSERT OR IGNORE INTO job_sources
              (source_url, job_id, source_site_id, salary_text, first_seen_at, last_seen_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (source_url, job_id, source_site_id, salary_text, ts, ts),
        )
        return cur.rowcount == 1

    def advance_source_last_seen(self, source_id: int, seen_at: datetime) -> None:
        self.conn.execute(
            "UPDATE job_sources SET last_seen_at = MAX(last_seen_at, ?) WHERE id = ?",
            (to_iso(seen_at), source_id),
        )

    def list_sources_for_job(self, job_id: int) -> list[JobSource]:
        rows = self.conn.execute("SELECT * FROM job_sources WHERE job_id = ? ORDER BY id", (job_id,)).fetchall()
        return [JobSource.from_row(r) for r in rows]

    def append_observation(
        self,
        *,
        job_source_id: int,
        crawl_attempt_id: int,
        observed_at: datetime,
        raw_title: str | None,
    ) -> JobObservation:
        cur = self.conn.execute(
            """
            INSERT INTO job_observations (job_source_id, crawl_attempt_id, observed_at, raw_title)
            VALUES (?, ?, ?, ?)
            """,
            (job_source_id, crawl_attempt_id, to_iso(observed_at), raw_title),
        )
        row = self.conn.execute("SELECT * FROM job_observations WHERE id = ?", (cur.lastrowid,)).fetchone()
        return JobObservation.from_row(row)

    def latest_observation_at(self, job_source_id: int) -> datetime | None:
        (ts,) = self.conn.execute(
            "SELECT MAX(observed_at) FROM job_observations WHERE job_source_id = ?", (job_source_id,)
        ).fetchone()
        return parse_iso(ts)

    def list_observations_for_job(self, job_id: int) -> list[sqlite3.Row]:
        """Timeline rows joined with source, site and attempt; newest first."""
        return self.conn.execute(
            """
            SELECT o.id, o.observed_at, o.raw_title,
                   s.source_url, ss.name AS site_name, a.status AS crawl_status
              FROM job_observations o
              JOIN job_sources s ON s.id = o.job_source_id
              JOIN source_sites ss ON ss.id = s.source_site_id
              JOIN crawl_attempts a ON a.id = o.crawl_attempt_id
             WHERE s.job_id = ?
             ORDER BY o.observed_at DESC, o.id DESC
            """,
            (job_id,),
        ).fetchall()

    # ---- skills ----
    def ensure_skill(self, name: str) -> Skill:
        self.conn.execute("INSERT OR IGNORE INTO skills (name) VALUES (?)", (name,))
        row = self.conn.execute("SELECT * FROM skills WHERE name = ?", (name,)).fetchone()
        return Skill.from_row(row)

    def attach_skill(self, job_id: int, skill_id: int) -> bool:
        cur = self.conn.execute(
            "INSERT OR IGNORE INTO job_skills (job_id, skill_id) VALUES (?, ?)", (job_id, skill_id)
        )
        return cur.rowcount == 1

    def skill_names_for_job(self, job_id: int) -> list[str]:
        rows = self.conn.execute(
            """
            SELECT sk.name FROM job_skills js JOIN skills sk ON sk.id = js.skill_id
             WHERE js.job_id = ? ORDER BY sk.name
            """,
            (job_id,),
        ).fetchall()
        return [r[0] for r in rows]

    def skill_names_for_jobs(self, job_ids: Iterable[int]) -> dict[int, list[str]]:
        ids = list(job_ids)
        out: dict[int, list[str]] = {i: [] for i in ids}
        if not ids:
            return out
        placeholders = ",".join("?" for _ in ids)
        rows = self.conn.execute(
            f"""
            SELECT js.job_id, sk.name FROM job_skills js JOIN skills sk ON sk.id = js.skill_id
             WHERE js.job_id IN ({placeholders}) ORDER BY sk.name
            """,
            ids,
        ).fetchall()
        for job_id, name in rows:
            out[job_id].append(name)
        return out


# ---- Internal utilities -----------------------------------------------------


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # isolation_level=None gives autocommit mode; we'll manage transactions explicitly.
    conn = sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA temp_store=MEMORY;")
    conn.execute("PRAGMA busy_timeout=30000;")
