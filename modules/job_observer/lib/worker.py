from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

import requests

from . import extractors
from .config import Settings
from .db import Store
from .http_client import HttpClient
from .logging_bridge import activity as log_activity
from .logging_bridge import error as log_error
from .models import CrawlAttempt, CrawlStatus, CrawlTarget, FetchResult, RawJobRecord, SourceSite
from .recorder import Recorder
from .resolver import Resolver
from .skills import SkillMatcher
from .utils import utcnow

LOG = logging.getLogger(__name__)

FetchFn = Callable[[str], FetchResult]
ExtractFn = Callable[..., list[RawJobRecord]]


class CrawlWorker:
    """
    Processes one crawl target end to end:

        open attempt -> fetch with retry -> extract -> resolve + record each card -> close attempt

    An unreachable page halts before any job data is touched: a failed fetch
    says nothing about whether jobs exist. Every wait goes through stop_event
    so a shutdown interrupts delays and backoff immediately.
    """

    def __init__(
        self,
        store: Store,
        resolver: Resolver,
        recorder: Recorder,
        *,
        fetch: FetchFn | None = None,
        extract: ExtractFn | None = None,
        skills: SkillMatcher | None = None,
        stop_event: threading.Event | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.recorder = recorder
        self.settings = settings or Settings()
        self.skills = skills
        self.stop_event = stop_event or threading.Event()

        self._client: HttpClient | None = None
        if fetch is None:
            self._client = HttpClient(timeout=self.settings.http_timeout, user_agent=self.settings.user_agent)
            fetch = self._client.fetch
        self.fetch = fetch
        self.extract = extract or extractors.extract

    @classmethod
    def from_settings(
        cls, store: Store, settings: Settings, *, stop_event: threading.Event | None = None, **kwargs: Any
    ) -> CrawlWorker:
        """Wire the default collaborators against one store."""
        return cls(
            store,
            Resolver(store),
            Recorder(store),
            skills=SkillMatcher(store),
            stop_event=stop_event,
            settings=settings,
            **kwargs,
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    # ---- main entry ----
    def process(self, target: CrawlTarget, site: SourceSite) -> CrawlAttempt:
        LOG.info("Starting crawl: site=%s url=%s", site.name, target.url)
        attempt = self._open_attempt(target)

        fetched = self._fetch_with_retry(target, site, attempt)
        if isinstance(fetched, CrawlAttempt):
            return fetched  # already finalized as HTTP_FAIL

        try:
            records = self.extract(fetched.text, site.name, base_url=fetched.url)
        except Exception as e:
            log_error({
                "component": "job_observer.worker",
                "op": "extract",
                "site": site.name,
                "url": target.url,
                "attempt_id": attempt.id,
                "error": repr(e),
            })
            return self._finish(attempt, CrawlStatus.PARSE_FAIL, fetched.status_code, str(e) or repr(e), 0)

        if not records:
            LOG.warning("[%s] extracted 0 jobs from %s; page layout may have changed", site.name, target.url)

        ok = 0
        for rec in records:
            if self._process_record(rec, site, attempt):
                ok += 1
                if self._wait(site.crawl_delay_seconds * self.settings.record_delay_factor):
                    LOG.info("[%s] stop requested; closing attempt %s early", site.name, attempt.id)
                    break

        LOG.info("[%s] crawl complete: recorded %d/%d jobs", site.name, ok, len(records))
        return self._finish(attempt, CrawlStatus.SUCCESS, fetched.status_code, None, ok)

    # ---- stages ----
    def _open_attempt(self, target: CrawlTarget) -> CrawlAttempt:
        # Committed on its own so the attempt survives a crash later on.
        with self.store.unit_of_work() as uow:
            attempt = uow.insert_attempt(target.id, utcnow())
        log_activity({
            "component": "job_observer.worker",
            "op": "attempt_open",
            "attempt_id": attempt.id,
            "target_id": target.id,
            "url": target.url,
        })
        return attempt

    def _fetch_with_retry(
        self, target: CrawlTarget, site: SourceSite, attempt: CrawlAttempt
    ) -> FetchResult | CrawlAttempt:
        tries = site.max_retries + 1
        http_code: int | None = None
        last_error = ""

        for i in range(tries):
            if self._wait(site.crawl_delay_seconds):
                return self._finish(attempt, CrawlStatus.HTTP_FAIL, http_code, "cancelled", 0)
            try:
                result = self.fetch(target.url)
            except requests.RequestException as e:
                last_error = repr(e)
            except Exception as e:
                self._finish(attempt, CrawlStatus.HTTP_FAIL, http_code, repr(e), 0)
                raise
            else:
                http_code = result.status_code
                if result.status_code < 400:
                    LOG.debug("[%s] fetch ok on try %d", site.name, i + 1)
                    return result
                last_error = f"HTTP {result.status_code}"

            LOG.warning("[%s] fetch failed (try %d/%d): %s", site.name, i + 1, tries, last_error)
            if i < tries - 1:
                backoff = self.settings.backoff_base_seconds * (2**i)
                if self._wait(backoff):
                    return self._finish(attempt, CrawlStatus.HTTP_FAIL, http_code, "cancelled", 0)

        message = f"All {tries} attempts failed: {last_error}"
        log_error({
            "component": "job_observer.worker",
            "op": "fetch",
            "site": site.name,
            "url": target.url,
            "attempt_id": attempt.id,
            "http_code": http_code,
            "error": message,
        })
        return self._finish(attempt, CrawlStatus.HTTP_FAIL, http_code, message, 0)

    def _process_record(self, rec: RawJobRecord, site: SourceSite, attempt: CrawlAttempt) -> bool:
        try:
            url = (rec.listing_url or "").strip()
            if not url:
                raise ValueError("record has no listing_url")
            job = self.resolver.resolve(rec.raw_company, rec.raw_title, rec.raw_location)
            self.recorder.record(job, site, attempt, url, rec.raw_title, rec.salary_text)
        except Exception as e:
            LOG.warning("[%s] skipping card %r: %s", site.name, rec.raw_title, e)
            log_error({
                "component": "job_observer.worker",
                "op": "record",
                "site": site.name,
                "attempt_id": attempt.id,
                "raw_title": rec.raw_title,
                "listing_url": rec.listing_url,
                "error": repr(e),
            })
            return False

        if self.skills is not None and rec.description:
            try:
                self.skills.extract_and_attach(job.id, rec.description)
            except Exception as e:
                log_error({
                    "component": "job_observer.worker",
                    "op": "skills",
                    "job_id": job.id,
                    "error": repr(e),
                })
        return True

    def _finish(
        self,
        attempt: CrawlAttempt,
        status: CrawlStatus,
        http_code: int | None,
        error_message: str | None,
        count: int,
    ) -> CrawlAttempt:
        with self.store.unit_of_work() as uow:
            done = uow.complete_attempt(
                attempt.id,
                status=status,
                finished_at=utcnow(),
                http_code=http_code,
                error_message=error_message,
                jobs_found_count=count,
            )
        log_activity({
            "component": "job_observer.worker",
            "op": "attempt_close",
            "attempt_id": done.id,
            "status": done.status.value,
            "http_code": done.http_code,
            "jobs_found": done.jobs_found_count,
            "error": done.error_message,
        })
        return done

    def _wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True if a stop was requested."""
        if seconds <= 0:
            return self.stop_event.is_set()
        return self.stop_event.wait(seconds)
