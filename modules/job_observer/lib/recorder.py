from __future__ import annotations

import logging
from datetime import datetime

from .db import Store
from .models import CrawlAttempt, Job, JobObservation, SourceSite
from .utils import utcnow

LOG = logging.getLogger(__name__)


class Recorder:
    """
    Appends evidence: one JobObservation per call, no dedup, no overwrite.
    The JobSource for a URL is created on first sight and only has its
    last_seen_at advanced afterwards.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    def record(
        self,
        job: Job,
        site: SourceSite,
        attempt: CrawlAttempt,
        source_url: str,
        raw_title: str | None,
        salary_text: str | None,
        *,
        observed_at: datetime | None = None,
    ) -> JobObservation:
        url = (source_url or "").strip()
        if not url:
            raise ValueError("source_url is required")
        observed_at = observed_at or utcnow()

        with self.store.unit_of_work() as uow:
            created = uow.insert_source_if_absent(
                source_url=url,
                job_id=job.id,
                source_site_id=site.id,
                salary_text=salary_text,
                seen_at=observed_at,
            )
            source = uow.find_source_by_url(url)
            if not created:
                uow.advance_source_last_seen(source.id, observed_at)
                if source.job_id != job.id:
                    # The URL stays bound to the job it was first seen with.
                    LOG.warning(
                        "Source %s belongs to job %s, observed while resolving job %s",
                        url,
                        source.job_id,
                        job.id,
                    )
            obs = uow.append_observation(
                job_source_id=source.id,
                crawl_attempt_id=attempt.id,
                observed_at=observed_at,
                raw_title=raw_title,
            )
            uow.advance_job_last_seen(source.job_id, observed_at)
        return obs
