from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from .db import Store, UnitOfWork
from .fingerprint import fingerprint
from .models import Job
from .normalizers import CompanyNormalizer, LocationNormalizer, RoleNormalizer
from .utils import utcnow

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    company: str
    role: str
    location: str
    fingerprint: str


class Resolver:
    """
    Maps raw (company, title, location) onto exactly one Job row.

    Uniqueness of companies.normalized_name and jobs.fingerprint is what keeps
    concurrent callers honest: inserts are INSERT OR IGNORE and a zero
    rowcount means another writer got there first, so we fall back to the
    lookup path.
    """

    def __init__(
        self,
        store: Store,
        *,
        company_normalizer: CompanyNormalizer | None = None,
        role_normalizer: RoleNormalizer | None = None,
        location_normalizer: LocationNormalizer | None = None,
    ) -> None:
        self.store = store
        self.companies = company_normalizer or CompanyNormalizer()
        self.roles = role_normalizer or RoleNormalizer()
        self.locations = location_normalizer or LocationNormalizer()

    def normalize(
        self,
        raw_company: str | None,
        raw_title: str | None,
        raw_location: str | None,
        *,
        uow: UnitOfWork | None = None,
    ) -> Identity:
        if uow is None:
            with self.store.reader() as r:
                return self.normalize(raw_company, raw_title, raw_location, uow=r)
        company = self.companies.normalize(raw_company, alias_lookup=uow.find_alias_target)
        role = self.roles.normalize(raw_title)
        location = self.locations.normalize(raw_location)
        return Identity(company, role, location, fingerprint(company, role, location))

    def resolve(
        self,
        raw_company: str | None,
        raw_title: str | None,
        raw_location: str | None,
        *,
        now: datetime | None = None,
    ) -> Job:
        now = now or utcnow()
        with self.store.unit_of_work() as uow:
            ident = self.normalize(raw_company, raw_title, raw_location, uow=uow)

            job = uow.find_job_by_fingerprint(ident.fingerprint)
            if job is not None:
                uow.advance_job_last_seen(job.id, now)
                return uow.get_job(job.id)

            company_id = self._resolve_company_id(uow, ident.company, raw_company, now)
            created = uow.insert_job_if_absent(
                fingerprint=ident.fingerprint,
                company_id=company_id,
                normalized_role=ident.role,
                normalized_location=ident.location,
                seen_at=now,
            )
            job = uow.find_job_by_fingerprint(ident.fingerprint)
            if not created:
                LOG.debug("Job %s created concurrently; advancing instead", ident.fingerprint[:12])
                uow.advance_job_last_seen(job.id, now)
                job = uow.get_job(job.id)
            else:
                LOG.info(
                    "New job %s: %s / %s / %s", ident.fingerprint[:12], ident.company, ident.role, ident.location
                )
            return job

    @staticmethod
    def _resolve_company_id(uow: UnitOfWork, token: str, raw_company: str | None, now: datetime) -> int:
        company = uow.find_company_by_normalized_name(token)
        if company is None:
            display = (raw_company or "").strip() or token
            uow.insert_company_if_absent(token, display, now)
            company = uow.find_company_by_normalized_name(token)
        return company.id
