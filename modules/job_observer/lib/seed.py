from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .db import Store
from .logging_bridge import activity as log_activity
from .normalizers import UNKNOWN_COMPANY, CompanyNormalizer
from .utils import utcnow

LOG = logging.getLogger(__name__)


def sync_sites_and_aliases(
    store: Store,
    sites: Iterable[Mapping[str, Any]],
    aliases: Iterable[Mapping[str, Any]] = (),
) -> dict[str, int]:
    """
    Idempotently upsert configured sites, their targets and company aliases.

    Site policy columns are overwritten on every sync so thresholds and crawl
    pacing can change without touching code. Targets missing from the config
    are left alone (deactivate them with active: false).
    """
    counts = {"sites": 0, "targets": 0, "companies": 0, "aliases": 0}
    companies = CompanyNormalizer()
    now = utcnow()

    with store.unit_of_work() as uow:
        for s in sites:
            site = uow.upsert_site(
                name=s["name"],
                inactive_threshold_days=s["inactive_threshold_days"],
                repost_threshold_days=s["repost_threshold_days"],
                crawl_delay_seconds=s["crawl_delay_seconds"],
                max_retries=s["max_retries"],
                crawl_enabled=s["crawl_enabled"],
                reliability_weight=s["reliability_weight"],
            )
            counts["sites"] += 1
            for t in s.get("targets") or []:
                uow.upsert_target(site.id, t["url"], active=t.get("active", True))
                counts["targets"] += 1

        for entry in aliases:
            raw_company = str(entry["company"]).strip()
            token = companies.clean(raw_company)
            if token == UNKNOWN_COMPANY:
                LOG.warning("Alias company %r normalizes to nothing; skipped", raw_company)
                continue
            if uow.insert_company_if_absent(token, raw_company, now):
                counts["companies"] += 1
            company = uow.find_company_by_normalized_name(token)

            for raw_alias in entry.get("aliases") or []:
                alias = companies.clean(raw_alias)
                if alias in (UNKNOWN_COMPANY, token):
                    continue
                if uow.insert_alias_if_absent(alias, company.id):
                    counts["aliases"] += 1
                elif uow.find_alias_target(alias) != token:
                    LOG.warning("Alias %r already points at another company; left unchanged", alias)

    log_activity({"component": "job_observer.seed", "op": "sync", **counts})
    return counts
