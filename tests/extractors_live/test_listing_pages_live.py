# tests/extractors_live/test_listing_pages_live.py
from __future__ import annotations

import os

import pytest

from modules.job_observer.lib.extractors import extract
from modules.job_observer.lib.http_client import HttpClient

PAGES = [
    ("freshersworld", "https://www.freshersworld.com/jobs/jobsearch/java-developer-jobs-for-freshers"),
    ("timesjobs", "https://www.timesjobs.com/candidate/job-search.html?searchType=personalizedSearch&txtKeywords=java"),
]


def _print_records(label: str, records, max_items: int | None = None) -> None:
    # allow override via env (e.g., LIVE_MAX_PRINT=999)
    if max_items is None:
        env_max = os.getenv("LIVE_MAX_PRINT")
        max_items = int(env_max) if env_max else 10
    print(f"\n[{label}] cards: {len(records)}")
    for r in records[:max_items]:
        print(f"      • {r.raw_title} @ {r.raw_company} [{r.raw_location}]  {r.listing_url}")


@pytest.mark.live
@pytest.mark.parametrize("site, url", PAGES)
def test_live_listing_page_parses(site, url):
    """
    Smoke test against the real site: the page must fetch and every card
    that comes back must be complete. Zero cards means the selectors need a look.
    """
    client = HttpClient(timeout=20)
    try:
        result = client.fetch(url)
    finally:
        client.close()
    assert result.status_code < 400, f"{site} returned HTTP {result.status_code}"

    records = extract(result.text, site, base_url=result.url)
    _print_records(site, records)

    assert records, f"{site}: zero cards; re-check selectors with scripts/check_extractor.py"
    for r in records:
        assert r.raw_title and r.raw_company and r.listing_url
        assert r.listing_url.startswith("http")
