# modules/job_observer/lib/extractors/timesjobs.py
from __future__ import annotations

import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib

from ..models import RawJobRecord
from .base import BaseExtractor, text_of
from .registry import register

LOG = logging.getLogger(__name__)

CARD = "li.clearfix.job-bx"
TITLE_PRIMARY = "h2 a.jobTitle"
TITLE_ALTERNATE = "h2.job-tittle a"  # sic, the site's own class name
COMPANY = "h3.joblist-comp-name"
LOCATION = "ul.top-jd-dtl li span"  # first span is the location


@register
class TimesJobsExtractor(BaseExtractor):
    """TimesJobs search-result pages (two title layouts in circulation)."""

    site = "timesjobs"

    def extract(self, document: str, *, base_url: str | None = None) -> list[RawJobRecord]:
        soup = BeautifulSoup(document, "html5lib")
        cards = soup.select(CARD)
        if not cards:
            LOG.warning("[timesjobs] zero cards for selector %r", CARD)
            return []

        out: list[RawJobRecord] = []
        for card in cards:
            title = text_of(card, TITLE_PRIMARY) or text_of(card, TITLE_ALTERNATE)
            company = text_of(card, COMPANY)
            location = text_of(card, LOCATION) or "India"

            link = card.select_one(f"{TITLE_PRIMARY}, {TITLE_ALTERNATE}")
            href = str(link.get("href") or "").strip() if link is not None else ""
            url = urljoin(base_url or "", href) if href else ""

            if not title or not company or not url:
                LOG.debug("[timesjobs] skipping incomplete card title=%r company=%r url=%r", title, company, url)
                continue

            out.append(RawJobRecord(raw_title=title, raw_company=company, raw_location=location, listing_url=url))

        LOG.info("[timesjobs] extracted %d/%d cards", len(out), len(cards))
        return out
