# modules/job_observer/lib/extractors/freshersworld.py
from __future__ import annotations

import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib

from ..models import RawJobRecord
from .base import BaseExtractor, text_of
from .registry import register

LOG = logging.getLogger(__name__)

# Verify against the live page source before changing (scripts/check_extractor.py).
CARD = ".job-container"
TITLE = "h3.latest-jobs-title a"
COMPANY = ".company-name"
LOCATION = ".job-location, .location, .jobs-location"
URL_ATTR = "job_display_url"  # attribute on the card element


@register
class FreshersworldExtractor(BaseExtractor):
    """
    Freshersworld search-result pages.

    Each card carries its canonical link in a `job_display_url` attribute;
    when that is missing the title link's href is used instead.
    """

    site = "freshersworld"

    def extract(self, document: str, *, base_url: str | None = None) -> list[RawJobRecord]:
        soup = BeautifulSoup(document, "html5lib")
        cards = soup.select(CARD)
        if not cards:
            LOG.warning("[freshersworld] zero cards for selector %r", CARD)
            return []

        out: list[RawJobRecord] = []
        for card in cards:
            title = text_of(card, TITLE)
            company = text_of(card, COMPANY)
            location = text_of(card, LOCATION) or "India"

            url = str(card.get(URL_ATTR) or "").strip()
            if not url:
                link = card.select_one(TITLE)
                href = str(link.get("href") or "").strip() if link is not None else ""
                url = urljoin(base_url or "", href) if href else ""

            if not title or not company or not url:
                LOG.debug("[freshersworld] skipping incomplete card title=%r company=%r url=%r", title, company, url)
                continue

            out.append(RawJobRecord(raw_title=title, raw_company=company, raw_location=location, listing_url=url))

        LOG.info("[freshersworld] extracted %d/%d cards", len(out), len(cards))
        return out
