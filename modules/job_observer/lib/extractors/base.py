from __future__ import annotations

from abc import ABC, abstractmethod

from bs4 import Tag

from ..models import RawJobRecord


class ExtractionError(Exception):
    """The page could not be read with this site's expected structure."""


class BaseExtractor(ABC):
    """
    Abstract per-site listing parser.

    Contract:
      - extract(document) returns every complete job card on the page.
      - An empty list means the page simply had no cards (a SUCCESS crawl).
      - Structural breakage raises ExtractionError (a PARSE_FAIL crawl).
      - No network, no DB, no global state.
    """

    # Concrete subclasses MUST set this to the source_sites.name they parse.
    site: str = ""

    @abstractmethod
    def extract(self, document: str, *, base_url: str | None = None) -> list[RawJobRecord]:
        """
        Parse one listing page.

        Args:
            document: raw page body
            base_url: URL the page was fetched from, for resolving relative links
        """
        raise NotImplementedError


def text_of(parent: Tag, selector: str) -> str:
    """Stripped text of the first element matching selector, or ""."""
    el = parent.select_one(selector)
    return el.get_text(" ", strip=True) if el is not None else ""
