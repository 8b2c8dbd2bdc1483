# job_observer/extractors/__init__.py
from __future__ import annotations

from ..models import RawJobRecord
from . import freshersworld as _freshersworld  # noqa: F401  (registers)
from . import stub as _stub  # noqa: F401  (registers)
from . import timesjobs as _timesjobs  # noqa: F401  (registers)
from .base import BaseExtractor, ExtractionError
from .registry import all_sites, get, register


def extract(document: str, site_name: str, *, base_url: str | None = None) -> list[RawJobRecord]:
    """
    Dispatch a fetched page to the extractor registered for site_name.

    Raises ExtractionError for an unknown site, a blank document, or any
    failure inside the parser; an empty list is a legitimate empty page.
    """
    try:
        cls = get(site_name)
    except KeyError as e:
        raise ExtractionError(f"No extractor for site {site_name!r}") from e
    if not document or not document.strip():
        raise ExtractionError(f"Empty document for site {site_name!r}")
    try:
        return cls().extract(document, base_url=base_url)
    except ExtractionError:
        raise
    except Exception as e:
        raise ExtractionError(f"{site_name}: {e!r}") from e


__all__ = [
    "BaseExtractor",
    "ExtractionError",
    "all_sites",
    "extract",
    "get",
    "register",
]
