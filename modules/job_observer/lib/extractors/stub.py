from __future__ import annotations

import json
from typing import Any

from ..models import RawJobRecord
from .base import BaseExtractor, ExtractionError
from .registry import register


@register
class StubExtractor(BaseExtractor):
    """
    A zero-network extractor used for tests and dry-runs.

    The document is JSON: either a list of records or {"jobs": [...]}, where
    each record may carry title, company, location, url, salary, description.
    Records are passed through untouched (blank fields included) so callers
    can exercise malformed-record handling downstream.
    """

    site = "stub"

    def extract(self, document: str, *, base_url: str | None = None) -> list[RawJobRecord]:
        try:
            data: Any = json.loads(document)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"stub document is not JSON: {e}") from e

        if isinstance(data, dict):
            data = data.get("jobs")
        if not isinstance(data, list):
            raise ExtractionError("stub document must be a list of jobs or {'jobs': [...]}")

        out: list[RawJobRecord] = []
        for i, item in enumerate(data):
            if not isinstance(item, dict):
                raise ExtractionError(f"stub job[{i}] must be an object")
            out.append(
                RawJobRecord(
                    raw_title=item.get("title"),
                    raw_company=item.get("company"),
                    raw_location=item.get("location"),
                    listing_url=item.get("url"),
                    salary_text=item.get("salary"),
                    description=item.get("description"),
                )
            )
        return out
