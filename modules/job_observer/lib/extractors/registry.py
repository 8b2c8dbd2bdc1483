from __future__ import annotations

from .base import BaseExtractor

# Global in-process registry: site name -> extractor class
_REGISTRY: dict[str, type[BaseExtractor]] = {}


def register(cls: type[BaseExtractor]) -> type[BaseExtractor]:
    """
    Class decorator or direct call to register an extractor class.
    Requires cls.site to be a non-empty string.
    """
    site = getattr(cls, "site", "") or ""
    if not isinstance(site, str) or not site.strip():
        raise ValueError(f"Cannot register extractor {cls!r}: missing/empty 'site'.")
    key = site.strip().lower()
    if key in _REGISTRY and _REGISTRY[key] is not cls:
        # Allow idempotent re-registers of the same class; otherwise reject.
        raise ValueError(f"Extractor for site {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = cls
    return cls


def get(site: str) -> type[BaseExtractor]:
    """
    Look up an extractor class by site name (case-insensitive).
    Raises KeyError if not found.
    """
    key = (site or "").strip().lower()
    if key not in _REGISTRY:
        raise KeyError(f"No extractor registered for site {site!r}.")
    return _REGISTRY[key]


def all_sites() -> dict[str, type[BaseExtractor]]:
    """
    Return a shallow copy of the registry (useful for debugging/tests).
    """
    return dict(_REGISTRY)
