# modules/job_observer/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, Settings
from .db import Store
from .fingerprint import fingerprint
from .models import CrawlStatus, LifecycleState, RawJobRecord

__all__ = [
    "ConfigError",
    "CrawlStatus",
    "LifecycleState",
    "RawJobRecord",
    "Settings",
    "Store",
    "fingerprint",
]
