# tests/conftest.py
import os
import tempfile
from datetime import datetime, timezone

import pytest
from freezegun import freeze_time

from modules.job_observer.lib.db import Store
from modules.job_observer.lib.recorder import Recorder
from modules.job_observer.lib.resolver import Resolver
from modules.job_observer.lib.utils import utcnow

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)

SITE_DEFAULTS = {
    "inactive_threshold_days": 7,
    "repost_threshold_days": 30,
    "crawl_delay_seconds": 0.0,
    "max_retries": 2,
    "crawl_enabled": True,
    "reliability_weight": 0.5,
}


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls to real job sites).",
    )


def pytest_configure(config: pytest.Config) -> None:
    # Marker registration (so pytest --markers shows it)
    config.addinivalue_line(
        "markers",
        "live: marks tests that fetch real listing pages (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="jo-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")

    # Nothing from the developer's shell should leak into a test
    for name in ("CONFIG_PATH", "JOB_OBSERVER_SQLITE_PATH", "JOB_OBSERVER_MAX_WORKERS"):
        monkeypatch.delenv(name, raising=False)

    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Store + factories
# ---------------------------------------------------------------------
@pytest.fixture
def store(tmp_path):
    """A fresh, initialized SQLite store per test."""
    s = Store(str(tmp_path / "job_observer.db"))
    s.init()
    return s


@pytest.fixture
def make_site(store):
    def _make(name="stub", **policy):
        fields = {**SITE_DEFAULTS, **policy}
        with store.unit_of_work() as uow:
            return uow.upsert_site(name=name, **fields)

    return _make


@pytest.fixture
def make_target(store):
    def _make(site, url="https://jobs.example.test/search?q=java", *, active=True):
        with store.unit_of_work() as uow:
            return uow.upsert_target(site.id, url, active=active)

    return _make


@pytest.fixture
def make_attempt(store, make_target):
    """Open a crawl attempt against a (new or given) target of `site`."""

    def _make(site, target=None, *, started_at=None):
        target = target or make_target(site)
        with store.unit_of_work() as uow:
            return uow.insert_attempt(target.id, started_at or utcnow())

    return _make


@pytest.fixture
def observe(store):
    """
    Resolve a raw card and record one observation of it at `at`.
    Returns the resolved Job.
    """
    resolver = Resolver(store)
    recorder = Recorder(store)

    def _observe(site, attempt, company, title, location, url, *, at=T0, salary=None):
        job = resolver.resolve(company, title, location, now=at)
        recorder.record(job, site, attempt, url, title, salary, observed_at=at)
        return job

    return _observe
