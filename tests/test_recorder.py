import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from modules.job_observer.lib.recorder import Recorder
from modules.job_observer.lib.resolver import Resolver

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
URL = "https://www.freshersworld.com/jobs/java-developer-1"


@pytest.fixture
def job(store):
    return Resolver(store).resolve("Acme", "Java Developer", "Pune", now=T0)


def test_every_call_appends_one_observation(store, make_site, make_attempt, job):
    site = make_site()
    attempt = make_attempt(site)
    rec = Recorder(store)

    for i in range(3):
        rec.record(job, site, attempt, URL, "Java Developer", None, observed_at=T0 + timedelta(hours=i))

    assert store.count_rows("job_observations") == 3
    assert store.count_rows("job_sources") == 1


def test_source_keeps_first_seen_and_advances_last_seen(store, make_site, make_attempt, job):
    site = make_site()
    attempt = make_attempt(site)
    rec = Recorder(store)

    rec.record(job, site, attempt, URL, "Java Developer", "4-6 LPA", observed_at=T0 + timedelta(days=2))
    rec.record(job, site, attempt, URL, "Java Developer", None, observed_at=T0 + timedelta(days=5))
    rec.record(job, site, attempt, URL, "Java Developer", None, observed_at=T0 + timedelta(days=1))

    with store.reader() as uow:
        (src,) = uow.list_sources_for_job(job.id)
        refreshed = uow.get_job(job.id)
    assert src.first_seen_at == T0 + timedelta(days=2)
    assert src.last_seen_at == T0 + timedelta(days=5)
    assert src.salary_text == "4-6 LPA"
    # The job's last sighting follows its evidence
    assert refreshed.last_seen_at == T0 + timedelta(days=5)


def test_observation_links_attempt_and_raw_title(store, make_site, make_attempt, job):
    site = make_site()
    attempt = make_attempt(site)

    obs = Recorder(store).record(job, site, attempt, URL, "Jr. Java Dev", None, observed_at=T0)

    assert obs.crawl_attempt_id == attempt.id
    assert obs.raw_title == "Jr. Java Dev"
    assert obs.observed_at == T0


@pytest.mark.parametrize("url", ["", "   ", None])
def test_blank_url_is_rejected(store, make_site, make_attempt, job, url):
    site = make_site()
    attempt = make_attempt(site)

    with pytest.raises(ValueError):
        Recorder(store).record(job, site, attempt, url, "Java Developer", None)
    assert store.count_rows("job_observations") == 0
    assert store.count_rows("job_sources") == 0


def test_url_stays_bound_to_its_first_job(store, make_site, make_attempt, job):
    site = make_site()
    attempt = make_attempt(site)
    other = Resolver(store).resolve("Globex", "QA Engineer", "Pune", now=T0)
    rec = Recorder(store)

    rec.record(job, site, attempt, URL, "Java Developer", None, observed_at=T0)
    rec.record(other, site, attempt, URL, "QA Engineer", None, observed_at=T0 + timedelta(hours=1))

    with store.reader() as uow:
        assert uow.find_source_by_url(URL).job_id == job.id
        assert uow.list_sources_for_job(other.id) == []
    assert store.count_rows("job_observations") == 2


def test_observations_reject_update_and_delete(store, make_site, make_attempt, job):
    site = make_site()
    attempt = make_attempt(site)
    Recorder(store).record(job, site, attempt, URL, "Java Developer", None, observed_at=T0)

    with pytest.raises(sqlite3.DatabaseError, match="append-only"):
        with store.unit_of_work() as uow:
            uow.conn.execute("UPDATE job_observations SET raw_title = 'edited'")
    with pytest.raises(sqlite3.DatabaseError, match="append-only"):
        with store.unit_of_work() as uow:
            uow.conn.execute("DELETE FROM job_observations")

    assert store.count_rows("job_observations") == 1


def test_job_identity_columns_are_immutable(store, job):
    with pytest.raises(sqlite3.DatabaseError, match="immutable"):
        with store.unit_of_work() as uow:
            uow.conn.execute("UPDATE jobs SET normalized_role = 'QA' WHERE id = ?", (job.id,))

    # last_seen_at is the one column allowed to move
    with store.unit_of_work() as uow:
        uow.advance_job_last_seen(job.id, T0 + timedelta(days=1))
        assert uow.get_job(job.id).last_seen_at == T0 + timedelta(days=1)
