import json
import os
from datetime import timedelta

import pytest

from modules.job_observer.lib.db import Store
from modules.job_observer.lib.recorder import Recorder
from modules.job_observer.lib.resolver import Resolver
from modules.job_observer.lib.utils import utcnow
from service import cli
from service import logging_utils as L


@pytest.fixture
def config_file(tmp_path):
    cfg = {
        "settings": {"sqlite_path": str(tmp_path / "cli.db")},
        "sites": [
            {
                "name": "freshersworld",
                "crawl_delay_seconds": 0,
                "targets": ["https://www.freshersworld.com/jobs/jobsearch/java"],
            },
            {"name": "timesjobs", "crawl_enabled": False, "targets": []},
        ],
        "aliases": [{"company": "Tata Consultancy Services", "aliases": ["TCS"]}],
    }
    p = tmp_path / "config.json"
    p.write_text(json.dumps(cfg), encoding="utf-8")
    return p


def _run(config_file, *argv):
    return cli.main(["--config", str(config_file), *argv])


def test_validate_config_ok(config_file, capsys):
    assert _run(config_file, "validate-config") == 0
    assert "OK: configuration is valid." in capsys.readouterr().out


def test_invalid_config_exits_2(tmp_path, capsys):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"sites": [{"name": "x", "reliability_weight": 7}]}), encoding="utf-8")

    assert cli.main(["--config", str(p), "validate-config"]) == 2
    assert "reliability_weight" in capsys.readouterr().err


def test_invalid_settings_exit_2(tmp_path, capsys):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"settings": {"max_workers": "lots"}}), encoding="utf-8")

    assert cli.main(["--config", str(p), "validate-config"]) == 2
    assert capsys.readouterr().err.startswith("ERROR:")


def test_sync_then_list_targets(config_file, capsys):
    assert _run(config_file, "sync-config") == 0
    assert "OK: synced 2 site(s), 1 target(s), 1 new alias(es)." in capsys.readouterr().out

    assert _run(config_file, "list-targets") == 0
    out = capsys.readouterr().out
    assert "freshersworld" in out
    assert "https://www.freshersworld.com/jobs/jobsearch/java" in out


def test_list_targets_before_sync(config_file, capsys):
    assert _run(config_file, "list-targets") == 0
    assert "No crawl targets" in capsys.readouterr().out


def test_crawl_once_with_no_targets(tmp_path, capsys):
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"settings": {"sqlite_path": str(tmp_path / "empty.db")}}), encoding="utf-8")

    assert cli.main(["--config", str(p), "crawl-once"]) == 0
    assert "DONE: success=0 failed=0 skipped=0" in capsys.readouterr().out


def test_read_views_print_json(config_file, tmp_path, capsys):
    assert _run(config_file, "sync-config") == 0
    store = Store(str(tmp_path / "cli.db"))
    with store.reader() as uow:
        target, site = uow.list_active_targets()[0]
    with store.unit_of_work() as uow:
        attempt = uow.insert_attempt(target.id, utcnow())
    seen = utcnow() - timedelta(hours=1)
    job = Resolver(store).resolve("TCS", "Java Developer", "Chennai", now=seen)
    Recorder(store).record(job, site, attempt, "https://fw.test/1", "Java Developer", None, observed_at=seen)
    capsys.readouterr()

    assert _run(config_file, "jobs-new", "--hours", "6") == 0
    (row,) = json.loads(capsys.readouterr().out)
    assert row["company"] == "Tata Consultancy Services"
    assert row["lifecycle_state"] == "ACTIVE"

    assert _run(config_file, "jobs-active") == 0
    assert [r["job_id"] for r in json.loads(capsys.readouterr().out)] == [job.id]

    assert _run(config_file, "skills") == 0
    assert json.loads(capsys.readouterr().out) == []

    assert _run(config_file, "timeline", str(job.id)) == 0
    (event,) = json.loads(capsys.readouterr().out)
    assert event["source_site"] == "freshersworld"
    assert event["crawl_status"] == "HTTP_FAIL"  # attempt never completed


def test_timeline_not_found_exits_3(config_file, capsys):
    assert _run(config_file, "timeline", "4242") == 3
    assert capsys.readouterr().err.startswith("NOT FOUND:")


def test_bad_query_exits_2(config_file, capsys):
    assert _run(config_file, "jobs-new", "--hours", "0") == 2
    assert "hours" in capsys.readouterr().err


def test_internal_error_exits_1_and_hides_details(config_file, capsys, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("secret stack detail")

    monkeypatch.setattr(cli.insights, "active_jobs", _boom)

    assert _run(config_file, "jobs-active") == 1
    err = capsys.readouterr().err
    assert "ERROR: internal error (see logs)" in err
    assert "secret stack detail" not in err

    with open(L.get_error_log_path(), encoding="utf-8") as f:
        records = [json.loads(line) for line in f]
    assert records[-1]["where"] == "cli.jobs-active"
    assert "secret stack detail" in records[-1]["traceback"]
    assert os.path.dirname(L.get_error_log_path()) == os.environ["LOG_DIR"]
