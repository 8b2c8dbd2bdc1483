import json
import os

from modules.job_observer.lib import logging_bridge
from service import logging_utils as L


def _read(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_activity_records_land_in_log_dir_with_metadata():
    L.write_activity_log({"event": "unit", "count": 3})

    path = L.get_activity_log_path()
    assert os.path.dirname(path) == os.environ["LOG_DIR"]
    assert os.path.basename(path).startswith("activity-test-")
    (rec,) = _read(path)
    assert rec["event"] == "unit"
    assert rec["count"] == 3
    assert {"ts", "host", "pid"} <= set(rec["_meta"])


def test_secrets_are_redacted_deeply():
    L.write_error_log({"headers": {"Authorization": "Bearer abc", "Accept": "text/html"}, "api_key": "k"})

    (rec,) = _read(L.get_error_log_path())
    assert rec["api_key"] == "***REDACTED***"
    assert rec["headers"]["Authorization"] == "***REDACTED***"
    assert rec["headers"]["Accept"] == "text/html"


def test_bridge_redacts_and_writes_activity():
    logging_bridge.activity({"component": "test", "op": "x", "session_token": "t0ps3cret"})

    (rec,) = _read(L.get_activity_log_path())
    assert rec["component"] == "test"
    assert rec["session_token"] == "***REDACTED***"


def test_bridge_falls_back_to_stdlib_logging(monkeypatch, caplog):
    def _broken(record):
        raise OSError("disk full")

    monkeypatch.setattr(L, "write_error_log", _broken)
    with caplog.at_level("ERROR", logger="job_observer.error"):
        logging_bridge.error({"component": "test", "op": "y"})

    assert any("test" in r.getMessage() for r in caplog.records)
