import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from service.scheduler import FixedDelaySchedule

T0 = datetime(2099, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


# Timing policy ----------------------------------------------------------------


def test_first_run_waits_initial_delay():
    clock = FakeClock(T0)
    sched = FixedDelaySchedule(timedelta(minutes=30), timedelta(seconds=60), clock=clock)

    assert sched.next_run_at() == T0 + timedelta(seconds=60)
    assert not sched.is_due()
    clock.now = T0 + timedelta(seconds=60)
    assert sched.is_due()


def test_next_run_is_measured_from_completion():
    clock = FakeClock(T0)
    sched = FixedDelaySchedule(timedelta(minutes=30), clock=clock)

    # A run that started at T0 and took 45 minutes
    clock.now = T0 + timedelta(minutes=45)
    sched.mark_completed()

    assert sched.next_run_at() == T0 + timedelta(minutes=75)
    assert not sched.is_due(T0 + timedelta(minutes=60))
    assert sched.is_due(T0 + timedelta(minutes=75))


def test_explicit_completion_time():
    sched = FixedDelaySchedule(timedelta(minutes=10), started_at=T0)
    sched.mark_completed(T0 + timedelta(minutes=3))
    assert sched.next_run_at() == T0 + timedelta(minutes=13)


@pytest.mark.parametrize(
    "interval, delay",
    [(timedelta(0), timedelta(0)), (timedelta(minutes=-1), timedelta(0)), (timedelta(minutes=1), timedelta(seconds=-1))],
)
def test_rejects_bad_timing(interval, delay):
    with pytest.raises(ValueError):
        FixedDelaySchedule(interval, delay)


# APScheduler wiring -----------------------------------------------------------


def test_start_runs_cycles_back_to_back_and_stops(tmp_path):
    from service import scheduler

    p = tmp_path / "config.json"
    p.write_text(
        json.dumps({"timezone": "UTC", "schedule": {"interval_minutes": 0.001, "initial_delay_seconds": 0}}),
        encoding="utf-8",
    )
    calls = []
    overlapped = []
    active = threading.Lock()
    two_runs = threading.Event()

    def cycle(*, stop_event):
        if not active.acquire(blocking=False):
            overlapped.append(True)
            return
        try:
            calls.append(stop_event)
            if len(calls) >= 2:
                two_runs.set()
        finally:
            active.release()

    controller = scheduler.start(config_path=str(p), cycle=cycle)
    try:
        assert two_runs.wait(timeout=10.0)
    finally:
        controller.stop()

    assert not overlapped
    assert controller.join(timeout=5.0)
    assert controller.stop_event.is_set()
    assert all(evt is controller.stop_event for evt in calls)


def test_failing_cycle_still_rearms(tmp_path):
    from service import scheduler

    p = tmp_path / "config.json"
    p.write_text(json.dumps({"schedule": {"interval_minutes": 0.001, "initial_delay_seconds": 0}}), encoding="utf-8")
    attempts = []
    again = threading.Event()

    def cycle(*, stop_event):
        attempts.append(1)
        if len(attempts) >= 2:
            again.set()
        raise RuntimeError("cycle failed")

    controller = scheduler.start(config_path=str(p), cycle=cycle)
    try:
        assert again.wait(timeout=10.0)
    finally:
        controller.stop()
