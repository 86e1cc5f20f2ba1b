import threading
import time

import pytest

from snapshots.fanout import fan_out


def test_collects_every_result_by_key():
    assert fan_out({k: (lambda k=k: k * 2) for k in range(5)}, max_workers=3) == {k: k * 2 for k in range(5)}


def test_no_tasks():
    assert fan_out({}, max_workers=4) == {}


def test_first_failure_is_raised_after_in_flight_tasks_drain():
    finished = threading.Event()

    def slow():
        time.sleep(0.2)
        finished.set()
        return "slow"

    def broken():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        fan_out({"slow": slow, "broken": broken}, max_workers=2)

    assert finished.is_set()


def test_queued_tasks_are_cancelled_after_a_failure():
    started = []

    def broken():
        raise ValueError("nope")

    def later(n):
        started.append(n)
        time.sleep(0.05)

    tasks = {"broken": broken, **{n: (lambda n=n: later(n)) for n in range(5)}}

    with pytest.raises(ValueError):
        fan_out(tasks, max_workers=1)

    assert len(started) < 5
