"""Tests for the bounded worker pool."""

import threading
import time

import pytest

from notemap.workers import run_bounded


def test_results_in_input_order():
    def work(n):
        time.sleep(0.01 * (5 - n))
        return n * n

    results = run_bounded(work, range(5), workers=5, timeout=5.0)
    assert [r.item for r in results] == [0, 1, 2, 3, 4]
    assert [r.value for r in results] == [0, 1, 4, 9, 16]
    assert all(r.ok for r in results)


def test_errors_are_captured():
    def work(n):
        if n == 2:
            raise ValueError("bad item")
        return n

    results = run_bounded(work, range(4), workers=2, timeout=5.0)
    assert [r.ok for r in results] == [True, True, False, True]
    assert isinstance(results[2].error, ValueError)


def test_concurrency_is_bounded():
    active = 0
    peak = 0
    lock = threading.Lock()

    def work(n):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return n

    run_bounded(work, range(10), workers=3, timeout=5.0)
    assert peak <= 3


def test_slow_task_times_out():
    def work(n):
        if n == 1:
            time.sleep(1.0)
        return n

    start = time.time()
    results = run_bounded(work, range(3), workers=3, timeout=0.1)
    assert time.time() - start < 0.9
    assert isinstance(results[1].error, TimeoutError)
    assert results[0].value == 0
    assert results[2].value == 2


def test_timed_out_task_keeps_running():
    release = threading.Event()
    finished = threading.Event()

    def work(n):
        release.wait(5.0)
        finished.set()
        return n

    results = run_bounded(work, [1], workers=1, timeout=0.05)
    assert isinstance(results[0].error, TimeoutError)
    assert not finished.is_set()

    release.set()
    assert finished.wait(2.0)


def test_empty_and_invalid():
    assert run_bounded(lambda x: x, [], workers=2) == []
    with pytest.raises(ValueError):
        run_bounded(lambda x: x, [1], workers=0)
