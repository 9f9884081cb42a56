"""Scheduler tests: ordering, fault isolation, startup barrier and timeouts."""

from __future__ import annotations

import threading
import time

import pytest

from simrepl.errors import CommandTimeout, ExecutionFault, SchedulerError
from simrepl.scheduler import BarrierState, Scheduler


def _submit_async(scheduler, body, **kwargs):
    errors = []

    def worker():
        try:
            scheduler.submit(body, **kwargs)
        except Exception as exc:  # collected for assertions
            errors.append(exc)

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    return thread, errors


def _wait_pending(scheduler, count, timeout=2.0):
    deadline = time.monotonic() + timeout
    while scheduler.pending < count:
        if time.monotonic() > deadline:
            raise AssertionError(f"expected {count} pending thunks, got {scheduler.pending}")
        time.sleep(0.005)


def test_drain_without_work_returns_immediately():
    scheduler = Scheduler()
    assert scheduler.drain() == 0


def test_drain_runs_queued_thunks_in_order_on_caller_thread():
    scheduler = Scheduler()
    ran = []
    threads = []
    for idx in range(3):
        thread, _ = _submit_async(scheduler, lambda idx=idx: ran.append((idx, threading.get_ident())))
        threads.append(thread)
        _wait_pending(scheduler, idx + 1)
    assert scheduler.drain() == 3
    for thread in threads:
        thread.join(timeout=1.0)
    assert [idx for idx, _ in ran] == [0, 1, 2]
    assert {ident for _, ident in ran} == {threading.get_ident()}


def test_fault_is_isolated_to_its_submitter():
    scheduler = Scheduler()
    scheduler.start_background()
    try:
        with pytest.raises(ExecutionFault) as excinfo:
            scheduler.submit(lambda: 1 / 0, label="boom")
        assert str(excinfo.value).startswith("Command 'boom' failed:")
        assert isinstance(excinfo.value.__cause__, ZeroDivisionError)
        ran = []
        scheduler.submit(lambda: ran.append(True), label="after")
        assert ran == [True]
    finally:
        scheduler.shutdown()


def test_background_consumer_runs_everything_on_one_thread():
    scheduler = Scheduler()
    scheduler.start_background()
    idents = set()
    try:
        workers = [_submit_async(scheduler, lambda: idents.add(threading.get_ident()))[0] for _ in range(8)]
        for worker in workers:
            worker.join(timeout=2.0)
    finally:
        scheduler.shutdown()
    assert len(idents) == 1
    assert threading.get_ident() not in idents


def test_drain_is_rejected_while_background_consumer_runs():
    scheduler = Scheduler()
    scheduler.start_background()
    try:
        with pytest.raises(SchedulerError):
            scheduler.drain()
    finally:
        scheduler.shutdown()


def test_submit_from_consumer_thread_runs_inline():
    scheduler = Scheduler()
    order = []

    def outer():
        order.append("outer")
        scheduler.submit(lambda: order.append("inner"), label="inner")
        order.append("outer-done")

    thread, errors = _submit_async(scheduler, outer, label="outer")
    _wait_pending(scheduler, 1)
    scheduler.drain()
    thread.join(timeout=1.0)
    assert errors == []
    assert order == ["outer", "inner", "outer-done"]


def test_startup_barrier_orders_initial_commands_first():
    scheduler = Scheduler()
    assert scheduler.barrier.arm()
    assert not scheduler.barrier.arm()
    ran = []

    interactive, _ = _submit_async(scheduler, lambda: ran.append("interactive"))
    time.sleep(0.05)
    assert scheduler.pending == 0

    startup, _ = _submit_async(scheduler, lambda: ran.append("startup"), startup=True)
    _wait_pending(scheduler, 1)

    def release_later():
        startup.join(timeout=2.0)
        scheduler.barrier.release()

    releaser = threading.Thread(target=release_later, daemon=True)
    releaser.start()
    # Blocks while armed, running startup work, until the release.
    scheduler.drain()
    releaser.join(timeout=2.0)
    deadline = time.monotonic() + 2.0
    while interactive.is_alive() and time.monotonic() < deadline:
        scheduler.drain()
        time.sleep(0.005)
    assert ran == ["startup", "interactive"]
    assert scheduler.barrier.state is BarrierState.RELEASED


def test_timeout_withdraws_unstarted_thunk():
    scheduler = Scheduler()
    ran = []
    with pytest.raises(CommandTimeout) as excinfo:
        scheduler.submit(lambda: ran.append(True), label="slow", timeout=0.05)
    assert excinfo.value.started is False
    assert "withdrawn" in str(excinfo.value)
    assert scheduler.pending == 0
    assert scheduler.drain() == 0
    assert ran == []


def test_timeout_of_running_thunk_reports_still_running():
    scheduler = Scheduler()
    scheduler.start_background()
    gate = threading.Event()
    try:
        with pytest.raises(CommandTimeout) as excinfo:
            scheduler.submit(lambda: gate.wait(2.0), label="busy", timeout=0.05)
        assert excinfo.value.started is True
        assert "still running" in str(excinfo.value)
    finally:
        gate.set()
        scheduler.shutdown()


def test_shutdown_releases_blocked_submitters():
    scheduler = Scheduler()
    thread, errors = _submit_async(scheduler, lambda: None, label="never")
    _wait_pending(scheduler, 1)
    scheduler.shutdown()
    thread.join(timeout=1.0)
    assert len(errors) == 1
    assert isinstance(errors[0], SchedulerError)
    with pytest.raises(SchedulerError):
        scheduler.submit(lambda: None)


def test_shutdown_releases_submitters_waiting_on_barrier():
    scheduler = Scheduler()
    scheduler.barrier.arm()
    thread, errors = _submit_async(scheduler, lambda: None)
    time.sleep(0.05)
    scheduler.shutdown()
    thread.join(timeout=1.0)
    assert not thread.is_alive()
    assert len(errors) == 1
    assert isinstance(errors[0], SchedulerError)


def test_concurrent_submitters_observe_fifo_counter():
    scheduler = Scheduler()
    scheduler.start_background()
    counter = {"value": 0}
    observed = []

    def bump():
        counter["value"] += 1
        observed.append(counter["value"])

    def worker():
        for _ in range(25):
            scheduler.submit(bump, label="bump")

    try:
        workers = [threading.Thread(target=worker) for _ in range(4)]
        for thread in workers:
            thread.start()
        for thread in workers:
            thread.join(timeout=5.0)
    finally:
        scheduler.shutdown()
    assert observed == list(range(1, 101))


def test_host_thread_stays_bound_between_drains():
    scheduler = Scheduler()
    ran = []

    def host_loop():
        scheduler.drain()
        scheduler.submit(lambda: ran.append(threading.get_ident()), label="between")
        scheduler.drain()

    host = threading.Thread(target=host_loop, daemon=True)
    host.start()
    host.join(timeout=1.0)
    assert not host.is_alive()
    assert ran == [host.ident]
    with pytest.raises(SchedulerError):
        scheduler.drain()


def test_system_exit_is_a_fault_and_consumer_survives():
    scheduler = Scheduler()
    scheduler.start_background()

    def bail():
        raise SystemExit(3)

    try:
        with pytest.raises(ExecutionFault) as excinfo:
            scheduler.submit(bail, label="bail")
        assert isinstance(excinfo.value.__cause__, SystemExit)
        ran = []
        thread, errors = _submit_async(scheduler, lambda: ran.append(True), label="after")
        thread.join(timeout=1.0)
        assert not thread.is_alive()
        assert errors == []
        assert ran == [True]
    finally:
        scheduler.shutdown()


def test_timeout_applies_while_barrier_is_armed():
    scheduler = Scheduler()
    scheduler.barrier.arm()
    ran = []
    started = time.monotonic()
    with pytest.raises(CommandTimeout) as excinfo:
        scheduler.submit(lambda: ran.append(True), label="early", timeout=0.05)
    assert time.monotonic() - started < 1.0
    assert excinfo.value.started is False
    assert scheduler.pending == 0
    scheduler.barrier.release()
    assert scheduler.drain() == 0
    assert ran == []
