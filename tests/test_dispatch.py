import logging
import threading
import time

import pytest

from dispatch import DispatchQueue, ManualScheduler


def test_manual_scheduler_runs_in_due_then_submission_order():
    sched = ManualScheduler()
    order = []
    sched.call_later(0.2, order.append, "late")
    sched.call_soon(order.append, "a")
    sched.call_later(0.1, order.append, "mid")
    sched.call_soon(order.append, "b")

    assert sched.run_pending() == 2
    assert order == ["a", "b"]
    sched.run_until_idle()
    assert order == ["a", "b", "mid", "late"]
    assert sched.now == pytest.approx(0.2)
    assert sched.delays == [0.2, 0.1]


def test_manual_scheduler_advance_stops_at_target():
    sched = ManualScheduler()
    order = []
    sched.call_later(0.1, order.append, 1)
    sched.call_later(0.5, order.append, 2)
    sched.advance(0.3)
    assert order == [1]
    assert sched.now == pytest.approx(0.3)
    assert sched.pending == 1


def test_manual_scheduler_callbacks_can_schedule_more():
    sched = ManualScheduler()
    seen = []

    def tick(n):
        seen.append((n, sched.now))
        if n < 3:
            sched.call_later(0.1, tick, n + 1)

    sched.call_soon(tick, 0)
    sched.run_until_idle()
    assert [n for n, _ in seen] == [0, 1, 2, 3]
    assert seen[-1][1] == pytest.approx(0.3)


def test_dispatch_queue_runs_everything_on_one_thread_in_order():
    q = DispatchQueue(name="test-dispatch")
    seen = []
    done = threading.Event()
    try:
        for i in range(20):
            q.call_soon(lambda i=i: seen.append((i, threading.current_thread().name)))
        q.call_soon(done.set)
        assert done.wait(5)
    finally:
        q.close()

    assert [i for i, _ in seen] == list(range(20))
    assert len({name for _, name in seen}) == 1
    assert seen[0][1].startswith("test-dispatch")


def test_dispatch_queue_call_later_waits_without_blocking_caller():
    q = DispatchQueue()
    done = threading.Event()
    fired = []
    try:
        start = time.monotonic()
        q.call_later(0.05, lambda: (fired.append(time.monotonic() - start), done.set()))
        assert fired == []
        assert done.wait(5)
    finally:
        q.close()
    assert fired[0] >= 0.04


def test_dispatch_queue_survives_a_raising_callback():
    q = DispatchQueue()
    done = threading.Event()
    try:
        q.call_soon(lambda: 1 / 0)
        q.call_soon(done.set)
        assert done.wait(5)
    finally:
        q.close()


def test_close_cancels_pending_timers():
    q = DispatchQueue()
    fired = []
    q.call_later(0.2, fired.append, 1)
    q.close()
    time.sleep(0.3)
    assert fired == []


def test_work_after_close_is_logged_and_dropped(caplog):
    q = DispatchQueue(name="closed-q")
    q.close()
    fired = []
    with caplog.at_level(logging.WARNING, logger="dispatch"):
        q.call_soon(fired.append, 1)
        q.call_later(0.01, fired.append, 2)
    time.sleep(0.05)
    assert fired == []
    dropped = [r for r in caplog.records if "closed-q is closed" in r.getMessage()]
    assert len(dropped) == 2


def test_call_soon_after_close_from_another_thread_does_not_raise():
    q = DispatchQueue()
    q.close()
    errors = []

    def worker():
        try:
            q.call_soon(lambda: None)
        except Exception as e:
            errors.append(e)

    t = threading.Thread(target=worker)
    t.start()
    t.join(5)
    assert errors == []
