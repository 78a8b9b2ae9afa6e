from __future__ import annotations

import threading

from pricewise.scheduler.poller import PollingScheduler


def test_scheduler_runs_task_repeatedly_until_stopped() -> None:
    calls: list[int] = []
    reached = threading.Event()

    def task() -> str:
        calls.append(1)
        if len(calls) >= 2:
            reached.set()
        return "done"

    scheduler = PollingScheduler(0.01, task)
    scheduler.start()
    try:
        assert reached.wait(2)
    finally:
        scheduler.stop()

    assert scheduler.running is False
    assert scheduler.last_result == "done"


def test_stop_before_first_run_cancels_timer() -> None:
    calls: list[int] = []
    scheduler = PollingScheduler(60, lambda: calls.append(1))

    scheduler.start()
    scheduler.stop()

    assert calls == []
    assert scheduler.running is False
