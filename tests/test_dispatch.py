from __future__ import annotations

import threading

from flipqs.core.dispatch import UiDispatcher, WorkerGroup


def test_ui_dispatcher_runs_everything_on_one_thread() -> None:
    ui = UiDispatcher()
    try:
        idents = {ui.post(threading.get_ident).result(timeout=2) for _ in range(5)}
        assert len(idents) == 1
        assert ui.call(ui.is_ui_thread) is True
        assert ui.is_ui_thread() is False
    finally:
        ui.shutdown()


def test_scheduled_work_can_be_cancelled() -> None:
    workers = WorkerGroup()
    fired = threading.Event()
    try:
        workers.schedule(5.0, fired.set)
        assert workers.pending() == 1
        assert workers.cancel_scheduled() == 1
        assert workers.pending() == 0
        assert not fired.wait(0.1)
    finally:
        workers.shutdown()


def test_scheduled_work_fires_after_delay() -> None:
    workers = WorkerGroup()
    fired = threading.Event()
    try:
        workers.schedule(0.05, fired.set)
        assert fired.wait(2.0)
    finally:
        workers.shutdown()


def test_nothing_is_scheduled_after_shutdown() -> None:
    workers = WorkerGroup()
    workers.shutdown()
    assert workers.schedule(0.01, lambda: None) is None


def test_scheduled_work_runs_on_the_worker_pool() -> None:
    workers = WorkerGroup()
    names: list[str] = []
    done = threading.Event()

    def _record() -> None:
        names.append(threading.current_thread().name)
        done.set()

    try:
        workers.schedule(0.01, _record)
        assert done.wait(2.0)
        assert names[0].startswith("flipqs-worker")
    finally:
        workers.shutdown()


def test_post_after_ui_shutdown_is_dropped() -> None:
    ui = UiDispatcher()
    ui.shutdown()
    called: list[bool] = []

    future = ui.post(lambda: called.append(True))

    assert future.cancelled()
    assert called == []
