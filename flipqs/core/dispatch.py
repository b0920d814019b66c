"""Thread ownership: one UI-owning thread and a small background worker group."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, TypeVar

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)


class UiDispatcher:
    """Serializes every overlay surface mutation onto a single thread."""

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="flipqs-ui")
        self._thread_ident: int | None = None
        self._lock = threading.Lock()
        self._closed = False
        self._executor.submit(self._remember_thread).result()

    def _remember_thread(self) -> None:
        self._thread_ident = threading.get_ident()

    def is_ui_thread(self) -> bool:
        return threading.get_ident() == self._thread_ident

    def post(self, fn: Callable[..., T], *args: Any) -> Future[T]:
        with self._lock:
            if not self._closed:
                return self._executor.submit(_logged, fn, *args)
        LOGGER.debug("UI thread stopped, dropping %s", getattr(fn, "__name__", fn))
        future: Future[T] = Future()
        future.cancel()
        return future

    def call(self, fn: Callable[..., T], *args: Any) -> T:
        if self.is_ui_thread():
            return fn(*args)
        return self._executor.submit(fn, *args).result()

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True)


class WorkerGroup:
    """Background pool for commands plus cancellable delayed work."""

    def __init__(self, max_workers: int = 2) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="flipqs-worker")
        self._timers: set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, fn: Callable[..., T], *args: Any) -> Future[T]:
        return self._executor.submit(_logged, fn, *args)

    def schedule(self, delay_s: float, fn: Callable[[], Any]) -> threading.Timer | None:
        def _fire() -> None:
            with self._lock:
                self._timers.discard(timer)
                if self._closed:
                    return
                self._executor.submit(_logged, fn)

        timer = threading.Timer(delay_s, _fire)
        timer.daemon = True
        with self._lock:
            if self._closed:
                return None
            self._timers.add(timer)
        timer.start()
        return timer

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def cancel_scheduled(self) -> int:
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
        self.cancel_scheduled()
        self._executor.shutdown(wait=True)


def _logged(fn: Callable[..., T], *args: Any) -> T:
    try:
        return fn(*args)
    except Exception:
        LOGGER.exception("Background task %s failed", getattr(fn, "__name__", fn))
        raise
