"""Turns window-change notifications into panel activations."""

from __future__ import annotations

import json
import logging
import queue
import threading
from typing import Protocol

from flipqs.core.config import DEFAULT_QUEUE_SIZE
from flipqs.core.errors import FlipqsError
from flipqs.core.executor import CommandExecutor
from flipqs.core.model import NOTIFICATION_PANEL_ID, CommandRequest, TriggerEvent, TriggerKind
from flipqs.platform.base import Notifier

COLLAPSE_COMMAND = "service call statusbar 2"
LOGGER = logging.getLogger(__name__)

_STOP = object()


class Activatable(Protocol):
    def activate(self) -> bool:
        """Bring up the panel if it is not already up."""


def parse_event(line: str) -> TriggerEvent | None:
    """Decode one JSON event line such as ``{"source": "...", "kind": "..."}``."""
    text = line.strip()
    if not text:
        return None
    try:
        doc = json.loads(text)
    except json.JSONDecodeError:
        LOGGER.debug("Ignoring malformed event line: %s", text)
        return None
    if not isinstance(doc, dict) or not isinstance(doc.get("source"), str):
        LOGGER.debug("Ignoring event without a source: %s", text)
        return None
    try:
        kind = TriggerKind(str(doc.get("kind", TriggerKind.WINDOW_STATE_CHANGED.value)).lower())
    except ValueError:
        kind = TriggerKind.OTHER
    return TriggerEvent(source_identifier=doc["source"], kind=kind)


class TriggerWatcher:
    """Filters the event stream and activates the panel off the delivery path.

    `offer()` is safe to call from any event callback: it only compares the
    identifier and enqueues. One consumer thread collapses the native status
    surface (best effort) and then activates the panel whatever the collapse
    outcome was.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        panel: Activatable,
        notifier: Notifier,
        *,
        source_identifier: str = NOTIFICATION_PANEL_ID,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.source_identifier = source_identifier
        self._executor = executor
        self._panel = panel
        self._notifier = notifier
        self._queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def matches(self, event: TriggerEvent) -> bool:
        return (
            event.kind is TriggerKind.WINDOW_STATE_CHANGED
            and event.source_identifier == self.source_identifier
        )

    def offer(self, event: TriggerEvent) -> bool:
        if not self.matches(event):
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            LOGGER.debug("Trigger queue full, dropping event")
            return False
        return True

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name="flipqs-trigger", daemon=True)
        self._thread.start()
        LOGGER.debug("Trigger watcher started for %s", self.source_identifier)

    def stop(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stopped.set()
        self._queue.put(_STOP)
        thread.join(timeout)
        self._thread = None
        LOGGER.debug("Trigger watcher stopped")

    def handle(self, event: TriggerEvent) -> bool:
        LOGGER.info("Notification panel state change detected: %s", event.source_identifier)
        collapsed = self._executor.execute(CommandRequest(COLLAPSE_COMMAND))
        LOGGER.debug("Collapse command finished. Success: %s", collapsed.succeeded)
        try:
            return self._panel.activate()
        except FlipqsError as exc:
            LOGGER.error("Could not activate panel: %s", exc)
            self._notifier.notify(str(exc), long=True)
            return False

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if self._stopped.is_set() or not isinstance(item, TriggerEvent):
                continue
            try:
                self.handle(item)
            except Exception:
                LOGGER.exception("Unexpected error handling trigger event")
