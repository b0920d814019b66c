"""Re-reads authoritative capability state and publishes it to the panel."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from flipqs.core.dispatch import UiDispatcher, WorkerGroup
from flipqs.core.model import Capability, StateSnapshot, ToggleState
from flipqs.platform.base import OverlaySurface

if TYPE_CHECKING:
    from flipqs.core.toggles import StateReader

LOGGER = logging.getLogger(__name__)


class PanelLookup(Protocol):
    def current_token(self) -> int | None:
        """Return the ownership token of the live panel, if any."""

    def surface_for(self, token: int) -> OverlaySurface | None:
        """Return the surface only while `token` is the live panel."""


class StateReconciler:
    """Publishes full-state snapshots, immediately or after a settle delay.

    Every refresh rebuilds the snapshot from scratch, so overlapping refreshes
    are harmless. Publishing is tied to the panel token captured when the work
    started; a panel that has been deactivated or replaced never sees it.
    """

    def __init__(
        self,
        readers: dict[Capability, StateReader],
        panel: PanelLookup,
        ui: UiDispatcher,
        workers: WorkerGroup,
    ) -> None:
        self._readers = readers
        self._panel = panel
        self._ui = ui
        self._workers = workers
        self._subscribers: list[Callable[[StateSnapshot], None]] = []
        self._lock = threading.Lock()

    def current_token(self) -> int | None:
        return self._panel.current_token()

    def subscribe(self, callback: Callable[[StateSnapshot], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def read_snapshot(self) -> StateSnapshot:
        states = {
            capability: ToggleState(capability, enabled=reader.read().enabled)
            for capability, reader in self._readers.items()
        }
        return StateSnapshot(states=states)

    def refresh_now(self, token: int | None = None) -> StateSnapshot:
        if token is None:
            token = self.current_token()
        LOGGER.debug("Updating capability states (panel %s)", token)
        snapshot = self.read_snapshot()

        def _apply(surface: OverlaySurface) -> None:
            surface.render(snapshot)
            self._notify_subscribers(snapshot)

        self._publish(token, _apply)
        return snapshot

    def publish_state(self, state: ToggleState, token: int | None) -> bool:
        LOGGER.debug("Publishing %s enabled=%s (panel %s)", state.capability.label, state.enabled, token)
        return self._publish(token, lambda surface: surface.render_state(state))

    def schedule_refresh(self, after_delay_s: float, *, token: int | None = None) -> bool:
        if token is None:
            token = self.current_token()
        if token is None:
            LOGGER.debug("No active panel, refresh not scheduled")
            return False
        timer = self._workers.schedule(after_delay_s, lambda: self._scheduled_refresh(token))
        return timer is not None

    def cancel_pending(self) -> int:
        cancelled = self._workers.cancel_scheduled()
        if cancelled:
            LOGGER.debug("Cancelled %d pending refreshes", cancelled)
        return cancelled

    def _scheduled_refresh(self, token: int) -> None:
        if self.current_token() != token:
            LOGGER.debug("Panel %s gone, skipping scheduled refresh", token)
            return
        self.refresh_now(token)

    def _publish(self, token: int | None, apply: Callable[[OverlaySurface], None]) -> bool:
        if token is None:
            return False

        def _on_ui_thread() -> None:
            surface = self._panel.surface_for(token)
            if surface is None:
                LOGGER.debug("Panel %s gone, discarding state update", token)
                return
            apply(surface)

        self._ui.post(_on_ui_thread)
        return True

    def _notify_subscribers(self, snapshot: StateSnapshot) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(snapshot)
