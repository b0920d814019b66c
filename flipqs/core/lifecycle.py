"""Singleton overlay panel lifecycle."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from flipqs.core.dispatch import UiDispatcher, WorkerGroup
from flipqs.core.errors import PanelWiringError, PermissionMissingError, ViewConstructionError
from flipqs.core.model import Capability, PanelState
from flipqs.core.reconciler import StateReconciler
from flipqs.core.toggles import ToggleController
from flipqs.platform.base import OverlaySurface, PermissionChecker, SurfaceFactory

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PanelInstance:
    token: int
    surface: OverlaySurface


class _StateCell:
    def __init__(self, value: PanelState) -> None:
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> PanelState:
        with self._lock:
            return self._value

    def set(self, value: PanelState) -> None:
        with self._lock:
            self._value = value


class PanelLifecycleManager:
    """Owns the one overlay panel allowed per process.

    `activate()` and `deactivate()` are serialized by a transition lock, so
    racing triggers can never build two surfaces. The Active/Inactive cell has
    its own lock and can be queried from any thread, including the UI thread,
    without waiting on a transition. Transitions must not be started from the
    UI thread: surface construction and teardown are marshalled onto it.
    """

    def __init__(
        self,
        surfaces: SurfaceFactory,
        permissions: PermissionChecker,
        ui: UiDispatcher,
        workers: WorkerGroup,
    ) -> None:
        self._surfaces = surfaces
        self._permissions = permissions
        self._ui = ui
        self._workers = workers
        self._cell = _StateCell(PanelState.INACTIVE)
        self._transition_lock = threading.Lock()
        self._instance_lock = threading.Lock()
        self._instance: PanelInstance | None = None
        self._tokens = itertools.count(1)
        self._reconciler: StateReconciler | None = None
        self._controllers: dict[Capability, ToggleController] = {}

    def attach(
        self,
        reconciler: StateReconciler,
        controllers: Mapping[Capability, ToggleController],
    ) -> None:
        self._reconciler = reconciler
        self._controllers = dict(controllers)

    @property
    def state(self) -> PanelState:
        return self._cell.get()

    @property
    def is_active(self) -> bool:
        return self._cell.get() is PanelState.ACTIVE

    def current_token(self) -> int | None:
        with self._instance_lock:
            return self._instance.token if self._instance else None

    def surface_for(self, token: int) -> OverlaySurface | None:
        with self._instance_lock:
            if self._instance is None or self._instance.token != token:
                return None
            return self._instance.surface

    def activate(self) -> bool:
        reconciler = self._reconciler
        if reconciler is None:
            raise PanelWiringError("Panel activated before a reconciler was attached")

        with self._transition_lock:
            if self._cell.get() is PanelState.ACTIVE:
                LOGGER.debug("Panel is already active, not starting again")
                return False

            if not self._permissions.can_draw_overlays():
                LOGGER.error("Overlay permission SYSTEM_ALERT_WINDOW not granted")
                raise PermissionMissingError(
                    "Overlay permission missing. Grant it with "
                    "'adb shell pm grant <package> android.permission.SYSTEM_ALERT_WINDOW'."
                )

            token = next(self._tokens)
            surface = self._ui.call(self._build_surface)
            with self._instance_lock:
                self._instance = PanelInstance(token=token, surface=surface)
            self._cell.set(PanelState.ACTIVE)
            try:
                reconciler.refresh_now(token)
            except Exception as exc:
                LOGGER.error("Initial state update for panel %s failed: %s", token, exc)
                self._rollback(reconciler, surface)
                raise ViewConstructionError(f"Error populating overlay view: {exc}") from exc
            LOGGER.info("Panel %s active", token)
            return True

    def _rollback(self, reconciler: StateReconciler, surface: OverlaySurface) -> None:
        with self._instance_lock:
            self._instance = None
        reconciler.cancel_pending()
        self._cell.set(PanelState.INACTIVE)
        self._ui.call(_close_surface, surface)

    def deactivate(self) -> bool:
        with self._transition_lock:
            with self._instance_lock:
                instance = self._instance
                self._instance = None
            if instance is None and self._cell.get() is PanelState.INACTIVE:
                return False

            if self._reconciler is not None:
                self._reconciler.cancel_pending()
            self._cell.set(PanelState.INACTIVE)
            if instance is not None:
                self._ui.call(_close_surface, instance.surface)
                LOGGER.info("Panel %s closed", instance.token)
            return True

    def _build_surface(self) -> OverlaySurface:
        surface: OverlaySurface | None = None
        try:
            surface = self._surfaces.create()
            for capability, controller in self._controllers.items():
                surface.bind(capability, self._toggle_handler(controller))
            surface.bind_dismiss(self._dismiss_handler)
        except Exception as exc:
            LOGGER.error("Error creating overlay view: %s", exc)
            if surface is not None:
                _close_surface(surface)
            if isinstance(exc, ViewConstructionError):
                raise
            raise ViewConstructionError(f"Error creating overlay view: {exc}") from exc
        return surface

    def _toggle_handler(self, controller: ToggleController) -> Callable[[], None]:
        def _on_press() -> None:
            self._workers.submit(controller.toggle)

        return _on_press

    def _dismiss_handler(self) -> None:
        LOGGER.debug("Dismiss requested")
        self._workers.submit(self.deactivate)


def _close_surface(surface: OverlaySurface) -> None:
    try:
        surface.close()
    except Exception:
        LOGGER.exception("Error removing overlay surface")
