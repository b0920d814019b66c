"""Stable public API for building tooling on top of flipqs.

This module is the supported integration surface for third-party callers
(launchers, other overlay frontends, scripts). Avoid importing from internal
modules unless intentionally depending on non-stable internals.
"""

from __future__ import annotations

from flipqs.core.config import Settings, load_settings
from flipqs.core.errors import (
    CapabilityError,
    ConfigLoadError,
    ConfigValidationError,
    FlipqsError,
    PanelError,
    PanelWiringError,
    PermissionMissingError,
    ViewConstructionError,
)
from flipqs.core.executor import CommandExecutor
from flipqs.core.model import (
    Capability,
    CommandRequest,
    CommandResult,
    CommandStatus,
    StateSnapshot,
    ToggleFailure,
    ToggleOutcome,
    ToggleState,
    Transition,
    TriggerEvent,
    TriggerKind,
)
from flipqs.core.service import PanelService
from flipqs.platform.base import NativeStateQuery, Notifier, OverlaySurface, PermissionChecker, SurfaceFactory

__all__ = [
    "FlipqsError",
    "CapabilityError",
    "ConfigLoadError",
    "ConfigValidationError",
    "PanelError",
    "PanelWiringError",
    "PermissionMissingError",
    "ViewConstructionError",
    "Capability",
    "CommandRequest",
    "CommandResult",
    "CommandStatus",
    "StateSnapshot",
    "ToggleFailure",
    "ToggleOutcome",
    "ToggleState",
    "Transition",
    "TriggerEvent",
    "TriggerKind",
    "Settings",
    "load_settings",
    "CommandExecutor",
    "NativeStateQuery",
    "Notifier",
    "OverlaySurface",
    "PermissionChecker",
    "SurfaceFactory",
    "Client",
]


class Client:
    """Public client for the quick-settings panel.

    A `Client` wraps configuration, the privileged executor, the toggle
    controllers, and the panel lifecycle behind one object. Platform
    collaborators can be swapped in to host the panel somewhere other than
    the terminal.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        executor: CommandExecutor | None = None,
        native: NativeStateQuery | None = None,
        permissions: PermissionChecker | None = None,
        surfaces: SurfaceFactory | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._service = PanelService(
            settings,
            executor=executor,
            native=native,
            permissions=permissions,
            surfaces=surfaces,
            notifier=notifier,
        )

    @property
    def is_panel_active(self) -> bool:
        return self._service.is_panel_active

    def read_states(self) -> StateSnapshot:
        return self._service.read_states()

    def toggle(self, capability: str | Capability) -> ToggleOutcome:
        return self._service.toggle(capability)

    def collapse(self) -> CommandResult:
        return self._service.collapse()

    def probe(self) -> CommandResult:
        return self._service.probe()

    def offer_event(self, event: TriggerEvent) -> bool:
        return self._service.offer_event(event)

    def activate_panel(self) -> bool:
        return self._service.panel.activate()

    def deactivate_panel(self) -> bool:
        return self._service.panel.deactivate()

    def start(self) -> None:
        self._service.start()

    def stop(self) -> None:
        self._service.stop()
