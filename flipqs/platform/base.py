"""Platform collaborator interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from flipqs.core.model import Capability, StateSnapshot, ToggleState

BLUETOOTH_CONNECT = "android.permission.BLUETOOTH_CONNECT"
BLUETOOTH_GATE_SDK = 31


class PermissionChecker(Protocol):
    sdk_version: int

    def can_draw_overlays(self) -> bool:
        """Return whether the overlay-drawing permission is granted."""

    def has_permission(self, name: str) -> bool:
        """Return whether a runtime permission is granted."""


class NativeStateQuery(Protocol):
    def wifi_enabled(self) -> bool | None:
        """Return the network radio state, or None when the backend is absent."""

    def bluetooth_enabled(self) -> bool | None:
        """Return the short-range radio state, or None when the backend is absent."""


class OverlaySurface(Protocol):
    def bind(self, capability: Capability, handler: Callable[[], None]) -> None:
        """Attach a press handler to the capability's affordance."""

    def bind_dismiss(self, handler: Callable[[], None]) -> None:
        """Attach a handler fired when the user dismisses the panel."""

    def render(self, snapshot: StateSnapshot) -> None:
        """Show a full snapshot."""

    def render_state(self, state: ToggleState) -> None:
        """Show a single capability state."""

    def close(self) -> None:
        """Remove the surface from the screen."""


class SurfaceFactory(Protocol):
    def create(self) -> OverlaySurface:
        """Build and attach a new overlay surface."""


class Notifier(Protocol):
    def notify(self, message: str, *, long: bool = False) -> None:
        """Show a short transient notice."""


def bluetooth_permitted(permissions: PermissionChecker) -> bool:
    if permissions.sdk_version < BLUETOOTH_GATE_SDK:
        return True
    return permissions.has_permission(BLUETOOTH_CONNECT)
