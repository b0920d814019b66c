"""Terminal rendition of the overlay panel and transient notices."""

from __future__ import annotations

import logging
from collections.abc import Callable

import typer

from flipqs.core.model import Capability, StateSnapshot, ToggleState

KEYMAP = {
    "w": Capability.NETWORK_RADIO,
    "d": Capability.MOBILE_DATA,
    "l": Capability.LOCATION,
    "b": Capability.SHORT_RANGE_RADIO,
}
DISMISS_KEY = "q"
LOGGER = logging.getLogger(__name__)

Echo = Callable[[str], None]


def _key_for(capability: Capability) -> str:
    return next(key for key, value in KEYMAP.items() if value is capability)


class ConsoleSurface:
    def __init__(self, echo: Echo, on_close: Callable[[ConsoleSurface], None] | None = None) -> None:
        self._echo = echo
        self._on_close = on_close
        self._handlers: dict[Capability, Callable[[], None]] = {}
        self._dismiss: Callable[[], None] | None = None
        self._states: dict[Capability, bool] = {}
        self.closed = False

    def bind(self, capability: Capability, handler: Callable[[], None]) -> None:
        self._handlers[capability] = handler

    def bind_dismiss(self, handler: Callable[[], None]) -> None:
        self._dismiss = handler

    def render(self, snapshot: StateSnapshot) -> None:
        for capability, state in snapshot.states.items():
            self._states[capability] = state.enabled
        self._draw()

    def render_state(self, state: ToggleState) -> None:
        self._states[state.capability] = state.enabled
        self._draw()

    def press(self, key: str) -> bool:
        if self.closed:
            return False
        if key == DISMISS_KEY and self._dismiss is not None:
            self._dismiss()
            return True
        capability = KEYMAP.get(key)
        handler = self._handlers.get(capability) if capability else None
        if handler is None:
            return False
        handler()
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._echo("[panel closed]")
        if self._on_close is not None:
            self._on_close(self)

    def line(self) -> str:
        cells = []
        for capability in KEYMAP.values():
            if capability not in self._states:
                marker = "?"
            elif self._states[capability]:
                marker = typer.style("on", fg=typer.colors.GREEN, bold=True)
            else:
                marker = typer.style("off", fg=typer.colors.BRIGHT_BLACK)
            cells.append(f"[{_key_for(capability)}] {capability.label}: {marker}")
        return "  ".join(cells)

    def _draw(self) -> None:
        if not self.closed:
            self._echo(self.line())


class ConsoleSurfaceFactory:
    """Builds console surfaces and routes key presses to the open one."""

    def __init__(self, echo: Echo = typer.echo) -> None:
        self._echo = echo
        self._current: ConsoleSurface | None = None

    def create(self) -> ConsoleSurface:
        surface = ConsoleSurface(self._echo, on_close=self._forget)
        self._current = surface
        self._echo(f"[panel open] {', '.join(f'{k}={c.label}' for k, c in KEYMAP.items())}, {DISMISS_KEY}=close")
        return surface

    def press(self, key: str) -> bool:
        surface = self._current
        if surface is None:
            LOGGER.debug("No open panel for key %r", key)
            return False
        return surface.press(key)

    def _forget(self, surface: ConsoleSurface) -> None:
        if self._current is surface:
            self._current = None


class ConsoleNotifier:
    def notify(self, message: str, *, long: bool = False) -> None:
        LOGGER.info("Notice: %s", message)
        typer.secho(message, err=True, fg=typer.colors.YELLOW if long else None)
