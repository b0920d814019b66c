"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

import typer

from flipqs.core.config import load_settings
from flipqs.core.errors import FlipqsError
from flipqs.core.model import StateSnapshot, TriggerEvent
from flipqs.core.service import PanelService
from flipqs.core.trigger import parse_event
from flipqs.platform.console import ConsoleSurfaceFactory

app = typer.Typer(help="Floating quick-settings panel for rooted devices")

_OPEN_KEY = "o"
_EXIT_KEY = "x"
LOGGER = logging.getLogger(__name__)

ConfigOption = typer.Option(None, "--config", help="Path to config.yaml")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")


def _build_service(
    config: Path | None,
    verbose: bool,
    surfaces: ConsoleSurfaceFactory | None = None,
) -> PanelService:
    settings = load_settings(config)
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return PanelService(settings, surfaces=surfaces)


def _echo_snapshot(snapshot: StateSnapshot) -> None:
    for capability, state in snapshot.states.items():
        typer.echo(f"{capability.value}: {'on' if state.enabled else 'off'} ({capability.label})")


@app.command("status")
def status(config: Path | None = ConfigOption, verbose: bool = VerboseOption) -> None:
    """Show the current state of every capability."""
    try:
        service = _build_service(config, verbose)
        try:
            _echo_snapshot(service.read_states())
        finally:
            service.stop()
    except FlipqsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("toggle")
def toggle(
    capability: str,
    wait: bool = typer.Option(False, "--wait", help="Wait the settle delay and print the reconciled state"),
    config: Path | None = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Flip one capability: wifi, data, location or bluetooth."""
    try:
        service = _build_service(config, verbose)
        try:
            outcome = service.toggle(capability)
            if not outcome.accepted:
                reason = outcome.failure.value if outcome.failure else "rejected"
                typer.echo(f"Error: {outcome.capability.label} toggle failed ({reason})", err=True)
                raise typer.Exit(code=1)
            transition = outcome.transition.value if outcome.transition else "unknown"
            typer.echo(f"{outcome.capability.label}: {transition}")
            if wait:
                time.sleep(service.settings.settle_delay_s)
                state = service.read_states().states[outcome.capability]
                typer.echo(f"{outcome.capability.value}: {'on' if state.enabled else 'off'}")
        finally:
            service.stop()
    except FlipqsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("collapse")
def collapse(config: Path | None = ConfigOption, verbose: bool = VerboseOption) -> None:
    """Collapse the native status bar panel."""
    try:
        service = _build_service(config, verbose)
        try:
            result = service.collapse()
        finally:
            service.stop()
        if not result.succeeded:
            typer.echo(f"Error: collapse failed ({result.status.value})", err=True)
            raise typer.Exit(code=1)
        typer.echo("Collapsed")
    except FlipqsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("probe")
def probe(config: Path | None = ConfigOption, verbose: bool = VerboseOption) -> None:
    """Run a harmless privileged command so the root manager can grant access."""
    try:
        service = _build_service(config, verbose)
        try:
            result = service.probe()
        finally:
            service.stop()
        if not result.succeeded:
            detail = "; ".join(result.stderr) or result.status.value
            typer.echo(f"Error: root probe failed ({detail})", err=True)
            raise typer.Exit(code=1)
        typer.echo(result.output)
    except FlipqsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _follow_events(path: Path, service: PanelService, stop: threading.Event) -> None:
    try:
        with path.open(encoding="utf-8") as stream:
            for line in stream:
                if stop.is_set():
                    return
                event = parse_event(line)
                if event is not None:
                    service.offer_event(event)
    except OSError as exc:
        LOGGER.error("Event feed %s failed: %s", path, exc)


@app.command("run")
def run_panel(
    events: Path | None = typer.Option(None, "--events", help="File or FIFO delivering JSON event lines"),
    config: Path | None = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Watch for the status bar pull-down and drive the panel from the keyboard.

    Keys: w/d/l/b toggle, o opens the panel, q dismisses it, x exits.
    """
    try:
        surfaces = ConsoleSurfaceFactory()
        service = _build_service(config, verbose, surfaces=surfaces)
    except FlipqsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    stop = threading.Event()
    service.start()
    if events is not None:
        feeder = threading.Thread(
            target=_follow_events,
            args=(events, service, stop),
            name="flipqs-events",
            daemon=True,
        )
        feeder.start()

    typer.echo("Keys: w/d/l/b toggle, o open, q close, x exit")
    try:
        for line in typer.get_text_stream("stdin"):
            key = line.strip().lower()
            if key == _EXIT_KEY:
                break
            if key == _OPEN_KEY:
                service.offer_event(TriggerEvent(service.settings.source_identifier))
            elif key:
                service.ui.post(surfaces.press, key)
    finally:
        stop.set()
        service.stop()


def run() -> None:
    app()


if __name__ == "__main__":
    run()
