"""Rooted-device host: direct state probes and configured permission grants."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence

from flipqs.core.config import Settings
from flipqs.core.model import COMMAND_TIMEOUT_S
from flipqs.platform.base import BLUETOOTH_CONNECT

_ENABLED_VALUES = {"1", "2"}
LOGGER = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


def _run_probe(run: Runner, cmd: Sequence[str]) -> subprocess.CompletedProcess[str] | None:
    try:
        return run(
            list(cmd),
            check=False,
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT_S,
        )
    except FileNotFoundError:
        return None
    except subprocess.TimeoutExpired:
        LOGGER.warning("%s timed out", " ".join(cmd))
        return None


class DevicePermissions:
    """Overlay and runtime grants come from config; the SDK level from getprop."""

    def __init__(self, settings: Settings, *, run: Runner = subprocess.run) -> None:
        self._settings = settings
        self._run = run
        self._sdk_version = settings.sdk_version

    @property
    def sdk_version(self) -> int:
        if self._sdk_version is None:
            self._sdk_version = _read_sdk_version(self._run)
        return self._sdk_version

    def can_draw_overlays(self) -> bool:
        return self._settings.overlay_granted

    def has_permission(self, name: str) -> bool:
        if name == BLUETOOTH_CONNECT:
            return self._settings.bluetooth_connect_granted
        LOGGER.debug("Unknown permission %s treated as not granted", name)
        return False


def _read_sdk_version(run: Runner) -> int:
    result = _run_probe(run, ["getprop", "ro.build.version.sdk"])
    if result is None or result.returncode != 0:
        LOGGER.debug("SDK level unavailable, assuming a pre-runtime-permission platform")
        return 0
    try:
        return int(result.stdout.strip())
    except ValueError:
        LOGGER.warning("Unexpected SDK level %r", result.stdout.strip())
        return 0


class SettingsStateQuery:
    """Direct radio state reads that do not go through the privileged shell."""

    def __init__(self, *, run: Runner = subprocess.run) -> None:
        self._run = run

    def wifi_enabled(self) -> bool | None:
        return self._read_global("wifi_on")

    def bluetooth_enabled(self) -> bool | None:
        return self._read_global("bluetooth_on")

    def _read_global(self, key: str) -> bool | None:
        result = _run_probe(self._run, ["settings", "get", "global", key])
        if result is None:
            return None
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            LOGGER.warning("settings get global %s failed: %s", key, stderr)
            return None
        return result.stdout.strip() in _ENABLED_VALUES
