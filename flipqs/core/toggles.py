"""Per-capability state reads and toggle transitions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from flipqs.core.executor import CommandExecutor
from flipqs.core.model import (
    Capability,
    CommandRequest,
    ToggleFailure,
    ToggleOutcome,
    ToggleState,
    Transition,
)
from flipqs.platform.base import NativeStateQuery, Notifier, PermissionChecker, bluetooth_permitted

if TYPE_CHECKING:
    from flipqs.core.reconciler import StateReconciler

LOCATION_MODE_OFF = 0
LOCATION_MODE_HIGH_ACCURACY = 3
LOGGER = logging.getLogger(__name__)


class UpdatePolicy(Enum):
    OPTIMISTIC = "optimistic"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class CapabilitySpec:
    capability: Capability
    enable_command: str
    disable_command: str
    policy: UpdatePolicy = UpdatePolicy.DEFERRED
    read_command: str | None = None
    abort_on_read_failure: bool = False

    def command_for(self, transition: Transition) -> str:
        if transition is Transition.ENABLE:
            return self.enable_command
        return self.disable_command

    def progress_notice(self, transition: Transition) -> str:
        if self.capability is Capability.LOCATION:
            mode = LOCATION_MODE_HIGH_ACCURACY if transition is Transition.ENABLE else LOCATION_MODE_OFF
            return f"Location set to {mode}"
        verb = "Enabling..." if transition is Transition.ENABLE else "Disabling..."
        return f"{self.capability.label} {verb}"


CAPABILITY_SPECS: dict[Capability, CapabilitySpec] = {
    Capability.NETWORK_RADIO: CapabilitySpec(
        capability=Capability.NETWORK_RADIO,
        enable_command="svc wifi enable",
        disable_command="svc wifi disable",
        policy=UpdatePolicy.OPTIMISTIC,
    ),
    Capability.MOBILE_DATA: CapabilitySpec(
        capability=Capability.MOBILE_DATA,
        enable_command="svc data enable",
        disable_command="svc data disable",
        read_command="settings get global mobile_data",
    ),
    Capability.LOCATION: CapabilitySpec(
        capability=Capability.LOCATION,
        enable_command=f"settings put secure location_mode {LOCATION_MODE_HIGH_ACCURACY}",
        disable_command=f"settings put secure location_mode {LOCATION_MODE_OFF}",
        read_command="settings get secure location_mode",
        abort_on_read_failure=True,
    ),
    Capability.SHORT_RANGE_RADIO: CapabilitySpec(
        capability=Capability.SHORT_RANGE_RADIO,
        enable_command="svc bluetooth enable",
        disable_command="svc bluetooth disable",
    ),
}


@dataclass(frozen=True)
class StateRead:
    enabled: bool
    failure: ToggleFailure | None = None


class StateReader(Protocol):
    capability: Capability

    def permitted(self) -> bool:
        """Return whether the read (and a toggle) is allowed right now."""

    def read(self) -> StateRead:
        """Read the current state. Never raises."""


def parse_mobile_data(text: str) -> bool:
    value = text.strip()
    if value not in ("0", "1"):
        raise ValueError(f"unexpected mobile_data value {value!r}")
    return value == "1"


def parse_location_mode(text: str) -> bool:
    return int(text.strip()) != LOCATION_MODE_OFF


class NativeStateReader:
    """Reads state through a direct platform query."""

    def __init__(
        self,
        capability: Capability,
        query: Callable[[], bool | None],
        *,
        gate: Callable[[], bool] | None = None,
    ) -> None:
        self.capability = capability
        self._query = query
        self._gate = gate

    def permitted(self) -> bool:
        return self._gate() if self._gate else True

    def read(self) -> StateRead:
        if not self.permitted():
            LOGGER.warning("No permission to read %s state", self.capability.label)
            return StateRead(enabled=False, failure=ToggleFailure.PERMISSION_MISSING)
        try:
            value = self._query()
        except Exception:
            LOGGER.exception("Error querying %s state", self.capability.label)
            return StateRead(enabled=False, failure=ToggleFailure.SERVICE_UNAVAILABLE)
        if value is None:
            LOGGER.warning("%s state backend unavailable", self.capability.label)
            return StateRead(enabled=False, failure=ToggleFailure.SERVICE_UNAVAILABLE)
        return StateRead(enabled=bool(value))


class SettingStateReader:
    """Reads state by parsing a system setting printed by the privileged shell."""

    def __init__(
        self,
        capability: Capability,
        executor: CommandExecutor,
        command: str,
        parse: Callable[[str], bool],
    ) -> None:
        self.capability = capability
        self._executor = executor
        self._command = command
        self._parse = parse

    def permitted(self) -> bool:
        return True

    def read(self) -> StateRead:
        output = self._executor.execute_for_output(CommandRequest(self._command))
        if output is None:
            LOGGER.warning("Failed to get %s state", self.capability.label)
            return StateRead(enabled=False, failure=ToggleFailure.READ_FAILED)
        try:
            return StateRead(enabled=self._parse(output))
        except ValueError as exc:
            # Unparseable state reads as disabled.
            LOGGER.error("Error parsing %s state: %s", self.capability.label, exc)
            return StateRead(enabled=False, failure=ToggleFailure.PARSE_ERROR)


def build_readers(
    executor: CommandExecutor,
    native: NativeStateQuery,
    permissions: PermissionChecker,
) -> dict[Capability, StateReader]:
    return {
        Capability.NETWORK_RADIO: NativeStateReader(Capability.NETWORK_RADIO, native.wifi_enabled),
        Capability.MOBILE_DATA: SettingStateReader(
            Capability.MOBILE_DATA,
            executor,
            CAPABILITY_SPECS[Capability.MOBILE_DATA].read_command or "",
            parse_mobile_data,
        ),
        Capability.LOCATION: SettingStateReader(
            Capability.LOCATION,
            executor,
            CAPABILITY_SPECS[Capability.LOCATION].read_command or "",
            parse_location_mode,
        ),
        Capability.SHORT_RANGE_RADIO: NativeStateReader(
            Capability.SHORT_RANGE_RADIO,
            native.bluetooth_enabled,
            gate=lambda: bluetooth_permitted(permissions),
        ),
    }


class ToggleController:
    def __init__(
        self,
        spec: CapabilitySpec,
        reader: StateReader,
        executor: CommandExecutor,
        reconciler: StateReconciler,
        notifier: Notifier,
        *,
        settle_delay_s: float,
    ) -> None:
        self.spec = spec
        self._reader = reader
        self._executor = executor
        self._reconciler = reconciler
        self._notifier = notifier
        self._settle_delay_s = settle_delay_s

    @property
    def capability(self) -> Capability:
        return self.spec.capability

    def toggle(self) -> ToggleOutcome:
        label = self.capability.label
        LOGGER.debug("%s toggle requested", label)

        if not self._reader.permitted():
            self._notifier.notify(f"{label} permission missing")
            return self._refused(ToggleFailure.PERMISSION_MISSING)

        # Results for a panel that has since gone away are discarded.
        token = self._reconciler.current_token()
        current = self._reader.read()
        if current.failure is ToggleFailure.SERVICE_UNAVAILABLE:
            self._notifier.notify(f"{label} not available")
            return self._refused(ToggleFailure.SERVICE_UNAVAILABLE)
        if current.failure is ToggleFailure.READ_FAILED and self.spec.abort_on_read_failure:
            self._notifier.notify(f"Failed to get {label.lower()} status")
            return self._refused(ToggleFailure.READ_FAILED)

        LOGGER.debug("%s state before toggle: %s", label, current.enabled)
        transition = Transition.from_current(current.enabled)
        result = self._executor.execute(CommandRequest(self.spec.command_for(transition)))

        if result.succeeded:
            self._notifier.notify(self.spec.progress_notice(transition))
            if self.spec.policy is UpdatePolicy.OPTIMISTIC:
                intended = ToggleState(self.capability, enabled=transition is Transition.ENABLE)
                self._reconciler.publish_state(intended, token)
            else:
                self._reconciler.schedule_refresh(self._settle_delay_s, token=token)
            return ToggleOutcome(self.capability, transition, accepted=True)

        self._notifier.notify(f"Failed to toggle {label}")
        if self.spec.policy is UpdatePolicy.OPTIMISTIC:
            self._reconciler.schedule_refresh(self._settle_delay_s, token=token)
        return ToggleOutcome(
            self.capability,
            transition,
            accepted=False,
            failure=ToggleFailure.COMMAND_FAILED,
        )

    def _refused(self, failure: ToggleFailure) -> ToggleOutcome:
        return ToggleOutcome(self.capability, None, accepted=False, failure=failure)


def build_controllers(
    readers: dict[Capability, StateReader],
    executor: CommandExecutor,
    reconciler: StateReconciler,
    notifier: Notifier,
    *,
    settle_delay_s: float,
) -> dict[Capability, ToggleController]:
    return {
        capability: ToggleController(
            spec,
            readers[capability],
            executor,
            reconciler,
            notifier,
            settle_delay_s=settle_delay_s,
        )
        for capability, spec in CAPABILITY_SPECS.items()
    }
