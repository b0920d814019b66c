"""Core data models used across the executor, toggles, panel, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

COMMAND_TIMEOUT_S = 5.0
NOTIFICATION_PANEL_ID = "com.android.systemui:id/notification_panel"


class Capability(Enum):
    NETWORK_RADIO = "wifi"
    MOBILE_DATA = "data"
    LOCATION = "location"
    SHORT_RANGE_RADIO = "bluetooth"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def from_name(cls, name: str) -> Capability | None:
        lowered = name.strip().lower()
        for capability in cls:
            if lowered in (capability.value, capability.name.lower()):
                return capability
        return None


_LABELS = {
    Capability.NETWORK_RADIO: "Wi-Fi",
    Capability.MOBILE_DATA: "Mobile Data",
    Capability.LOCATION: "Location",
    Capability.SHORT_RANGE_RADIO: "Bluetooth",
}


class CommandStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class CommandRequest:
    command: str
    timeout_s: float = COMMAND_TIMEOUT_S


@dataclass(frozen=True)
class CommandResult:
    command: str
    exit_code: int
    stdout: tuple[str, ...] = ()
    stderr: tuple[str, ...] = ()
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.stderr and not self.timed_out

    @property
    def status(self) -> CommandStatus:
        if self.timed_out:
            return CommandStatus.TIMED_OUT
        if self.succeeded:
            return CommandStatus.SUCCESS
        return CommandStatus.FAILED

    @property
    def output(self) -> str:
        return "\n".join(self.stdout).strip()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ToggleState:
    capability: Capability
    enabled: bool
    observed_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class StateSnapshot:
    states: dict[Capability, ToggleState]
    taken_at: datetime = field(default_factory=utcnow)

    def enabled(self, capability: Capability) -> bool:
        state = self.states.get(capability)
        return state.enabled if state else False


class Transition(Enum):
    ENABLE = "disabled->enabled"
    DISABLE = "enabled->disabled"

    @classmethod
    def from_current(cls, enabled: bool) -> Transition:
        return cls.DISABLE if enabled else cls.ENABLE


class ToggleFailure(Enum):
    SERVICE_UNAVAILABLE = "service-unavailable"
    PERMISSION_MISSING = "permission-missing"
    COMMAND_FAILED = "command-failed"
    READ_FAILED = "read-failed"
    PARSE_ERROR = "parse-error"


@dataclass(frozen=True)
class ToggleOutcome:
    capability: Capability
    transition: Transition | None
    accepted: bool
    failure: ToggleFailure | None = None


class PanelState(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


class TriggerKind(Enum):
    WINDOW_STATE_CHANGED = "window_state_changed"
    WINDOW_CONTENT_CHANGED = "window_content_changed"
    OTHER = "other"


@dataclass(frozen=True)
class TriggerEvent:
    source_identifier: str
    kind: TriggerKind = TriggerKind.WINDOW_STATE_CHANGED
