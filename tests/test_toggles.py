from __future__ import annotations

import pytest
from fakes import FakeNative, FakePermissions, FakeShell, make_service

from flipqs.core.model import Capability, ToggleFailure, Transition
from flipqs.core.toggles import (
    CAPABILITY_SPECS,
    SettingStateReader,
    UpdatePolicy,
    parse_location_mode,
    parse_mobile_data,
)


@pytest.mark.parametrize(
    ("capability", "native", "shell_settings", "expected"),
    [
        (Capability.NETWORK_RADIO, FakeNative(wifi=False), {}, "svc wifi enable"),
        (Capability.NETWORK_RADIO, FakeNative(wifi=True), {}, "svc wifi disable"),
        (Capability.MOBILE_DATA, FakeNative(), {"mobile_data": "0"}, "svc data enable"),
        (Capability.MOBILE_DATA, FakeNative(), {"mobile_data": "1"}, "svc data disable"),
        (Capability.LOCATION, FakeNative(), {"location_mode": "0"}, "settings put secure location_mode 3"),
        (Capability.LOCATION, FakeNative(), {"location_mode": "3"}, "settings put secure location_mode 0"),
        (Capability.SHORT_RANGE_RADIO, FakeNative(bluetooth=False), {}, "svc bluetooth enable"),
        (Capability.SHORT_RANGE_RADIO, FakeNative(bluetooth=True), {}, "svc bluetooth disable"),
    ],
)
def test_toggle_issues_inverse_command(capability, native, shell_settings, expected) -> None:
    shell = FakeShell(**shell_settings)
    service = make_service(shell=shell, native=native)

    outcome = service.toggle(capability)

    assert outcome.accepted
    assert shell.mutating_calls() == [expected]


def test_mobile_data_toggle_schedules_reconciliation() -> None:
    shell = FakeShell(mobile_data="0")
    service = make_service(shell=shell)
    service.panel.activate()
    surface = service.surfaces.created[0]
    assert surface.shown(Capability.MOBILE_DATA) is False

    outcome = service.toggle("data")

    assert outcome.accepted
    assert outcome.transition is Transition.ENABLE
    assert shell.mutating_calls() == ["svc data enable"]
    assert service.workers.pending() == 1
    delay, _ = service.workers.scheduled[0]
    assert delay == service.settings.settle_delay_s
    # Nothing optimistic is shown before the refresh runs.
    assert surface.states == []
    assert surface.shown(Capability.MOBILE_DATA) is False

    service.workers.run_scheduled()

    assert surface.shown(Capability.MOBILE_DATA) is True
    assert surface.snapshots[-1].states[Capability.MOBILE_DATA].enabled is True


def test_wifi_success_updates_panel_immediately() -> None:
    native = FakeNative(wifi=False)
    service = make_service(native=native)
    service.panel.activate()
    surface = service.surfaces.created[0]

    outcome = service.toggle(Capability.NETWORK_RADIO)

    assert outcome.accepted
    assert surface.states[-1].capability is Capability.NETWORK_RADIO
    assert surface.states[-1].enabled is True
    assert service.workers.pending() == 0
    assert "Wi-Fi Enabling..." in service.notifier.messages


def test_wifi_failure_leaves_panel_stale_and_schedules_refresh() -> None:
    shell = FakeShell()
    shell.failing.add("svc wifi enable")
    service = make_service(shell=shell, native=FakeNative(wifi=False))
    service.panel.activate()
    surface = service.surfaces.created[0]

    outcome = service.toggle(Capability.NETWORK_RADIO)

    assert not outcome.accepted
    assert outcome.failure is ToggleFailure.COMMAND_FAILED
    assert surface.states == []
    assert service.workers.pending() == 1
    assert "Failed to toggle Wi-Fi" in service.notifier.messages


def test_deferred_failure_schedules_nothing() -> None:
    shell = FakeShell()
    shell.failing.add("svc bluetooth enable")
    service = make_service(shell=shell)
    service.panel.activate()

    outcome = service.toggle(Capability.SHORT_RANGE_RADIO)

    assert not outcome.accepted
    assert outcome.failure is ToggleFailure.COMMAND_FAILED
    assert service.workers.pending() == 0
    assert "Failed to toggle Bluetooth" in service.notifier.messages


def test_location_oscillates_between_off_and_high_accuracy() -> None:
    shell = FakeShell(location_mode="0")
    service = make_service(shell=shell)

    service.toggle(Capability.LOCATION)
    assert shell.settings["location_mode"] == "3"
    service.toggle(Capability.LOCATION)
    assert shell.settings["location_mode"] == "0"
    assert shell.mutating_calls() == [
        "settings put secure location_mode 3",
        "settings put secure location_mode 0",
    ]


@pytest.mark.parametrize("mode", ["1", "2", "3"])
def test_any_non_zero_location_mode_toggles_off(mode: str) -> None:
    shell = FakeShell(location_mode=mode)
    service = make_service(shell=shell)

    outcome = service.toggle(Capability.LOCATION)

    assert outcome.transition is Transition.DISABLE
    assert shell.settings["location_mode"] == "0"


def test_unparseable_state_defaults_to_disabled() -> None:
    shell = FakeShell(location_mode="garbage", mobile_data="null")
    service = make_service(shell=shell)

    assert service.toggle(Capability.LOCATION).transition is Transition.ENABLE
    assert service.toggle(Capability.MOBILE_DATA).transition is Transition.ENABLE


def test_unparseable_state_is_reported_as_parse_error() -> None:
    shell = FakeShell(mobile_data="null")
    reader = SettingStateReader(
        Capability.MOBILE_DATA,
        shell,
        "settings get global mobile_data",
        parse_mobile_data,
    )

    read = reader.read()

    assert read.enabled is False
    assert read.failure is ToggleFailure.PARSE_ERROR


def test_location_read_failure_refuses_toggle() -> None:
    shell = FakeShell()
    shell.failing.add("settings get secure location_mode")
    service = make_service(shell=shell)

    outcome = service.toggle(Capability.LOCATION)

    assert not outcome.accepted
    assert outcome.failure is ToggleFailure.READ_FAILED
    assert outcome.transition is None
    assert shell.mutating_calls() == []


def test_mobile_data_read_failure_defaults_to_disabled() -> None:
    shell = FakeShell()
    shell.failing.add("settings get global mobile_data")
    service = make_service(shell=shell)

    outcome = service.toggle(Capability.MOBILE_DATA)

    assert outcome.accepted
    assert shell.mutating_calls() == ["svc data enable"]


def test_bluetooth_permission_gate_refuses_before_any_command() -> None:
    shell = FakeShell()
    service = make_service(shell=shell, permissions=FakePermissions(bluetooth=False, sdk_version=31))

    outcome = service.toggle(Capability.SHORT_RANGE_RADIO)

    assert not outcome.accepted
    assert outcome.failure is ToggleFailure.PERMISSION_MISSING
    assert shell.calls == []
    assert "Bluetooth permission missing" in service.notifier.messages


def test_bluetooth_permission_not_required_on_older_platforms() -> None:
    shell = FakeShell()
    service = make_service(shell=shell, permissions=FakePermissions(bluetooth=False, sdk_version=30))

    assert service.toggle(Capability.SHORT_RANGE_RADIO).accepted
    assert shell.mutating_calls() == ["svc bluetooth enable"]


def test_missing_native_backend_is_service_unavailable() -> None:
    shell = FakeShell()
    service = make_service(shell=shell, native=FakeNative(wifi=None))

    outcome = service.toggle(Capability.NETWORK_RADIO)

    assert outcome.failure is ToggleFailure.SERVICE_UNAVAILABLE
    assert shell.calls == []
    assert "Wi-Fi not available" in service.notifier.messages


def test_native_query_exception_is_contained() -> None:
    class ExplodingNative(FakeNative):
        def bluetooth_enabled(self) -> bool | None:
            raise RuntimeError("adapter crashed")

    service = make_service(native=ExplodingNative())

    outcome = service.toggle(Capability.SHORT_RANGE_RADIO)

    assert not outcome.accepted
    assert outcome.failure is ToggleFailure.SERVICE_UNAVAILABLE


def test_only_network_radio_is_optimistic() -> None:
    optimistic = [c for c, spec in CAPABILITY_SPECS.items() if spec.policy is UpdatePolicy.OPTIMISTIC]
    assert optimistic == [Capability.NETWORK_RADIO]


def test_parsers() -> None:
    assert parse_mobile_data(" 1\n") is True
    assert parse_mobile_data("0") is False
    with pytest.raises(ValueError):
        parse_mobile_data("null")
    assert parse_location_mode("0") is False
    assert parse_location_mode("2") is True
    with pytest.raises(ValueError):
        parse_location_mode("high")
