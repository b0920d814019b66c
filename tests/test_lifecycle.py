from __future__ import annotations

import threading
import time

import pytest
from fakes import (
    FakeNative,
    FakeNotifier,
    FakePermissions,
    FakeShell,
    FakeSurface,
    FakeSurfaceFactory,
    make_service,
)

from flipqs.core.config import Settings
from flipqs.core.dispatch import UiDispatcher, WorkerGroup
from flipqs.core.errors import PanelWiringError, PermissionMissingError, ViewConstructionError
from flipqs.core.lifecycle import PanelLifecycleManager
from flipqs.core.model import Capability, PanelState
from flipqs.core.service import PanelService


def test_activate_twice_builds_one_surface_and_one_refresh() -> None:
    service = make_service()

    assert service.panel.activate() is True
    assert service.panel.activate() is False

    assert len(service.surfaces.created) == 1
    assert len(service.surfaces.created[0].snapshots) == 1
    assert service.panel.is_active
    assert service.panel.state is PanelState.ACTIVE


def test_deactivate_on_inactive_panel_is_a_no_op() -> None:
    service = make_service()
    assert service.panel.deactivate() is False
    assert service.panel.deactivate() is False
    assert service.panel.state is PanelState.INACTIVE


def test_deactivate_closes_surface_and_cancels_pending_refreshes() -> None:
    service = make_service(shell=FakeShell(mobile_data="0"))
    service.panel.activate()
    surface = service.surfaces.created[0]
    service.toggle(Capability.MOBILE_DATA)
    assert service.workers.pending() == 1

    assert service.panel.deactivate() is True

    assert surface.closed
    assert service.workers.pending() == 0
    assert not service.panel.is_active
    assert service.panel.current_token() is None


def test_missing_overlay_permission_keeps_panel_inactive() -> None:
    service = make_service(permissions=FakePermissions(overlay=False))

    with pytest.raises(PermissionMissingError):
        service.panel.activate()

    assert service.surfaces.created == []
    assert not service.panel.is_active


def test_view_construction_failure_tears_down_cleanly() -> None:
    service = make_service(surfaces=FakeSurfaceFactory(fail=RuntimeError("inflate failed")))

    with pytest.raises(ViewConstructionError):
        service.panel.activate()

    assert not service.panel.is_active
    assert service.panel.current_token() is None


def test_binding_failure_closes_partial_surface() -> None:
    class BrokenSurface(FakeSurface):
        def bind_dismiss(self, handler) -> None:
            raise RuntimeError("no dismiss affordance")

    class BrokenFactory(FakeSurfaceFactory):
        def create(self) -> FakeSurface:
            surface = BrokenSurface()
            self.created.append(surface)
            return surface

    service = make_service(surfaces=BrokenFactory())

    with pytest.raises(ViewConstructionError):
        service.panel.activate()

    assert service.surfaces.created[0].closed
    assert not service.panel.is_active


def test_affordances_are_wired_to_toggles_and_dismiss() -> None:
    shell = FakeShell()
    service = make_service(shell=shell, native=FakeNative(bluetooth=False))
    service.panel.activate()
    surface = service.surfaces.created[0]

    assert set(surface.handlers) == set(Capability)
    surface.handlers[Capability.SHORT_RANGE_RADIO]()
    assert shell.mutating_calls() == ["svc bluetooth enable"]

    assert surface.dismiss is not None
    surface.dismiss()
    assert surface.closed
    assert not service.panel.is_active


def test_activate_requires_wiring() -> None:
    panel = PanelLifecycleManager(FakeSurfaceFactory(), FakePermissions(), ui=None, workers=None)
    with pytest.raises(PanelWiringError):
        panel.activate()


def test_concurrent_activation_builds_exactly_one_surface() -> None:
    class SlowFactory(FakeSurfaceFactory):
        def create(self) -> FakeSurface:
            time.sleep(0.05)
            return super().create()

    service = PanelService(
        Settings(),
        executor=FakeShell(),
        native=FakeNative(),
        permissions=FakePermissions(),
        surfaces=SlowFactory(),
        notifier=FakeNotifier(),
        ui=UiDispatcher(),
        workers=WorkerGroup(),
    )

    barrier = threading.Barrier(8)
    results: list[bool] = []
    lock = threading.Lock()

    def _race() -> None:
        barrier.wait()
        activated = service.panel.activate()
        with lock:
            results.append(activated)

    threads = [threading.Thread(target=_race) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    try:
        assert results.count(True) == 1
        assert results.count(False) == 7
        assert len(service.surfaces.created) == 1
        assert service.panel.is_active
    finally:
        service.stop()
    assert service.surfaces.created[0].closed


def test_failed_initial_refresh_rolls_back_the_panel() -> None:
    class ExplodingShell(FakeShell):
        def __init__(self) -> None:
            super().__init__()
            self.explode = True

        def execute(self, request):
            if self.explode and request.command.startswith("settings get"):
                raise RuntimeError("shell went away")
            return super().execute(request)

    shell = ExplodingShell()
    service = make_service(shell=shell)

    with pytest.raises(ViewConstructionError):
        service.panel.activate()

    first = service.surfaces.created[0]
    assert first.closed
    assert not service.panel.is_active
    assert service.panel.current_token() is None

    shell.explode = False
    assert service.panel.activate() is True
    assert len(service.surfaces.created) == 2
    assert not service.surfaces.created[1].closed
    assert service.panel.is_active
