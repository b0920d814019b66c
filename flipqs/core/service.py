"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import logging

from flipqs.core.config import Settings, load_settings
from flipqs.core.dispatch import UiDispatcher, WorkerGroup
from flipqs.core.errors import CapabilityError
from flipqs.core.executor import CommandExecutor
from flipqs.core.lifecycle import PanelLifecycleManager
from flipqs.core.model import Capability, CommandRequest, CommandResult, StateSnapshot, ToggleOutcome, TriggerEvent
from flipqs.core.reconciler import StateReconciler
from flipqs.core.toggles import build_controllers, build_readers
from flipqs.core.trigger import COLLAPSE_COMMAND, TriggerWatcher
from flipqs.platform.base import NativeStateQuery, Notifier, PermissionChecker, SurfaceFactory
from flipqs.platform.console import ConsoleNotifier, ConsoleSurfaceFactory
from flipqs.platform.device import DevicePermissions, SettingsStateQuery

LOGGER = logging.getLogger(__name__)


class PanelService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        executor: CommandExecutor | None = None,
        native: NativeStateQuery | None = None,
        permissions: PermissionChecker | None = None,
        surfaces: SurfaceFactory | None = None,
        notifier: Notifier | None = None,
        ui: UiDispatcher | None = None,
        workers: WorkerGroup | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.executor = executor or CommandExecutor(self.settings.shell)
        self.native = native or SettingsStateQuery()
        self.permissions = permissions or DevicePermissions(self.settings)
        self.surfaces = surfaces or ConsoleSurfaceFactory()
        self.notifier = notifier or ConsoleNotifier()
        self.ui = ui or UiDispatcher()
        self.workers = workers or WorkerGroup()

        readers = build_readers(self.executor, self.native, self.permissions)
        self.panel = PanelLifecycleManager(self.surfaces, self.permissions, self.ui, self.workers)
        self.reconciler = StateReconciler(readers, self.panel, self.ui, self.workers)
        self.controllers = build_controllers(
            readers,
            self.executor,
            self.reconciler,
            self.notifier,
            settle_delay_s=self.settings.settle_delay_s,
        )
        self.panel.attach(self.reconciler, self.controllers)
        self.watcher = TriggerWatcher(
            self.executor,
            self.panel,
            self.notifier,
            source_identifier=self.settings.source_identifier,
            queue_size=self.settings.queue_size,
        )

    @property
    def is_panel_active(self) -> bool:
        return self.panel.is_active

    def resolve_capability(self, name: str | Capability) -> Capability:
        if isinstance(name, Capability):
            return name
        capability = Capability.from_name(name)
        if capability is None:
            known = ", ".join(c.value for c in Capability)
            raise CapabilityError(f"Unknown capability '{name}'. Available: {known}")
        return capability

    def read_states(self) -> StateSnapshot:
        return self.reconciler.read_snapshot()

    def toggle(self, capability: str | Capability) -> ToggleOutcome:
        return self.controllers[self.resolve_capability(capability)].toggle()

    def collapse(self) -> CommandResult:
        return self.executor.execute(CommandRequest(COLLAPSE_COMMAND))

    def probe(self) -> CommandResult:
        return self.executor.probe()

    def offer_event(self, event: TriggerEvent) -> bool:
        return self.watcher.offer(event)

    def start(self) -> None:
        self.watcher.start()

    def stop(self) -> None:
        self.watcher.stop()
        self.panel.deactivate()
        self.workers.shutdown()
        self.ui.shutdown()
        LOGGER.debug("Panel service stopped")
