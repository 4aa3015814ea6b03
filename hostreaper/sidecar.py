from __future__ import annotations

from threading import Event, Thread
from typing import Any

from . import db
from .docker_ops import DockerRuntime
from .events import EventBootstrap
from .handlers import HandlerRegistry, default_registry
from .metadata import MetadataClient
from .reaper import DuplicateServiceGuard, OrphanReconciler
from .router import EventRouter
from .settings import Settings, settings as default_settings
from .state import SidecarState


class Sidecar:
    """Starts and stops every background worker of the sidecar process."""

    def __init__(
        self,
        cfg: Settings | None = None,
        runtime: Any | None = None,
        metadata: Any | None = None,
        registry: HandlerRegistry | None = None,
        state: SidecarState | None = None,
    ):
        self.cfg = cfg or default_settings
        self.state = state or SidecarState()
        self.runtime = runtime if runtime is not None else DockerRuntime()
        self.metadata = metadata if metadata is not None else MetadataClient(self.cfg)
        self.registry = registry or default_registry()

        self.reconciler = OrphanReconciler(self.runtime, self.metadata, self.cfg, self.state)
        self.guard = DuplicateServiceGuard(self.runtime, self.cfg, self.state)
        self.bootstrap = EventBootstrap(self.runtime, self.state)
        self.router: EventRouter | None = None
        self.stop_event = Event()
        self._watcher: Thread | None = None

    def start(self) -> None:
        db.init_db()
        self._watcher = Thread(
            target=self.metadata.on_change,
            args=(self.cfg.change_poll_interval_s, self.reconciler.on_metadata_change, self.stop_event),
            kwargs={"recheck_interval_s": self.cfg.recheck_interval_s},
            name="metadata-watch",
            daemon=True,
        )
        self._watcher.start()
        self.guard.start(self.stop_event)

        if self.cfg.enable_events:
            try:
                self.router = self.bootstrap.start(self.cfg.event_pool_size, self.registry)
            except Exception:
                self.stop()
                raise
        db.log_event("INFO", "Sidecar started", component="sidecar")

    def stop(self) -> None:
        self.stop_event.set()
        if self.router is not None:
            self.router.stop()
        self.metadata.close()
        db.log_event("INFO", "Sidecar stopped", component="sidecar")
