from __future__ import annotations

from typing import Any

from . import db
from .docker_ops import DockerRuntime
from .handlers import Handler, HandlerRegistry
from .models import EventStatus, LifecycleEvent
from .router import EventRouter
from .state import SidecarState


def build_routes(registry: HandlerRegistry) -> dict[str, list[Handler]]:
    """Event status -> handlers, in the order they must run."""
    return {
        EventStatus.START.value: [
            registry.binexec_watcher,
            registry.start_handler,
            registry.network_manager,
        ],
        EventStatus.DIE.value: [
            registry.network_manager,
        ],
    }


class EventBootstrap:
    """Connects runtime lifecycle events to the handler pipeline.

    Handlers that attach at boot would otherwise never hear about containers
    that were already running, so after the router is subscribed every
    existing container is replayed as one synthetic "start" event.
    """

    def __init__(self, runtime: Any | None = None, state: SidecarState | None = None):
        self.runtime = runtime
        self.state = state or SidecarState()
        self.router: EventRouter | None = None

    def start(self, pool_size: int, registry: HandlerRegistry) -> EventRouter:
        # Any failure here is a setup error and propagates to the caller.
        if self.runtime is None:
            self.runtime = DockerRuntime()

        router = EventRouter(pool_size, pool_size, self.runtime, build_routes(registry), state=self.state)
        router.start()
        self.router = router

        try:
            containers = self.runtime.list_containers(all=True)
            for c in containers:
                router.submit(LifecycleEvent.simulated_start(c.id))
            self.state.incr("events_replayed", len(containers))
            db.log_event("INFO", f"Replayed {len(containers)} existing containers as start events", component="events")

            router.listen()
        except BaseException:
            router.stop()
            raise
        return router
