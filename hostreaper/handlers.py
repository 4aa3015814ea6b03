from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from . import db
from .models import LifecycleEvent


class Handler(ABC):
    """Reacts to one container lifecycle event."""

    @abstractmethod
    def handle(self, event: LifecycleEvent) -> None:
        ...


@dataclass(frozen=True)
class HandlerRegistry:
    """Handlers owned by other agent subsystems, wired into the event routes."""

    binexec_watcher: Handler
    start_handler: Handler
    network_manager: Handler


class EventLogHandler(Handler):
    """Records each event in the event log.

    Stands in for a subsystem's handler when the sidecar runs on its own.
    """

    def __init__(self, name: str):
        self.name = name

    def handle(self, event: LifecycleEvent) -> None:
        origin = "replayed" if event.simulated else "live"
        db.log_event("INFO", f"{self.name}: {event.status} ({origin})", component="events", container_id=event.id)


def default_registry() -> HandlerRegistry:
    return HandlerRegistry(
        binexec_watcher=EventLogHandler("binexec"),
        start_handler=EventLogHandler("start"),
        network_manager=EventLogHandler("network"),
    )
