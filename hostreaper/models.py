from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Marks events replayed at startup rather than emitted by the runtime.
SIMULATED_SOURCE = "-simulated-"


class EventStatus(str, Enum):
    START = "start"
    DIE = "die"


@dataclass(frozen=True)
class SelfHost:
    uuid: str

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> SelfHost:
        return cls(uuid=str(data.get("uuid") or ""))


@dataclass(frozen=True)
class MetadataContainer:
    """Desired-state record for one container, as published by the metadata service."""

    uuid: str
    external_id: str
    host_uuid: str
    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> MetadataContainer:
        return cls(
            uuid=str(data.get("uuid") or ""),
            external_id=str(data.get("external_id") or ""),
            host_uuid=str(data.get("host_uuid") or ""),
            name=str(data.get("name") or ""),
            labels=dict(data.get("labels") or {}),
        )


@dataclass(frozen=True)
class RuntimeContainerSummary:
    id: str
    state: str
    labels: dict[str, str] = field(default_factory=dict)
    name: str = ""

    @property
    def running(self) -> bool:
        return self.state == "running"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RuntimeContainerSummary:
        """Build from one entry of the Docker list-containers API."""
        names = data.get("Names") or [""]
        return cls(
            id=data["Id"],
            state=str(data.get("State") or ""),
            labels=dict(data.get("Labels") or {}),
            name=names[0],
        )


@dataclass(frozen=True)
class LifecycleEvent:
    id: str
    status: str
    source: str = ""

    @property
    def simulated(self) -> bool:
        return self.source == SIMULATED_SOURCE

    @classmethod
    def simulated_start(cls, container_id: str) -> LifecycleEvent:
        return cls(id=container_id, status=EventStatus.START.value, source=SIMULATED_SOURCE)

    @classmethod
    def from_docker(cls, event: dict[str, Any]) -> LifecycleEvent | None:
        """Parse a decoded Docker event; None for events without a container id."""
        actor = event.get("Actor") or {}
        container_id = event.get("id") or actor.get("ID")
        status = event.get("status") or event.get("Action")
        if not container_id or not status:
            return None
        return cls(id=container_id, status=status, source=event.get("from") or "")
