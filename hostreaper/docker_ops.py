from __future__ import annotations

from typing import Any, Iterator

import docker
from docker.errors import NotFound

from .models import LifecycleEvent, RuntimeContainerSummary


def _client() -> docker.DockerClient:
    return docker.from_env()


class DockerRuntime:
    """Container runtime operations used by the reaper and the event pipeline.

    Wraps the low-level docker-py API so list results keep the daemon's
    newest-first ordering and carry labels without a per-container inspect.
    Errors are raised as ``DockerException``; callers decide whether a failure
    aborts a pass or only skips one container.
    """

    def __init__(self, api: Any | None = None):
        # `api` is a docker.APIClient (or anything shaped like one).
        self.api = api if api is not None else _client().api

    def list_containers(self, all: bool = True) -> list[RuntimeContainerSummary]:
        return [RuntimeContainerSummary.from_api(c) for c in self.api.containers(all=all)]

    def inspect_name(self, container_id: str) -> str:
        return self.api.inspect_container(container_id).get("Name", "")

    def remove(self, container_id: str, force: bool = True) -> bool:
        """Remove a container; returns False if it was already gone."""
        try:
            self.api.remove_container(container_id, force=force)
        except NotFound:
            return False
        return True

    def stop(self, container_id: str, grace_period_s: int = 0) -> None:
        self.api.stop(container_id, timeout=grace_period_s)

    def events(self) -> EventStream:
        return EventStream(self.api.events(decode=True, filters={"type": "container"}))


class EventStream:
    """Live container lifecycle events; iteration ends when closed."""

    def __init__(self, raw: Any):
        self._raw = raw

    def __iter__(self) -> Iterator[LifecycleEvent]:
        for item in self._raw:
            ev = LifecycleEvent.from_docker(item)
            if ev is not None:
                yield ev

    def close(self) -> None:
        close = getattr(self._raw, "close", None)
        if close is not None:
            close()
