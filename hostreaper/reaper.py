from __future__ import annotations

from collections import defaultdict
from threading import Event, Thread
from typing import Any

import httpx
import requests
from docker.errors import DockerException

from . import db
from .metadata import MetadataError
from .models import MetadataContainer
from .settings import Settings, settings as default_settings
from .state import SidecarState

# Errors raised by the docker client for a failed call (API errors and transport errors).
RUNTIME_ERRORS = (DockerException, requests.RequestException)
METADATA_ERRORS = (httpx.HTTPError, MetadataError)


class OrphanReconciler:
    """Removes local containers that the metadata service no longer recognizes.

    A metadata container assigned to this host must carry a uuid label equal
    to its own uuid; when the label is missing or different the runtime
    container at its external id is stale and gets force-removed.

    Called from the metadata change watcher, which can run several passes at
    once. Passes hold no shared state: each one fetches fresh records and acts
    only on its own list, and a second removal of the same container is a no-op.
    """

    def __init__(self, runtime: Any, metadata: Any, cfg: Settings | None = None, state: SidecarState | None = None):
        self.runtime = runtime
        self.metadata = metadata
        self.cfg = cfg or default_settings
        self.state = state or SidecarState()

    def on_metadata_change(self, version: str) -> list[str]:
        self.state.set("metadata_version", version)
        try:
            removed = self.reconcile()
        except METADATA_ERRORS as e:
            self.state.incr("reconcile_failures")
            db.log_event("ERROR", f"Failed to watch for orphan containers: {e}", component="reaper")
            return []
        self.state.incr("reconcile_passes")
        return removed

    def reconcile(self) -> list[str]:
        """Run one pass; raises if the host or container list cannot be fetched."""
        host = self.metadata.get_self_host()
        containers = self.metadata.get_containers()

        orphans = [c for c in containers if c.host_uuid == host.uuid and self.is_orphan(c)]

        removed: list[str] = []
        for c in orphans:
            if self._remove(c):
                removed.append(c.external_id)
        return removed

    def is_orphan(self, container: MetadataContainer) -> bool:
        return container.labels.get(self.cfg.uuid_label) != container.uuid

    def _remove(self, container: MetadataContainer) -> bool:
        try:
            name = self.runtime.inspect_name(container.external_id)
        except RUNTIME_ERRORS as e:
            db.log_event("ERROR", f"Inspect failed: {e}", component="reaper", container_id=container.external_id)
            return False
        if name == self.cfg.agent_name:
            return False

        db.log_event(
            "INFO",
            f"Removing unmanaged container {container.name} {container.external_id}",
            component="reaper",
            container_id=container.external_id,
        )
        try:
            self.runtime.remove(container.external_id, force=True)
        except RUNTIME_ERRORS as e:
            db.log_event("ERROR", f"Remove failed: {e}", component="reaper", container_id=container.external_id)
            return False
        self.state.incr("containers_removed")
        return True


class PollInterval:
    """Multiplicative poll cadence: min, min*factor, ... clamped at max."""

    def __init__(self, min_s: float = 1.0, max_s: float = 300.0, factor: float = 1.5):
        if min_s <= 0:
            raise ValueError("Poll interval minimum must be positive.")
        if factor < 1:
            raise ValueError("Poll interval factor must be at least 1.")
        self.min_s = min_s
        self.max_s = max(min_s, max_s)
        self.factor = factor
        self.attempt = 0

    def next(self) -> float:
        value = min(self.max_s, self.min_s * (self.factor ** self.attempt))
        # Stop counting once the value can no longer grow.
        if value < self.max_s and self.factor > 1:
            self.attempt += 1
        return value


class DuplicateServiceGuard:
    """Stops extra running instances of the singleton metadata and DNS services.

    The runtime lists containers newest first, so the last match for a
    service is its oldest instance; that one is stopped with no grace period.
    Checks run on a cadence that starts fast and slows to `dedup_max_s`.
    """

    def __init__(self, runtime: Any, cfg: Settings | None = None, state: SidecarState | None = None):
        self.runtime = runtime
        self.cfg = cfg or default_settings
        self.state = state or SidecarState()
        self.interval = PollInterval(self.cfg.dedup_min_s, self.cfg.dedup_max_s, self.cfg.dedup_factor)
        self._thr: Thread | None = None

    def start(self, stop: Event) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self.run, args=(stop,), name="dedup-guard", daemon=True)
        self._thr.start()

    def run(self, stop: Event) -> None:
        db.log_event("INFO", "Duplicate service guard started", component="dedup")
        while not stop.is_set():
            try:
                self.check_duplicates()
            except RUNTIME_ERRORS as e:
                db.log_event("ERROR", f"Failed to check for bad metadata: {e}", component="dedup")
            except Exception as e:
                db.log_event("ERROR", f"Dedup tick failed: {type(e).__name__}: {e}", component="dedup")
            stop.wait(self._next_wait())

    def _next_wait(self) -> float:
        try:
            wait_s = self.interval.next()
        except ArithmeticError as e:
            db.log_event("ERROR", f"Poll interval failed, using {self.interval.max_s}s: {e}", component="dedup")
            wait_s = self.interval.max_s
        self.state.set("dedup_interval_s", wait_s)
        return wait_s

    def select_duplicates(self, containers: list) -> list[str]:
        services = self.cfg.singleton_services
        by_service: dict[str, list[str]] = defaultdict(list)
        for c in containers:
            if not c.running or not c.labels.get(self.cfg.uuid_label):
                continue
            service = c.labels.get(self.cfg.service_name_label)
            if service in services:
                by_service[service].append(c.id)

        return [by_service[s][-1] for s in services if len(by_service[s]) > 1]

    def check_duplicates(self) -> list[str]:
        """Run one detection pass; returns the ids a stop was issued for."""
        containers = self.runtime.list_containers(all=True)
        self.state.incr("dedup_passes")

        to_stop = self.select_duplicates(containers)
        for container_id in to_stop:
            db.log_event(
                "INFO",
                f"Stopping duplicate metadata/dns service: {container_id}",
                component="dedup",
                container_id=container_id,
            )
            try:
                self.runtime.stop(container_id, grace_period_s=0)
            except RUNTIME_ERRORS as e:
                db.log_event(
                    "ERROR",
                    f"Failed to stop duplicate metadata/dns service: {container_id}: {e}",
                    component="dedup",
                    container_id=container_id,
                )
                continue
            self.state.incr("duplicates_stopped")
        return to_stop
