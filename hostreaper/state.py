from __future__ import annotations

from dataclasses import asdict, dataclass, field
from threading import Lock

from .db import utc_now


@dataclass
class SidecarStatus:
    started_at: str = field(default_factory=utc_now)
    metadata_version: str | None = None
    reconcile_passes: int = 0
    reconcile_failures: int = 0
    containers_removed: int = 0
    dedup_passes: int = 0
    duplicates_stopped: int = 0
    dedup_interval_s: float | None = None
    events_replayed: int = 0
    events_dispatched: int = 0
    handler_failures: int = 0


class SidecarState:
    """In-memory counters shared by the background workers and the API."""

    def __init__(self) -> None:
        self.lock = Lock()
        self._status = SidecarStatus()

    def incr(self, name: str, n: int = 1) -> None:
        with self.lock:
            setattr(self._status, name, getattr(self._status, name) + n)

    def set(self, name: str, value: object) -> None:
        with self.lock:
            setattr(self._status, name, value)

    def snapshot(self) -> dict[str, object]:
        with self.lock:
            return asdict(self._status)
