from __future__ import annotations

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    started_at: str
    metadata_version: str | None = None
    reconcile_passes: int = 0
    reconcile_failures: int = 0
    containers_removed: int = 0
    dedup_passes: int = 0
    duplicates_stopped: int = 0
    dedup_interval_s: float | None = Field(None, description="Wait before the next duplicate check")
    events_replayed: int = 0
    events_dispatched: int = 0
    handler_failures: int = 0


class EventLogEntry(BaseModel):
    id: int
    ts: str
    level: str
    component: str | None = None
    container_id: str | None = None
    message: str


class PassResult(BaseModel):
    container_ids: list[str] = Field(default_factory=list, description="Containers removed or stopped")
