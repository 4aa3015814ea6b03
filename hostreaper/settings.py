from __future__ import annotations

import os
import secrets
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("HR_DB_PATH", "hostreaper.db")
    metadata_url: str = os.getenv("HR_METADATA_URL", "http://rancher-metadata/2015-12-19")
    metadata_timeout_s: float = _env_float("HR_METADATA_TIMEOUT_S", 10.0)

    # Metadata change notifications
    change_poll_interval_s: int = _env_int("HR_CHANGE_POLL_INTERVAL_S", 5)
    change_concurrency: int = _env_int("HR_CHANGE_CONCURRENCY", 5)
    recheck_interval_s: int = _env_int("HR_RECHECK_INTERVAL_S", 300)

    # Duplicate service poll cadence
    dedup_min_s: float = _env_float("HR_DEDUP_MIN_S", 1.0)
    dedup_max_s: float = _env_float("HR_DEDUP_MAX_S", 300.0)
    dedup_factor: float = _env_float("HR_DEDUP_FACTOR", 1.5)

    # Event pipeline
    event_pool_size: int = _env_int("HR_EVENT_POOL_SIZE", 10)
    enable_events: bool = _env_bool("HR_ENABLE_EVENTS", True)

    # Labels and well-known names
    uuid_label: str = os.getenv("HR_UUID_LABEL", "io.rancher.container.uuid")
    service_name_label: str = os.getenv("HR_SERVICE_NAME_LABEL", "io.rancher.stack_service.name")
    metadata_service: str = os.getenv("HR_METADATA_SERVICE", "network-services/metadata")
    dns_service: str = os.getenv("HR_DNS_SERVICE", "network-services/metadata/dns")
    # Never removed, whatever its labels say.
    agent_name: str = os.getenv("HR_AGENT_NAME", "/rancher-agent")

    # API
    api_user: str = os.getenv("HR_API_USER", "admin")
    # No default password: an unset one is random per process, so the API is closed until configured.
    api_password: str = os.getenv("HR_API_PASSWORD") or secrets.token_urlsafe(16)

    @property
    def singleton_services(self) -> tuple[str, ...]:
        return (self.metadata_service, self.dns_service)


settings = Settings()
