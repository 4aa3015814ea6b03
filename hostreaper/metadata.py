from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from threading import BoundedSemaphore, Event
from typing import Any, Callable

import httpx

from . import db
from .models import MetadataContainer, SelfHost
from .settings import Settings, settings as default_settings


class MetadataError(Exception):
    pass


class MetadataClient:
    """Client for the metadata service (the cluster's desired-state record).

    Endpoints (JSON):
      - GET /self/host   -> {"uuid": ...}
      - GET /containers  -> [{"uuid", "external_id", "host_uuid", "name", "labels"}, ...]
      - GET /version     -> current version string; long-polls with wait=true
    """

    def __init__(self, cfg: Settings | None = None, client: httpx.Client | None = None):
        self.cfg = cfg or default_settings
        self._http = client or httpx.Client(
            base_url=self.cfg.metadata_url,
            timeout=self.cfg.metadata_timeout_s,
            headers={"Accept": "application/json"},
            follow_redirects=False,
        )

    def _get(self, path: str, params: dict[str, Any] | None = None, timeout: float | None = None) -> Any:
        kwargs: dict[str, Any] = {"params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        resp = self._http.get(path, **kwargs)
        resp.raise_for_status()
        try:
            return resp.json()
        except ValueError as e:
            raise MetadataError(f"Invalid JSON from {path}: {e}") from e

    def get_self_host(self) -> SelfHost:
        data = self._get("/self/host")
        if not isinstance(data, dict):
            raise MetadataError(f"Unexpected self host payload: {data!r}")
        return SelfHost.from_json(data)

    def get_containers(self) -> list[MetadataContainer]:
        data = self._get("/containers")
        if not isinstance(data, list):
            raise MetadataError(f"Unexpected containers payload: {type(data).__name__}")
        return [MetadataContainer.from_json(c) for c in data if isinstance(c, dict)]

    def wait_version(self, current: str, max_wait_s: int) -> str:
        """Block until the version differs from `current` or `max_wait_s` passes."""
        data = self._get(
            "/version",
            params={"wait": "true", "value": current, "maxWait": max_wait_s},
            timeout=max_wait_s + self.cfg.metadata_timeout_s,
        )
        return str(data)

    def on_change(
        self,
        interval_s: int,
        do: Callable[[str], Any],
        stop: Event,
        recheck_interval_s: int | None = None,
    ) -> None:
        """Call `do(version)` whenever the metadata version changes.

        Runs until `stop` is set. At most `change_concurrency` callbacks are in
        flight; when all slots are busy the watcher waits for one to finish.
        With `recheck_interval_s`, `do` also runs once that long has passed
        without a change.
        """
        slots = BoundedSemaphore(max(1, self.cfg.change_concurrency))
        version = "init"
        last_run = time.monotonic()

        def _run(v: str) -> None:
            try:
                do(v)
            except Exception as e:
                db.log_event("ERROR", f"Change callback failed: {type(e).__name__}: {e}", component="metadata")
            finally:
                slots.release()

        with ThreadPoolExecutor(max_workers=max(1, self.cfg.change_concurrency)) as pool:
            while not stop.is_set():
                polled_at = time.monotonic()
                try:
                    new_version = self.wait_version(version, interval_s)
                except (httpx.HTTPError, MetadataError) as e:
                    db.log_event("ERROR", f"Failed to get metadata version: {e}", component="metadata")
                    stop.wait(interval_s)
                    continue

                due = bool(recheck_interval_s) and time.monotonic() - last_run >= recheck_interval_s
                if new_version == version and not due:
                    # Unchanged answers come at most once per interval, even without long-polling.
                    stop.wait(max(0.0, interval_s - (time.monotonic() - polled_at)))
                    continue

                version = new_version
                last_run = time.monotonic()
                while not slots.acquire(timeout=1.0):
                    if stop.is_set():
                        return
                pool.submit(_run, version)

    def close(self) -> None:
        self._http.close()
