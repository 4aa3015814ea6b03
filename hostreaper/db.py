from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from typing import Any

from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    The sidecar usually runs in a container with the log path bind-mounted.
    If the mount target did not exist Docker creates a *directory* there, so
    a configured directory gets the DB file placed inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "hostreaper.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    return conn


_initialized: set[str] = set()


def init_db() -> None:
    """Create tables if they do not exist."""
    path = _resolve_db_path()
    if path in _initialized:
        return
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              component TEXT,
              container_id TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_events_container ON events(container_id);
            """
        )
    _initialized.add(path)


def log_event(level: str, message: str, component: str | None = None, container_id: str | None = None) -> None:
    init_db()
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, component, container_id, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), component, container_id, message),
        )


def latest_events(limit: int = 100, component: str | None = None) -> list[dict[str, Any]]:
    init_db()
    with connect() as conn:
        if component:
            rows = conn.execute(
                "SELECT * FROM events WHERE component=? ORDER BY id DESC LIMIT ?", (component, limit)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
