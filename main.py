from __future__ import annotations

import secrets
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from hostreaper import db
from hostreaper.api_models import EventLogEntry, PassResult, StatusResponse
from hostreaper.reaper import METADATA_ERRORS, RUNTIME_ERRORS
from hostreaper.settings import settings
from hostreaper.sidecar import Sidecar

app = FastAPI(title="Host Reaper")
security = HTTPBasic()

sidecar: Sidecar | None = None


def create_sidecar() -> Sidecar:
    return Sidecar(settings)


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    if not (
        secrets.compare_digest(credentials.username, settings.api_user)
        and secrets.compare_digest(credentials.password, settings.api_password)
    ):
        raise HTTPException(status_code=401, detail="Invalid credentials", headers={"WWW-Authenticate": "Basic"})
    return credentials.username


def get_sidecar() -> Sidecar:
    if sidecar is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Sidecar is not running.")
    return sidecar


@app.on_event("startup")
def startup() -> None:
    global sidecar
    db.init_db()
    sidecar = create_sidecar()
    sidecar.start()


@app.on_event("shutdown")
def shutdown() -> None:
    global sidecar
    if sidecar is not None:
        sidecar.stop()
        sidecar = None


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "healthy", "running": sidecar is not None}


@app.get("/status", response_model=StatusResponse)
def get_status(_: str = Depends(get_current_username), sc: Sidecar = Depends(get_sidecar)):
    return sc.state.snapshot()


@app.get("/events", response_model=list[EventLogEntry])
def get_events(
    limit: int = Query(100, ge=1, le=1000),
    component: str | None = None,
    _: str = Depends(get_current_username),
):
    return db.latest_events(limit=limit, component=component)


@app.post("/reconcile", response_model=PassResult)
def run_reconcile(username: str = Depends(get_current_username), sc: Sidecar = Depends(get_sidecar)):
    db.log_event("INFO", f"Manual orphan pass requested by {username}", component="api")
    try:
        removed = sc.reconciler.reconcile()
    except METADATA_ERRORS as e:
        raise HTTPException(status_code=502, detail=f"Metadata unavailable: {e}")
    return PassResult(container_ids=removed)


@app.post("/dedup", response_model=PassResult)
def run_dedup(username: str = Depends(get_current_username), sc: Sidecar = Depends(get_sidecar)):
    db.log_event("INFO", f"Manual duplicate check requested by {username}", component="api")
    try:
        stopped = sc.guard.check_duplicates()
    except RUNTIME_ERRORS as e:
        raise HTTPException(status_code=502, detail=f"Container runtime unavailable: {e}")
    return PassResult(container_ids=stopped)
