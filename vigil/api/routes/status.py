"""
vigil.api.routes.status — Read-only health & status probe
==========================================================

``/api/health`` answers as long as the process is up.  ``/api/status``
and ``/api/stats`` need a ready core and answer **503** with
``{"status": "not_ready"}`` before that; a not-ready core is a state,
not an error.

The core's state belongs to the bot's event loop, so handlers that read
it are ``async def`` and never run on the threadpool.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from vigil.api.deps import get_core
from vigil.services.core_service import VigilCore

router = APIRouter(tags=["status"])


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    timestamp: str


class StatusResponse(BaseModel):
    status: str
    tracked_count: int
    exempt_user_count: int
    exempt_role_count: int
    inactive_count: int
    threshold_hours: float
    check_interval_minutes: float
    level_channels: int
    level_records: int
    pending_events: int
    uptime_seconds: float
    timestamp: str


class StatsResponse(BaseModel):
    tracked_users: int
    inactive_users: int
    exempt_users: int
    exempt_roles: int
    threshold_hours: float


def _not_ready() -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "not_ready"})


@router.get("/health", response_model=HealthResponse)
def health(request: Request):
    now = datetime.now(UTC)
    started_at: datetime = request.app.state.started_at
    return HealthResponse(
        status="healthy",
        uptime_seconds=round((now - started_at).total_seconds(), 1),
        timestamp=now.isoformat(),
    )


@router.get("/status", response_model=StatusResponse)
async def status(core: VigilCore | None = Depends(get_core)):
    if core is None:
        return _not_ready()
    return StatusResponse(**core.probe_summary())


@router.get("/stats", response_model=StatsResponse)
async def stats(core: VigilCore | None = Depends(get_core)):
    if core is None:
        return _not_ready()
    summary = core.get_status()
    return StatsResponse(
        tracked_users=summary.tracked_count,
        inactive_users=summary.inactive_count,
        exempt_users=summary.exempt_user_count,
        exempt_roles=summary.exempt_role_count,
        threshold_hours=core.cfg.inactive_threshold_hours,
    )


@router.get("/keep-alive", response_class=PlainTextResponse)
def keep_alive():
    return "Bot is alive!"
