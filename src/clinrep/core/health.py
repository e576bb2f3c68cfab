"""
src/clinrep/core/health.py

Health + readiness probe endpoints.

GET /health/live   liveness: always 200 (process is alive)
GET /health/ready  readiness: reports the oorep.com session state without
                    touching the network (sessions are established lazily)
"""
from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health/live")
async def health_live() -> JSONResponse:
    """Liveness probe: always returns 200 if the process is running."""
    return JSONResponse(status_code=200, content={"status": "ok", "probe": "live"})


@router.get("/health/ready")
async def health_ready(request: Request) -> JSONResponse:
    """Readiness probe: 503 until the repertory client is wired."""
    client = getattr(request.app.state, "repertory", None)
    if client is None:
        return JSONResponse(
            status_code=503,
            content={"status": "error", "probe": "ready", "repertory": "unconfigured"},
        )
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "probe": "ready",
            "repertory": "configured",
            "session": client.session.state.value,
        },
    )
