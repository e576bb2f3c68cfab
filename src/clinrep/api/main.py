# src/clinrep/api/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from clinrep.api.analysis import router as analysis_router
from clinrep.api.repertory import router as repertory_router
from clinrep.config import Settings, get_settings
from clinrep.core.error_handlers import register_error_handlers
from clinrep.core.health import router as health_router
from clinrep.core.logging import setup_json_logging
from clinrep.core.middleware import RequestIDMiddleware
from clinrep.repertory.client import RepertoryClient
from clinrep.repertory.session import RepertorySession

log = logging.getLogger("clinrep.api")

APP_VERSION = "0.2.0"


def build_repertory_client(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RepertoryClient:
    """Wire the process-wide oorep.com session and the local OOREP client."""
    timeout = settings.HTTP_TIMEOUT_SECONDS
    session = RepertorySession(
        settings.OOREP_REMOTE_URL,
        transport=transport,
        timeout=timeout,
        ttl_seconds=settings.OOREP_SESSION_TTL_SECONDS,
        handshake_path=settings.OOREP_HANDSHAKE_PATH,
        user_agent=settings.OOREP_USER_AGENT,
    )
    return RepertoryClient(
        settings.OOREP_API_URL,
        session,
        transport=transport,
        timeout=timeout,
        remedy_cache_seconds=settings.REMEDY_CACHE_SECONDS,
        enabled=settings.OOREP_ENABLED,
    )


def create_app(
    settings: Settings | None = None,
    repertory: RepertoryClient | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_json_logging()

    client = repertory or build_repertory_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("ClinRep API starting", extra={"event": "startup"})
        yield
        await app.state.repertory.aclose()
        log.info("ClinRep API stopped", extra={"event": "shutdown"})

    app = FastAPI(title=settings.APP_NAME, version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.repertory = client

    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(repertory_router)
    app.include_router(analysis_router)

    @app.get("/version")
    async def version():
        return {"api_version": APP_VERSION}

    return app


app = create_app()
