from __future__ import annotations

from fastapi import HTTPException, Request

from clinrep.config import Settings
from clinrep.repertory.client import RepertoryClient


def get_repertory_client(request: Request) -> RepertoryClient:
    client = getattr(request.app.state, "repertory", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Repertory client is not configured")
    return client


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
