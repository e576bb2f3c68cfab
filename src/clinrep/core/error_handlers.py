"""
src/clinrep/core/error_handlers.py

Unified exception handlers for the ClinRep FastAPI app.

All errors return:
    {
        "error": "<short message>",
        "request_id": "<uuid | null>",
        "code": <http_status_int>
    }

Repertory failures add ``"reason"`` (the error code) so the UI can tell
"search temporarily unavailable" apart from an empty result page.

Stack traces are NEVER exposed in the response body.
"""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinrep.analysis.engine import InvalidImportance
from clinrep.repertory.errors import SessionError, UpstreamError

_log = logging.getLogger("clinrep.errors")

_PRODUCTION = os.getenv("APP_ENV", "development").lower() in {"production", "prod"}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _err_body(message: str, code: int, request: Request) -> dict:
    return {
        "error": message,
        "request_id": _request_id(request),
        "code": code,
    }


def register_error_handlers(app: FastAPI) -> None:
    """Attach all unified error handlers to the given FastAPI app."""

    @app.exception_handler(SessionError)
    async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
        _log.error(
            "repertory session unavailable code=%s path=%s",
            exc.code,
            request.url.path,
            extra={"event": "session_unavailable", "reason": exc.code},
        )
        body = _err_body("Repertory search temporarily unavailable", 503, request)
        body["reason"] = exc.code
        return JSONResponse(status_code=503, content=body)

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
        _log.error(
            "repertory upstream error code=%s status=%s path=%s",
            exc.code,
            exc.status_code,
            request.url.path,
            extra={"event": "upstream_error", "reason": exc.code, "upstream_status": exc.status_code},
        )
        body = _err_body("Repertory search temporarily unavailable", 502, request)
        body["reason"] = exc.code
        return JSONResponse(status_code=502, content=body)

    @app.exception_handler(InvalidImportance)
    async def invalid_importance_handler(request: Request, exc: InvalidImportance) -> JSONResponse:
        return JSONResponse(status_code=422, content=_err_body(str(exc), 422, request))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = str(exc.detail) if exc.detail else "Request error"
        if exc.status_code >= 500:
            _log.error(
                "HTTP %d %s request_id=%s path=%s",
                exc.status_code,
                detail,
                _request_id(request),
                request.url.path,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_err_body(detail, exc.status_code, request),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        _log.warning(
            "Validation error request_id=%s path=%s",
            _request_id(request),
            request.url.path,
        )
        body = _err_body("Invalid request body or parameters", 422, request)
        if not _PRODUCTION:
            body["detail"] = jsonable_errors(exc)
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        _log.exception(
            "Unhandled exception request_id=%s path=%s",
            _request_id(request),
            request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content=_err_body("Unexpected server error", 500, request),
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic puts the raw exception object under ctx["error"]
    out = []
    for err in exc.errors():
        err = dict(err)
        ctx = err.get("ctx")
        if isinstance(ctx, dict):
            err["ctx"] = {k: str(v) for k, v in ctx.items()}
        out.append(err)
    return out
