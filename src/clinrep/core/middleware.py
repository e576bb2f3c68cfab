"""
src/clinrep/core/middleware.py

Request ID middleware for the ClinRep API.

- Reuses a client-provided X-Request-ID or generates a UUID4
- Stores it in request_id_ctx so session/search logs carry it
- Adds X-Request-ID to every response header
- Emits one access log line: method, path, status, duration_ms
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from clinrep.core.logging import request_id_ctx

_log = logging.getLogger("clinrep.access")

_MAX_REQUEST_ID_LEN = 128


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign a request_id to every incoming HTTP request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        raw_id = request.headers.get("X-Request-ID", "").strip()[:_MAX_REQUEST_ID_LEN]
        request_id = raw_id or str(uuid.uuid4())

        token = request_id_ctx.set(request_id)
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000.0
            response.headers["X-Request-ID"] = request_id
            _log.info(
                "%s %s %d %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "event": "http_request",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return response
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000.0
            _log.error(
                "unhandled exception in middleware",
                extra={
                    "event": "http_request_failed",
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            raise
        finally:
            request_id_ctx.reset(token)
