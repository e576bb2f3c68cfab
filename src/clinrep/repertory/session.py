"""
src/clinrep/repertory/session.py

Cookie session bridge for oorep.com.

oorep.com only answers protected API calls when two cookies are present:

1. a CSRF cookie, handed out by the homepage
2. PLAY_SESSION, handed out by the first API call that carries (1)

``RepertorySession`` performs that handshake lazily, caches the resulting
Cookie header for a fixed TTL and attaches it to every outbound request.
A 401/403 answer drops the cache and the request is retried exactly once
with a fresh session.

One instance is created per process (see ``clinrep.api.main``); tests build
their own with an ``httpx.MockTransport``.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Any, Callable, Mapping

import httpx

from clinrep.config import BROWSER_USER_AGENT
from clinrep.repertory.cookies import csrf_cookie_name, format_cookies, parse_cookies
from clinrep.repertory.errors import SessionError

__all__ = [
    "SessionState",
    "RepertorySession",
    "DEFAULT_SESSION_TTL",
]

_log = logging.getLogger("clinrep.repertory.session")

DEFAULT_SESSION_TTL = 20 * 60.0  # seconds

_HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_JSON_ACCEPT = "application/json"
_REFRESH_STATUSES = frozenset({401, 403})


class SessionState(str, enum.Enum):
    NO_SESSION = "no_session"
    ESTABLISHING = "establishing"
    VALID = "valid"


class RepertorySession:
    """Lazily established, TTL-bound cookie session against an OOREP server."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        ttl_seconds: float = DEFAULT_SESSION_TTL,
        handshake_path: str = "/api/available_remedies",
        user_agent: str = BROWSER_USER_AGENT,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.ttl_seconds = ttl_seconds
        self.handshake_path = handshake_path
        self.user_agent = user_agent
        self._client = client or httpx.AsyncClient(timeout=timeout, transport=transport)
        self._owns_client = client is None
        self._clock = clock

        self._cookies: str | None = None
        self._expires_at: float | None = None
        self._establishing = False
        self._lock = asyncio.Lock()

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        if self._establishing:
            return SessionState.ESTABLISHING
        if self._is_valid():
            return SessionState.VALID
        return SessionState.NO_SESSION

    def _is_valid(self) -> bool:
        return (
            self._cookies is not None
            and self._expires_at is not None
            and self._clock() < self._expires_at
        )

    def invalidate(self) -> None:
        """Forget the cached session; the next acquire() runs the handshake."""
        had_session = self._cookies is not None
        self._cookies = None
        self._expires_at = None
        if had_session:
            _log.info("repertory session invalidated", extra={"event": "session_invalidated"})

    # ── Handshake ────────────────────────────────────────────────────────────

    async def acquire(self) -> str:
        """Return the Cookie header value, running the handshake if needed."""
        if self._is_valid():
            return self._cookies  # type: ignore[return-value]

        async with self._lock:
            # another caller may have finished the handshake while we waited
            if self._is_valid():
                return self._cookies  # type: ignore[return-value]

            self.invalidate()
            self._establishing = True
            try:
                cookies = await self._handshake()
            finally:
                self._establishing = False

            self._cookies = format_cookies(cookies)
            self._expires_at = self._clock() + self.ttl_seconds
            _log.info(
                "repertory session established",
                extra={"event": "session_established", "cookie_count": len(cookies)},
            )
            return self._cookies

    async def _handshake(self) -> dict[str, str]:
        # cookies are passed explicitly; keep the client jar out of it
        self._client.cookies.clear()

        home = await self._handshake_get(
            self.base_url,
            {"User-Agent": self.user_agent, "Accept": _HTML_ACCEPT},
            step="homepage",
        )
        cookies = parse_cookies(home.headers)
        if csrf_cookie_name(cookies) is None:
            _log.warning(
                "repertory handshake failed: no CSRF cookie",
                extra={"event": "session_handshake_failed", "reason": SessionError.CSRF_COOKIE_MISSING},
            )
            raise SessionError(SessionError.CSRF_COOKIE_MISSING, "Failed to get CSRF cookie from OOREP")

        api = await self._handshake_get(
            f"{self.base_url}{self.handshake_path}",
            {
                "User-Agent": self.user_agent,
                "Accept": _JSON_ACCEPT,
                "Cookie": format_cookies(cookies),
            },
            step="api",
        )
        cookies = {**cookies, **parse_cookies(api.headers)}
        if "PLAY_SESSION" not in cookies:
            _log.warning(
                "repertory handshake failed: no PLAY_SESSION cookie",
                extra={"event": "session_handshake_failed", "reason": SessionError.PLAY_SESSION_MISSING},
            )
            raise SessionError(
                SessionError.PLAY_SESSION_MISSING, "Failed to get PLAY_SESSION cookie from OOREP"
            )

        return cookies

    async def _handshake_get(self, url: str, headers: Mapping[str, str], *, step: str) -> httpx.Response:
        try:
            response = await self._client.get(url, headers=dict(headers))
        except httpx.HTTPError as exc:
            _log.warning(
                "repertory handshake %s step unreachable: %s",
                step,
                type(exc).__name__,
                extra={"event": "session_handshake_failed", "reason": SessionError.HANDSHAKE_FAILED},
            )
            raise SessionError(
                SessionError.HANDSHAKE_FAILED, f"OOREP {step} request failed: {exc}"
            ) from exc

        if not response.is_success:
            _log.warning(
                "repertory handshake %s step returned %d",
                step,
                response.status_code,
                extra={
                    "event": "session_handshake_failed",
                    "reason": SessionError.HANDSHAKE_FAILED,
                    "upstream_status": response.status_code,
                },
            )
            raise SessionError(
                SessionError.HANDSHAKE_FAILED,
                f"OOREP {step} request returned {response.status_code}",
            )
        return response

    # ── Authenticated requests ───────────────────────────────────────────────

    def _request_headers(self, cookies: str, extra: Mapping[str, str] | None) -> dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": _JSON_ACCEPT,
            "Cookie": cookies,
            "Referer": self.base_url,
        }
        if extra:
            headers.update(extra)
        return headers

    async def _send(self, method: str, endpoint: str, cookies: str, **kwargs: Any) -> httpx.Response:
        headers = self._request_headers(cookies, kwargs.pop("headers", None))
        return await self._client.request(method, f"{self.base_url}{endpoint}", headers=headers, **kwargs)

    async def fetch(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request with the session cookies; retry once on 401/403.

        The retried response is returned as-is, whatever its status.
        Transport errors propagate as ``httpx.HTTPError``.
        """
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if json is not None:
            kwargs["json"] = json

        cookies = await self.acquire()
        response = await self._send(method, endpoint, cookies, **dict(kwargs))
        if response.status_code not in _REFRESH_STATUSES:
            return response

        _log.info(
            "repertory session rejected with %d, refreshing",
            response.status_code,
            extra={"event": "session_retry", "upstream_status": response.status_code},
        )
        self.invalidate()
        cookies = await self.acquire()
        return await self._send(method, endpoint, cookies, **dict(kwargs))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
