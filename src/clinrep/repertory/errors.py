from __future__ import annotations


class RepertoryError(Exception):
    """Base error for everything that talks to an OOREP service."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


class SessionError(RepertoryError):
    """The cookie session against oorep.com could not be established."""

    CSRF_COOKIE_MISSING = "csrf_cookie_missing"
    PLAY_SESSION_MISSING = "play_session_missing"
    HANDSHAKE_FAILED = "handshake_failed"


class UpstreamError(RepertoryError):
    """An OOREP endpoint was unreachable or answered with a non-2xx status."""

    UNREACHABLE = "upstream_unreachable"
    BAD_STATUS = "upstream_bad_status"
    BAD_PAYLOAD = "upstream_bad_payload"

    def __init__(self, code: str, message: str = "", status_code: int | None = None) -> None:
        super().__init__(code, message)
        self.status_code = status_code
