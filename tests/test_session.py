"""
oorep.com session bridge:
  - handshake + cookie merge
  - cache reuse inside the TTL, refresh after it
  - typed failures (csrf / PLAY_SESSION / transport)
  - 401/403 retry-once semantics
"""
from __future__ import annotations

import asyncio

import httpx
import pytest

from clinrep.repertory.errors import SessionError
from clinrep.repertory.session import RepertorySession, SessionState

from conftest import REMOTE_URL


def _session(fake_oorep, clock=None, **kwargs) -> RepertorySession:
    if clock is not None:
        kwargs["clock"] = clock
    return RepertorySession(REMOTE_URL, transport=fake_oorep.transport(), **kwargs)


@pytest.mark.asyncio
async def test_acquire_runs_two_step_handshake(fake_oorep):
    session = _session(fake_oorep)
    assert session.state is SessionState.NO_SESSION

    cookies = await session.acquire()

    assert cookies == "csrfCookie=csrf-1; PLAY_SESSION=play-1"
    assert session.state is SessionState.VALID
    assert fake_oorep.calls[f"{REMOTE_URL}/"] == 1
    assert fake_oorep.calls[f"{REMOTE_URL}/api/available_remedies"] == 1

    home, api = fake_oorep.requests
    assert "Mozilla" in home.headers["user-agent"]
    assert home.headers["accept"].startswith("text/html")
    assert api.headers["cookie"] == "csrfCookie=csrf-1"
    assert api.headers["accept"] == "application/json"


@pytest.mark.asyncio
async def test_second_step_cookies_override_first(fake_oorep):
    fake_oorep.api_cookies = ["csrfCookie=csrf-2", "PLAY_SESSION=play-2"]
    session = _session(fake_oorep)

    assert await session.acquire() == "csrfCookie=csrf-2; PLAY_SESSION=play-2"


@pytest.mark.asyncio
async def test_cached_session_reused_within_ttl(fake_oorep, clock):
    session = _session(fake_oorep, clock)
    first = await session.acquire()
    calls_after_first = sum(fake_oorep.calls.values())

    clock.advance(19 * 60)
    second = await session.acquire()

    assert second == first
    assert sum(fake_oorep.calls.values()) == calls_after_first


@pytest.mark.asyncio
async def test_session_refreshed_after_ttl(fake_oorep, clock):
    session = _session(fake_oorep, clock)
    await session.acquire()

    clock.advance(20 * 60)
    assert session.state is SessionState.NO_SESSION
    await session.acquire()

    assert fake_oorep.handshakes() == 2
    assert session.state is SessionState.VALID


@pytest.mark.asyncio
async def test_missing_csrf_cookie(fake_oorep):
    fake_oorep.homepage_cookies = ["tracking=1; Path=/"]
    session = _session(fake_oorep)

    with pytest.raises(SessionError) as exc_info:
        await session.acquire()

    assert exc_info.value.code == SessionError.CSRF_COOKIE_MISSING
    assert session.state is SessionState.NO_SESSION
    # the second step never ran
    assert fake_oorep.calls[f"{REMOTE_URL}/api/available_remedies"] == 0


@pytest.mark.asyncio
async def test_missing_play_session(fake_oorep):
    fake_oorep.api_cookies = []
    session = _session(fake_oorep)

    with pytest.raises(SessionError) as exc_info:
        await session.acquire()

    assert exc_info.value.code == SessionError.PLAY_SESSION_MISSING
    assert session.state is SessionState.NO_SESSION


@pytest.mark.asyncio
async def test_transport_failure_is_handshake_failed(fake_oorep):
    fake_oorep.raise_on[f"{REMOTE_URL}/"] = lambda req: httpx.ConnectError("boom", request=req)
    session = _session(fake_oorep)

    with pytest.raises(SessionError) as exc_info:
        await session.acquire()

    assert exc_info.value.code == SessionError.HANDSHAKE_FAILED
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert session.state is SessionState.NO_SESSION


@pytest.mark.asyncio
async def test_homepage_error_status_is_handshake_failed(fake_oorep):
    fake_oorep.homepage_status = 503
    session = _session(fake_oorep)

    with pytest.raises(SessionError) as exc_info:
        await session.acquire()

    assert exc_info.value.code == SessionError.HANDSHAKE_FAILED


@pytest.mark.asyncio
async def test_fetch_attaches_cookie_and_referer(fake_oorep):
    fake_oorep.add(f"{REMOTE_URL}/api/lookup_rep", httpx.Response(200, json={"ok": True}))
    session = _session(fake_oorep)

    resp = await session.fetch("/api/lookup_rep", params={"symptom": "head"})

    assert resp.status_code == 200
    sent = fake_oorep.requests[-1]
    assert sent.headers["cookie"] == "csrfCookie=csrf-1; PLAY_SESSION=play-1"
    assert sent.headers["referer"] == REMOTE_URL
    assert sent.headers["accept"] == "application/json"
    assert sent.url.params["symptom"] == "head"


@pytest.mark.asyncio
async def test_fetch_caller_headers_override_defaults(fake_oorep):
    fake_oorep.add(f"{REMOTE_URL}/api/lookup_rep", httpx.Response(200, json={}))
    session = _session(fake_oorep)

    await session.fetch("/api/lookup_rep", headers={"Accept": "text/plain"})

    assert fake_oorep.requests[-1].headers["accept"] == "text/plain"


@pytest.mark.asyncio
async def test_fetch_retries_once_after_403(fake_oorep):
    fake_oorep.add(
        f"{REMOTE_URL}/api/lookup_rep",
        httpx.Response(403),
        httpx.Response(200, json={"results": []}),
    )
    session = _session(fake_oorep)
    await session.acquire()
    fake_oorep.api_cookies = ["PLAY_SESSION=play-2"]

    resp = await session.fetch("/api/lookup_rep")

    assert resp.status_code == 200
    # initial handshake + exactly one refresh
    assert fake_oorep.handshakes() == 2
    assert fake_oorep.calls[f"{REMOTE_URL}/api/lookup_rep"] == 2
    assert fake_oorep.requests[-1].headers["cookie"] == "csrfCookie=csrf-1; PLAY_SESSION=play-2"


@pytest.mark.asyncio
async def test_fetch_returns_second_403_without_third_attempt(fake_oorep):
    fake_oorep.add(f"{REMOTE_URL}/api/lookup_rep", httpx.Response(403))
    session = _session(fake_oorep)

    resp = await session.fetch("/api/lookup_rep")

    assert resp.status_code == 403
    assert fake_oorep.calls[f"{REMOTE_URL}/api/lookup_rep"] == 2
    assert fake_oorep.handshakes() == 2


@pytest.mark.asyncio
async def test_fetch_401_also_triggers_refresh(fake_oorep):
    fake_oorep.add(
        f"{REMOTE_URL}/api/lookup_rep",
        httpx.Response(401),
        httpx.Response(200, json={}),
    )
    session = _session(fake_oorep)

    resp = await session.fetch("/api/lookup_rep")

    assert resp.status_code == 200
    assert fake_oorep.handshakes() == 2


@pytest.mark.asyncio
async def test_other_errors_are_not_retried(fake_oorep):
    fake_oorep.add(f"{REMOTE_URL}/api/lookup_rep", httpx.Response(500))
    session = _session(fake_oorep)

    resp = await session.fetch("/api/lookup_rep")

    assert resp.status_code == 500
    assert fake_oorep.calls[f"{REMOTE_URL}/api/lookup_rep"] == 1
    assert fake_oorep.handshakes() == 1


@pytest.mark.asyncio
async def test_concurrent_acquire_shares_one_handshake(fake_oorep):
    session = _session(fake_oorep)

    results = await asyncio.gather(*(session.acquire() for _ in range(5)))

    assert len(set(results)) == 1
    assert fake_oorep.handshakes() == 1


@pytest.mark.asyncio
async def test_invalidate_forces_new_handshake(fake_oorep):
    session = _session(fake_oorep)
    await session.acquire()

    session.invalidate()
    assert session.state is SessionState.NO_SESSION
    await session.acquire()

    assert fake_oorep.handshakes() == 2


@pytest.mark.asyncio
async def test_xsrf_named_cookie_satisfies_first_step(fake_oorep):
    fake_oorep.homepage_cookies = ["XSRF-TOKEN=x-1; Path=/"]
    session = _session(fake_oorep)

    cookies = await session.acquire()

    assert cookies == "XSRF-TOKEN=x-1; PLAY_SESSION=play-1"
    assert fake_oorep.requests[1].headers["cookie"] == "XSRF-TOKEN=x-1"
