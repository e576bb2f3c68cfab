from __future__ import annotations

from collections import Counter, deque
from typing import Callable, Deque, Dict, List

import httpx
import pytest

from clinrep.config import Settings

REMOTE_URL = "https://oorep.test"
LOCAL_URL = "http://oorep-local.test"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeOorep:
    """In-memory stand-in for oorep.com and a self-hosted OOREP instance.

    Handshake endpoints hand out cookies; everything else answers from
    ``routes`` (path -> queue of responses, the last one repeats).
    """

    def __init__(self) -> None:
        self.calls: Counter = Counter()
        self.requests: List[httpx.Request] = []
        self.homepage_cookies: List[str] = ["csrfCookie=csrf-1; Path=/; HttpOnly"]
        self.api_cookies: List[str] = ["PLAY_SESSION=play-1; Path=/; HttpOnly"]
        self.homepage_status = 200
        self.routes: Dict[str, Deque[httpx.Response]] = {}
        self.raise_on: Dict[str, Callable[[httpx.Request], Exception]] = {}

    def add(self, path: str, *responses: httpx.Response) -> None:
        self.routes.setdefault(path, deque()).extend(responses)

    def handshakes(self) -> int:
        return self.calls[f"{REMOTE_URL}/"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        self.calls[key] += 1
        self.requests.append(request)

        if key in self.raise_on:
            raise self.raise_on[key](request)

        if key == f"{REMOTE_URL}/":
            headers = [("set-cookie", c) for c in self.homepage_cookies]
            return httpx.Response(self.homepage_status, headers=headers, text="<html></html>")

        if key == f"{REMOTE_URL}/api/available_remedies":
            headers = [("set-cookie", c) for c in self.api_cookies]
            return httpx.Response(200, headers=headers, json=[])

        queue = self.routes.get(key)
        if not queue:
            return httpx.Response(404, json={"error": "not found"})
        template = queue.popleft() if len(queue) > 1 else queue[0]
        # a Response instance can only be sent once
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def weighted(abbrev: str | None, weight: int, long_name: str | None = None) -> dict:
    remedy: dict = {}
    if abbrev is not None:
        remedy["nameAbbrev"] = abbrev
    if long_name is not None:
        remedy["nameLong"] = long_name
    return {"remedy": remedy, "weight": weight}


def lookup_result(rubric_id: int, path: str, *remedies: dict) -> dict:
    return {
        "rubric": {"id": rubric_id, "fullPath": path},
        "repertoryAbbrev": "publicum",
        "weightedRemedies": list(remedies),
    }


@pytest.fixture
def fake_oorep() -> FakeOorep:
    return FakeOorep()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        OOREP_API_URL=LOCAL_URL,
        OOREP_REMOTE_URL=REMOTE_URL,
        OOREP_ENABLED=True,
        _env_file=None,
    )
