"""
scripts/smoke.py: HTTP-level smoke test for the ClinRep API.

Runs the app in-process through ASGITransport. By default the OOREP
upstreams are simulated with httpx.MockTransport; pass --live to talk to
the configured OOREP instance and www.oorep.com for real.

Usage:
    python scripts/smoke.py [--live] [--repertory kent] [--symptom "head pain"]

Exit code: 0 = all green, 1 = any failure.
"""
from __future__ import annotations

import argparse
import asyncio
import sys

import httpx

from clinrep.api.main import build_repertory_client, create_app
from clinrep.config import get_settings

RESULTS: list[dict] = []

_FAKE_RUBRIC = {
    "rubric": {"id": 1, "fullPath": "Head, pain"},
    "repertoryAbbrev": "kent",
    "weightedRemedies": [
        {"remedy": {"nameAbbrev": "Bell", "nameLong": "Belladonna"}, "weight": 3},
        {"remedy": {"nameAbbrev": "Nux-v", "nameLong": "Nux vomica"}, "weight": 2},
    ],
}


def _pass(name: str, detail: str = "") -> None:
    RESULTS.append({"name": name, "status": "PASS", "detail": detail})
    print(f"  PASS  {name}" + (f": {detail}" if detail else ""))


def _fail(name: str, detail: str = "") -> None:
    RESULTS.append({"name": name, "status": "FAIL", "detail": detail})
    print(f"  FAIL  {name}" + (f": {detail}" if detail else ""))


def _fake_upstream(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/":
        return httpx.Response(200, headers=[("set-cookie", "csrfCookie=smoke; Path=/")], text="<html/>")
    if path == "/api/available_remedies":
        return httpx.Response(
            200,
            headers=[("set-cookie", "PLAY_SESSION=smoke; Path=/; HttpOnly")],
            json=[{"nameAbbrev": "Bell"}],
        )
    if path == "/api/lookup_rep":
        page = {"totalNumberOfResults": 1, "totalNumberOfPages": 1, "currPage": 1, "results": [_FAKE_RUBRIC]}
        return httpx.Response(200, json=[page, []])
    return httpx.Response(404)


async def run_smoke(live: bool, repertory: str, symptom: str) -> bool:
    print(f"\n=== ClinRep Smoke Tests ({'live' if live else 'simulated'} upstream) ===\n")

    settings = get_settings()
    upstream = None if live else httpx.MockTransport(_fake_upstream)
    app = create_app(settings=settings, repertory=build_repertory_client(settings, transport=upstream))
    transport = httpx.ASGITransport(app=app)

    async with httpx.AsyncClient(transport=transport, base_url="http://testserver", timeout=60) as client:
        # ── 1. Health ──────────────────────────────────────────────────────
        print("1. Health check")
        try:
            resp = await client.get("/health/ready")
            if resp.status_code == 200:
                _pass("GET /health/ready", f"session={resp.json()['session']}")
            else:
                _fail("GET /health/ready", f"status={resp.status_code} body={resp.text[:200]}")
        except Exception as exc:
            _fail("GET /health/ready", str(exc))

        # ── 2. Search ──────────────────────────────────────────────────────
        print("2. Rubric search")
        results: list[dict] = []
        try:
            resp = await client.get(
                "/api/repertory/search",
                params={"symptom": symptom, "repertory": repertory},
            )
            if resp.status_code == 200:
                data = resp.json()["data"]
                results = data["results"]
                _pass("GET /api/repertory/search", f"totalResults={data['totalResults']}")
            else:
                _fail("GET /api/repertory/search", f"status={resp.status_code} body={resp.text[:200]}")
        except Exception as exc:
            _fail("GET /api/repertory/search", str(exc))

        # ── 3. Analysis ────────────────────────────────────────────────────
        print("3. Analysis of the first rubrics")
        selected = [{**r, "importance": 1} for r in results[:5]]
        try:
            resp = await client.post("/api/repertory/analysis", json={"rubrics": selected})
            if resp.status_code == 200:
                remedies = resp.json()["data"]["remedies"]
                top = remedies[0]["abbrev"] if remedies else "-"
                _pass("POST /api/repertory/analysis", f"remedies={len(remedies)} top={top}")
            else:
                _fail("POST /api/repertory/analysis", f"status={resp.status_code} body={resp.text[:200]}")
        except Exception as exc:
            _fail("POST /api/repertory/analysis", str(exc))

        # ── 4. Export ──────────────────────────────────────────────────────
        print("4. Sheet export")
        try:
            resp = await client.post(
                "/api/repertory/analysis/export",
                json={"rubrics": selected, "repertory": repertory},
            )
            if resp.status_code == 200 and resp.text.startswith("REPERTORY SHEET ANALYSIS"):
                _pass("POST /api/repertory/analysis/export", resp.headers.get("content-disposition", ""))
            else:
                _fail("POST /api/repertory/analysis/export", f"status={resp.status_code} body={resp.text[:200]}")
        except Exception as exc:
            _fail("POST /api/repertory/analysis/export", str(exc))

    await app.state.repertory.aclose()

    # ── Summary ────────────────────────────────────────────────────────────
    total = len(RESULTS)
    passed = sum(1 for r in RESULTS if r["status"] == "PASS")
    failed = total - passed

    print(f"\n=== Smoke Summary: {passed}/{total} passed ===")
    if failed:
        print(f"FAILED checks ({failed}):")
        for r in RESULTS:
            if r["status"] == "FAIL":
                print(f"  - {r['name']}: {r['detail']}")
        return False

    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="ClinRep smoke test")
    parser.add_argument("--live", action="store_true", help="use the real OOREP upstreams")
    parser.add_argument("--repertory", default="kent")
    parser.add_argument("--symptom", default="head pain")
    args = parser.parse_args()

    ok = asyncio.run(run_smoke(args.live, args.repertory, args.symptom))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
