"""
src/clinrep/repertory/client.py

Repertory lookups against OOREP.

Local repertories (``publicum``, ``kent-de``) and materia medica are served
by a self-hosted OOREP instance without authentication. Remote repertories
are only available on oorep.com and go through ``RepertorySession``.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Tuple

import httpx

from clinrep.repertory.catalogue import catalogue, is_remote_repertory
from clinrep.repertory.errors import UpstreamError
from clinrep.repertory.models import SearchPage
from clinrep.repertory.session import RepertorySession

_log = logging.getLogger("clinrep.repertory.client")

_JSON_HEADERS = {"Accept": "application/json"}


@dataclass(frozen=True)
class SearchQuery:
    """Repertory search parameters.

    ``symptom`` is passed through verbatim: OOREP itself understands the
    ``*`` suffix wildcard, "quoted phrases" and ``-term`` exclusions.
    """

    symptom: str
    repertory: str = "publicum"
    page: int = 1
    remedy_string: str = ""
    min_weight: int = 1
    get_remedies: bool = True

    def params(self) -> Dict[str, str]:
        return {
            "repertory": self.repertory,
            "symptom": self.symptom,
            "page": str(self.page),
            "remedyString": self.remedy_string,
            "minWeight": str(self.min_weight),
            "getRemedies": "1" if self.get_remedies else "0",
        }


@dataclass(frozen=True)
class MateriaMedicaQuery:
    symptom: str
    materiamedica: str = "boericke"
    page: int = 1
    remedy_string: str = ""

    def params(self) -> Dict[str, str]:
        return {
            "materiamedica": self.materiamedica,
            "symptom": self.symptom,
            "page": str(self.page),
            "remedyString": self.remedy_string,
        }


class RepertoryClient:
    def __init__(
        self,
        local_url: str,
        session: RepertorySession,
        *,
        local_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
        remedy_cache_seconds: float = 3600.0,
        enabled: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.local_url = local_url.rstrip("/")
        self.session = session
        self.enabled = enabled
        self.remedy_cache_seconds = remedy_cache_seconds
        self._local = local_client or httpx.AsyncClient(timeout=timeout, transport=transport)
        self._owns_local = local_client is None
        self._clock = clock

        self._remedies: Any = None
        self._remedies_at: float | None = None

    # ── Transport helpers ────────────────────────────────────────────────────

    async def _get_local(self, endpoint: str, params: Mapping[str, str] | None = None) -> httpx.Response:
        try:
            return await self._local.get(f"{self.local_url}{endpoint}", params=params, headers=_JSON_HEADERS)
        except httpx.HTTPError as exc:
            _log.error(
                "OOREP %s unreachable: %s",
                endpoint,
                type(exc).__name__,
                extra={"event": "upstream_unreachable", "path": endpoint},
            )
            raise UpstreamError(UpstreamError.UNREACHABLE, f"OOREP unreachable: {exc}") from exc

    async def _get_remote(self, endpoint: str, params: Mapping[str, str]) -> httpx.Response:
        try:
            return await self.session.fetch(endpoint, params=params)
        except httpx.HTTPError as exc:
            _log.error(
                "oorep.com %s unreachable: %s",
                endpoint,
                type(exc).__name__,
                extra={"event": "upstream_unreachable", "path": endpoint},
            )
            raise UpstreamError(UpstreamError.UNREACHABLE, f"oorep.com unreachable: {exc}") from exc

    @staticmethod
    def _json_or_raise(response: httpx.Response, endpoint: str) -> Any:
        if not response.is_success:
            _log.warning(
                "OOREP %s returned %d",
                endpoint,
                response.status_code,
                extra={"event": "upstream_bad_status", "path": endpoint, "upstream_status": response.status_code},
            )
            raise UpstreamError(
                UpstreamError.BAD_STATUS,
                f"OOREP API error: {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(UpstreamError.BAD_PAYLOAD, "OOREP returned invalid JSON") from exc

    # ── Operations ───────────────────────────────────────────────────────────

    async def search(self, query: SearchQuery) -> SearchPage:
        endpoint = "/api/lookup_rep"
        if is_remote_repertory(query.repertory):
            response = await self._get_remote(endpoint, query.params())
        else:
            response = await self._get_local(endpoint, query.params())

        payload = self._json_or_raise(response, endpoint)
        page = SearchPage.from_upstream(payload, requested_page=query.page)
        _log.info(
            "repertory search returned %d of %d results",
            len(page.results),
            page.total_results,
            extra={"event": "repertory_search", "repertory": query.repertory},
        )
        return page

    async def available_remedies(self) -> Tuple[Any, bool]:
        """Remedy list of the local instance, cached in memory.

        Returns ``(remedies, cached)``.
        """
        now = self._clock()
        if self._remedies is not None and self._remedies_at is not None:
            if now - self._remedies_at < self.remedy_cache_seconds:
                return self._remedies, True

        endpoint = "/api/available_remedies"
        data = self._json_or_raise(await self._get_local(endpoint), endpoint)
        self._remedies = data
        self._remedies_at = now
        return data, False

    async def lookup_materia_medica(self, query: MateriaMedicaQuery) -> Any:
        endpoint = "/api/lookup_mm"
        return self._json_or_raise(await self._get_local(endpoint, query.params()), endpoint)

    async def configuration(self) -> Dict[str, Any]:
        """Available repertories and materia medicas; non-2xx answers degrade to []."""
        reps = await self._get_local("/api/available_rems_and_reps")
        mms = await self._get_local("/api/available_rems_and_mms")
        return {
            "repertories": self._json_or_empty(reps),
            "materiaMedicas": self._json_or_empty(mms),
            "oorepUrl": self.local_url,
            "enabled": self.enabled,
            "catalogue": catalogue(),
        }

    @staticmethod
    def _json_or_empty(response: httpx.Response) -> List[Any] | Any:
        if not response.is_success:
            return []
        try:
            return response.json()
        except ValueError:
            return []

    async def aclose(self) -> None:
        if self._owns_local:
            await self._local.aclose()
        await self.session.aclose()
