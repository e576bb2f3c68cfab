"""
Repertory endpoints.

GET /api/repertory/search          rubric search (local instance or oorep.com)
GET /api/repertory/remedies        remedy list, cached for an hour
GET /api/repertory/materia-medica  materia medica lookup
GET /api/repertory/config          available repertories / materia medicas
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from clinrep.api.deps import get_repertory_client
from clinrep.api.schemas import Envelope, RemediesEnvelope
from clinrep.repertory.client import MateriaMedicaQuery, RepertoryClient, SearchQuery

router = APIRouter(prefix="/api/repertory", tags=["repertory"])


def _require_symptom(symptom: str) -> str:
    if not symptom.strip():
        raise HTTPException(status_code=400, detail="Search term is required")
    return symptom


@router.get("/search", response_model=Envelope)
async def search_repertory(
    symptom: str = Query("", max_length=512),
    repertory: str = Query("publicum", max_length=64),
    page: int = Query(1, ge=1),
    remedy_string: str = Query("", alias="remedyString", max_length=64),
    min_weight: int = Query(1, alias="minWeight", ge=1, le=4),
    get_remedies: int = Query(1, alias="getRemedies", ge=0, le=1),
    client: RepertoryClient = Depends(get_repertory_client),
) -> Envelope:
    query = SearchQuery(
        symptom=_require_symptom(symptom),
        repertory=repertory,
        page=page,
        remedy_string=remedy_string,
        min_weight=min_weight,
        get_remedies=bool(get_remedies),
    )
    result = await client.search(query)
    return Envelope(
        data=result.model_dump(by_alias=True),
        meta={"repertory": repertory, "searchTerm": symptom, "page": page},
    )


@router.get("/remedies", response_model=RemediesEnvelope)
async def list_remedies(client: RepertoryClient = Depends(get_repertory_client)) -> RemediesEnvelope:
    data, cached = await client.available_remedies()
    return RemediesEnvelope(data=data, cached=cached)


@router.get("/materia-medica", response_model=Envelope)
async def search_materia_medica(
    symptom: str = Query("", max_length=512),
    materiamedica: str = Query("boericke", max_length=64),
    page: int = Query(1, ge=1),
    remedy_string: str = Query("", alias="remedyString", max_length=64),
    client: RepertoryClient = Depends(get_repertory_client),
) -> Envelope:
    query = MateriaMedicaQuery(
        symptom=_require_symptom(symptom),
        materiamedica=materiamedica,
        page=page,
        remedy_string=remedy_string,
    )
    data = await client.lookup_materia_medica(query)
    return Envelope(
        data=data,
        meta={"materiamedica": materiamedica, "searchTerm": symptom, "page": page},
    )


@router.get("/config", response_model=Envelope)
async def repertory_config(client: RepertoryClient = Depends(get_repertory_client)) -> Envelope:
    return Envelope(data=await client.configuration())
