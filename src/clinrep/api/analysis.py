"""
Remedy analysis endpoints.

The working set lives in the practitioner's browser; every call posts the
whole set and the ranking is rebuilt from scratch.

POST /api/repertory/analysis         ranked remedy table
POST /api/repertory/analysis/export  plain-text repertory sheet
"""
from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from clinrep.analysis.engine import WorkingSet
from clinrep.analysis.export import render_repertory_sheet, sheet_filename
from clinrep.api.deps import get_app_settings
from clinrep.api.schemas import (
    AnalysisEnvelope,
    AnalysisOut,
    AnalysisRequest,
    AnalysisWarningOut,
    ExportRequest,
    RemedyScoreOut,
)
from clinrep.config import Settings

router = APIRouter(prefix="/api/repertory/analysis", tags=["analysis"])


def _working_set(payload: AnalysisRequest) -> WorkingSet:
    return WorkingSet.from_entries((item.rubric, item.importance) for item in payload.rubrics)


@router.post("", response_model=AnalysisEnvelope)
async def analyze_working_set(payload: AnalysisRequest) -> AnalysisEnvelope:
    ws = _working_set(payload)
    result = ws.analyze()
    return AnalysisEnvelope(
        data=AnalysisOut(
            rubric_count=result.rubric_count,
            remedies=[RemedyScoreOut.from_score(s) for s in result.ranking],
            warnings=[AnalysisWarningOut.from_warning(w) for w in result.warnings],
        ),
    )


@router.post("/export", response_class=PlainTextResponse)
async def export_repertory_sheet(
    payload: ExportRequest,
    settings: Settings = Depends(get_app_settings),
) -> PlainTextResponse:
    ws = _working_set(payload)
    # one timestamp for both the sheet body and the filename
    now = datetime.now(ZoneInfo(settings.SHEET_TIMEZONE))
    text = render_repertory_sheet(
        ws.entries,
        payload.repertory,
        top_n=payload.top_n or settings.SHEET_TOP_N,
        now=now,
        tz=settings.SHEET_TIMEZONE,
    )
    filename = sheet_filename(now, tz=settings.SHEET_TIMEZONE)
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
