# src/clinrep/api/schemas.py
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, conint, model_validator

from clinrep.analysis.engine import AnalysisWarning, RemedyScore
from clinrep.repertory.models import Rubric


class Envelope(BaseModel):
    success: bool = True
    data: Any = None
    meta: Optional[dict[str, Any]] = None


class RemediesEnvelope(Envelope):
    cached: bool = False


# ── Analysis ─────────────────────────────────────────────────────────────────

class SelectedRubricIn(BaseModel):
    rubric: Rubric
    importance: conint(strict=True, ge=1, le=3) = Field(1, description="Rubric importance multiplier")

    @model_validator(mode="before")
    @classmethod
    def accept_search_result_shape(cls, data: Any) -> Any:
        # a raw lookup_rep result with "importance" attached next to it
        if isinstance(data, dict) and "weightedRemedies" in data and isinstance(data.get("rubric"), dict):
            result = dict(data)
            importance = result.pop("importance", 1)
            return {"rubric": result, "importance": importance}
        return data


class AnalysisRequest(BaseModel):
    rubrics: List[SelectedRubricIn] = Field(default_factory=list)


class ExportRequest(AnalysisRequest):
    repertory: str = Field("publicum", max_length=64)
    top_n: Optional[conint(strict=True, ge=1, le=100)] = None


class RubricDetailOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rubric_path: str = Field(alias="rubricPath")
    weight: int
    rubric_index: int = Field(alias="rubricIndex")


class RemedyScoreOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    abbrev: str
    name: str
    total_score: int = Field(alias="totalScore")
    occurrences: int
    coverage: int
    max_weight: int = Field(alias="maxWeight")
    rubric_details: List[RubricDetailOut] = Field(default_factory=list, alias="rubricDetails")

    @classmethod
    def from_score(cls, score: RemedyScore) -> "RemedyScoreOut":
        return cls(
            abbrev=score.abbrev,
            name=score.name,
            total_score=score.total_score,
            occurrences=score.occurrences,
            coverage=score.coverage,
            max_weight=score.max_weight,
            rubric_details=[
                RubricDetailOut(rubric_path=d.rubric_path, weight=d.weight, rubric_index=d.rubric_index)
                for d in score.rubric_details
            ],
        )


class AnalysisWarningOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    rubric_id: str = Field(alias="rubricId")
    rubric_index: int = Field(alias="rubricIndex")
    message: str

    @classmethod
    def from_warning(cls, w: AnalysisWarning) -> "AnalysisWarningOut":
        return cls(code=w.code, rubric_id=w.rubric_id, rubric_index=w.rubric_index, message=w.message)


class AnalysisOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rubric_count: int = Field(alias="rubricCount")
    remedies: List[RemedyScoreOut]
    warnings: List[AnalysisWarningOut] = Field(default_factory=list)


class AnalysisEnvelope(Envelope):
    data: AnalysisOut
