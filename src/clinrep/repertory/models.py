"""
Repertory data as returned by OOREP (``/api/lookup_rep``).

Field names follow the upstream JSON (camelCase) through aliases so the
models can be fed the raw payload and serialized back unchanged.
"""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Remedy(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    name_abbrev: Optional[str] = Field(default=None, alias="nameAbbrev")
    name_long: Optional[str] = Field(default=None, alias="nameLong")


class WeightedRemedy(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    remedy: Optional[Remedy] = None
    weight: int = Field(default=1, ge=1, le=5)  # OOREP grade


class Rubric(BaseModel):
    """A repertory rubric with its graded remedies (weight 1..5)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str
    full_path: str = Field(default="", alias="fullPath")
    weighted_remedies: List[WeightedRemedy] = Field(default_factory=list, alias="weightedRemedies")

    @model_validator(mode="before")
    @classmethod
    def flatten_lookup_result(cls, data: Any) -> Any:
        # lookup_rep results look like {"rubric": {...}, "weightedRemedies": [...]}
        if isinstance(data, dict) and isinstance(data.get("rubric"), dict):
            flat = {k: v for k, v in data.items() if k != "rubric"}
            flat.update(data["rubric"])
            return flat
        return data

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("rubric id is required")
        return str(v)

    @field_validator("weighted_remedies", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return v or []


class SearchPage(BaseModel):
    """One page of repertory search results."""

    model_config = ConfigDict(populate_by_name=True)

    results: List[dict[str, Any]] = Field(default_factory=list)
    total_results: int = Field(default=0, alias="totalResults")
    total_pages: int = Field(default=1, alias="totalPages")
    current_page: int = Field(default=1, alias="currentPage")
    has_more: bool = Field(default=False, alias="hasMore")
    remedy_stats: List[Any] = Field(default_factory=list, alias="remedyStats")

    @classmethod
    def from_upstream(cls, payload: Any, requested_page: int = 1) -> "SearchPage":
        """Normalize ``[searchResults, remedyStats]`` (or a bare object)."""
        if isinstance(payload, list):
            search = payload[0] if payload else {}
            stats = payload[1] if len(payload) > 1 and payload[1] else []
        else:
            search = payload
            stats = []
        search = search if isinstance(search, dict) else {}

        current = search.get("currPage") or requested_page
        pages = search.get("totalNumberOfPages") or 1
        return cls(
            results=search.get("results") or [],
            total_results=search.get("totalNumberOfResults") or 0,
            total_pages=pages,
            current_page=current,
            has_more=(search.get("currPage") or 1) < pages,
            remedy_stats=stats,
        )
