"""
src/clinrep/analysis/engine.py

Remedy analysis over a practitioner's working set of rubrics.

Each selected rubric carries an importance multiplier (1..3). The ranking is
recomputed from scratch on every call:

    total_score = sum(weight * importance)   over every entry of the remedy
    occurrences = number of selected rubrics containing the remedy
    max_weight  = highest raw grade seen
    coverage    = round(100 * occurrences / len(working_set)), half up

Order: occurrences desc, total_score desc, first appearance. A remedy that
runs through more of the case always beats a stronger single hit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

import pandas as pd

from clinrep.repertory.models import Rubric, WeightedRemedy

__all__ = [
    "IMPORTANCE_LEVELS",
    "UNKNOWN_REMEDY",
    "InvalidImportance",
    "SelectedRubric",
    "RubricDetail",
    "RemedyScore",
    "AnalysisWarning",
    "RemedyAnalysis",
    "WorkingSet",
    "compute_ranking",
    "analyze",
]

_log = logging.getLogger("clinrep.analysis")

IMPORTANCE_LEVELS: Tuple[int, ...] = (1, 2, 3)
DEFAULT_IMPORTANCE = 1
UNKNOWN_REMEDY = "Unknown"


class InvalidImportance(ValueError):
    def __init__(self, importance: object) -> None:
        super().__init__(f"importance must be one of {IMPORTANCE_LEVELS}, got {importance!r}")
        self.importance = importance


def validate_importance(importance: object) -> int:
    if isinstance(importance, bool) or importance not in IMPORTANCE_LEVELS:
        raise InvalidImportance(importance)
    return int(importance)  # type: ignore[arg-type]


# ── Data ─────────────────────────────────────────────────────────────────────

@dataclass
class SelectedRubric:
    rubric: Rubric
    importance: int = DEFAULT_IMPORTANCE

    def __post_init__(self) -> None:
        self.importance = validate_importance(self.importance)

    @property
    def id(self) -> str:
        return self.rubric.id


@dataclass(frozen=True)
class RubricDetail:
    rubric_path: str
    weight: int
    rubric_index: int


@dataclass(frozen=True)
class RemedyScore:
    abbrev: str
    name: str
    total_score: int
    occurrences: int
    coverage: int
    max_weight: int
    rubric_details: Tuple[RubricDetail, ...] = ()


@dataclass(frozen=True)
class AnalysisWarning:
    code: str
    rubric_id: str
    rubric_index: int
    message: str


@dataclass(frozen=True)
class RemedyAnalysis:
    ranking: List[RemedyScore]
    warnings: List[AnalysisWarning]
    rubric_count: int


# ── Computation ──────────────────────────────────────────────────────────────

def _remedy_labels(wr: WeightedRemedy) -> Tuple[str, str, bool]:
    """(abbrev, display name, known) for one weighted remedy entry."""
    remedy = wr.remedy
    abbrev = remedy.name_abbrev if remedy else None
    long_name = remedy.name_long if remedy else None
    if abbrev:
        return abbrev, long_name or abbrev, True
    return UNKNOWN_REMEDY, long_name or UNKNOWN_REMEDY, False


def _coverage(occurrences: int, total: int) -> int:
    # integer half-up rounding of 100 * occurrences / total
    return (200 * occurrences + total) // (2 * total)


def analyze(selected: Sequence[SelectedRubric]) -> RemedyAnalysis:
    """Rank candidate remedies for the given working set."""
    total = len(selected)
    if total == 0:
        return RemedyAnalysis(ranking=[], warnings=[], rubric_count=0)

    rows: List[dict] = []
    details: Dict[str, List[RubricDetail]] = {}
    warnings: List[AnalysisWarning] = []

    for rubric_index, entry in enumerate(selected):
        path = entry.rubric.full_path
        for wr in entry.rubric.weighted_remedies:
            abbrev, name, known = _remedy_labels(wr)
            if not known:
                warnings.append(
                    AnalysisWarning(
                        code="unknown_remedy",
                        rubric_id=entry.id,
                        rubric_index=rubric_index,
                        message=f"remedy without abbreviation in rubric {path or entry.id!r}",
                    )
                )
            rows.append(
                {
                    "abbrev": abbrev,
                    "name": name,
                    "weight": int(wr.weight),
                    "score": int(wr.weight) * entry.importance,
                    "rubric_index": rubric_index,
                    "order": len(rows),
                }
            )
            details.setdefault(abbrev, []).append(
                RubricDetail(rubric_path=path, weight=int(wr.weight), rubric_index=rubric_index)
            )

    if warnings:
        _log.warning(
            "%d remedy entries without abbreviation labelled %r",
            len(warnings),
            UNKNOWN_REMEDY,
            extra={"event": "analysis_unknown_remedy"},
        )

    if not rows:
        return RemedyAnalysis(ranking=[], warnings=warnings, rubric_count=total)

    df = pd.DataFrame(rows)
    grouped = (
        df.groupby("abbrev", sort=False)
        .agg(
            name=("name", "first"),
            total_score=("score", "sum"),
            occurrences=("rubric_index", "nunique"),
            max_weight=("weight", "max"),
            first_seen=("order", "min"),
        )
        .reset_index()
        .sort_values(
            by=["occurrences", "total_score", "first_seen"],
            ascending=[False, False, True],
            kind="mergesort",
        )
    )

    ranking = [
        RemedyScore(
            abbrev=str(r.abbrev),
            name=str(r.name),
            total_score=int(r.total_score),
            occurrences=int(r.occurrences),
            coverage=_coverage(int(r.occurrences), total),
            max_weight=int(r.max_weight),
            rubric_details=tuple(details[str(r.abbrev)]),
        )
        for r in grouped.itertuples(index=False)
    ]
    return RemedyAnalysis(ranking=ranking, warnings=warnings, rubric_count=total)


def compute_ranking(selected: Sequence[SelectedRubric]) -> List[RemedyScore]:
    return analyze(selected).ranking


# ── Working set ──────────────────────────────────────────────────────────────

@dataclass
class WorkingSet:
    """Rubrics a practitioner selected for one case, in insertion order."""

    entries: List[SelectedRubric] = field(default_factory=list)

    @classmethod
    def from_entries(cls, entries: Iterable[Tuple[Rubric, int]]) -> "WorkingSet":
        """Rebuild a working set; later duplicates of a rubric id are dropped."""
        ws = cls()
        for rubric, importance in entries:
            if ws.add(rubric):
                ws.set_importance(rubric.id, importance)
        return ws

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[SelectedRubric]:
        return iter(self.entries)

    def __contains__(self, rubric_id: object) -> bool:
        return self._find(rubric_id) is not None

    def _find(self, rubric_id: object) -> SelectedRubric | None:
        # ids are stored as strings; OOREP sends integers
        key = str(rubric_id)
        for entry in self.entries:
            if entry.id == key:
                return entry
        return None

    def add(self, rubric: Rubric) -> bool:
        """Append with importance 1; no-op (False) if the id is already present."""
        if self._find(rubric.id) is not None:
            return False
        self.entries.append(SelectedRubric(rubric=rubric))
        return True

    def remove(self, rubric_id: str | int) -> bool:
        entry = self._find(rubric_id)
        if entry is None:
            return False
        self.entries.remove(entry)
        return True

    def set_importance(self, rubric_id: str | int, importance: int) -> bool:
        """Raises InvalidImportance for values outside 1..3, even for unknown ids."""
        importance = validate_importance(importance)
        entry = self._find(rubric_id)
        if entry is None:
            return False
        entry.importance = importance
        return True

    def clear(self) -> None:
        self.entries.clear()

    def ranking(self) -> List[RemedyScore]:
        return compute_ranking(self.entries)

    def analyze(self) -> RemedyAnalysis:
        return analyze(self.entries)
