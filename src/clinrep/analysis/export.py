"""
Plain-text repertory sheet: selected rubrics + top ranked remedies.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Sequence
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, select_autoescape

from clinrep.analysis.engine import RemedyScore, SelectedRubric, compute_ranking
from clinrep.repertory.catalogue import repertory_label

DEFAULT_TOP_N = 20
DEFAULT_TIMEZONE = "Asia/Kolkata"

tpl_dir = Path(__file__).parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(tpl_dir)),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
)


def sheet_filename(now: datetime | None = None, tz: str = DEFAULT_TIMEZONE) -> str:
    local = (now or datetime.now(ZoneInfo(tz))).astimezone(ZoneInfo(tz))
    return f"repertory-sheet-{local:%Y-%m-%d}.txt"


def render_repertory_sheet(
    selected: Sequence[SelectedRubric],
    repertory: str,
    *,
    ranking: Sequence[RemedyScore] | None = None,
    top_n: int = DEFAULT_TOP_N,
    now: datetime | None = None,
    tz: str = DEFAULT_TIMEZONE,
) -> str:
    if ranking is None:
        ranking = compute_ranking(selected)
    local = (now or datetime.now(ZoneInfo(tz))).astimezone(ZoneInfo(tz))

    tpl = env.get_template("repertory_sheet.txt.j2")
    text = tpl.render(
        date=f"{local:%d/%m/%Y}",
        repertory=repertory_label(repertory),
        rubrics=list(selected),
        remedies=list(ranking)[:top_n],
        rubric_count=len(selected),
    )
    return text.rstrip("\n")
