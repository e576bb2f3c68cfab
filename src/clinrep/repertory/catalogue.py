from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List


@dataclass(frozen=True)
class RepertoryInfo:
    value: str
    label: str
    language: str
    source: str  # "local" (self-hosted OOREP) or "remote" (oorep.com)


REPERTORIES: tuple[RepertoryInfo, ...] = (
    # served by the self-hosted instance
    RepertoryInfo("publicum", "Publicum (English)", "en", "local"),
    RepertoryInfo("kent-de", "Kent (Deutsch)", "de", "local"),
    # only on oorep.com
    RepertoryInfo("kent", "Kent (English)", "en", "remote"),
    RepertoryInfo("boger", "Boger", "en", "remote"),
    RepertoryInfo("bogboen", "Boenninghausen (Boger)", "en", "remote"),
    RepertoryInfo("hering", "Hering", "en", "remote"),
    RepertoryInfo("robasif", "Roberts - Sensations As If", "en", "remote"),
    RepertoryInfo("tylercold", "Tyler - Common Cold", "en", "remote"),
    RepertoryInfo("boen", "Boenninghausen", "en", "remote"),
    RepertoryInfo("bogsk", "Boger Synoptic Key", "en", "remote"),
    RepertoryInfo("bogsk-de", "Boger Synoptic Key (Deutsch)", "de", "remote"),
    RepertoryInfo("cowpert-de", "Cowperthwaite (Deutsch)", "de", "remote"),
    RepertoryInfo("dorcsi-de", "Dorcsi (Deutsch)", "de", "remote"),
)

_BY_VALUE: Dict[str, RepertoryInfo] = {r.value: r for r in REPERTORIES}

REMOTE_REPERTORIES = frozenset(r.value for r in REPERTORIES if r.source == "remote")


def is_remote_repertory(repertory: str) -> bool:
    """Unknown identifiers go to the local instance."""
    return repertory in REMOTE_REPERTORIES


def repertory_label(repertory: str) -> str:
    info = _BY_VALUE.get(repertory)
    return info.label if info else repertory


def catalogue() -> List[dict]:
    return [asdict(r) for r in REPERTORIES]
