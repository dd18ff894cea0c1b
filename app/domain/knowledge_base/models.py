"""Knowledge Base domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

CodeKind = Literal["cpt", "icd"]


@dataclass(frozen=True)
class CodeEntry:
    """A billable procedure (CPT) or diagnosis (ICD-10) code."""

    code: str
    description: str
    kind: CodeKind
    category: str = ""
    keywords: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NCCIPair:
    """An NCCI procedure-to-procedure edit pair."""

    column1: str
    column2: str
    modifier_allowed: bool
    reason: str = ""
