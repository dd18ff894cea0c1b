"""Code mapping models."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .entities import ExtractedEntities

MatchSource = Literal["exact", "keyword", "fuzzy"]
CodeKind = Literal["cpt", "icd"]


class MappedCode(BaseModel):
    """A candidate billing code for a piece of free text."""

    code: str
    description: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: MatchSource
    matched_term: Optional[str] = None

    model_config = {"frozen": True}


class CodeMappingResult(BaseModel):
    cpt_codes: List[MappedCode] = Field(default_factory=list)
    icd_codes: List[MappedCode] = Field(default_factory=list)
    entities: ExtractedEntities = Field(default_factory=ExtractedEntities)


__all__ = ["CodeKind", "CodeMappingResult", "MappedCode", "MatchSource"]
