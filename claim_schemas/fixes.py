"""Fix suggestions expressed as JSON-patch style operations on a claim."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

from .claim import Claim
from .validation import ValidationResult


class PatchOperation(BaseModel):
    op: Literal["add", "replace", "remove"]
    path: str
    value: Any = None

    model_config = {"frozen": True}


class ClaimFix(BaseModel):
    issue_id: str = ""
    description: str = ""
    patches: List[PatchOperation] = Field(default_factory=list)
    rule_citation: Optional[str] = None
    reasoning: str = ""

    model_config = {"frozen": True, "extra": "ignore"}


class ClaimFixResult(BaseModel):
    original_claim: Claim
    fixed_claim: Claim
    fixes_applied: List[ClaimFix] = Field(default_factory=list)
    validation: ValidationResult
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["ClaimFix", "ClaimFixResult", "PatchOperation"]
