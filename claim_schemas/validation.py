"""Validation issue and result models.

Rule violations are returned as data, never raised.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCode(str, Enum):
    """Stable taxonomy keys for validation issues."""

    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_CPT_CODE = "INVALID_CPT_CODE"
    INVALID_ICD_CODE = "INVALID_ICD_CODE"
    NCCI_CONFLICT = "NCCI_CONFLICT"
    MISSING_MODIFIER_25 = "MISSING_MODIFIER_25"
    MISSING_PRIOR_AUTH = "MISSING_PRIOR_AUTH"


def _issue_id() -> str:
    return f"issue_{uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ValidationIssue(BaseModel):
    id: str = Field(default_factory=_issue_id)
    severity: IssueSeverity
    code: str
    message: str
    field: Optional[str] = None
    suggested_fix: Optional[str] = None
    rule_reference: Optional[str] = None
    affected_codes: Optional[List[str]] = None

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    issues: List[ValidationIssue] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True, "extra": "ignore"}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not any(issue.severity == IssueSeverity.ERROR for issue in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == IssueSeverity.ERROR]


__all__ = [
    "IssueCode",
    "IssueSeverity",
    "ValidationIssue",
    "ValidationResult",
]
