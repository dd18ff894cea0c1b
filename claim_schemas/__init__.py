"""Public schema exports for Claims Suite."""

from .citations import PolicyCitation
from .claim import Claim, Patient, ProcedureLine, Provider
from .coding import CodeMappingResult, MappedCode
from .entities import ExtractedEntities
from .fixes import ClaimFix, ClaimFixResult, PatchOperation
from .progress import ProgressEvent
from .records import (
    AuditLogEntry,
    ClaimRecord,
    PayerResponse,
    WorkItem,
    WorkItemStatus,
)
from .validation import IssueCode, IssueSeverity, ValidationIssue, ValidationResult

__all__ = [
    "AuditLogEntry",
    "Claim",
    "ClaimFix",
    "ClaimFixResult",
    "ClaimRecord",
    "CodeMappingResult",
    "ExtractedEntities",
    "IssueCode",
    "IssueSeverity",
    "MappedCode",
    "PatchOperation",
    "Patient",
    "PayerResponse",
    "PolicyCitation",
    "ProcedureLine",
    "ProgressEvent",
    "Provider",
    "ValidationIssue",
    "ValidationResult",
    "WorkItem",
    "WorkItemStatus",
]
