"""Durable lifecycle records: work items, claim records and the audit log."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .claim import Claim


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _stamp_id(prefix: str) -> str:
    # e.g. NOTE-LQ3K8Z-4F1A9C
    millis = int(utcnow().timestamp() * 1000)
    return f"{prefix}-{_base36(millis)}-{uuid4().hex[:6]}".upper()


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while value:
        value, rem = divmod(value, 36)
        out = digits[rem] + out
    return out or "0"


def new_work_item_id() -> str:
    return _stamp_id("NOTE")


def new_claim_id() -> str:
    return _stamp_id("CLM")


class WorkItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (WorkItemStatus.COMPLETED, WorkItemStatus.FAILED)


class WorkItem(BaseModel):
    """An uploaded clinician note awaiting conversion into a claim.

    Status transitions are owned by the processing pipeline; everything else
    treats a WorkItem as a read-only value and derives updated copies with
    ``model_copy(update=...)``.
    """

    id: str = Field(default_factory=new_work_item_id)
    filename: str
    content: str
    uploaded_at: datetime = Field(default_factory=utcnow)
    status: WorkItemStatus = WorkItemStatus.PENDING
    claim_id: Optional[str] = None
    error: Optional[str] = None
    retry_count: int = Field(default=0, ge=0)
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @property
    def sort_key(self) -> datetime:
        return self.uploaded_at


PayerDecision = Literal["approved", "denied", "pending"]


class PayerResponse(BaseModel):
    decision: PayerDecision
    claim_id: str
    timestamp: datetime = Field(default_factory=utcnow)
    reason: str
    reason_codes: Optional[List[str]] = None
    amount_approved: Optional[float] = None

    model_config = {"frozen": True}


class ClaimRecord(BaseModel):
    """Persisted outcome of processing one work item. Append-only."""

    claim_id: str
    work_item_id: str
    filename: str
    decision: PayerDecision
    amount_approved: Optional[float] = None
    reason: str = ""
    reason_codes: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    patient_name: Optional[str] = None
    provider_name: Optional[str] = None
    claim: Claim

    model_config = {"frozen": True}

    @property
    def id(self) -> str:
        return self.claim_id

    @property
    def sort_key(self) -> datetime:
        return self.created_at


AuditActor = Literal["system", "ai", "user"]


def _audit_id() -> str:
    return f"log_{uuid4().hex[:12]}"


class AuditLogEntry(BaseModel):
    id: str = Field(default_factory=_audit_id)
    timestamp: datetime = Field(default_factory=utcnow)
    action: str
    claim_id: Optional[str] = None
    work_item_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    actor: AuditActor = "system"

    model_config = {"frozen": True}

    @property
    def sort_key(self) -> datetime:
        return self.timestamp


__all__ = [
    "AuditActor",
    "AuditLogEntry",
    "ClaimRecord",
    "PayerDecision",
    "PayerResponse",
    "WorkItem",
    "WorkItemStatus",
    "new_claim_id",
    "new_work_item_id",
    "utcnow",
]
