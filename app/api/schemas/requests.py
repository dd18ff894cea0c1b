"""Request bodies for the claim workflow endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from claim_schemas.claim import Claim, Patient, Provider
from claim_schemas.coding import CodeMappingResult
from claim_schemas.entities import ExtractedEntities
from claim_schemas.records import AuditActor
from claim_schemas.validation import ValidationIssue


class ExtractEntitiesRequest(BaseModel):
    clinician_note: str = Field(min_length=1)


class MapCodesRequest(BaseModel):
    entities: ExtractedEntities


class BuildClaimRequest(BaseModel):
    mapping_result: CodeMappingResult
    patient_info: Optional[Patient] = None
    provider_info: Optional[Provider] = None
    service_date: Optional[str] = None
    place_of_service: Optional[str] = None


class ValidateClaimRequest(BaseModel):
    claim: Claim


class FixClaimRequest(BaseModel):
    claim: Claim
    validation_issues: List[ValidationIssue] = Field(default_factory=list)


class SubmitClaimRequest(BaseModel):
    claim: Claim


class LogActionRequest(BaseModel):
    action: str = Field(min_length=1)
    claim_id: Optional[str] = None
    work_item_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    actor: AuditActor = "system"


__all__ = [
    "BuildClaimRequest",
    "ExtractEntitiesRequest",
    "FixClaimRequest",
    "LogActionRequest",
    "MapCodesRequest",
    "SubmitClaimRequest",
    "ValidateClaimRequest",
]
