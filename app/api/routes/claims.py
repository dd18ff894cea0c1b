"""Claim workflow endpoints: extraction, mapping, building, validation, fixes, submission.

Each endpoint is a thin wrapper around ``ClaimsService``; request bodies are
validated once here and passed on as frozen models.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_claims_service, get_runtime
from app.api.schemas import (
    BuildClaimRequest,
    ExtractEntitiesRequest,
    FixClaimRequest,
    LogActionRequest,
    MapCodesRequest,
    SubmitClaimRequest,
    SuccessResponse,
    ValidateClaimRequest,
    ok,
)
from app.coder.application.claims_service import ClaimsService
from app.processor.runtime import ProcessorRuntime
from claim_schemas.claim import Claim
from claim_schemas.coding import CodeMappingResult
from claim_schemas.entities import ExtractedEntities
from claim_schemas.fixes import ClaimFixResult
from claim_schemas.records import AuditLogEntry, ClaimRecord, PayerResponse
from claim_schemas.validation import ValidationResult

router = APIRouter(tags=["claims"])
_service_dep = Depends(get_claims_service)
_runtime_dep = Depends(get_runtime)


@router.post("/extract_entities", response_model=SuccessResponse[ExtractedEntities])
async def extract_entities(
    payload: ExtractEntitiesRequest,
    service: ClaimsService = _service_dep,
) -> SuccessResponse[ExtractedEntities]:
    return ok(await service.extract_entities(payload.clinician_note))


@router.post("/map_codes", response_model=SuccessResponse[CodeMappingResult])
async def map_codes(
    payload: MapCodesRequest,
    service: ClaimsService = _service_dep,
) -> SuccessResponse[CodeMappingResult]:
    return ok(service.map_codes(payload.entities))


@router.post("/build_claim", response_model=SuccessResponse[Claim])
async def build_claim(
    payload: BuildClaimRequest,
    service: ClaimsService = _service_dep,
) -> SuccessResponse[Claim]:
    claim = service.build_claim(
        payload.mapping_result,
        patient=payload.patient_info,
        provider=payload.provider_info,
        service_date=payload.service_date,
        place_of_service=payload.place_of_service,
    )
    return ok(claim)


@router.post("/validate_claim", response_model=SuccessResponse[ValidationResult])
async def validate_claim(
    payload: ValidateClaimRequest,
    service: ClaimsService = _service_dep,
) -> SuccessResponse[ValidationResult]:
    return ok(service.validate_claim(payload.claim))


@router.post("/fix_claim", response_model=SuccessResponse[ClaimFixResult])
async def fix_claim(
    payload: FixClaimRequest,
    service: ClaimsService = _service_dep,
) -> SuccessResponse[ClaimFixResult]:
    return ok(await service.fix_claim(payload.claim, payload.validation_issues))


@router.post("/submit_claim", response_model=SuccessResponse[PayerResponse])
async def submit_claim(
    payload: SubmitClaimRequest,
    service: ClaimsService = _service_dep,
) -> SuccessResponse[PayerResponse]:
    return ok(service.submit_claim(payload.claim))


@router.post("/log_action", response_model=SuccessResponse[AuditLogEntry])
async def log_action(
    payload: LogActionRequest,
    runtime: ProcessorRuntime = _runtime_dep,
) -> SuccessResponse[AuditLogEntry]:
    entry = AuditLogEntry(
        action=payload.action,
        claim_id=payload.claim_id,
        work_item_id=payload.work_item_id,
        details=payload.details,
        actor=payload.actor,
    )
    return ok(await runtime.audit_log.append(entry))


@router.get("/logs", response_model=SuccessResponse[List[AuditLogEntry]])
async def list_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    runtime: ProcessorRuntime = _runtime_dep,
) -> SuccessResponse[List[AuditLogEntry]]:
    return ok(runtime.audit_log.list_all(limit=limit))


@router.get("/claims", response_model=SuccessResponse[List[ClaimRecord]])
async def list_claims(runtime: ProcessorRuntime = _runtime_dep) -> SuccessResponse[List[ClaimRecord]]:
    return ok(runtime.claim_records.list_all())


__all__ = ["router"]
