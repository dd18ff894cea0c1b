"""Per-work-item note → claim processing.

One attempt runs: entity extraction, code mapping, claim building,
validation, optional automatic fixes with re-validation, and payer
adjudication, all under the per-item timeout. The outcome is then persisted
(claim record, work item, audit log) and broadcast.

Failures carrying a transient ``ErrorKind`` loop the item back to
``pending`` and retry after ``retry_base_delay * 2**retry_count``, or the
provider's ``Retry-After`` when that is longer, until ``max_retries`` is
exhausted. Everything else fails the item immediately. A failure while
persisting a finished claim also fails the item.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from app.coder.application.claims_service import ClaimsService
from app.common.exceptions import ClaimsSuiteError, ErrorKind, PipelineTimeoutError
from app.domain.claim_store.repository import (
    AuditLogRepository,
    ClaimRecordRepository,
    WorkItemRepository,
)
from app.infra.safe_logging import safe_log_name, safe_log_text
from claim_schemas.claim import Claim
from claim_schemas.fixes import ClaimFix
from claim_schemas.progress import TOTAL_STEPS, ProgressEvent, ProgressStatus
from claim_schemas.records import (
    AuditLogEntry,
    ClaimRecord,
    PayerResponse,
    WorkItem,
    WorkItemStatus,
    utcnow,
)
from claim_schemas.validation import ValidationResult
from config.settings import ProcessorSettings
from observability.logging_config import get_logger
from observability.timing import timed

from .progress import ProgressBroadcaster

logger = get_logger("processor.claims")

STEP_MESSAGES: dict[int, str] = {
    1: "Initializing AI workflow and analyzing note structure",
    2: "Extracting diagnoses, procedures, and patient information",
    3: "Mapping medical codes and checking NCCI compliance",
    4: "Validating claim data and applying compliance fixes",
    5: "Saving claim record",
}

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class ClaimOutcome:
    """Result of one successful processing attempt."""

    claim: Claim
    validation: ValidationResult
    payer: PayerResponse
    fixes_applied: list[ClaimFix] = field(default_factory=list)
    initial_issue_count: int = 0


class ClaimProcessor:
    """Drives one work item from note text to a persisted claim record."""

    def __init__(
        self,
        *,
        work_items: WorkItemRepository,
        claim_records: ClaimRecordRepository,
        audit_log: AuditLogRepository,
        broadcaster: ProgressBroadcaster,
        service: ClaimsService,
        settings: ProcessorSettings,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.work_items = work_items
        self.claim_records = claim_records
        self.audit_log = audit_log
        self.broadcaster = broadcaster
        self.service = service
        self.settings = settings
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def _progress(
        self,
        work_item_id: str,
        step: int,
        message: Optional[str] = None,
        status: ProgressStatus = "processing",
    ) -> None:
        self.broadcaster.publish(
            ProgressEvent(
                work_item_id=work_item_id,
                step=step,
                total_steps=TOTAL_STEPS,
                message=message or STEP_MESSAGES[step],
                status=status,
            )
        )

    # ------------------------------------------------------------------
    # Attempt
    # ------------------------------------------------------------------

    async def run_attempt(self, item: WorkItem) -> ClaimOutcome:
        """Steps 2-4 for one attempt. Raises on any failure."""
        self._progress(item.id, 2)
        with timed("processor.extract_entities", {"work_item_id": item.id}):
            entities = await self.service.extract_entities(item.content)

        self._progress(item.id, 3)
        with timed("processor.map_codes", {"work_item_id": item.id}):
            claim = self.service.build_claim(self.service.map_codes(entities))

        self._progress(item.id, 4)
        validation = self.service.validate_claim(claim)
        initial_issue_count = len(validation.issues)
        fixes_applied: list[ClaimFix] = []

        if validation.errors and self.settings.auto_fix:
            fix_result = await self.service.fix_claim(claim, validation.errors)
            claim, validation = fix_result.fixed_claim, fix_result.validation
            fixes_applied = fix_result.fixes_applied

        payer = self.service.submit_claim(claim, validation)
        return ClaimOutcome(
            claim=claim,
            validation=validation,
            payer=payer,
            fixes_applied=fixes_applied,
            initial_issue_count=initial_issue_count,
        )

    async def _attempt_with_timeout(self, item: WorkItem) -> ClaimOutcome:
        timeout_s = self.settings.item_timeout_s
        try:
            return await asyncio.wait_for(self.run_attempt(item), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            kind = ErrorKind.TRANSIENT if self.settings.retry_on_timeout else ErrorKind.PERMANENT
            raise PipelineTimeoutError(
                f"Processing timeout - took longer than {timeout_s:g}s",
                kind=kind,
            ) from exc

    # ------------------------------------------------------------------
    # Entry point (ProcessingQueue handler)
    # ------------------------------------------------------------------

    async def process(self, work_item_id: str) -> None:
        item = self.work_items.get(work_item_id)
        if item is None:
            logger.warning("Work item not found", extra={"work_item_id": work_item_id})
            return

        retry_count = item.retry_count
        max_retries = self.settings.max_retries

        while True:
            item = await self.work_items.update_status(
                work_item_id,
                WorkItemStatus.PROCESSING,
                processing_started_at=utcnow(),
                retry_count=retry_count,
            )
            logger.info(
                "Processing work item",
                extra={
                    "work_item_id": work_item_id,
                    "attempt": retry_count + 1,
                    "note": safe_log_text(item.content),
                },
            )
            self._progress(work_item_id, 1)

            try:
                with timed("processor.attempt", {"work_item_id": work_item_id}):
                    outcome = await self._attempt_with_timeout(item)
            except Exception as exc:  # noqa: BLE001 - classified below, never propagated to the queue
                transient = isinstance(exc, ClaimsSuiteError) and getattr(exc, "transient", False)
                if transient and retry_count < max_retries:
                    delay_s = self.settings.retry_delay_s(retry_count)
                    retry_after_s = getattr(exc, "retry_after_s", None)
                    if retry_after_s:
                        delay_s = max(delay_s, retry_after_s)
                    message = (
                        f"Transient failure - retrying in {delay_s:g}s "
                        f"(attempt {retry_count + 1}/{max_retries}): {exc}"
                    )
                    logger.warning(
                        "Retrying work item",
                        extra={"work_item_id": work_item_id, "retry_count": retry_count, "delay_s": delay_s},
                    )
                    await self.work_items.update_status(work_item_id, WorkItemStatus.PENDING, error=message)
                    self._progress(work_item_id, 1, message)
                    await self._sleep(delay_s)
                    retry_count += 1
                    continue

                await self._fail(item, exc)
                return

            try:
                await self._complete(item, outcome)
            except Exception as exc:  # noqa: BLE001 - the item must still reach a terminal state
                logger.error(
                    "Persisting completed work item failed",
                    extra={"work_item_id": work_item_id, "error": str(exc)},
                )
                await self._fail(item, exc)
            return

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def _complete(self, item: WorkItem, outcome: ClaimOutcome) -> None:
        self._progress(item.id, 5)
        claim = outcome.claim
        record = ClaimRecord(
            claim_id=outcome.payer.claim_id,
            work_item_id=item.id,
            filename=item.filename,
            decision=outcome.payer.decision,
            amount_approved=outcome.payer.amount_approved,
            reason=outcome.payer.reason,
            reason_codes=outcome.payer.reason_codes or [],
            patient_name=claim.patient.full_name or None,
            provider_name=claim.provider.name or None,
            claim=claim,
        )
        await self.claim_records.add(record)
        await self.work_items.update_status(
            item.id,
            WorkItemStatus.COMPLETED,
            claim_id=record.claim_id,
            error=None,
            processing_completed_at=utcnow(),
        )

        if outcome.fixes_applied:
            await self.audit_log.append(
                AuditLogEntry(
                    action="claim_fixed",
                    actor="ai",
                    claim_id=record.claim_id,
                    work_item_id=item.id,
                    details={
                        "fixes": [fix.description for fix in outcome.fixes_applied],
                        "issues_before": outcome.initial_issue_count,
                        "issues_after": len(outcome.validation.issues),
                    },
                )
            )
        await self.audit_log.append(
            AuditLogEntry(
                action="claim_processed",
                claim_id=record.claim_id,
                work_item_id=item.id,
                details={
                    "decision": record.decision,
                    "amount_approved": record.amount_approved,
                    "reason_codes": record.reason_codes,
                },
            )
        )

        self._progress(
            item.id,
            5,
            f"Claim processing complete! Claim {record.claim_id} {record.decision}",
            status="completed",
        )
        logger.info(
            "Work item completed",
            extra={
                "work_item_id": item.id,
                "claim_id": record.claim_id,
                "decision": record.decision,
                "patient": safe_log_name(record.patient_name),
            },
        )

    async def _fail(self, item: WorkItem, exc: Exception) -> None:
        if isinstance(exc, ClaimsSuiteError):
            message = exc.message
            logger.error(
                "Work item failed",
                extra={"work_item_id": item.id, "error_code": exc.code, "error": message},
            )
        else:
            message = f"Unexpected error: {type(exc).__name__}"
            logger.exception("Work item failed unexpectedly", extra={"work_item_id": item.id})

        # Subscribers are released even when the failure itself cannot be stored
        try:
            await self.work_items.update_status(
                item.id,
                WorkItemStatus.FAILED,
                error=message or "Processing failed",
                processing_completed_at=utcnow(),
            )
            await self.audit_log.append(
                AuditLogEntry(
                    action="processing_failed",
                    work_item_id=item.id,
                    details={"error": message},
                )
            )
        finally:
            self._progress(item.id, TOTAL_STEPS, f"Processing failed: {message}", status="error")


__all__ = ["ClaimOutcome", "ClaimProcessor", "STEP_MESSAGES"]
