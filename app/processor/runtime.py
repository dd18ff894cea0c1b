"""Process-wide processor runtime.

Owns the stores, the progress broadcaster, the processing queue and the claim
processor for one application instance. ``initialize`` recovers work left
``pending`` (or interrupted mid-``processing``) by a previous run.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from app.coder.adapters.persistence.json_claim_stores import open_stores
from app.coder.application.claims_service import ClaimsService
from app.domain.claim_store.repository import (
    AuditLogRepository,
    ClaimRecordRepository,
    WorkItemRepository,
)
from claim_schemas.records import AuditLogEntry, WorkItem, WorkItemStatus
from config.settings import ProcessorSettings, Settings
from observability.logging_config import get_logger

from .claim_processor import ClaimProcessor, Sleeper
from .progress import ProgressBroadcaster
from .queue import ProcessingQueue

logger = get_logger("processor.runtime")


class ProcessorRuntime:
    def __init__(
        self,
        *,
        service: ClaimsService,
        work_items: WorkItemRepository,
        claim_records: ClaimRecordRepository,
        audit_log: AuditLogRepository,
        settings: ProcessorSettings,
        broadcaster: ProgressBroadcaster | None = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.service = service
        self.work_items = work_items
        self.claim_records = claim_records
        self.audit_log = audit_log
        self.settings = settings
        self.broadcaster = broadcaster or ProgressBroadcaster()
        self.processor = ClaimProcessor(
            work_items=work_items,
            claim_records=claim_records,
            audit_log=audit_log,
            broadcaster=self.broadcaster,
            service=service,
            settings=settings,
            sleep=sleep,
        )
        self.queue = ProcessingQueue(
            self.processor.process,
            max_concurrency=settings.max_concurrency,
            inter_item_delay_s=settings.inter_item_delay_s,
        )
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        service: ClaimsService | None = None,
    ) -> "ProcessorRuntime":
        work_items, claim_records, audit_log = open_stores(settings.store)
        return cls(
            service=service or ClaimsService.from_settings(settings),
            work_items=work_items,
            claim_records=claim_records,
            audit_log=audit_log,
            settings=settings.processor,
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> int:
        """Enqueue recoverable work items. Safe to call more than once.

        Returns the number of items newly queued by this call.
        """
        async with self._init_lock:
            queued = 0
            # Oldest first so recovery preserves upload order
            for item in reversed(self.work_items.list_all()):
                if item.status == WorkItemStatus.PROCESSING and not self.queue.is_tracked(item.id):
                    item = await self.work_items.update_status(
                        item.id,
                        WorkItemStatus.PENDING,
                        error="Recovered after interrupted processing",
                    )
                if item.status == WorkItemStatus.PENDING and self.queue.enqueue(item.id):
                    queued += 1

            if not self._initialized:
                logger.info(
                    "Processor runtime initialized",
                    extra={"recovered": queued, "max_concurrency": self.settings.max_concurrency},
                )
            self._initialized = True
            return queued

    async def submit(self, filename: str, content: str) -> WorkItem:
        """Persist a new pending work item and queue it when the runtime is running."""
        item = await self.work_items.upsert(WorkItem(filename=filename, content=content))
        await self.audit_log.append(
            AuditLogEntry(
                action="note_uploaded",
                work_item_id=item.id,
                details={"filename": filename, "size": len(content)},
                actor="user",
            )
        )
        if self._initialized:
            self.queue.enqueue(item.id)
        return item

    def status(self) -> dict[str, Any]:
        queue_status = self.queue.get_queue_status()
        return {
            "initialized": self._initialized,
            "watcher_running": False,
            "queue": {
                "queued": queue_status["queued_count"],
                "processing": queue_status["in_flight_count"],
                "active_ids": queue_status["in_flight_ids"],
            },
        }

    async def join(self) -> None:
        await self.queue.join()

    async def close(self, timeout_s: Optional[float] = None) -> None:
        if timeout_s:
            try:
                await asyncio.wait_for(self.queue.join(), timeout=timeout_s)
            except asyncio.TimeoutError:
                logger.warning("Processing queue still busy at shutdown", extra=self.queue.get_queue_status())
        await self.queue.close()


__all__ = ["ProcessorRuntime"]
