"""JSON-file implementations of the claim store ports.

Each store owns one collection file under the configured data directory:
``work_items.json``, ``claim_records.json`` and ``audit_log.json``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from app.common.exceptions import DuplicateRecordError, RecordNotFoundError
from app.domain.claim_store.repository import (
    AuditLogRepository,
    ClaimRecordRepository,
    WorkItemRepository,
)
from claim_schemas.records import AuditLogEntry, ClaimRecord, WorkItem, WorkItemStatus
from config.settings import StoreSettings

from .json_collection import JsonCollection


class JsonWorkItemStore(WorkItemRepository):
    """Work items keyed by id, listed newest upload first."""

    def __init__(self, path: str | Path):
        self._collection: JsonCollection[WorkItem] = JsonCollection(
            path,
            WorkItem,
            key=lambda item: item.id,
            sort_key=lambda item: item.sort_key,
        )

    # =========================================================================
    # WorkItemRepository
    # =========================================================================

    def list_all(self) -> list[WorkItem]:
        return self._collection.items()

    def get(self, work_item_id: str) -> Optional[WorkItem]:
        return self._collection.get(work_item_id)

    async def upsert(self, item: WorkItem) -> WorkItem:
        return await self._collection.put(item)

    async def update_status(self, work_item_id: str, status: WorkItemStatus, **changes: Any) -> WorkItem:
        def _change(current: Optional[WorkItem]) -> WorkItem:
            if current is None:
                raise RecordNotFoundError(
                    f"Work item {work_item_id} not found",
                    operation="update_status",
                    record_id=work_item_id,
                )
            return current.model_copy(update={**changes, "status": status})

        return await self._collection.mutate(work_item_id, _change, operation="update_status")


class JsonClaimRecordStore(ClaimRecordRepository):
    """Append-only claim records keyed by claim id."""

    def __init__(self, path: str | Path):
        self._collection: JsonCollection[ClaimRecord] = JsonCollection(
            path,
            ClaimRecord,
            key=lambda record: record.id,
            sort_key=lambda record: record.sort_key,
        )

    # =========================================================================
    # ClaimRecordRepository
    # =========================================================================

    def list_all(self) -> list[ClaimRecord]:
        return self._collection.items()

    def get(self, claim_id: str) -> Optional[ClaimRecord]:
        return self._collection.get(claim_id)

    async def add(self, record: ClaimRecord) -> ClaimRecord:
        def _change(current: Optional[ClaimRecord]) -> ClaimRecord:
            if current is not None:
                raise DuplicateRecordError(
                    f"Claim record {record.claim_id} already exists",
                    operation="add",
                    record_id=record.claim_id,
                )
            return record

        return await self._collection.mutate(record.claim_id, _change, operation="add")


class JsonAuditLogStore(AuditLogRepository):
    """Audit log keeping only the most recent ``max_entries`` entries."""

    def __init__(self, path: str | Path, max_entries: int = 1000):
        self._collection: JsonCollection[AuditLogEntry] = JsonCollection(
            path,
            AuditLogEntry,
            key=lambda entry: entry.id,
            sort_key=lambda entry: entry.sort_key,
            max_entries=max_entries,
        )

    # =========================================================================
    # AuditLogRepository
    # =========================================================================

    @property
    def max_entries(self) -> int:
        return self._collection.max_entries or 0

    def list_all(self, limit: Optional[int] = None) -> list[AuditLogEntry]:
        entries = self._collection.items()
        return entries if limit is None else entries[: max(limit, 0)]

    async def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        return await self._collection.put(entry, operation="append")


def open_stores(settings: StoreSettings) -> tuple[JsonWorkItemStore, JsonClaimRecordStore, JsonAuditLogStore]:
    """Open (and load) the three stores under ``settings.data_dir``."""
    return (
        JsonWorkItemStore(settings.work_items_path),
        JsonClaimRecordStore(settings.claim_records_path),
        JsonAuditLogStore(settings.audit_log_path, max_entries=settings.audit_log_max_entries),
    )


__all__ = ["JsonAuditLogStore", "JsonClaimRecordStore", "JsonWorkItemStore", "open_stores"]
