"""Port interfaces for work item, claim record and audit log persistence.

These are the domain-layer interfaces (ports) the processing pipeline and the
API depend on. Adapters implement them for a specific storage medium.

Reads are served from the adapter's in-memory cache and are synchronous.
Mutations are coroutines: they return only after the change has been flushed
to durable storage, and each adapter serializes its own flushes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from claim_schemas.records import AuditLogEntry, ClaimRecord, WorkItem, WorkItemStatus


class WorkItemRepository(ABC):
    """Repository interface for uploaded work items."""

    @abstractmethod
    def list_all(self) -> list[WorkItem]:
        """Return every work item, newest upload first."""
        ...

    @abstractmethod
    def get(self, work_item_id: str) -> Optional[WorkItem]:
        """Get a work item by id.

        Args:
            work_item_id: Work item identifier

        Returns:
            WorkItem if found, None otherwise
        """
        ...

    @abstractmethod
    async def upsert(self, item: WorkItem) -> WorkItem:
        """Insert or replace a work item and flush.

        Raises:
            StoreIOError: if the flush failed. The cache already holds the item.
        """
        ...

    @abstractmethod
    async def update_status(self, work_item_id: str, status: WorkItemStatus, **changes: Any) -> WorkItem:
        """Set ``status`` plus any other field changes and flush.

        Raises:
            RecordNotFoundError: if no such work item exists.
            StoreIOError: if the flush failed.
        """
        ...


class ClaimRecordRepository(ABC):
    """Repository interface for append-only claim outcomes."""

    @abstractmethod
    def list_all(self) -> list[ClaimRecord]:
        """Return every claim record, newest first."""
        ...

    @abstractmethod
    def get(self, claim_id: str) -> Optional[ClaimRecord]:
        """Get a claim record by claim id, or None."""
        ...

    @abstractmethod
    async def add(self, record: ClaimRecord) -> ClaimRecord:
        """Append a claim record and flush.

        Raises:
            DuplicateRecordError: if the claim id already exists.
            StoreIOError: if the flush failed.
        """
        ...


class AuditLogRepository(ABC):
    """Repository interface for the bounded audit log."""

    @property
    @abstractmethod
    def max_entries(self) -> int:
        """Retention cap; older entries are dropped beyond it."""
        ...

    @abstractmethod
    def list_all(self, limit: Optional[int] = None) -> list[AuditLogEntry]:
        """Return the most recent entries, newest first.

        Args:
            limit: Maximum number of entries to return (all when None)
        """
        ...

    @abstractmethod
    async def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append an entry, apply the retention cap and flush."""
        ...
