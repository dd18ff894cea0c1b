# Claim store domain module
from .repository import AuditLogRepository, ClaimRecordRepository, WorkItemRepository

__all__ = ["AuditLogRepository", "ClaimRecordRepository", "WorkItemRepository"]
