"""Exception hierarchy for the Claims Suite system."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ClaimsSuiteError(Exception):
    """Base error for the claims pipeline."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: Any | None = None):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(message)


class InputError(ClaimsSuiteError):
    """Malformed or missing caller input. Surfaced immediately, never retried."""

    code = "INVALID_INPUT"


class UploadRejectedError(InputError):
    """Uploaded file failed the type or size checks."""

    code = "UPLOAD_REJECTED"


class KnowledgeError(ClaimsSuiteError):
    """Static code or rule tables could not be loaded."""

    code = "KNOWLEDGE_ERROR"


class ErrorKind(str, Enum):
    """Retry classification attached where the failing call is made."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class ReasoningProviderError(ClaimsSuiteError):
    """External reasoning provider call failed (timeout, rate limit, bad response)."""

    code = "REASONING_PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.PERMANENT,
        status_code: int | None = None,
        retry_after_s: float | None = None,
    ):
        self.kind = kind
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        super().__init__(message)

    @property
    def transient(self) -> bool:
        return self.kind is ErrorKind.TRANSIENT


class PipelineTimeoutError(ClaimsSuiteError):
    """A work item exceeded its per-item processing deadline."""

    code = "PROCESSING_TIMEOUT"

    def __init__(self, message: str, *, kind: ErrorKind = ErrorKind.PERMANENT):
        self.kind = kind
        super().__init__(message)

    @property
    def transient(self) -> bool:
        return self.kind is ErrorKind.TRANSIENT


class PersistenceError(ClaimsSuiteError):
    """Store persistence error."""

    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, operation: str | None = None, record_id: str | None = None):
        self.operation = operation
        self.record_id = record_id
        super().__init__(message)


class StoreIOError(PersistenceError):
    """Flushing a collection to disk failed; in-memory state may be ahead of disk."""

    code = "STORE_IO_ERROR"


class DuplicateRecordError(PersistenceError):
    """An append-only collection already holds a record with this id."""

    code = "DUPLICATE_RECORD"


class RecordNotFoundError(PersistenceError):
    """The requested record id does not exist."""

    code = "NOT_FOUND"
