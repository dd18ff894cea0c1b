"""Uniform response envelope for every JSON endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

from claim_schemas.records import utcnow

T = TypeVar("T")


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class SuccessResponse(BaseModel, Generic[T]):
    """Standard successful response envelope."""

    success: Literal[True] = True
    data: Optional[T] = None
    timestamp: datetime = Field(default_factory=utcnow)


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    success: Literal[False] = False
    error: ErrorDetail
    timestamp: datetime = Field(default_factory=utcnow)


def ok(data: Any) -> SuccessResponse[Any]:
    return SuccessResponse[Any](data=data)


def error_payload(code: str, message: str, details: Any = None) -> dict[str, Any]:
    """JSON-ready error envelope; ``details`` is omitted when empty."""
    payload = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return payload.model_dump(mode="json", exclude_none=True)


__all__ = ["ErrorDetail", "ErrorResponse", "SuccessResponse", "error_payload", "ok"]
