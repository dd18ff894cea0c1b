"""API schemas package.

This package contains all Pydantic schemas for the FastAPI integration layer.
"""

from app.api.schemas.envelope import (
    ErrorDetail,
    ErrorResponse,
    SuccessResponse,
    error_payload,
    ok,
)
from app.api.schemas.requests import (
    BuildClaimRequest,
    ExtractEntitiesRequest,
    FixClaimRequest,
    LogActionRequest,
    MapCodesRequest,
    SubmitClaimRequest,
    ValidateClaimRequest,
)

__all__ = [
    # Envelope
    "ErrorDetail",
    "ErrorResponse",
    "SuccessResponse",
    "error_payload",
    "ok",
    # Claim workflow requests
    "BuildClaimRequest",
    "ExtractEntitiesRequest",
    "FixClaimRequest",
    "LogActionRequest",
    "MapCodesRequest",
    "SubmitClaimRequest",
    "ValidateClaimRequest",
]
