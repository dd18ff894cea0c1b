"""Mock payer adjudication."""

from __future__ import annotations

from claim_schemas.claim import Claim
from claim_schemas.records import PayerResponse, new_claim_id
from claim_schemas.validation import ValidationResult

APPROVED_REASON = "Claim meets all requirements"
DENIED_REASON = "Claim has validation errors"


def adjudicate(claim: Claim, validation: ValidationResult, claim_id: str | None = None) -> PayerResponse:
    """Deny claims with error-severity issues; approve the rest for the full charge."""
    claim_id = claim_id or new_claim_id()
    errors = validation.errors
    if errors:
        return PayerResponse(
            decision="denied",
            claim_id=claim_id,
            reason=DENIED_REASON,
            reason_codes=[issue.code for issue in errors],
        )
    return PayerResponse(
        decision="approved",
        claim_id=claim_id,
        reason=APPROVED_REASON,
        amount_approved=claim.total_charge,
    )


__all__ = ["APPROVED_REASON", "DENIED_REASON", "adjudicate"]
