"""Reasoning provider backed by an OpenAI-compatible Chat Completions API."""

from __future__ import annotations

import json
from typing import Any, Sequence

from pydantic import ValidationError

from app.common.exceptions import ErrorKind, ReasoningProviderError
from app.common.llm import OpenAICompatClient
from app.infra.safe_logging import safe_log_text
from claim_schemas.citations import PolicyCitation
from claim_schemas.claim import Claim
from claim_schemas.entities import ExtractedEntities
from claim_schemas.fixes import ClaimFix
from claim_schemas.validation import ValidationIssue
from observability.logging_config import get_logger

from .reasoning_port import ReasoningProvider

logger = get_logger("reasoning.openai_compat")

SYSTEM_PROMPT = """You are a certified medical coding and billing assistant.
You read outpatient clinician notes and CMS-1500 claims. You never invent
clinical facts that are not documented in the note. Always answer with a single
JSON object and nothing else."""

EXTRACT_PROMPT = """Extract the billing-relevant entities from the clinician note.

Return a JSON object with these keys (use null when not documented):
- procedure_name: primary procedure performed, in plain words
- diagnosis_text: primary diagnosis, in plain words
- body_site: anatomic site of the procedure
- lesion_count: integer number of lesions treated
- visit_complexity: medical decision making level (minimal, low, moderate, high)
- patient_type: "new" or "established"
- additional_procedures: list of other procedures performed
- additional_diagnoses: list of other diagnoses
- patient_first_name, patient_last_name, patient_date_of_birth (YYYY-MM-DD),
  patient_gender (M, F, X or U), service_date (YYYY-MM-DD)
- provider_npi, provider_name: rendering provider, only if written in the note

Do not return billing codes."""

FIX_PROMPT = """Propose fixes for the validation issues on this claim.

Return {"fixes": [...]} with one object per issue:
- issue_id: id of the issue being fixed
- description: what the fix changes
- patches: JSON patch operations on the claim, each {"op": "add"|"replace"|"remove", "path": "/procedures/0/modifiers/-", "value": ...}
- rule_citation: policy source supporting the fix, if any
- reasoning: short justification grounded in the citations

Only change what the issue requires. Never fabricate identifiers such as NPI
or prior authorization numbers; leave those issues with an empty patch list."""


def _coerce_fix_list(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        fixes = payload.get("fixes")
        if isinstance(fixes, list):
            return fixes
        if "issue_id" in payload:
            return [payload]
    logger.warning("Unexpected fix response shape", extra={"payload_type": type(payload).__name__})
    return []


class OpenAICompatReasoner(ReasoningProvider):
    """ReasoningProvider using JSON-mode chat completions."""

    def __init__(self, client: OpenAICompatClient):
        self.client = client

    @property
    def version(self) -> str:
        return f"openai_compat:{self.client.model}"

    async def extract_entities(self, note_text: str) -> ExtractedEntities:
        logger.info("Extracting entities", extra={"note": safe_log_text(note_text), "model": self.client.model})
        payload = await self.client.complete_json(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=f"{EXTRACT_PROMPT}\n\n## Clinician Note to Process:\n{note_text}\n\nExtract the entities as JSON:",
        )
        if not isinstance(payload, dict):
            raise ReasoningProviderError("Entity extraction did not return a JSON object", kind=ErrorKind.PERMANENT)
        try:
            return ExtractedEntities.model_validate(payload)
        except ValidationError as exc:
            raise ReasoningProviderError(
                f"Entity extraction returned an invalid payload: {exc.error_count()} error(s)",
                kind=ErrorKind.PERMANENT,
            ) from exc

    async def suggest_fixes(
        self,
        claim: Claim,
        issues: Sequence[ValidationIssue],
        citations: Sequence[PolicyCitation] = (),
    ) -> list[ClaimFix]:
        if not issues:
            return []
        context = {
            "claim": claim.model_dump(mode="json"),
            "validation_issues": [issue.model_dump(mode="json") for issue in issues],
            "policy_citations": [f"{citation.text} (Source: {citation.source})" for citation in citations],
        }
        payload = await self.client.complete_json(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=f"{FIX_PROMPT}\n\n## Context:\n{json.dumps(context, indent=2)}",
        )

        fixes: list[ClaimFix] = []
        for raw in _coerce_fix_list(payload):
            try:
                fixes.append(ClaimFix.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Dropping malformed fix suggestion", extra={"errors": exc.error_count()})
        logger.info("Fix suggestions received", extra={"issues": len(issues), "fixes": len(fixes)})
        return fixes


__all__ = ["OpenAICompatReasoner"]
