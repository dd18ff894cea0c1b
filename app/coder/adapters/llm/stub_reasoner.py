"""Deterministic offline reasoning provider.

Used for tests, local runs and whenever no API key is configured. Extraction
reads labelled header lines (``Procedure: ...``, ``Lesions: 3``) from the
note; fix suggestions cover only the issues that have a mechanical fix.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

from app.common.text_io import iter_labelled_lines
from claim_schemas.citations import PolicyCitation
from claim_schemas.claim import Claim
from claim_schemas.entities import ExtractedEntities
from claim_schemas.fixes import ClaimFix, PatchOperation
from claim_schemas.validation import IssueCode, ValidationIssue
from observability.logging_config import get_logger

from .reasoning_port import ReasoningProvider

logger = get_logger("reasoning.stub")

_FIELD_LABELS: dict[str, tuple[str, ...]] = {
    "procedure_name": ("procedure", "procedure performed"),
    "diagnosis_text": ("diagnosis", "assessment"),
    "body_site": ("body site", "site", "location"),
    "lesion_count": ("lesions", "lesion count", "number of lesions"),
    "visit_complexity": ("visit complexity", "medical decision making", "mdm"),
    "patient_type": ("patient type",),
    "additional_procedures": ("additional procedures",),
    "additional_diagnoses": ("additional diagnoses",),
    "patient_name": ("patient", "patient name"),
    "patient_date_of_birth": ("dob", "date of birth"),
    "patient_gender": ("sex", "gender"),
    "service_date": ("date of service", "dos", "service date"),
    "provider_npi": ("npi", "provider npi"),
    "provider_name": ("provider", "rendering provider", "physician"),
}

_LESION_RE = re.compile(r"\b(\d{1,3})\s+(?:\w+\s+)?lesions?\b", re.IGNORECASE)


def _labelled_fields(note_text: str) -> dict[str, str]:
    label_to_field = {label: field for field, labels in _FIELD_LABELS.items() for label in labels}
    found: dict[str, str] = {}
    for label, value in iter_labelled_lines(note_text):
        field = label_to_field.get(label)
        if field and field not in found:
            found[field] = value
    return found


def _split_list(value: Optional[str]) -> Optional[list[str]]:
    if not value:
        return None
    items = [item.strip() for item in re.split(r"[;,]", value) if item.strip()]
    return items or None


def _first_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = re.search(r"\d+", value)
    return int(match.group()) if match else None


class DeterministicStubReasoner(ReasoningProvider):
    """Rule-of-thumb reasoning provider with no network access."""

    def __init__(self, *, reason: str | None = None):
        self.reason = reason
        self._warned = False

    @property
    def version(self) -> str:
        return "stub"

    def _warn_once(self) -> None:
        if not self._warned:
            logger.warning("Using DeterministicStubReasoner", extra={"reason": self.reason or "configured"})
            self._warned = True

    async def extract_entities(self, note_text: str) -> ExtractedEntities:
        self._warn_once()
        fields = _labelled_fields(note_text)
        lowered = note_text.lower()

        patient_type = (fields.get("patient_type") or "").strip().lower() or None
        if patient_type not in ("new", "established"):
            if "new patient" in lowered:
                patient_type = "new"
            elif "established patient" in lowered:
                patient_type = "established"
            else:
                patient_type = None

        lesion_count = _first_int(fields.get("lesion_count"))
        if lesion_count is None:
            match = _LESION_RE.search(note_text)
            lesion_count = int(match.group(1)) if match else None

        first_name = last_name = None
        name_parts = (fields.get("patient_name") or "").split()
        if name_parts:
            first_name = name_parts[0]
            last_name = " ".join(name_parts[1:]) or None

        payload: dict[str, Any] = {
            "procedure_name": fields.get("procedure_name"),
            "diagnosis_text": fields.get("diagnosis_text"),
            "body_site": fields.get("body_site"),
            "lesion_count": lesion_count,
            "visit_complexity": fields.get("visit_complexity"),
            "patient_type": patient_type,
            "additional_procedures": _split_list(fields.get("additional_procedures")),
            "additional_diagnoses": _split_list(fields.get("additional_diagnoses")),
            "patient_first_name": first_name,
            "patient_last_name": last_name,
            "patient_date_of_birth": fields.get("patient_date_of_birth"),
            "patient_gender": fields.get("patient_gender"),
            "service_date": fields.get("service_date"),
            "provider_npi": fields.get("provider_npi"),
            "provider_name": fields.get("provider_name"),
        }
        return ExtractedEntities.model_validate(payload)

    async def suggest_fixes(
        self,
        claim: Claim,
        issues: Sequence[ValidationIssue],
        citations: Sequence[PolicyCitation] = (),
    ) -> list[ClaimFix]:
        self._warn_once()
        citation = citations[0].source if citations else None
        fixes: list[ClaimFix] = []

        for issue in issues:
            if issue.code != IssueCode.MISSING_MODIFIER_25.value:
                continue
            targets = set(issue.affected_codes or [])
            patches = [
                PatchOperation(op="add", path=f"/procedures/{index}/modifiers/-", value="25")
                for index, line in enumerate(claim.procedures)
                if line.code in targets and "25" not in line.modifiers
            ]
            if not patches:
                continue
            fixes.append(
                ClaimFix(
                    issue_id=issue.id,
                    description=f"Add modifier 25 to E/M code(s) {', '.join(sorted(targets))}",
                    patches=patches,
                    rule_citation=citation or issue.rule_reference,
                    reasoning="Separately identifiable E/M service billed on the same day as a minor procedure.",
                )
            )
        return fixes


__all__ = ["DeterministicStubReasoner"]
