"""Assemble a Claim from a code-mapping result."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional

from app.domain.coding_rules.rule_config import DefaultValues
from claim_schemas.claim import Claim, Patient, ProcedureLine, Provider
from claim_schemas.coding import CodeMappingResult
from claim_schemas.entities import ExtractedEntities

MIN_CODE_CONFIDENCE = 0.5

_GENDERS = {"M", "F", "X", "U"}


def default_charge(cpt_code: str) -> float:
    """Simplified fee schedule used when the note carries no charge."""
    if cpt_code.startswith("99") and cpt_code.isdigit():
        number = int(cpt_code)
        if 99211 <= number <= 99215:
            return 100.0 + (number - 99211) * 30
        if 99203 <= number <= 99205:
            return 150.0 + (number - 99203) * 60

    if cpt_code.startswith("1"):
        return 150.0
    if cpt_code.startswith("7"):
        # MRI
        return 1200.0 if "70" in cpt_code else 200.0
    if cpt_code.startswith("8"):
        return 75.0
    return 100.0


def patient_from_entities(entities: ExtractedEntities) -> Optional[Patient]:
    """Demographics the reasoning provider read from the note header, if any."""
    fields = {
        "first_name": entities.patient_first_name,
        "last_name": entities.patient_last_name,
        "date_of_birth": entities.patient_date_of_birth,
    }
    if not any(fields.values()) and not entities.patient_gender:
        return None
    gender = (entities.patient_gender or "U").strip().upper()[:1]
    return Patient(
        **{key: value or "" for key, value in fields.items()},
        gender=gender if gender in _GENDERS else "U",
    )


class ClaimBuilder:
    """Builds CMS-1500 style claims with configured defaults."""

    def __init__(self, defaults: DefaultValues | None = None, min_confidence: float = MIN_CODE_CONFIDENCE):
        self.defaults = defaults or DefaultValues()
        self.min_confidence = min_confidence

    def default_provider(self, entities: ExtractedEntities | None = None) -> Provider:
        # NPI is never defaulted; a missing NPI must surface as a validation error
        update: dict[str, str] = {"npi": ""}
        if entities is not None:
            if entities.provider_npi:
                update["npi"] = entities.provider_npi.strip()
            if entities.provider_name:
                update["name"] = entities.provider_name.strip()
        return self.defaults.provider.model_copy(update=update)

    def build(
        self,
        mapping: CodeMappingResult,
        *,
        patient: Patient | Mapping[str, Any] | None = None,
        provider: Provider | Mapping[str, Any] | None = None,
        service_date: Optional[str] = None,
        place_of_service: Optional[str] = None,
    ) -> Claim:
        if patient is None:
            patient = patient_from_entities(mapping.entities) or Patient()
        if provider is None:
            provider = self.default_provider(mapping.entities)

        procedures = [
            ProcedureLine(
                code=mapped.code,
                description=mapped.description,
                modifiers=[],
                units=1,
                charge=default_charge(mapped.code),
            )
            for mapped in mapping.cpt_codes
            if mapped.confidence > self.min_confidence
        ]
        diagnosis_codes = [
            mapped.code for mapped in mapping.icd_codes if mapped.confidence > self.min_confidence
        ]

        return Claim.model_validate(
            {
                "patient": patient,
                "provider": provider,
                "service_date": service_date
                or mapping.entities.service_date
                or date.today().isoformat(),
                "place_of_service": place_of_service or self.defaults.place_of_service,
                "diagnosis_codes": diagnosis_codes,
                "procedures": procedures,
            }
        )


__all__ = ["ClaimBuilder", "MIN_CODE_CONFIDENCE", "default_charge", "patient_from_entities"]
