"""Entities extracted from a clinician note by the reasoning provider."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

PatientType = Literal["new", "established"]


class ExtractedEntities(BaseModel):
    """Natural-language entities (not billing codes) pulled from a note."""

    procedure_name: Optional[str] = None
    diagnosis_text: Optional[str] = None
    body_site: Optional[str] = None
    lesion_count: Optional[int] = Field(default=None, ge=0)
    visit_complexity: Optional[str] = None
    patient_type: Optional[PatientType] = None
    additional_procedures: Optional[List[str]] = None
    additional_diagnoses: Optional[List[str]] = None

    # Demographics, when the provider can read them from the note header
    patient_first_name: Optional[str] = None
    patient_last_name: Optional[str] = None
    patient_date_of_birth: Optional[str] = None
    patient_gender: Optional[str] = None
    service_date: Optional[str] = None

    # Rendering provider, only when written in the note
    provider_npi: Optional[str] = None
    provider_name: Optional[str] = None

    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator("patient_type", mode="before")
    @classmethod
    def _normalize_patient_type(cls, value: object) -> object:
        if isinstance(value, str):
            cleaned = value.strip().lower()
            return cleaned or None
        return value

    @field_validator("additional_procedures", "additional_diagnoses", mode="before")
    @classmethod
    def _drop_blank_items(cls, value: object) -> object:
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str) and item.strip()]
        return value


__all__ = ["ExtractedEntities", "PatientType"]
