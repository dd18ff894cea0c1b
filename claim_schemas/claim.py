"""CMS-1500 style claim models.

A claim is validated once at the boundary (API payload, provider output or
builder) and then passed around as an immutable value.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Gender = Literal["M", "F", "X", "U"]


class Patient(BaseModel):
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    gender: Gender = "U"

    model_config = {"frozen": True, "extra": "ignore"}

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part).strip()


class Provider(BaseModel):
    npi: str = ""
    name: str = ""
    taxonomy: str = ""
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None

    model_config = {"frozen": True, "extra": "ignore"}


class ProcedureLine(BaseModel):
    """One service line on the claim."""

    code: str
    description: str = ""
    modifiers: List[str] = Field(default_factory=list)
    units: int = Field(default=1, ge=0)
    charge: float = Field(default=0.0, ge=0)
    prior_authorization_number: Optional[str] = None

    model_config = {"frozen": True, "extra": "ignore"}


class Claim(BaseModel):
    patient: Patient
    provider: Provider
    service_date: str = ""
    place_of_service: str = ""
    diagnosis_codes: List[str] = Field(default_factory=list)
    procedures: List[ProcedureLine] = Field(default_factory=list)

    model_config = {"frozen": True, "extra": "ignore"}

    @property
    def procedure_codes(self) -> list[str]:
        return [line.code for line in self.procedures]

    @property
    def total_charge(self) -> float:
        return sum(line.charge for line in self.procedures)


__all__ = ["Claim", "Gender", "Patient", "ProcedureLine", "Provider"]
