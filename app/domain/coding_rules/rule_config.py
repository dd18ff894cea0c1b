"""Typed view of the static claim rule tables (``claim_rules.*.yaml``)."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from app.common.exceptions import KnowledgeError
from app.common.knowledge import load_document
from claim_schemas.claim import Provider


class RequiredFields(BaseModel):
    provider: List[str] = Field(default_factory=list)
    patient: List[str] = Field(default_factory=list)
    claim: List[str] = Field(default_factory=list)


class ModifierTriggerCodes(BaseModel):
    em_codes: List[str] = Field(default_factory=list)
    minor_procedures: List[str] = Field(default_factory=list)


class Modifier25Rule(BaseModel):
    trigger_codes: ModifierTriggerCodes = Field(default_factory=ModifierTriggerCodes)
    required_modifier: str = "25"
    applies_to: str = "em_codes"
    cms_reference: str = ""


class PriorAuthEntry(BaseModel):
    code: str
    description: str = ""
    reason: str = ""


class PriorAuthWatchlist(BaseModel):
    required_field: str = "prior_authorization_number"
    codes: List[PriorAuthEntry] = Field(default_factory=list)

    def lookup(self, code: str) -> Optional[PriorAuthEntry]:
        for entry in self.codes:
            if entry.code == code:
                return entry
        return None


class DefaultValues(BaseModel):
    place_of_service: str = "11"
    provider: Provider = Field(default_factory=Provider)


class LesionTier(BaseModel):
    min: int = Field(ge=0)
    max: Optional[int] = None
    code: str

    def matches(self, count: int) -> bool:
        return count >= self.min and (self.max is None or count <= self.max)


class LesionDestructionRule(BaseModel):
    confidence: float = 0.95
    tiers: List[LesionTier] = Field(default_factory=list)

    def code_for(self, count: int) -> Optional[str]:
        for tier in self.tiers:
            if tier.matches(count):
                return tier.code
        return None


class VisitLevel(BaseModel):
    terms: List[str]
    code: str


class EvaluationManagementRule(BaseModel):
    confidence: float = 0.9
    established: List[VisitLevel] = Field(default_factory=list)
    new: List[VisitLevel] = Field(default_factory=list)

    def code_for(self, complexity: str, patient_type: str) -> Optional[str]:
        """First level whose term appears in ``complexity`` wins."""
        text = complexity.lower()
        levels = self.new if patient_type == "new" else self.established
        for level in levels:
            if any(term.lower() in text for term in level.terms):
                return level.code
        return None


class CodeMappingRules(BaseModel):
    keyword_confidence_multiplier: float = 1.2
    keyword_confidence_cap: float = 0.99
    fuzzy_threshold: float = 0.3
    fuzzy_confidence_multiplier: float = 0.8
    max_results: int = Field(default=3, ge=1)
    lesion_destruction: LesionDestructionRule = Field(default_factory=LesionDestructionRule)
    evaluation_management: EvaluationManagementRule = Field(default_factory=EvaluationManagementRule)


class ClaimRules(BaseModel):
    version: str = "unknown"
    required_fields: RequiredFields = Field(default_factory=RequiredFields)
    modifier_25_rule: Modifier25Rule = Field(default_factory=Modifier25Rule)
    prior_authorization_watchlist: PriorAuthWatchlist = Field(default_factory=PriorAuthWatchlist)
    default_values: DefaultValues = Field(default_factory=DefaultValues)
    code_mapping: CodeMappingRules = Field(default_factory=CodeMappingRules)

    model_config = {"extra": "ignore"}


def load_claim_rules(path: str | Path) -> ClaimRules:
    """Load and validate the rule tables at ``path``.

    Raises:
        KnowledgeError: if the file is missing, unparsable or has the wrong shape.
    """
    document = load_document(path)
    try:
        return ClaimRules.model_validate(document)
    except ValidationError as exc:
        raise KnowledgeError(f"Invalid claim rules in {path}: {exc}") from exc


__all__ = [
    "ClaimRules",
    "CodeMappingRules",
    "EvaluationManagementRule",
    "LesionDestructionRule",
    "Modifier25Rule",
    "PriorAuthWatchlist",
    "RequiredFields",
    "load_claim_rules",
]
