"""Claims Service - the note → claim operations behind the API and the processor.

Each method is one step of the claim workflow and can be called on its own:

1. ``extract_entities`` - reasoning provider reads the clinician note
2. ``map_codes`` - deterministic CPT / ICD-10 mapping
3. ``build_claim`` - claim assembly with configured defaults
4. ``validate_claim`` - rule evaluation
5. ``fix_claim`` - provider-suggested patches, applied and re-validated
6. ``submit_claim`` - mock payer adjudication
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from app.coder.adapters.llm import build_reasoning_provider
from app.coder.adapters.llm.reasoning_port import ReasoningProvider
from app.coder.adapters.persistence.json_kb_adapter import JsonCodeRegistry
from app.coder.adapters.policy.citation_lookup import PolicyCitationLookup
from app.coder.claim_builder import ClaimBuilder
from app.coder.claim_patches import apply_fixes
from app.coder.code_mapper import CodeMapper
from app.coder.payer import adjudicate
from app.domain.coding_rules.rule_config import ClaimRules, load_claim_rules
from app.domain.coding_rules.validation_engine import ClaimValidator
from app.domain.knowledge_base.repository import CodeRegistry
from claim_schemas.claim import Claim, Patient, Provider
from claim_schemas.coding import CodeMappingResult
from claim_schemas.entities import ExtractedEntities
from claim_schemas.fixes import ClaimFixResult
from claim_schemas.records import PayerResponse
from claim_schemas.validation import IssueSeverity, ValidationIssue, ValidationResult
from config.settings import Settings
from observability.logging_config import get_logger
from observability.timing import timed

logger = get_logger("claims_service")


class ClaimsService:
    """Stateless orchestration over the registry, rules and reasoning provider."""

    VERSION = "claims_service_v1"

    def __init__(
        self,
        registry: CodeRegistry,
        rules: ClaimRules,
        reasoner: ReasoningProvider,
        citations: PolicyCitationLookup,
    ):
        self.registry = registry
        self.rules = rules
        self.reasoner = reasoner
        self.citations = citations
        self.mapper = CodeMapper(registry, rules.code_mapping)
        self.builder = ClaimBuilder(rules.default_values)
        self.validator = ClaimValidator(registry, rules)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        reasoner: ReasoningProvider | None = None,
    ) -> "ClaimsService":
        registry = JsonCodeRegistry.from_settings(settings.knowledge)
        rules = load_claim_rules(settings.knowledge.rules_path)
        reasoner = reasoner or build_reasoning_provider(settings.reasoning)
        logger.info(
            "Initializing ClaimsService",
            extra={
                "registry_version": registry.version,
                "rules_version": rules.version,
                "reasoner": reasoner.version,
            },
        )
        return cls(registry, rules, reasoner, PolicyCitationLookup(settings.reasoning))

    # ------------------------------------------------------------------
    # Workflow steps
    # ------------------------------------------------------------------

    async def extract_entities(self, note_text: str) -> ExtractedEntities:
        with timed("claims_service.extract_entities"):
            return await self.reasoner.extract_entities(note_text)

    def map_codes(self, entities: ExtractedEntities) -> CodeMappingResult:
        return self.mapper.map_entities(entities)

    def build_claim(
        self,
        mapping: CodeMappingResult,
        *,
        patient: Patient | Mapping[str, Any] | None = None,
        provider: Provider | Mapping[str, Any] | None = None,
        service_date: Optional[str] = None,
        place_of_service: Optional[str] = None,
    ) -> Claim:
        return self.builder.build(
            mapping,
            patient=patient,
            provider=provider,
            service_date=service_date,
            place_of_service=place_of_service,
        )

    def validate_claim(self, claim: Claim) -> ValidationResult:
        return self.validator.validate(claim)

    async def fix_claim(
        self,
        claim: Claim,
        issues: Optional[Sequence[ValidationIssue]] = None,
    ) -> ClaimFixResult:
        """Ask the provider for fixes, apply them, and re-validate the result.

        When ``issues`` is empty the claim is validated first and its errors
        are used. The fixed claim is never submitted here.
        """
        if not issues:
            issues = self.validate_claim(claim).errors
        targets = [issue for issue in issues if issue.severity == IssueSeverity.ERROR] or list(issues)

        fixed_claim, applied = claim, []
        if targets:
            with timed("claims_service.fix_claim", {"issue_count": len(targets)}):
                policy = await self.citations.flat_citations(issue.code for issue in targets)
                fixes = await self.reasoner.suggest_fixes(claim, targets, policy)
            fixed_claim, applied = apply_fixes(claim, fixes)

        validation = self.validate_claim(fixed_claim)
        logger.info(
            "Claim fixes applied",
            extra={
                "issues_targeted": len(targets),
                "fixes_applied": len(applied),
                "issues_remaining": len(validation.issues),
            },
        )
        return ClaimFixResult(
            original_claim=claim,
            fixed_claim=fixed_claim,
            fixes_applied=applied,
            validation=validation,
        )

    def submit_claim(
        self,
        claim: Claim,
        validation: ValidationResult | None = None,
        claim_id: Optional[str] = None,
    ) -> PayerResponse:
        validation = validation or self.validate_claim(claim)
        return adjudicate(claim, validation, claim_id=claim_id)


__all__ = ["ClaimsService"]
