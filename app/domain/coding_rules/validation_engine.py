"""Claim validation engine.

Evaluates a structured claim against the static rule tables and returns the
violations as data. Nothing here raises for a rule violation; callers decide
whether to fix and resubmit.

Checks run in a fixed order so results are reproducible:

1. required fields (provider, patient, claim level)
2. code validity against the CPT / ICD-10 registries
3. NCCI procedure-to-procedure conflicts
4. modifier 25 on E/M lines billed with a minor procedure
5. prior authorization watchlist
"""

from __future__ import annotations

from typing import Any

from app.domain.coding_rules.ncci import find_ncci_conflicts
from app.domain.coding_rules.rule_config import ClaimRules
from app.domain.knowledge_base.repository import CodeRegistry
from claim_schemas.claim import Claim
from claim_schemas.validation import IssueCode, IssueSeverity, ValidationIssue, ValidationResult
from observability.logging_config import get_logger

logger = get_logger("validation_engine")

NCCI_RULE_REFERENCE = "NCCI Edit Table"
PRIOR_AUTH_RULE_REFERENCE = "Payer Prior Authorization Policy"

# message, suggested fix
_CLAIM_FIELD_MESSAGES: dict[str, tuple[str, str]] = {
    "service_date": ("Missing service date", "Add service date"),
    "place_of_service": ("Missing place of service", "Add place of service code"),
    "diagnosis_codes": ("No diagnosis codes provided", "Add at least one diagnosis code"),
    "procedures": ("No procedure codes provided", "Add at least one procedure code"),
}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _error(code: IssueCode, message: str, **kwargs: Any) -> ValidationIssue:
    return ValidationIssue(severity=IssueSeverity.ERROR, code=code.value, message=message, **kwargs)


class ClaimValidator:
    """Stateless rule evaluator over a Claim."""

    def __init__(self, registry: CodeRegistry, rules: ClaimRules):
        self.registry = registry
        self.rules = rules

    def validate(self, claim: Claim) -> ValidationResult:
        issues: list[ValidationIssue] = []
        issues.extend(self.check_required_fields(claim))
        issues.extend(self.check_code_validity(claim))
        issues.extend(self.check_ncci_conflicts(claim))
        issues.extend(self.check_modifier_25(claim))
        issues.extend(self.check_prior_authorization(claim))

        result = ValidationResult(issues=issues)
        logger.debug(
            "Claim validated",
            extra={
                "valid": result.valid,
                "issue_count": len(issues),
                "issue_codes": sorted({issue.code for issue in issues}),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    def check_required_fields(self, claim: Claim) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        required = self.rules.required_fields

        for section, fields in (("provider", required.provider), ("patient", required.patient)):
            party = getattr(claim, section)
            for field_name in fields:
                if _is_blank(getattr(party, field_name, None)):
                    issues.append(
                        _error(
                            IssueCode.MISSING_REQUIRED_FIELD,
                            f"Missing required {section} field: {field_name}",
                            field=f"{section}.{field_name}",
                            suggested_fix=f"Add {section} {field_name}",
                        )
                    )

        for field_name in required.claim:
            if not _is_blank(getattr(claim, field_name, None)):
                continue
            message, fix = _CLAIM_FIELD_MESSAGES.get(
                field_name,
                (f"Missing required claim field: {field_name}", f"Add {field_name}"),
            )
            issues.append(
                _error(
                    IssueCode.MISSING_REQUIRED_FIELD,
                    message,
                    field=field_name,
                    suggested_fix=fix,
                )
            )
        return issues

    def check_code_validity(self, claim: Claim) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for line in claim.procedures:
            if not self.registry.is_valid_code(line.code, "cpt"):
                issues.append(
                    _error(
                        IssueCode.INVALID_CPT_CODE,
                        f"Invalid CPT code: {line.code}",
                        field="procedures",
                        affected_codes=[line.code],
                        suggested_fix="Use a valid CPT code from the approved list",
                    )
                )
        for code in claim.diagnosis_codes:
            if not self.registry.is_valid_code(code, "icd"):
                issues.append(
                    _error(
                        IssueCode.INVALID_ICD_CODE,
                        f"Invalid ICD-10 code: {code}",
                        field="diagnosis_codes",
                        affected_codes=[code],
                        suggested_fix="Use a valid ICD-10 code",
                    )
                )
        return issues

    def check_ncci_conflicts(self, claim: Claim) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for conflict in find_ncci_conflicts(claim.procedure_codes, self.registry):
            detail = conflict.reason or f"{conflict.first} and {conflict.second} are bundled"
            issues.append(
                _error(
                    IssueCode.NCCI_CONFLICT,
                    f"NCCI conflict: {detail}",
                    affected_codes=conflict.codes,
                    suggested_fix=(
                        "Add appropriate modifier if services are distinct"
                        if conflict.modifier_allowed
                        else "Remove one of the conflicting codes"
                    ),
                    rule_reference=NCCI_RULE_REFERENCE,
                )
            )
        return issues

    def check_modifier_25(self, claim: Claim) -> list[ValidationIssue]:
        rule = self.rules.modifier_25_rule
        em_codes = set(rule.trigger_codes.em_codes)
        minor_codes = set(rule.trigger_codes.minor_procedures)
        codes = claim.procedure_codes

        if not any(code in em_codes for code in codes):
            return []
        if not any(code in minor_codes for code in codes):
            return []

        issues: list[ValidationIssue] = []
        for line in claim.procedures:
            if line.code not in em_codes or rule.required_modifier in line.modifiers:
                continue
            issues.append(
                _error(
                    IssueCode.MISSING_MODIFIER_25,
                    f"Modifier {rule.required_modifier} required on E/M code {line.code} "
                    "when billed with minor procedure",
                    affected_codes=[line.code],
                    suggested_fix=f"Add modifier {rule.required_modifier} to CPT {line.code}",
                    rule_reference=rule.cms_reference or None,
                )
            )
        return issues

    def check_prior_authorization(self, claim: Claim) -> list[ValidationIssue]:
        watchlist = self.rules.prior_authorization_watchlist
        issues: list[ValidationIssue] = []
        for line in claim.procedures:
            entry = watchlist.lookup(line.code)
            if entry is None or not _is_blank(line.prior_authorization_number):
                continue
            issues.append(
                _error(
                    IssueCode.MISSING_PRIOR_AUTH,
                    f"Prior authorization required for {line.code}: {entry.reason}",
                    field=watchlist.required_field,
                    affected_codes=[line.code],
                    suggested_fix="Add prior authorization number",
                    rule_reference=PRIOR_AUTH_RULE_REFERENCE,
                )
            )
        return issues


__all__ = ["ClaimValidator", "NCCI_RULE_REFERENCE", "PRIOR_AUTH_RULE_REFERENCE"]
