"""Tests for ClaimValidator rule checks."""

from __future__ import annotations

from claim_schemas.validation import IssueCode, IssueSeverity


def _codes(result) -> list[str]:
    return [issue.code for issue in result.issues]


# =============================================================================
# Required fields and code validity
# =============================================================================


class TestRequiredFields:
    def test_complete_claim_is_valid(self, validator, claim_factory):
        result = validator.validate(claim_factory())

        assert result.valid is True
        assert result.issues == []

    def test_missing_npi_is_an_error(self, validator, claim_factory):
        claim = claim_factory(provider={"npi": "", "name": "Dr. Alan Smith", "taxonomy": "207Q00000X"})
        result = validator.validate(claim)

        assert result.valid is False
        [issue] = result.issues
        assert issue.code == IssueCode.MISSING_REQUIRED_FIELD.value
        assert issue.field == "provider.npi"
        assert issue.severity == IssueSeverity.ERROR

    def test_whitespace_only_counts_as_missing(self, validator, claim_factory):
        claim = claim_factory(
            patient={"first_name": "  ", "last_name": "Doe", "date_of_birth": "1970-01-01", "gender": "F"}
        )
        fields = [issue.field for issue in validator.validate(claim).issues]
        assert fields == ["patient.first_name"]

    def test_claim_level_fields_use_specific_messages(self, validator, claim_factory):
        claim = claim_factory(service_date="", diagnosis_codes=[], procedures=[])
        messages = {issue.field: issue.message for issue in validator.validate(claim).issues}

        assert messages == {
            "service_date": "Missing service date",
            "diagnosis_codes": "No diagnosis codes provided",
            "procedures": "No procedure codes provided",
        }


class TestCodeValidity:
    def test_unknown_cpt_code(self, validator, claim_factory):
        claim = claim_factory(procedures=[{"code": "00000", "charge": 10.0}])
        [issue] = validator.validate(claim).issues

        assert issue.code == IssueCode.INVALID_CPT_CODE.value
        assert issue.affected_codes == ["00000"]

    def test_unknown_icd_code(self, validator, claim_factory):
        claim = claim_factory(diagnosis_codes=["L57.0", "Q99.999"])
        [issue] = validator.validate(claim).issues

        assert issue.code == IssueCode.INVALID_ICD_CODE.value
        assert issue.affected_codes == ["Q99.999"]


# =============================================================================
# Pairwise and contextual rules
# =============================================================================


class TestNcciConflicts:
    def test_modifier_allowed_pair(self, validator, claim_factory):
        claim = claim_factory(
            procedures=[{"code": "17000", "charge": 150.0}, {"code": "11102", "charge": 150.0}]
        )
        [issue] = validator.validate(claim).issues

        assert issue.code == IssueCode.NCCI_CONFLICT.value
        assert issue.affected_codes == ["17000", "11102"]
        assert issue.suggested_fix == "Add appropriate modifier if services are distinct"
        assert issue.rule_reference == "NCCI Edit Table"

    def test_pair_found_in_either_order(self, validator, claim_factory):
        claim = claim_factory(
            procedures=[{"code": "11300", "charge": 150.0}, {"code": "11400", "charge": 150.0}]
        )
        [issue] = validator.validate(claim).issues

        assert issue.affected_codes == ["11300", "11400"]
        assert issue.suggested_fix == "Remove one of the conflicting codes"

    def test_unrelated_codes_do_not_conflict(self, validator, claim_factory):
        claim = claim_factory(
            procedures=[{"code": "17000", "charge": 150.0}, {"code": "17003", "charge": 150.0}]
        )
        assert validator.validate(claim).valid is True


class TestModifier25:
    def test_em_with_minor_procedure_requires_modifier(self, validator, claim_factory):
        claim = claim_factory(
            procedures=[{"code": "17000", "charge": 150.0}, {"code": "99213", "charge": 160.0}]
        )
        result = validator.validate(claim)

        assert _codes(result) == [IssueCode.MISSING_MODIFIER_25.value]
        assert result.issues[0].affected_codes == ["99213"]

    def test_one_issue_per_em_line_missing_modifier(self, validator, claim_factory):
        claim = claim_factory(
            procedures=[
                {"code": "99213", "charge": 160.0},
                {"code": "17000", "charge": 150.0},
                {"code": "99214", "charge": 220.0},
            ]
        )
        result = validator.validate(claim)

        assert _codes(result) == [IssueCode.MISSING_MODIFIER_25.value] * 2
        assert [issue.affected_codes for issue in result.issues] == [["99213"], ["99214"]]

    def test_only_lines_without_modifier_are_flagged(self, validator, claim_factory):
        claim = claim_factory(
            procedures=[
                {"code": "99213", "modifiers": ["25"], "charge": 160.0},
                {"code": "17000", "charge": 150.0},
                {"code": "99214", "charge": 220.0},
            ]
        )
        [issue] = validator.validate(claim).issues

        assert issue.affected_codes == ["99214"]

    def test_modifier_present_clears_issue(self, validator, claim_factory):
        claim = claim_factory(
            procedures=[
                {"code": "17000", "charge": 150.0},
                {"code": "99213", "modifiers": ["25"], "charge": 160.0},
            ]
        )
        assert validator.validate(claim).valid is True

    def test_em_alone_needs_no_modifier(self, validator, claim_factory):
        claim = claim_factory(procedures=[{"code": "99213", "charge": 160.0}])
        assert validator.validate(claim).valid is True


class TestPriorAuthorization:
    def test_watchlisted_code_without_number(self, validator, claim_factory):
        claim = claim_factory(diagnosis_codes=["I10"], procedures=[{"code": "70551", "charge": 1200.0}])
        [issue] = validator.validate(claim).issues

        assert issue.code == IssueCode.MISSING_PRIOR_AUTH.value
        assert issue.field == "prior_authorization_number"
        assert issue.affected_codes == ["70551"]

    def test_watchlisted_code_with_number(self, validator, claim_factory):
        claim = claim_factory(
            diagnosis_codes=["I10"],
            procedures=[{"code": "70551", "charge": 1200.0, "prior_authorization_number": "PA-1234"}],
        )
        assert validator.validate(claim).valid is True


def test_checks_run_in_fixed_order(validator, claim_factory):
    claim = claim_factory(
        provider={"npi": "", "name": "Dr. Alan Smith", "taxonomy": "207Q00000X"},
        procedures=[
            {"code": "70551", "charge": 1200.0},
            {"code": "00000", "charge": 1.0},
            {"code": "17000", "charge": 150.0},
            {"code": "11102", "charge": 150.0},
            {"code": "99213", "charge": 160.0},
        ],
    )
    assert _codes(validator.validate(claim)) == [
        "MISSING_REQUIRED_FIELD",
        "INVALID_CPT_CODE",
        "NCCI_CONFLICT",
        "MISSING_MODIFIER_25",
        "MISSING_PRIOR_AUTH",
    ]
