"""Tests for CodeMapper: keyword, exact (lesion / E/M) and fuzzy matching."""

from __future__ import annotations

import pytest

from app.coder.code_mapper import CodeMapper, dedupe_codes, word_similarity
from claim_schemas.coding import MappedCode
from claim_schemas.entities import ExtractedEntities


@pytest.fixture
def mapper(registry, rules) -> CodeMapper:
    return CodeMapper(registry, rules.code_mapping)


# =============================================================================
# Keyword and fuzzy matching
# =============================================================================


class TestTextMatching:
    def test_keyword_match_scores_by_keyword_share(self, mapper):
        """A keyword covering the whole text is capped at 0.99."""
        results = mapper.map_procedure("cryotherapy of actinic keratosis")

        assert results[0].code == "17000"
        assert results[0].source == "keyword"
        assert results[0].matched_term == "cryotherapy of actinic keratosis"
        assert results[0].confidence == pytest.approx(0.99)

    def test_keyword_match_is_case_insensitive(self, mapper):
        results = mapper.map_procedure("Shave Biopsy of left forearm lesion")

        assert [mapped.code for mapped in results] == ["11102"]
        assert results[0].confidence == pytest.approx(len("shave biopsy") / 35 * 1.2)

    def test_fuzzy_used_only_without_keyword_hit(self, mapper):
        results = mapper.map_procedure("venous blood collection")

        assert results
        assert all(mapped.source == "fuzzy" for mapped in results)
        assert "36415" in [mapped.code for mapped in results]

    def test_blank_text_yields_nothing(self, mapper):
        assert mapper.map_procedure("   ") == []
        assert mapper.map_diagnosis("") == []

    def test_diagnosis_keyword(self, mapper):
        results = mapper.map_diagnosis("actinic keratosis")

        assert results[0].code == "L57.0"
        assert results[0].source == "keyword"

    def test_results_capped_at_max_results(self, registry, rules):
        narrow = CodeMapper(registry, rules.code_mapping.model_copy(update={"max_results": 1}))
        results = narrow.map_procedure(
            "cryotherapy of actinic keratosis",
            ExtractedEntities(lesion_count=3, visit_complexity="moderate"),
        )
        assert len(results) == 1


# =============================================================================
# Domain special cases
# =============================================================================


class TestSpecialCases:
    @pytest.mark.parametrize(
        "count,expected",
        [(1, "17000"), (2, "17003"), (14, "17003"), (15, "17004"), (40, "17004")],
    )
    def test_lesion_count_tiers(self, mapper, count, expected):
        results = mapper.map_procedure("procedure", ExtractedEntities(lesion_count=count))
        exact = [mapped for mapped in results if mapped.source == "exact"]

        assert [mapped.code for mapped in exact] == [expected]
        assert exact[0].confidence == pytest.approx(0.95)

    @pytest.mark.parametrize(
        "complexity,patient_type,expected",
        [
            ("minimal", "established", "99211"),
            ("straightforward", "established", "99212"),
            ("Moderate", "established", "99213"),
            ("moderate", "new", "99203"),
            ("high", "new", "99204"),
        ],
    )
    def test_visit_complexity_levels(self, mapper, complexity, patient_type, expected):
        entities = ExtractedEntities(visit_complexity=complexity, patient_type=patient_type)
        results = mapper.map_procedure("office encounter", entities)

        assert expected in [mapped.code for mapped in results if mapped.source == "exact"]

    def test_patient_type_defaults_to_established(self, mapper):
        results = mapper.map_procedure("office encounter", ExtractedEntities(visit_complexity="moderate"))
        assert "99213" in [mapped.code for mapped in results]

    def test_special_case_not_duplicated_when_keyword_found_it(self, mapper):
        results = mapper.map_procedure(
            "cryotherapy of actinic keratosis",
            ExtractedEntities(lesion_count=1),
        )
        codes = [mapped.code for mapped in results]

        assert codes.count("17000") == 1
        assert results[0].source == "keyword"


# =============================================================================
# Whole-entity mapping
# =============================================================================


class TestMapEntities:
    def test_sample_note_entities(self, mapper):
        entities = ExtractedEntities(
            procedure_name="cryotherapy of actinic keratosis",
            diagnosis_text="actinic keratosis",
            lesion_count=3,
            visit_complexity="moderate",
            patient_type="established",
        )
        result = mapper.map_entities(entities)

        assert [mapped.code for mapped in result.cpt_codes] == ["17000", "17003", "99213"]
        assert [mapped.code for mapped in result.icd_codes] == ["L57.0"]
        assert result.entities == entities

    def test_codes_deduplicated_across_procedures(self, mapper):
        entities = ExtractedEntities(
            procedure_name="shave biopsy",
            additional_procedures=["tangential biopsy", "punch biopsy"],
        )
        codes = [mapped.code for mapped in mapper.map_entities(entities).cpt_codes]

        assert codes == ["11102", "11104"]

    def test_empty_entities(self, mapper):
        result = mapper.map_entities(ExtractedEntities())
        assert result.cpt_codes == []
        assert result.icd_codes == []


class TestHelpers:
    def test_word_similarity_counts_containment(self):
        assert word_similarity("blood draw", "Collection of venous blood") == pytest.approx(1 / 4)
        assert word_similarity("", "anything") == 0.0

    def test_dedupe_keeps_first(self):
        first = MappedCode(code="17000", description="a", confidence=0.5, source="keyword")
        second = MappedCode(code="17000", description="b", confidence=0.9, source="exact")
        assert dedupe_codes([first, second]) == [first]
