"""Map extracted clinical entities to candidate CPT / ICD-10 codes.

Three strategies, in decreasing certainty:

- keyword: a registered keyword appears in the text
- exact: domain special cases (lesion-count tiers, E/M visit levels)
- fuzzy: word overlap with the code description, only when no keyword hit
"""

from __future__ import annotations

from typing import Iterable, Optional

from app.domain.coding_rules.rule_config import CodeMappingRules
from app.domain.knowledge_base.models import CodeEntry, CodeKind
from app.domain.knowledge_base.repository import CodeRegistry
from claim_schemas.coding import CodeMappingResult, MappedCode
from claim_schemas.entities import ExtractedEntities
from observability.logging_config import get_logger

logger = get_logger("code_mapper")


def word_similarity(text: str, description: str) -> float:
    """Share of words in ``text`` that equal, contain, or are contained by a description word."""
    words_a = text.lower().split()
    words_b = description.lower().split()
    if not words_a or not words_b:
        return 0.0

    matches = 0
    for word_a in words_a:
        if any(word_a == word_b or word_b in word_a or word_a in word_b for word_b in words_b):
            matches += 1
    return matches / max(len(words_a), len(words_b))


def dedupe_codes(codes: Iterable[MappedCode]) -> list[MappedCode]:
    """Drop repeated codes; the first occurrence wins."""
    seen: set[str] = set()
    unique: list[MappedCode] = []
    for mapped in codes:
        if mapped.code in seen:
            continue
        seen.add(mapped.code)
        unique.append(mapped)
    return unique


class CodeMapper:
    """Deterministic text → code mapper backed by a CodeRegistry."""

    def __init__(self, registry: CodeRegistry, rules: CodeMappingRules | None = None):
        self.registry = registry
        self.rules = rules or CodeMappingRules()

    # ------------------------------------------------------------------
    # Matching strategies
    # ------------------------------------------------------------------

    def _keyword_matches(self, text: str, kind: CodeKind) -> list[MappedCode]:
        search = text.lower()
        results: list[MappedCode] = []
        for entry in self.registry.iter_codes(kind):
            keyword = next((kw for kw in entry.keywords if kw and kw in search), None)
            if keyword is None:
                continue
            confidence = min(
                len(keyword) / len(search) * self.rules.keyword_confidence_multiplier,
                self.rules.keyword_confidence_cap,
            )
            results.append(
                MappedCode(
                    code=entry.code,
                    description=entry.description,
                    confidence=confidence,
                    source="keyword",
                    matched_term=keyword,
                )
            )
        return results

    def _fuzzy_matches(self, text: str, kind: CodeKind) -> list[MappedCode]:
        results: list[MappedCode] = []
        for entry in self.registry.iter_codes(kind):
            similarity = word_similarity(text, entry.description)
            if similarity > self.rules.fuzzy_threshold:
                results.append(
                    MappedCode(
                        code=entry.code,
                        description=entry.description,
                        confidence=min(similarity * self.rules.fuzzy_confidence_multiplier, 1.0),
                        source="fuzzy",
                    )
                )
        return results

    def _text_matches(self, text: str, kind: CodeKind) -> list[MappedCode]:
        if not text or not text.strip():
            return []
        results = self._keyword_matches(text, kind)
        if not results:
            results = self._fuzzy_matches(text, kind)
        return results

    def _special_case(self, code: Optional[str], confidence: float, matched_term: str) -> Optional[MappedCode]:
        if not code:
            return None
        entry: Optional[CodeEntry] = self.registry.get_code(code, "cpt")
        if entry is None:
            return None
        return MappedCode(
            code=entry.code,
            description=entry.description,
            confidence=confidence,
            source="exact",
            matched_term=matched_term,
        )

    def _rank(self, results: list[MappedCode]) -> list[MappedCode]:
        # sorted() is stable, so ties keep registry order
        ranked = sorted(results, key=lambda mapped: mapped.confidence, reverse=True)
        return ranked[: self.rules.max_results]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def map_procedure(self, text: str, entities: ExtractedEntities | None = None) -> list[MappedCode]:
        """Return up to ``max_results`` CPT candidates for a procedure description.

        Lesion count and visit complexity on ``entities`` add tiered
        destruction and E/M codes when they are not already present.
        """
        results = self._text_matches(text, "cpt")
        entities = entities or ExtractedEntities()

        special: list[Optional[MappedCode]] = []
        if entities.lesion_count:
            lesion_rule = self.rules.lesion_destruction
            special.append(
                self._special_case(
                    lesion_rule.code_for(entities.lesion_count),
                    lesion_rule.confidence,
                    f"lesion count: {entities.lesion_count}",
                )
            )
        if entities.visit_complexity:
            em_rule = self.rules.evaluation_management
            special.append(
                self._special_case(
                    em_rule.code_for(entities.visit_complexity, entities.patient_type or "established"),
                    em_rule.confidence,
                    f"visit complexity: {entities.visit_complexity}",
                )
            )

        present = {mapped.code for mapped in results}
        for mapped in special:
            if mapped is not None and mapped.code not in present:
                results.append(mapped)
                present.add(mapped.code)

        return self._rank(results)

    def map_diagnosis(self, text: str) -> list[MappedCode]:
        """Return up to ``max_results`` ICD-10 candidates for diagnosis text."""
        return self._rank(self._text_matches(text, "icd"))

    def map_entities(self, entities: ExtractedEntities) -> CodeMappingResult:
        cpt_codes: list[MappedCode] = []
        icd_codes: list[MappedCode] = []

        procedures = [entities.procedure_name, *(entities.additional_procedures or [])]
        for procedure in procedures:
            if procedure:
                cpt_codes.extend(self.map_procedure(procedure, entities))

        diagnoses = [entities.diagnosis_text, *(entities.additional_diagnoses or [])]
        for diagnosis in diagnoses:
            if diagnosis:
                icd_codes.extend(self.map_diagnosis(diagnosis))

        result = CodeMappingResult(
            cpt_codes=dedupe_codes(cpt_codes),
            icd_codes=dedupe_codes(icd_codes),
            entities=entities,
        )
        logger.debug(
            "Entities mapped",
            extra={
                "cpt_codes": [mapped.code for mapped in result.cpt_codes],
                "icd_codes": [mapped.code for mapped in result.icd_codes],
            },
        )
        return result

    def is_valid_code(self, code: str, kind: CodeKind) -> bool:
        return self.registry.is_valid_code(code, kind)


__all__ = ["CodeMapper", "dedupe_codes", "word_similarity"]
