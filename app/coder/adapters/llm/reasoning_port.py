"""Port for the external reasoning provider (entity extraction and fixes)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from claim_schemas.citations import PolicyCitation
from claim_schemas.claim import Claim
from claim_schemas.entities import ExtractedEntities
from claim_schemas.fixes import ClaimFix
from claim_schemas.validation import ValidationIssue


class ReasoningProvider(ABC):
    """Abstract port for the natural-language reasoning collaborator.

    Implementations raise ``ReasoningProviderError`` with an explicit
    ``ErrorKind`` for every failure.
    """

    @property
    @abstractmethod
    def version(self) -> str:
        """Return the model or implementation identifier."""
        ...

    @abstractmethod
    async def extract_entities(self, note_text: str) -> ExtractedEntities:
        """Extract clinical entities from a clinician note.

        Args:
            note_text: Raw note text.

        Returns:
            Entities validated against the ExtractedEntities schema.
        """
        ...

    @abstractmethod
    async def suggest_fixes(
        self,
        claim: Claim,
        issues: Sequence[ValidationIssue],
        citations: Sequence[PolicyCitation] = (),
    ) -> list[ClaimFix]:
        """Propose JSON-patch fixes for validation issues.

        Args:
            claim: The claim that failed validation.
            issues: Issues to address.
            citations: Policy excerpts supporting the fixes.

        Returns:
            Zero or more fixes; callers re-validate after applying them.
        """
        ...


__all__ = ["ReasoningProvider"]
