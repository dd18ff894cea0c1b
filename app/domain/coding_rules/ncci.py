"""NCCI (National Correct Coding Initiative) edit rules.

These are pure functional rules that determine which procedure codes on a
claim may not be billed together without justification.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from app.domain.knowledge_base.repository import CodeRegistry


@dataclass(frozen=True)
class NCCIConflict:
    """A conflicting pair found on a claim."""

    first: str
    second: str
    modifier_allowed: bool
    reason: str

    @property
    def codes(self) -> list[str]:
        return [self.first, self.second]


def find_ncci_conflicts(codes: Sequence[str], registry: CodeRegistry) -> list[NCCIConflict]:
    """Check every unordered pair of claim positions against the edit table.

    Args:
        codes: Procedure codes in claim line order.
        registry: Registry providing the symmetric pair lookup.

    Returns:
        One conflict per position pair ``i < j``, in line order.
    """
    conflicts: list[NCCIConflict] = []
    for i, first in enumerate(codes):
        for second in codes[i + 1 :]:
            pair = registry.get_ncci_pair(first, second)
            if pair is None:
                continue
            conflicts.append(
                NCCIConflict(
                    first=first,
                    second=second,
                    modifier_allowed=pair.modifier_allowed,
                    reason=pair.reason,
                )
            )
    return conflicts


__all__ = ["NCCIConflict", "find_ncci_conflicts"]
