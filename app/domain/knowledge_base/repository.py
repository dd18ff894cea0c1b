"""Code registry port (interface)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .models import CodeEntry, CodeKind, NCCIPair


class CodeRegistry(ABC):
    """Port for the static code registries and the NCCI edit table.

    This is the domain interface that infrastructure adapters implement.
    """

    @property
    @abstractmethod
    def version(self) -> str:
        """Return the version identifier for the loaded registries."""
        ...

    @abstractmethod
    def get_code(self, code: str, kind: CodeKind) -> Optional[CodeEntry]:
        """Get registry information for a code, or None if unknown."""
        ...

    @abstractmethod
    def iter_codes(self, kind: CodeKind) -> Iterable[CodeEntry]:
        """Iterate every registered code of ``kind`` in file order."""
        ...

    @abstractmethod
    def get_ncci_pair(self, code_a: str, code_b: str) -> Optional[NCCIPair]:
        """Return the edit pair for two codes in either order, if any."""
        ...

    def is_valid_code(self, code: str, kind: CodeKind) -> bool:
        return self.get_code(code, kind) is not None
