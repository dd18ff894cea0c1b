"""Code registry adapter for the JSON knowledge files.

Loads the CPT and ICD-10 registries plus the NCCI edit table and implements
the CodeRegistry interface.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterable, Optional

from app.common.exceptions import KnowledgeError
from app.common.knowledge import load_document
from app.domain.knowledge_base.models import CodeEntry, CodeKind, NCCIPair
from app.domain.knowledge_base.repository import CodeRegistry
from config.settings import KnowledgeSettings
from observability.logging_config import get_logger

logger = get_logger(__name__)

_CPT_RE = re.compile(r"^\d{4}[0-9A-Z]$")


def normalize_cpt(code: object) -> str | None:
    """Normalize a CPT-like string for lookups.

    - Strip whitespace
    - Strip leading '+' (add-on marker)
    - Require a 5-character code (skip anything else)
    """
    if not isinstance(code, str):
        return None
    cleaned = code.strip().upper()
    if cleaned.startswith("+"):
        cleaned = cleaned[1:].strip()
    return cleaned if _CPT_RE.match(cleaned) else None


def normalize_icd(code: object) -> str | None:
    if not isinstance(code, str):
        return None
    cleaned = code.strip().upper()
    return cleaned or None


def _normalize(code: object, kind: CodeKind) -> str | None:
    return normalize_cpt(code) if kind == "cpt" else normalize_icd(code)


class JsonCodeRegistry(CodeRegistry):
    """Adapter that loads the registries from ``data/knowledge`` JSON files."""

    def __init__(
        self,
        cpt_path: str | Path,
        icd_path: str | Path,
        ncci_path: str | Path,
    ):
        self._paths = {"cpt": Path(cpt_path), "icd": Path(icd_path)}
        self._ncci_path = Path(ncci_path)
        self._codes: dict[str, dict[str, CodeEntry]] = {"cpt": {}, "icd": {}}
        self._ncci: dict[frozenset[str], NCCIPair] = {}
        self._version = "unknown"
        self._load_data()

    @classmethod
    def from_settings(cls, settings: KnowledgeSettings | None = None) -> "JsonCodeRegistry":
        settings = settings or KnowledgeSettings()
        return cls(settings.cpt_codes_path, settings.icd_codes_path, settings.ncci_path)

    @property
    def version(self) -> str:
        return self._version

    def _load_data(self) -> None:
        for kind in ("cpt", "icd"):
            document = load_document(self._paths[kind])
            self._codes[kind] = self._load_codes(document, kind)
            if kind == "cpt":
                self._version = str(document.get("version", "unknown"))
        self._ncci = self._load_ncci_pairs(load_document(self._ncci_path))
        logger.info(
            "Code registry loaded",
            extra={
                "version": self._version,
                "cpt_codes": len(self._codes["cpt"]),
                "icd_codes": len(self._codes["icd"]),
                "ncci_pairs": len(self._ncci),
            },
        )

    @staticmethod
    def _load_codes(document: dict[str, Any], kind: CodeKind) -> dict[str, CodeEntry]:
        raw_codes = document.get("codes")
        if not isinstance(raw_codes, list):
            raise KnowledgeError(f"{kind.upper()} registry is missing a 'codes' list")

        entries: dict[str, CodeEntry] = {}
        for raw in raw_codes:
            if not isinstance(raw, dict):
                continue
            code = _normalize(raw.get("code"), kind)
            if not code:
                logger.warning("Skipping malformed registry code", extra={"kind": kind, "code": raw.get("code")})
                continue
            keywords = tuple(
                str(kw).strip().lower() for kw in raw.get("keywords", []) or [] if str(kw).strip()
            )
            entries[code] = CodeEntry(
                code=code,
                description=str(raw.get("description", "")),
                kind=kind,
                category=str(raw.get("category", "")),
                keywords=keywords,
            )
        return entries

    @staticmethod
    def _load_ncci_pairs(document: dict[str, Any]) -> dict[frozenset[str], NCCIPair]:
        pairs: dict[frozenset[str], NCCIPair] = {}
        for raw in document.get("pairs", []) or []:
            if not isinstance(raw, dict):
                continue
            column1 = normalize_cpt(raw.get("column1"))
            column2 = normalize_cpt(raw.get("column2"))
            if not column1 or not column2 or column1 == column2:
                continue
            pairs[frozenset((column1, column2))] = NCCIPair(
                column1=column1,
                column2=column2,
                modifier_allowed=bool(raw.get("modifier_allowed", False)),
                reason=str(raw.get("description", "") or ""),
            )
        return pairs

    def get_code(self, code: str, kind: CodeKind) -> Optional[CodeEntry]:
        normalized = _normalize(code, kind)
        if not normalized:
            return None
        return self._codes[kind].get(normalized)

    def iter_codes(self, kind: CodeKind) -> Iterable[CodeEntry]:
        return self._codes[kind].values()

    def get_ncci_pair(self, code_a: str, code_b: str) -> Optional[NCCIPair]:
        a = normalize_cpt(code_a)
        b = normalize_cpt(code_b)
        if not a or not b or a == b:
            return None
        return self._ncci.get(frozenset((a, b)))


__all__ = ["JsonCodeRegistry", "normalize_cpt", "normalize_icd"]
