"""Helpers for rendering knowledge metadata in CLI contexts."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from config.settings import KnowledgeSettings

from .knowledge import document_checksum, load_document

_COLLECTION_KEYS = ("codes", "pairs")


def _entry_count(document: dict) -> int:
    for key in _COLLECTION_KEYS:
        value = document.get(key)
        if isinstance(value, (list, dict)):
            return len(value)
    return 0


def print_knowledge_info(console: Console, settings: KnowledgeSettings | None = None) -> None:
    """Render version, entry count and checksum for each static table."""

    settings = settings or KnowledgeSettings()
    paths: dict[str, Path] = {
        "CPT codes": settings.cpt_codes_path,
        "ICD-10 codes": settings.icd_codes_path,
        "NCCI pairs": settings.ncci_path,
        "Claim rules": settings.rules_path,
    }

    table = Table(title="Knowledge Tables", show_lines=False)
    table.add_column("Table", style="cyan", no_wrap=True)
    table.add_column("Version")
    table.add_column("Entries", justify="right")
    table.add_column("SHA256")
    table.add_column("Path")

    for label, path in paths.items():
        document = load_document(path)
        table.add_row(
            label,
            str(document.get("version", "—")),
            str(_entry_count(document)) if label != "Claim rules" else "—",
            document_checksum(path)[:12],
            str(path),
        )
    console.print(table)


__all__ = ["print_knowledge_info"]
