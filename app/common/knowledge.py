"""Static knowledge document loader.

Code registries and rule tables are plain JSON/YAML files under
``data/knowledge``. Documents are cached per path and reloaded when the
file's mtime changes, so editing a rule table takes effect without a restart.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any

import yaml

from app.common.exceptions import KnowledgeError
from observability.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class _CachedDocument:
    mtime: float
    sha256: str
    data: dict[str, Any]


_cache: dict[Path, _CachedDocument] = {}
_lock = Lock()


def _parse(target: Path, raw: bytes) -> dict[str, Any]:
    try:
        if target.suffix.lower() in {".yaml", ".yml"}:
            document = yaml.safe_load(raw)
        else:
            document = json.loads(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise KnowledgeError(f"Invalid knowledge document {target}: {exc}") from exc
    if not isinstance(document, dict):
        raise KnowledgeError(f"Knowledge document {target} must be a mapping at the top level")
    return document


def load_document(path: str | Path, *, force_reload: bool = False) -> dict[str, Any]:
    """Return the parsed JSON or YAML document at ``path``.

    Raises:
        KnowledgeError: if the file is missing or cannot be parsed.
    """
    target = Path(path).resolve()
    try:
        mtime = target.stat().st_mtime
    except FileNotFoundError as exc:
        raise KnowledgeError(f"Knowledge file not found: {target}") from exc

    with _lock:
        cached = _cache.get(target)
        if cached is not None and not force_reload and cached.mtime == mtime:
            return cached.data

        raw = target.read_bytes()
        document = _parse(target, raw)
        checksum = hashlib.sha256(raw).hexdigest()
        _cache[target] = _CachedDocument(mtime=mtime, sha256=checksum, data=document)

    logger.info(
        "Loaded knowledge document",
        extra={"path": str(target), "version": document.get("version"), "sha256": checksum[:12]},
    )
    return document


def document_checksum(path: str | Path) -> str:
    """Return the SHA256 of the cached document, loading it first if needed."""
    load_document(path)
    return _cache[Path(path).resolve()].sha256


__all__ = ["document_checksum", "load_document"]
