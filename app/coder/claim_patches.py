"""Apply JSON-patch style fix operations to a claim.

Paths are slash separated (``/procedures/0/modifiers/-``); ``-`` appends to a
list. Each fix is applied to a working copy and kept only if the patched
document still parses as a Claim, so one bad suggestion never corrupts the
others.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable

from pydantic import ValidationError

from claim_schemas.claim import Claim
from claim_schemas.fixes import ClaimFix, PatchOperation
from observability.logging_config import get_logger

logger = get_logger("claim_patches")


class PatchError(ValueError):
    """A patch path could not be resolved against the document."""


def _split_path(path: str) -> list[str]:
    return [part.replace("~1", "/").replace("~0", "~") for part in path.split("/") if part != ""]


def _child(container: Any, key: str, *, create: bool) -> Any:
    if isinstance(container, list):
        try:
            return container[int(key)]
        except (ValueError, IndexError) as exc:
            raise PatchError(f"Invalid list index {key!r}") from exc
    if isinstance(container, dict):
        if key not in container:
            if not create:
                raise PatchError(f"Missing key {key!r}")
            container[key] = {}
        return container[key]
    raise PatchError(f"Cannot descend into {type(container).__name__} at {key!r}")


def apply_patch(document: dict[str, Any], patch: PatchOperation) -> None:
    """Apply one operation to ``document`` in place."""
    parts = _split_path(patch.path)
    if not parts:
        raise PatchError("Empty patch path")

    parent: Any = document
    for key in parts[:-1]:
        parent = _child(parent, key, create=patch.op == "add")
    last = parts[-1]

    if patch.op in ("add", "replace"):
        if isinstance(parent, list):
            if last == "-" and patch.op == "add":
                parent.append(patch.value)
                return
            try:
                index = int(last)
            except ValueError as exc:
                raise PatchError(f"Invalid list index {last!r}") from exc
            if patch.op == "add" and index == len(parent):
                parent.append(patch.value)
            elif 0 <= index < len(parent):
                if patch.op == "add":
                    parent.insert(index, patch.value)
                else:
                    parent[index] = patch.value
            else:
                raise PatchError(f"List index {index} out of range")
        elif isinstance(parent, dict):
            if patch.op == "replace" and last not in parent:
                raise PatchError(f"Cannot replace missing key {last!r}")
            parent[last] = patch.value
        else:
            raise PatchError(f"Cannot set {last!r} on {type(parent).__name__}")
        return

    # remove
    if isinstance(parent, list):
        try:
            del parent[int(last)]
        except (ValueError, IndexError) as exc:
            raise PatchError(f"Invalid list index {last!r}") from exc
    elif isinstance(parent, dict):
        if last not in parent:
            raise PatchError(f"Missing key {last!r}")
        del parent[last]
    else:
        raise PatchError(f"Cannot remove {last!r} from {type(parent).__name__}")


def apply_fixes(claim: Claim, fixes: Iterable[ClaimFix]) -> tuple[Claim, list[ClaimFix]]:
    """Return the patched claim and the fixes that were actually applied."""
    document = claim.model_dump(mode="json")
    current = claim
    applied: list[ClaimFix] = []

    for fix in fixes:
        candidate = copy.deepcopy(document)
        try:
            for patch in fix.patches:
                apply_patch(candidate, patch)
            patched = Claim.model_validate(candidate)
        except (PatchError, ValidationError) as exc:
            logger.warning(
                "Skipping fix that could not be applied",
                extra={"issue_id": fix.issue_id, "error": str(exc)},
            )
            continue
        document = candidate
        current = patched
        applied.append(fix)

    return current, applied


__all__ = ["PatchError", "apply_fixes", "apply_patch"]
