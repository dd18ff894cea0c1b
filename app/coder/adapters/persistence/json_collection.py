"""Durable JSON-file collection with an in-memory cache.

The cache is the source of truth. Every mutation rewrites the whole file
(temp file + ``os.replace``) before returning; mutations on one collection
are serialized by an ``asyncio.Lock`` so writes never interleave.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from app.common.exceptions import StoreIOError
from app.infra.executors import run_blocking
from observability.logging_config import get_logger

logger = get_logger("json_collection")

T = TypeVar("T", bound=BaseModel)


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class JsonCollection(Generic[T]):
    """Keyed collection of pydantic models mirrored to one JSON array file."""

    def __init__(
        self,
        path: str | Path,
        model: type[T],
        *,
        key: Callable[[T], str],
        sort_key: Callable[[T], Any],
        max_entries: Optional[int] = None,
    ):
        self.path = Path(path)
        self.model = model
        self._key = key
        self._sort_key = sort_key
        self.max_entries = max_entries
        self._items: dict[str, T] = {}
        self._lock = asyncio.Lock()
        self._load()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreIOError(f"Could not read {self.path}: {exc}", operation="load") from exc
        if not isinstance(raw, list):
            raise StoreIOError(f"{self.path} must contain a JSON array", operation="load")

        # Files are written newest-first; insert oldest-first to keep arrival order
        for entry in reversed(raw):
            try:
                item = self.model.model_validate(entry)
            except ValidationError as exc:
                logger.warning(
                    "Skipping unreadable record",
                    extra={"path": str(self.path), "errors": exc.error_count()},
                )
                continue
            self._items[self._key(item)] = item
        self._apply_retention()
        logger.info("Collection loaded", extra={"path": str(self.path), "count": len(self._items)})

    # ------------------------------------------------------------------
    # Reads (cache)
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def get(self, key: str) -> Optional[T]:
        return self._items.get(key)

    def items(self) -> list[T]:
        """Newest first; ties keep the most recently inserted first."""
        return sorted(reversed(list(self._items.values())), key=self._sort_key, reverse=True)

    # ------------------------------------------------------------------
    # Mutations (cache + flush)
    # ------------------------------------------------------------------

    def _apply_retention(self) -> None:
        if self.max_entries is None or len(self._items) <= self.max_entries:
            return
        keep = self.items()[: self.max_entries]
        dropped = len(self._items) - len(keep)
        kept_keys = {self._key(item) for item in keep}
        self._items = {key: item for key, item in self._items.items() if key in kept_keys}
        logger.debug("Retention cap applied", extra={"path": str(self.path), "dropped": dropped})

    async def _flush(self, operation: str, record_id: str) -> None:
        payload = [item.model_dump(mode="json") for item in self.items()]
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        try:
            await run_blocking(_write_atomic, self.path, text)
        except OSError as exc:
            logger.error(
                "Collection flush failed",
                extra={"path": str(self.path), "operation": operation, "record_id": record_id, "error": str(exc)},
            )
            raise StoreIOError(
                f"Failed to persist {self.path.name}: {exc}",
                operation=operation,
                record_id=record_id,
            ) from exc

    async def put(self, item: T, *, operation: str = "upsert") -> T:
        key = self._key(item)
        async with self._lock:
            self._items[key] = item
            self._apply_retention()
            await self._flush(operation, key)
        return item

    async def mutate(self, key: str, change: Callable[[Optional[T]], T], *, operation: str) -> T:
        """Read-modify-write ``key`` under the collection lock."""
        async with self._lock:
            item = change(self._items.get(key))
            self._items[self._key(item)] = item
            self._apply_retention()
            await self._flush(operation, key)
        return item


__all__ = ["JsonCollection"]
