"""Clinician note upload and listing."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from app.api.dependencies import get_runtime, get_store_settings
from app.api.schemas import SuccessResponse, ok
from app.common.exceptions import UploadRejectedError
from app.common.text_io import NOTE_SUFFIX, decode_note, is_note_filename
from app.infra.safe_logging import safe_log_text
from app.processor.runtime import ProcessorRuntime
from claim_schemas.records import WorkItem
from config.settings import StoreSettings
from observability.logging_config import get_logger

logger = get_logger("api.notes")

router = APIRouter(tags=["notes"])
_runtime_dep = Depends(get_runtime)
_store_settings_dep = Depends(get_store_settings)


async def read_upload(file: Optional[UploadFile], max_bytes: int) -> tuple[str, str]:
    """Return ``(filename, text)`` for an accepted upload or raise UploadRejectedError."""
    if file is None or not file.filename:
        raise UploadRejectedError("No file uploaded", code="NO_FILE")

    filename = file.filename
    if not is_note_filename(filename):
        raise UploadRejectedError(f"Only {NOTE_SUFFIX} files are allowed", code="INVALID_FILE_TYPE")

    raw = await file.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise UploadRejectedError(
            f"File exceeds the {max_bytes // (1024 * 1024)} MB upload limit",
            code="FILE_TOO_LARGE",
            details={"max_bytes": max_bytes},
        )
    return filename, decode_note(raw)


@router.post("/notes/upload", response_model=SuccessResponse[WorkItem])
async def upload_note(
    file: Optional[UploadFile] = File(default=None),
    runtime: ProcessorRuntime = _runtime_dep,
    store_settings: StoreSettings = _store_settings_dep,
) -> SuccessResponse[WorkItem]:
    filename, text = await read_upload(file, store_settings.max_upload_bytes)
    item = await runtime.submit(filename, text)
    logger.info(
        "Note uploaded",
        extra={"work_item_id": item.id, "note": safe_log_text(text)},
    )
    return ok(item)


@router.get("/notes", response_model=SuccessResponse[List[WorkItem]])
async def list_notes(runtime: ProcessorRuntime = _runtime_dep) -> SuccessResponse[List[WorkItem]]:
    return ok(runtime.work_items.list_all())


__all__ = ["router"]
