"""Processor control and live progress (Server-Sent Events)."""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.api.dependencies import get_runtime
from app.api.schemas import SuccessResponse, ok
from app.processor.progress import ProgressSubscription
from app.processor.runtime import ProcessorRuntime
from claim_schemas.progress import TOTAL_STEPS, ProgressEvent
from claim_schemas.records import WorkItem, WorkItemStatus
from observability.logging_config import get_logger

logger = get_logger("api.processor")

router = APIRouter(tags=["processor"])
_runtime_dep = Depends(get_runtime)

CONNECTED_MESSAGE = 'data: {"status":"connected"}\n\n'
KEEPALIVE_INTERVAL_S = 15.0


def _sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def terminal_event(item: WorkItem) -> Optional[ProgressEvent]:
    """Replay the outcome for a work item that finished before the client subscribed."""
    if item.status == WorkItemStatus.COMPLETED:
        return ProgressEvent(
            work_item_id=item.id,
            step=TOTAL_STEPS,
            message=f"Claim processing complete! Claim {item.claim_id}",
            status="completed",
        )
    if item.status == WorkItemStatus.FAILED:
        return ProgressEvent(
            work_item_id=item.id,
            step=TOTAL_STEPS,
            message=f"Processing failed: {item.error or 'unknown error'}",
            status="error",
        )
    return None


@router.get("/processor/status", response_model=SuccessResponse[dict])
async def processor_status(runtime: ProcessorRuntime = _runtime_dep) -> SuccessResponse[dict]:
    return ok(runtime.status())


@router.post("/processor/init", response_model=SuccessResponse[dict])
async def processor_init(runtime: ProcessorRuntime = _runtime_dep) -> SuccessResponse[dict]:
    recovered = await runtime.initialize()
    return ok({"initialized": runtime.initialized, "recovered": recovered})


@router.get("/processor/progress/{work_item_id}")
async def processor_progress(
    work_item_id: str,
    request: Request,
    runtime: ProcessorRuntime = _runtime_dep,
) -> StreamingResponse:
    item = runtime.work_items.get(work_item_id)
    replay = terminal_event(item) if item is not None else None
    subscription: Optional[ProgressSubscription] = None
    if replay is None:
        subscription = runtime.broadcaster.subscribe(work_item_id)

    async def _events() -> AsyncIterator[str]:
        logger.debug("Progress stream opened", extra={"work_item_id": work_item_id})
        try:
            yield CONNECTED_MESSAGE
            if subscription is None:
                yield _sse(replay.to_wire())
                return
            while not await request.is_disconnected():
                try:
                    event = await subscription.next_event(timeout=KEEPALIVE_INTERVAL_S)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                if event is None:
                    break
                yield _sse(event.to_wire())
        finally:
            if subscription is not None:
                runtime.broadcaster.unsubscribe(subscription)
            logger.debug("Progress stream closed", extra={"work_item_id": work_item_id})

    return StreamingResponse(
        _events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


__all__ = ["router", "terminal_event"]
