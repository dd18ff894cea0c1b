"""FIFO processing queue with bounded concurrency.

Each dispatched work item runs as its own ``asyncio.Task`` and occupies one
of ``max_concurrency`` slots. After the handler returns the slot stays held
for ``inter_item_delay_s`` so bursts cannot outrun third-party rate limits.
Retries happen inside the handler and therefore keep the item's slot.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Awaitable, Callable

from observability.logging_config import get_logger

logger = get_logger("processor.queue")

WorkItemHandler = Callable[[str], Awaitable[None]]


class ProcessingQueue:
    """Dispatches work item ids to ``handler`` in enqueue order."""

    def __init__(
        self,
        handler: WorkItemHandler,
        *,
        max_concurrency: int = 3,
        inter_item_delay_s: float = 0.0,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._handler = handler
        self.max_concurrency = max_concurrency
        self.inter_item_delay_s = max(inter_item_delay_s, 0.0)

        self._queue: deque[str] = deque()
        self._active: dict[str, asyncio.Task[None]] = {}
        self._slots_in_use = 0
        self._tasks: set[asyncio.Task[None]] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self.peak_in_flight = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def get_queue_status(self) -> dict[str, object]:
        """Read-only snapshot; never mutates queue state."""
        return {
            "queued_count": len(self._queue),
            "in_flight_count": len(self._active),
            "in_flight_ids": list(self._active),
        }

    def is_tracked(self, work_item_id: str) -> bool:
        return work_item_id in self._active or work_item_id in self._queue

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def enqueue(self, work_item_id: str) -> bool:
        """Queue ``work_item_id``; a no-op returning False if already queued or in flight."""
        if self._closed:
            raise RuntimeError("ProcessingQueue is closed")
        if self.is_tracked(work_item_id):
            logger.debug("Work item already tracked", extra={"work_item_id": work_item_id})
            return False
        self._queue.append(work_item_id)
        self._idle.clear()
        logger.info(
            "Work item queued",
            extra={"work_item_id": work_item_id, "queued": len(self._queue), "in_flight": len(self._active)},
        )
        self._dispatch()
        return True

    def _dispatch(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._closed and self._queue and self._slots_in_use < self.max_concurrency:
            work_item_id = self._queue.popleft()
            self._slots_in_use += 1
            task = loop.create_task(self._run(work_item_id), name=f"process:{work_item_id}")
            self._active[work_item_id] = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            self.peak_in_flight = max(self.peak_in_flight, len(self._active))

    async def _run(self, work_item_id: str) -> None:
        try:
            try:
                await self._handler(work_item_id)
            except Exception:
                # The handler records its own failures; reaching here means it could not
                logger.exception("Unhandled error processing work item", extra={"work_item_id": work_item_id})
            finally:
                self._active.pop(work_item_id, None)

            if self.inter_item_delay_s > 0 and not self._closed:
                await asyncio.sleep(self.inter_item_delay_s)
        finally:
            self._slots_in_use -= 1
            if not self._closed:
                self._dispatch()
            if not self._queue and self._slots_in_use == 0:
                self._idle.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def join(self) -> None:
        """Wait until nothing is queued and every slot has been released."""
        await self._idle.wait()

    async def close(self) -> None:
        """Stop dispatching, drop queued ids and cancel running tasks."""
        self._closed = True
        dropped = len(self._queue)
        self._queue.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._idle.set()
        logger.info("Processing queue closed", extra={"dropped": dropped, "cancelled": len(tasks)})


__all__ = ["ProcessingQueue", "WorkItemHandler"]
