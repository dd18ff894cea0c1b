"""Per-work-item progress channels.

One subscriber per work item: subscribing again closes the previous
subscription. Events published with no subscriber are dropped, nothing is
buffered for late subscribers. A subscription ends after a terminal event.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional, cast

from claim_schemas.progress import ProgressEvent
from observability.logging_config import get_logger

logger = get_logger("processor.progress")

_CLOSED = object()


class ProgressSubscription:
    """Async iterator over the events for one work item."""

    def __init__(self, work_item_id: str):
        self.work_item_id = work_item_id
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self.closed = False

    def push(self, event: ProgressEvent) -> None:
        if self.closed:
            return
        self._queue.put_nowait(event)
        if event.terminal:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)

    async def next_event(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        """Next event, or None once the subscription has ended.

        Raises:
            asyncio.TimeoutError: if ``timeout`` elapses first.
        """
        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            # keep the sentinel so repeated reads also see the end
            self._queue.put_nowait(_CLOSED)
            return None
        return cast(ProgressEvent, item)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self.next_event()
            if event is None:
                return
            yield event


class ProgressBroadcaster:
    """Routes progress events from pipeline tasks to the current subscriber."""

    def __init__(self) -> None:
        self._subscribers: dict[str, ProgressSubscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, work_item_id: str) -> ProgressSubscription:
        previous = self._subscribers.pop(work_item_id, None)
        if previous is not None:
            logger.debug("Replacing progress subscriber", extra={"work_item_id": work_item_id})
            previous.close()
        subscription = ProgressSubscription(work_item_id)
        self._subscribers[work_item_id] = subscription
        return subscription

    def unsubscribe(self, subscription: ProgressSubscription) -> None:
        """Release the association if ``subscription`` is still the current one."""
        subscription.close()
        if self._subscribers.get(subscription.work_item_id) is subscription:
            del self._subscribers[subscription.work_item_id]

    def publish(self, event: ProgressEvent) -> bool:
        """Deliver ``event``; returns False when nobody is listening."""
        subscription = self._subscribers.get(event.work_item_id)
        if subscription is None:
            return False
        subscription.push(event)
        if event.terminal:
            self.unsubscribe(subscription)
        return True


__all__ = ["ProgressBroadcaster", "ProgressSubscription"]
