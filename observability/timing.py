"""Timing utilities for pipeline phase measurement."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Generator

from .logging_config import get_logger

logger = get_logger("observability.timing")


class TimingContext:
    """Context manager for timing code blocks."""

    def __init__(self, name: str, tags: dict[str, str] | None = None, emit_log: bool = True):
        self.name = name
        self.tags = tags or {}
        self.emit_log = emit_log
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self) -> "TimingContext":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        if self.emit_log:
            logger.debug(
                "timing %s",
                self.name,
                extra={
                    "timing": self.name,
                    "elapsed_ms": round(self.elapsed_ms, 2),
                    "failed": exc_type is not None,
                    **self.tags,
                },
            )


@contextmanager
def timed(
    name: str, tags: dict[str, str] | None = None, emit_log: bool = True
) -> Generator[TimingContext, None, None]:
    """Context manager for timing code blocks.

    Usage:
        with timed("processor.extract", {"work_item_id": item_id}) as t:
            await do_work()
        print(f"Took {t.elapsed_ms:.2f}ms")
    """
    ctx = TimingContext(name, tags, emit_log)
    with ctx:
        yield ctx
