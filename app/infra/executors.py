"""Executor helpers for running blocking work off the event loop."""

from __future__ import annotations

import asyncio
import functools
from concurrent.futures import Executor
from typing import Any, Callable, TypeVar

R = TypeVar("R")


async def run_blocking(fn: Callable[..., R], *args: Any, executor: Executor | None = None, **kwargs: Any) -> R:
    """Run a blocking function (file I/O) in ``executor`` or the loop default."""
    loop = asyncio.get_running_loop()
    bound = functools.partial(fn, *args, **kwargs)
    return await loop.run_in_executor(executor, bound)


__all__ = ["run_blocking"]
