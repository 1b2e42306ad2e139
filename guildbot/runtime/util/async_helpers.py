"""Helpers for calling executors that may be sync or async."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any


async def run_sync(fn: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking callable in the default thread pool."""
    return await asyncio.to_thread(fn, *args)


async def invoke(fn: Callable[..., Any], *args: Any) -> Any:
    """Call *fn* and await the result when it is awaitable.

    Plain functions run in a worker thread so a slow one cannot stall the
    event loop.
    """
    if inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, "__call__", None)
    ):
        return await fn(*args)
    result = await run_sync(fn, *args)
    if inspect.isawaitable(result):
        return await result
    return result
