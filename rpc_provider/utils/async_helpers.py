"""Async helpers for environments with limited threading support."""

from __future__ import annotations

import asyncio
import inspect
import os
from typing import Any, Callable, TypeVar

T = TypeVar("T")

_FLAG = os.getenv("RPC_ENABLE_TO_THREAD")
if _FLAG is None:
    _USE_THREADS = True
else:
    _USE_THREADS = _FLAG.lower() in {"1", "true", "yes", "on"}


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Execute blocking function, offloading to a background thread when possible."""
    if _USE_THREADS:
        return await asyncio.to_thread(func, *args, **kwargs)
    return func(*args, **kwargs)


async def call_maybe_async(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Await coroutine functions directly; run plain functions via run_sync."""
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    result = await run_sync(func, *args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result
