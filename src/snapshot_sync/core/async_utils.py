"""Async utilities for bridging blocking storage calls into coroutines."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used to wrap the blocking boto3 and local-store calls made during a sync.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        content = await run_sync(transport.get_object, "sync-metadata.json")
    """
    return await asyncio.to_thread(func, *args, **kwargs)
