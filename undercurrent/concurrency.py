"""
Bounded calls to blocking collaborators.

Calls run on a process-wide pool that outlives any single event loop: a
call abandoned on timeout never delays asyncio.run() from returning.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="undercurrent-call")


async def run_blocking(func: Callable[..., Any], *args, timeout: Optional[float] = None) -> Any:
    """
    Run a blocking call off the event loop. Bind keyword arguments with functools.partial.

    Raises:
        asyncio.TimeoutError: If the call has not returned after ``timeout`` seconds.
            The call keeps running on the pool; its result is discarded.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(_EXECUTOR, functools.partial(func, *args))
    if timeout is None:
        return await future
    return await asyncio.wait_for(future, timeout=timeout)
