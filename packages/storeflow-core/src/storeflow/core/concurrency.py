from __future__ import annotations

import asyncio
import atexit
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, TypeVar

from storeflow.core.exception import InternalError

R = TypeVar("R")

# Process-wide pool for blocking SDK calls. Built once, shared by every entry point.
_POOL: Optional[ThreadPoolExecutor] = None
_POOL_LOCK = threading.Lock()
log = logging.getLogger("storeflow.core.concurrency")


def get_pool(workers: int = 64) -> ThreadPoolExecutor:
    """Return the shared I/O pool; `workers` only applies on first use."""
    global _POOL
    with _POOL_LOCK:
        if _POOL is None:
            _POOL = ThreadPoolExecutor(max_workers=max(1, int(workers)), thread_name_prefix="storeflow-io")
            log.debug("io pool started workers=%s", workers)
        return _POOL


def shutdown_pool(wait: bool = True) -> None:
    global _POOL
    with _POOL_LOCK:
        pool, _POOL = _POOL, None
    if pool is not None:
        pool.shutdown(wait=wait)


atexit.register(shutdown_pool, False)


async def run_blocking(fn: Callable[..., R], *args, workers: int = 64, **kwargs) -> R:
    """Run a blocking call on the shared pool and await its result."""
    loop = asyncio.get_running_loop()
    try:
        fut = loop.run_in_executor(get_pool(workers), functools.partial(fn, *args, **kwargs))
    except RuntimeError as e:
        # Raised by the executor when it is shutting down; errors from `fn` surface on await.
        raise InternalError(f"I/O worker pool rejected the call: {e}") from e
    return await fut
