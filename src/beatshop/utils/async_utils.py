"""Async bridge for blocking HTTP, file and decode calls.

Everything in the storefront runs on the Textual event loop; `requests`,
`ffmpeg` pipes and JSON file writes are pushed onto a small thread pool.
"""

from __future__ import annotations

import asyncio
import atexit
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, TypeVar

T = TypeVar("T")

_IO_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="beatshop-io")


@atexit.register
def _shutdown_io_executor() -> None:
    _IO_EXECUTOR.shutdown(wait=False, cancel_futures=True)


async def run_blocking(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run blocking callable on the IO executor and await its result.

    Cancelling the awaiting task abandons the result; the worker thread still
    runs to completion.
    """
    if not callable(func):
        raise TypeError("func must be callable")
    loop = asyncio.get_running_loop()
    call = partial(func, *args, **kwargs) if kwargs else partial(func, *args)
    return await loop.run_in_executor(_IO_EXECUTOR, call)
