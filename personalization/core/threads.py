"""
Dedicated worker threads for time-boxed blocking calls.

Strategies and detectors are plain synchronous callables that may hang.
Running each call on its own daemon thread means a call that overruns
its budget only ties up its own thread: later calls never queue behind
it, and the caller's timeout starts counting when the work starts.

Usage:
    result = await asyncio.wait_for(
        run_in_worker_thread(strategy.score_batch, items, profile, context, name="scoring-exploration"),
        timeout=2.0,
    )
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")


async def run_in_worker_thread(func: Callable[..., T], *args: Any, name: str = "worker") -> T:
    """
    Run ``func(*args)`` on a fresh daemon thread and await its result.

    Cancelling the awaiting task (e.g. via ``asyncio.wait_for``) abandons
    the thread; whatever it returns later is discarded.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()

    def _resolve(result: Any, error: Exception | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _target() -> None:
        result: Any = None
        error: Exception | None = None
        try:
            result = func(*args)
        except Exception as e:  # Intentionally broad - relayed to the awaiting task
            error = e
        try:
            loop.call_soon_threadsafe(_resolve, result, error)
        except RuntimeError:
            logger.debug(f"Worker thread {name} finished after its event loop closed")

    threading.Thread(target=_target, name=name, daemon=True).start()
    return await future
