"""Inference concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> face pipeline

Requests beyond the semaphore limit queue with a 5s timeout, then get 503.
Each bounded run waits at most ``inference_timeout`` seconds, then gets 504.
A timed-out worker keeps its slot until its thread returns.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from faceverify.errors import InferenceTimeout, ServiceBusy

if TYPE_CHECKING:
    from collections.abc import Callable

    from faceverify.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Manages the semaphore and thread pool for CPU-bound face processing."""

    def __init__(self, settings: Settings) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="face-pipeline",
        )
        self._run_timeout = settings.inference_timeout or None
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object, bounded: bool = True) -> T:
        """Submit a synchronous function to the worker thread pool.

        Acquires the semaphore (with timeout), runs the function in the
        executor, then releases. When ``bounded`` the caller stops waiting
        after the configured run timeout; the worker slot stays taken until
        the thread actually finishes.

        Raises:
            ServiceBusy: If the semaphore cannot be acquired within the timeout.
            InferenceTimeout: If a bounded call does not finish within the
                configured run timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(
                self._semaphore.acquire(),
                timeout=SEMAPHORE_TIMEOUT_SECONDS,
            )
        except TimeoutError:
            logger.warning("No worker slot free after %.1fs", SEMAPHORE_TIMEOUT_SECONDS)
            raise ServiceBusy() from None
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, func, *args)
        try:
            return await asyncio.wait_for(
                asyncio.shield(future),
                timeout=self._run_timeout if bounded else None,
            )
        except TimeoutError:
            logger.error("%s did not finish within %ss", getattr(func, "__name__", func), self._run_timeout)
            raise InferenceTimeout() from None
        finally:
            if future.done():
                self._release_slot(future)
            else:
                future.add_done_callback(self._release_slot)

    def _release_slot(self, _future: object) -> None:
        self._semaphore.release()
        with self._counter_lock:
            self._active_count -= 1

    @property
    def active_count(self) -> int:
        """Number of currently running tasks."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a semaphore slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the thread pool executor."""
        self._executor.shutdown(wait=True)
