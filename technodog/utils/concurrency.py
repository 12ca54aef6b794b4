"""Async helpers for background writes and paced outbound requests.

Two primitives are exposed:

1. **TaskTracker** -- holds strong references to fire-and-forget coroutines
   (cache writes after a miss) so they are not garbage collected mid-flight,
   logs their failures, and lets callers observe completion via
   :meth:`TaskTracker.drain`.  Shutdown hooks and tests drain the tracker
   instead of sleeping.

2. **RequestPacer** -- enforces a minimum interval between calls to one
   downstream service and retries :class:`RateLimitError` with linear
   backoff (``backoff * attempt``).
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

import structlog

from technodog.utils.errors import RateLimitError
from technodog.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class TaskTracker:
    """Track background coroutines and expose their completion.

    Parameters
    ----------
    name:
        Label included in log events (e.g. ``"cache_writes"``).
    """

    def __init__(self, name: str = "background") -> None:
        self._name = name
        self._tasks: set[asyncio.Task[Any]] = set()
        self._completed = 0
        self._failed = 0

    def schedule(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Start *coro* on the running loop and track it until it finishes."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    @property
    def pending(self) -> int:
        """Number of tracked tasks that have not finished yet."""
        return len(self._tasks)

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def failed(self) -> int:
        return self._failed

    async def drain(self, timeout: float | None = None) -> None:
        """Wait until every task scheduled so far has finished.

        Task exceptions are never re-raised here; they were already logged
        by the done callback.
        """
        if not self._tasks:
            return
        await asyncio.wait(set(self._tasks), timeout=timeout)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._failed += 1
            _logger.warning("background_task_cancelled", tracker=self._name)
            return
        exc = task.exception()
        if exc is not None:
            self._failed += 1
            _logger.warning(
                "background_task_failed",
                tracker=self._name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        else:
            self._completed += 1


class RequestPacer:
    """Minimum-interval throttle with linear backoff on rate limits.

    Parameters
    ----------
    min_interval:
        Minimum seconds between two consecutive calls.
    max_retries:
        Attempts made for a call that keeps raising :class:`RateLimitError`.
    backoff:
        Base backoff in seconds; attempt *n* waits ``backoff * n``.
    sleep:
        Injectable sleep coroutine (tests pass a no-op).
    """

    def __init__(
        self,
        min_interval: float = 0.5,
        max_retries: int = 3,
        backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._min_interval = min_interval
        self._max_retries = max(1, max_retries)
        self._backoff = backoff
        self._sleep = sleep
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()

    async def throttle(self) -> None:
        """Enforce the minimum delay since the previous call."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if self._last_request_time > 0 and elapsed < self._min_interval:
                await self._sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()

    async def call(self, fn: Callable[[], Awaitable[_T]]) -> _T:
        """Run *fn* after throttling, retrying while it raises RateLimitError.

        The last :class:`RateLimitError` is re-raised once retries are
        exhausted.  Any other exception propagates immediately.
        """
        for attempt in range(1, self._max_retries + 1):
            await self.throttle()
            try:
                return await fn()
            except RateLimitError as exc:
                if attempt == self._max_retries:
                    raise
                backoff = self._backoff * attempt
                _logger.warning(
                    "rate_limited_retrying",
                    provider=exc.provider_name,
                    attempt=attempt,
                    backoff_s=backoff,
                )
                await self._sleep(backoff)
        raise RuntimeError("unreachable")  # pragma: no cover
