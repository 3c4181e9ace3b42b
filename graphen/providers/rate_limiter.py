"""
LLM Rate Limiter

Shared concurrency, request-rate and retry engine for every outbound
language-model call (extraction and embedding alike).

One instance is shared by all pipelines in a process; it is the single point
of backpressure against the provider. State (in-flight count, FIFO queue,
dispatch window) is only touched from synchronous code on the event loop, so
no lock is needed.

Dispatch rules:
    - At most ``max_concurrent`` tasks in flight
    - At most ``requests_per_minute`` dispatches in any trailing window
    - When the window is full, one wake-up is scheduled for the moment the
      oldest dispatch leaves the window; nothing else is dispatched meanwhile

Each task gets a per-attempt timeout and retries on transient failures with
exponential backoff (``retry_delay * 2**(attempt-1)``). Retries reuse the
task's slot and do not count against the window.

Example:
    >>> limiter = LLMRateLimiter(max_concurrent=5, requests_per_minute=30)
    >>> result = await limiter.run(lambda: llm.extract_entities_and_relations(text))
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
import re
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from graphen.errors import RateLimiterClosedError

if TYPE_CHECKING:
    from graphen.config import GraphenConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_CODES = frozenset({"ETIMEDOUT", "ECONNRESET", "ECONNABORTED"})
_RETRYABLE_MESSAGE = re.compile(r"timeout|timed out|temporarily unavailable", re.IGNORECASE)


def _status_of(error: BaseException) -> int | None:
    """HTTP status carried by the error itself or by its ``response``."""
    for source in (error, getattr(error, "response", None)):
        if source is None:
            continue
        for attr in ("status_code", "status"):
            value = getattr(source, attr, None)
            if isinstance(value, int) and not isinstance(value, bool):
                return value
    return None


def is_retryable_error(error: BaseException) -> bool:
    """
    Classify a failure as transient.

    Retryable:
        - HTTP status 429 or >= 500
        - Network codes ETIMEDOUT, ECONNRESET, ECONNABORTED
        - TimeoutError, ConnectionResetError, ConnectionAbortedError
        - Messages mentioning a timeout or temporary unavailability

    A known HTTP status decides on its own: a 400 is never retried even if
    its message mentions a timeout.
    """
    status = _status_of(error)
    if status is not None:
        return status == 429 or status >= 500

    code = getattr(error, "code", None)
    if isinstance(code, str) and code.upper() in _RETRYABLE_CODES:
        return True

    if isinstance(error, (TimeoutError, ConnectionResetError, ConnectionAbortedError)):
        return True

    return bool(_RETRYABLE_MESSAGE.search(str(error)))


@dataclass
class _QueuedTask(Generic[T]):
    factory: Callable[[], Awaitable[T]]
    future: asyncio.Future[T]
    context: contextvars.Context = field(default_factory=contextvars.copy_context)


class LLMRateLimiter:
    """
    Bounded-concurrency, sliding-window rate limiter with retry/backoff.

    Args:
        max_concurrent: Max tasks in flight
        requests_per_minute: Max dispatches per window
        max_retries: Retries after the first attempt for retryable errors
        retry_delay: Base backoff in seconds
        timeout: Per-attempt timeout in seconds (<= 0 disables it)
        window_seconds: Length of the rate window (60s for a per-minute budget)
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        max_concurrent: int = 5,
        requests_per_minute: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 60.0,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_concurrent <= 0:
            raise ValueError(f"max_concurrent must be positive, got {max_concurrent}")
        if requests_per_minute <= 0:
            raise ValueError(f"requests_per_minute must be positive, got {requests_per_minute}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")

        self.max_concurrent = max_concurrent
        self.requests_per_minute = requests_per_minute
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.window_seconds = window_seconds
        self._clock = clock

        self._active = 0
        self._queue: deque[_QueuedTask[Any]] = deque()
        self._window: deque[float] = deque()
        self._wake: asyncio.TimerHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._running: set[asyncio.Task[None]] = set()
        self._closed = False

    @classmethod
    def from_config(cls, config: GraphenConfig) -> "LLMRateLimiter":
        return cls(
            max_concurrent=config.llm_max_concurrent,
            requests_per_minute=config.llm_requests_per_minute,
            max_retries=config.llm_max_retries,
            retry_delay=config.llm_retry_delay,
            timeout=config.llm_timeout,
            window_seconds=config.llm_rate_window_seconds,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Queue a call and wait for its result.

        Args:
            task: Zero-argument factory creating the call; invoked once per attempt

        Returns:
            The call's result

        Raises:
            RateLimiterClosedError: If the limiter is (or becomes) closed first
            Exception: The last error once retries are exhausted, or the first
                non-retryable error
        """
        if self._closed:
            raise RateLimiterClosedError("Rate limiter is closed")

        loop = asyncio.get_running_loop()
        self._bind_loop(loop)

        future: asyncio.Future[T] = loop.create_future()
        self._queue.append(_QueuedTask(factory=task, future=future))
        self._dispatch()
        return await future

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def stats(self) -> dict[str, int]:
        """Snapshot of in-flight, queued and in-window counts."""
        self._prune(self._clock())
        return {
            "active": self._active,
            "queued": len(self._queue),
            "window": len(self._window),
        }

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Stop dispatching.

        Queued tasks are rejected with RateLimiterClosedError. Tasks already
        dispatched run to completion and resolve normally.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_wake()

        rejected = 0
        while self._queue:
            item = self._queue.popleft()
            if not item.future.done():
                item.future.set_exception(RateLimiterClosedError("Rate limiter closed before dispatch"))
                rejected += 1
        logger.debug(f"Rate limiter closed: rejected {rejected} queued, {self._active} in flight")

    async def wait_closed(self) -> None:
        """Wait for every dispatched task to finish after close()."""
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        Attach to the running loop.

        A limiter follows its owner from one ``asyncio.run`` to the next once the
        previous loop has closed. Work queued on the dead loop can never be
        awaited again, so it is dropped; window stamps are kept.

        Raises:
            RuntimeError: If the previous loop is still open
        """
        if self._loop is loop:
            return
        if self._loop is not None:
            if not self._loop.is_closed():
                raise RuntimeError("LLMRateLimiter is already in use by another event loop")
            logger.debug(
                f"Rebinding rate limiter to a new event loop; dropping {len(self._queue)} "
                f"stale queued and {self._active} stale in-flight tasks"
            )
            self._queue.clear()
            self._running.clear()
            self._active = 0
            self._wake = None
        self._loop = loop

    def _prune(self, now: float) -> None:
        while self._window and now - self._window[0] >= self.window_seconds:
            self._window.popleft()

    def _cancel_wake(self) -> None:
        if self._wake is not None:
            self._wake.cancel()
            self._wake = None

    def _on_wake(self) -> None:
        self._wake = None
        self._dispatch()

    def _dispatch(self) -> None:
        """Start as many queued tasks as the concurrency and rate budgets allow."""
        self._cancel_wake()
        if self._closed or self._loop is None:
            return

        now = self._clock()
        self._prune(now)

        while self._active < self.max_concurrent and self._queue:
            item = self._queue[0]
            if item.future.done():
                # Waiter was cancelled while queued
                self._queue.popleft()
                continue

            if len(self._window) >= self.requests_per_minute:
                wait = self.window_seconds - (now - self._window[0])
                logger.debug(
                    f"Rate window full ({len(self._window)}/{self.requests_per_minute}), "
                    f"waking in {wait:.3f}s with {len(self._queue)} queued"
                )
                self._wake = self._loop.call_later(max(0.0, wait), self._on_wake)
                return

            coro = self._execute(item)
            try:
                running = self._loop.create_task(coro, context=item.context)
            except RuntimeError as e:
                coro.close()
                self._queue.popleft()
                if not item.future.get_loop().is_closed():
                    item.future.set_exception(e)
                return
            self._queue.popleft()
            self._active += 1
            self._window.append(now)
            self._running.add(running)
            running.add_done_callback(self._on_done)

    def _on_done(self, running: asyncio.Task[None]) -> None:
        if running not in self._running:
            # Finished on a loop this limiter has since left
            return
        self._running.discard(running)
        self._active -= 1
        self._dispatch()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _attempt(self, factory: Callable[[], Awaitable[T]]) -> T:
        if self.timeout <= 0:
            return await factory()
        try:
            return await asyncio.wait_for(factory(), timeout=self.timeout)
        except TimeoutError as e:
            raise TimeoutError(f"LLM request timed out after {self.timeout}s") from e

    async def _execute(self, item: _QueuedTask[Any]) -> None:
        attempt = 0
        try:
            while not item.future.done():
                try:
                    result = await self._attempt(item.factory)
                except Exception as e:
                    if attempt >= self.max_retries or not is_retryable_error(e):
                        if attempt:
                            logger.warning(f"LLM call failed after {attempt} retries: {e}")
                        if not item.future.done():
                            item.future.set_exception(e)
                        return

                    attempt += 1
                    delay = self.retry_delay * 2 ** (attempt - 1)
                    logger.debug(
                        f"Retryable LLM error ({type(e).__name__}: {e}); "
                        f"retry {attempt}/{self.max_retries} in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                else:
                    if not item.future.done():
                        item.future.set_result(result)
                    return
        finally:
            # Only reachable undone if this task itself was cancelled
            if not item.future.done():
                item.future.cancel()
