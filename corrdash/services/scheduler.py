from __future__ import annotations

import asyncio
import contextvars
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Optional, TypeVar

from ..core.errors import SchedulerClosedError

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


class SchedulerState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


@dataclass(slots=True)
class ScheduledRequest:
    task: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    context: contextvars.Context = field(default_factory=contextvars.copy_context)
    enqueued_at: float = field(default=0.0)


class RequestScheduler:
    """FIFO request queue that paces outbound calls to a rate-limited upstream.

    Tasks run one at a time, in arrival order, and two dispatches never
    start closer together than ``min_interval_seconds``. A single drain task
    exists while work is pending; the scheduler falls back to idle as soon
    as the queue is empty.

    Each task runs in a copy of its caller's context, so structlog
    contextvars (the request id) follow the request into the fetcher.
    """

    def __init__(
        self,
        min_interval_seconds: float = 1.1,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._sleep = sleep
        self._queue: Deque[ScheduledRequest] = deque()
        self._drain_task: asyncio.Task | None = None
        self._last_dispatch: Optional[float] = None
        self._dispatched = 0
        self._closed = False

    @property
    def state(self) -> SchedulerState:
        return SchedulerState.DRAINING if self._drain_task is not None else SchedulerState.IDLE

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def dispatched(self) -> int:
        return self._dispatched

    async def enqueue(self, task: Callable[[], Awaitable[T]]) -> T:
        """Queue ``task`` and wait for its result (or exception)."""
        if self._closed:
            raise SchedulerClosedError()

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append(
            ScheduledRequest(
                task=task,
                future=future,
                context=contextvars.copy_context(),
                enqueued_at=self._clock(),
            )
        )

        if self._drain_task is None:
            self._drain_task = loop.create_task(self._drain(), name="request-scheduler-drain")

        return await future

    async def close(self) -> None:
        """Stop dispatching and fail everything still waiting in the queue."""
        self._closed = True
        task = self._drain_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._fail_pending()

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "pending": self.pending,
            "dispatched": self._dispatched,
            "min_interval_seconds": self.min_interval_seconds,
        }

    async def _drain(self) -> None:
        try:
            while self._queue:
                await self._wait_for_slot()

                request = self._queue.popleft()
                self._last_dispatch = self._clock()
                self._dispatched += 1

                try:
                    result = await request.context.run(self._spawn, request)
                except asyncio.CancelledError:
                    if not request.future.done():
                        request.future.set_exception(SchedulerClosedError())
                    raise
                except Exception as exc:  # noqa: BLE001
                    self.logger.debug("Scheduled request failed: %s", exc)
                    if not request.future.done():
                        request.future.set_exception(exc)
                else:
                    if not request.future.done():
                        request.future.set_result(result)
        finally:
            self._drain_task = None

    @staticmethod
    def _spawn(request: ScheduledRequest) -> asyncio.Task:
        # Called inside the caller's context; the new task inherits a copy of it
        return asyncio.get_running_loop().create_task(request.task())

    async def _wait_for_slot(self) -> None:
        if self._last_dispatch is None:
            return
        remaining = self.min_interval_seconds - (self._clock() - self._last_dispatch)
        if remaining > 0:
            await self._sleep(remaining)

    def _fail_pending(self) -> None:
        while self._queue:
            request = self._queue.popleft()
            if not request.future.done():
                request.future.set_exception(SchedulerClosedError())
