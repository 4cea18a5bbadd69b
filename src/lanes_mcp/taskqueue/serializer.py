"""Sequential asyncio task queue used to serialize session creation."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 30000

logger = logging.getLogger(__name__)


class TaskSerializerError(RuntimeError):
    """Base class for task serializer errors."""


class TaskTimeoutError(TaskSerializerError):
    """Raised to the submitting caller when its task outlives the timeout."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Operation timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class TaskCancelledError(TaskSerializerError):
    """Raised to the submitting caller when its task was cancelled from inside."""

    def __init__(self) -> None:
        super().__init__("Operation was cancelled")


@dataclass(slots=True)
class _QueuedTask:
    factory: Callable[[], Awaitable[Any]]
    timeout_ms: int
    future: asyncio.Future = field(repr=False)


class TaskSerializer:
    """Run submitted coroutines one at a time, in submission order.

    Each task races an independent timer. When the timer wins, the caller
    receives :class:`TaskTimeoutError` and the queue moves on; the timed-out
    coroutine is not cancelled and may still finish (and persist its effects)
    later, but its result is discarded. A failing task only fails its own
    caller.
    """

    def __init__(self, *, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self._default_timeout_ms = default_timeout_ms
        self._queue: deque[_QueuedTask] = deque()
        self._processing = False
        self._drain_task: asyncio.Task | None = None
        self._orphans: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of tasks waiting to start."""

        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def submit(
        self,
        task: Callable[[], Awaitable[T]],
        timeout_ms: int | None = None,
    ) -> T:
        """Enqueue ``task`` and wait for its result."""

        loop = asyncio.get_running_loop()
        queued = _QueuedTask(
            factory=task,
            timeout_ms=timeout_ms if timeout_ms is not None else self._default_timeout_ms,
            future=loop.create_future(),
        )
        self._queue.append(queued)
        if not self._processing:
            self._processing = True
            self._drain_task = loop.create_task(self._drain())
        return await queued.future

    async def _drain(self) -> None:
        try:
            while self._queue:
                queued = self._queue.popleft()
                try:
                    result = await self._run_with_timeout(queued)
                except Exception as exc:
                    if not queued.future.done():
                        queued.future.set_exception(exc)
                    logger.debug("Serialized task failed", extra={"error": str(exc)})
                    continue
                except asyncio.CancelledError:
                    if not queued.future.done():
                        queued.future.cancel()
                    self._cancel_pending()
                    raise
                if not queued.future.done():
                    queued.future.set_result(result)
        finally:
            self._processing = False

    async def _run_with_timeout(self, queued: _QueuedTask) -> Any:
        running = asyncio.ensure_future(queued.factory())
        try:
            return await asyncio.wait_for(
                asyncio.shield(running), timeout=queued.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            self._orphans.add(running)
            running.add_done_callback(self._discard_orphan)
            raise TaskTimeoutError(queued.timeout_ms) from None
        except asyncio.CancelledError:
            # Only the drain itself being cancelled leaves the inner task running.
            if running.done() and running.cancelled():
                raise TaskCancelledError() from None
            raise

    def _cancel_pending(self) -> None:
        while self._queue:
            queued = self._queue.popleft()
            if not queued.future.done():
                queued.future.cancel()

    def _discard_orphan(self, task: asyncio.Task) -> None:
        self._orphans.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(
                "Timed-out task finished with an error",
                extra={"error": str(exc)},
            )


__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "TaskCancelledError",
    "TaskSerializer",
    "TaskSerializerError",
    "TaskTimeoutError",
]
