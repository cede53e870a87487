from __future__ import annotations

import asyncio
import time
from contextlib import suppress
from typing import Callable, Generic, Optional, Tuple, TypeVar

from utils.logger import FeedLogger

T = TypeVar("T")


class UpdateThrottle(Generic[T]):
    """Leading/trailing-edge throttle: at most one emission per interval, last value always delivered."""

    def __init__(
        self,
        callback: Callable[[T], None],
        interval_ms: int,
        logger: FeedLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.callback = callback
        self.interval = max(0, interval_ms) / 1000.0
        self.logger = logger or FeedLogger(__name__)
        self._clock = clock
        self._last_emit_at: Optional[float] = None
        self._pending: Optional[Tuple[T]] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def push(self, value: T) -> None:
        if self._closed:
            return
        now = self._clock()
        elapsed = None if self._last_emit_at is None else now - self._last_emit_at
        if elapsed is None or elapsed >= self.interval:
            self.cancel()
            self._emit(value)
            return
        self._pending = (value,)
        if self._task is None:
            self._task = asyncio.create_task(self._flush_later(self.interval - elapsed))

    def emit_now(self, value: T) -> None:
        """Deliver ``value`` immediately, superseding any pending trailing value."""
        if self._closed:
            return
        self.cancel()
        self._emit(value)

    def cancel(self) -> None:
        """Drop the pending trailing emission without waiting."""
        self._pending = None
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        self._closed = True
        task = self._task
        self.cancel()
        if task:
            with suppress(asyncio.CancelledError):
                await task

    async def _flush_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._task = None
        if self._closed or self._pending is None:
            return
        (value,) = self._pending
        self._pending = None
        self._emit(value)

    def _emit(self, value: T) -> None:
        self._last_emit_at = self._clock()
        try:
            self.callback(value)
        except Exception as exc:
            self.logger.error("throttled callback failed", error=str(exc))
