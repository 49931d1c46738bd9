"""Process-wide request scheduler for the rate-limited upstream."""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

T = TypeVar("T")

DEFAULT_MAX_CONCURRENT = 1
DEFAULT_MIN_INTERVAL_MS = 400


@dataclass
class RequestLimiter:
    """Caps concurrent calls and spaces out dispatches.

    Callers that find every slot busy park on a FIFO queue and are handed a
    slot directly by ``_release``, so a newcomer can never overtake a queued
    caller. Dispatch times are reserved in the order slots are granted, each
    at least ``min_interval_ms`` after the previous reservation. All state is
    touched only from the event loop thread between awaits.
    """

    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _active: int = field(default=0, init=False, repr=False)
    _next_dispatch_at: float | None = field(default=None, init=False, repr=False)
    _waiters: deque[asyncio.Future[None]] = field(
        default_factory=deque, init=False, repr=False
    )

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.min_interval_ms < 0:
            raise ValueError("min_interval_ms must not be negative")

    @property
    def active(self) -> int:
        """Number of callers currently holding a slot."""
        return self._active

    @property
    def pending(self) -> int:
        """Number of callers queued for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def schedule(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` once a slot and a dispatch time are available."""
        await self._acquire()
        try:
            return await operation()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._active < self.max_concurrent and not self._waiters:
            self._active += 1
        else:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                if waiter.cancelled():
                    if waiter in self._waiters:
                        self._waiters.remove(waiter)
                else:
                    # The slot was handed over before the cancellation landed.
                    self._release()
                raise
        try:
            await self._wait_for_dispatch_slot()
        except asyncio.CancelledError:
            self._release()
            raise

    async def _wait_for_dispatch_slot(self) -> None:
        now = self.clock()
        interval = self.min_interval_ms / 1000
        dispatch_at = now
        if self._next_dispatch_at is not None:
            dispatch_at = max(now, self._next_dispatch_at)
        self._next_dispatch_at = dispatch_at + interval
        delay = dispatch_at - now
        if delay > 0:
            await asyncio.sleep(delay)

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand the slot over; the active count stays the same.
                waiter.set_result(None)
                return
        self._active = max(0, self._active - 1)
