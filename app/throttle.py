# file: app/throttle.py
"""Async token bucket used to pace outbound mail."""
from __future__ import annotations
import asyncio
from time import monotonic
from typing import Awaitable, Callable, Optional


class TokenBucket:
    """Allows `capacity` immediate acquisitions, then one per `interval` seconds.

    With capacity 1 the first acquire of a fresh bucket never waits and every
    later acquire waits until `interval` has elapsed since the previous one.
    An interval of 0 disables throttling.
    """

    def __init__(
        self,
        interval: float,
        capacity: int = 1,
        clock: Callable[[], float] = monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.interval = max(0.0, float(interval))
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated: Optional[float] = None
        self._lock = asyncio.Lock()
        self.waited_total = 0.0

    def _refill(self, now: float) -> None:
        if self._updated is not None and self.interval > 0:
            self._tokens = min(self.capacity, self._tokens + (now - self._updated) / self.interval)
        self._updated = now

    async def acquire(self) -> float:
        """Take one token, sleeping if none is available. Returns seconds waited."""
        if self.interval == 0:
            return 0.0
        async with self._lock:
            self._refill(self._clock())
            waited = 0.0
            if self._tokens < 1:
                waited = (1 - self._tokens) * self.interval
                await self._sleep(waited)
                self._refill(self._clock())
                # Clock may not have advanced (fake clocks); the sleep paid for the token
                self._tokens = max(self._tokens, 1.0)
            self._tokens -= 1
            self.waited_total += waited
            return waited
