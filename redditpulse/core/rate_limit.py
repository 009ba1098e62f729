"""Fixed-interval pacing for calls to rate-limited providers."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional


class RequestPacer:
    """Keeps successive calls at least ``interval`` seconds apart.

    The first call goes through immediately. Exceeding the provider's
    requests-per-minute ceiling triggers its rate-limit path, so every LLM call
    in a run goes through one shared pacer.
    """

    def __init__(
        self,
        interval: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval = max(interval, 0.0)
        self._sleep = sleep
        self._clock = clock
        self._last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    async def wait(self) -> None:
        """Block until the caller may issue its next request."""
        async with self._lock:
            if self._last_call is not None and self._interval > 0:
                remaining = self._interval - (self._clock() - self._last_call)
                if remaining > 0:
                    await self._sleep(remaining)
            self._last_call = self._clock()
