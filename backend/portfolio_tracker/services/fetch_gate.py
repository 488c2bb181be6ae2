"""Process-wide pacing of outbound market-data requests."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class FetchGate:
    """Grant one outbound request ticket per ``min_interval_seconds``.

    Waiters queue on an ``asyncio.Lock`` (first come, first served). The
    issue time is recorded before the lock is released so a burst of
    concurrent callers is spaced out instead of passing together.
    """

    def __init__(
        self,
        min_interval_seconds: float = 12.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be non-negative")
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.last_request_ts: float | None = None
        self.request_count = 0

    async def acquire(self) -> None:
        async with self._lock:
            if self.last_request_ts is not None:
                wait = self.min_interval_seconds - (self._clock() - self.last_request_ts)
                if wait > 0:
                    logger.debug("Fetch gate waiting %.2fs before next provider request", wait)
                    await self._sleep(wait)
            self.last_request_ts = self._clock()
            self.request_count += 1

    def metrics(self) -> dict[str, float | int | None]:
        return {
            "min_interval_seconds": self.min_interval_seconds,
            "request_count": self.request_count,
            "last_request_ts": self.last_request_ts,
        }


__all__ = ["FetchGate"]
