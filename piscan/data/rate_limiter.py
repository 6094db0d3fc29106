"""Host-keyed throttle for community (keyless) block-explorer endpoints.

Entries are keyed by hostname, so independently constructed sources that
talk to the same explorer share backpressure. Entries live as long as the
limiter, and the process-wide instance returned by ``default_rate_limiter``
is never reset. A slot is claimed when a request is sent and refreshed when
it completes; a caller cancelled while still waiting claims nothing.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

from piscan.core.logging import get_logger

logger = get_logger(__name__)

THROTTLE_WINDOW_SEC = 5.2

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RateLimiter:
    def __init__(
        self,
        window_sec: float = THROTTLE_WINDOW_SEC,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.window_sec = max(0.0, window_sec)
        self._clock = clock
        self._sleep = sleep
        self._last_queried: Dict[str, float] = {}

    def wait_time(self, hostname: str) -> float:
        last = self._last_queried.get(hostname)
        if last is None:
            return 0.0
        return self.window_sec - (self._clock() - last)

    def last_queried(self, hostname: str) -> Optional[float]:
        return self._last_queried.get(hostname)

    async def await_turn(self, hostname: str) -> None:
        # Re-checked after every sleep, another caller may have taken the slot meanwhile
        while True:
            wait = self.wait_time(hostname)
            if wait <= 0:
                return
            logger.debug(f"Waiting {wait:.2f}s before querying {hostname} to avoid rate limit")
            await self._sleep(wait)

    def record(self, hostname: str) -> None:
        self._last_queried[hostname] = self._clock()

    @asynccontextmanager
    async def turn(self, hostname: str) -> AsyncIterator[None]:
        await self.await_turn(hostname)
        # Claimed before sending so concurrent callers see the host as busy
        self.record(hostname)
        try:
            yield
        finally:
            self.record(hostname)


_DEFAULT_LIMITER: Optional[RateLimiter] = None


def default_rate_limiter(window_sec: Optional[float] = None) -> RateLimiter:
    global _DEFAULT_LIMITER
    if _DEFAULT_LIMITER is None:
        _DEFAULT_LIMITER = RateLimiter()
    if window_sec is not None:
        _DEFAULT_LIMITER.window_sec = max(0.0, window_sec)
    return _DEFAULT_LIMITER


__all__ = ["RateLimiter", "THROTTLE_WINDOW_SEC", "default_rate_limiter"]
