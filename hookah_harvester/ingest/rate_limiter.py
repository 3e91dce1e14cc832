"""Minimum-interval rate limiting shared by every request of one fetch client."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Single global throttle enforcing a minimum gap between requests.

    A request holds the limiter from admission until it finishes, so callers
    sharing one limiter run strictly one at a time and the gap is measured
    from the end of one request to the start of the next.

    The clock and sleep functions are injectable so tests can assert exact
    spacing without waiting in real time.
    """

    def __init__(
        self,
        min_delay: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_delay = min_delay
        self.last_request_at: Optional[float] = None
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

    async def _wait_turn(self) -> float:
        if self.last_request_at is None:
            return 0.0
        elapsed = self._clock() - self.last_request_at
        waited = max(0.0, self.min_delay - elapsed)
        if waited > 0:
            logger.debug(f"Rate limit: waiting {waited:.2f}s before next request")
            await self._sleep(waited)
        return waited

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[float]:
        """
        Hold the limiter for the duration of one request.

        Yields:
            Seconds waited before the request was admitted
        """
        async with self._lock:
            waited = await self._wait_turn()
            try:
                yield waited
            finally:
                self.last_request_at = self._clock()

    def reset(self) -> None:
        """Forget the last request time (used between independent scrape runs)."""
        self.last_request_at = None
