"""
Delay primitive and request-rate limiter used by the fetch loop and retries
"""

import asyncio
import math
import time
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Monotonic clock in milliseconds"""
    return time.monotonic() * 1000


async def delay(ms: float) -> None:
    """Suspend the current task for ms milliseconds without blocking the loop."""
    if ms <= 0:
        return
    await asyncio.sleep(ms / 1000)


class RateLimiter:
    """
    Enforces a minimum spacing between request starts.

    Spacing is measured from the start of one request to the start of the
    next, so requests run at a fixed cadence. The first request is never
    delayed.

    Attributes:
        requests_per_second: Budget; math.inf disables limiting
        min_interval_ms: 1000 / requests_per_second
    """

    def __init__(
        self,
        requests_per_second: float = math.inf,
        clock: Callable[[], float] = now_ms
    ):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.requests_per_second = requests_per_second
        self.min_interval_ms = 0.0 if math.isinf(requests_per_second) else 1000 / requests_per_second
        self._clock = clock
        self._last_start: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self.min_interval_ms > 0

    def wait_time_ms(self) -> float:
        """Milliseconds to wait before the next request may start"""
        if not self.enabled or self._last_start is None:
            return 0.0
        elapsed = self._clock() - self._last_start
        return max(0.0, self.min_interval_ms - elapsed)

    async def wait(self) -> float:
        """Sleep out the remaining interval; returns the milliseconds waited"""
        wait_ms = self.wait_time_ms()
        if wait_ms > 0:
            logger.debug(f"Rate limiting: waiting {wait_ms:.0f}ms")
            await delay(wait_ms)
        return wait_ms

    def mark(self) -> None:
        """Record that a request is starting now"""
        self._last_start = self._clock()
