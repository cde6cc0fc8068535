"""Implementation of the request throttle.

Controls the spacing of outgoing requests so that no two requests from the
same client start less than a minimum interval apart.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from chatbridge.domain.models.api import DEFAULT_MIN_INTERVAL_MS, ThrottleState

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class Throttle:
    """Minimum-interval throttle shared by every call on one client.

    Each caller reserves the next free start slot before it suspends, so
    concurrent callers on the same event loop get consecutive slots without
    holding a lock across the wait.
    """

    def __init__(
        self,
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initializes the throttle.

        Args:
            min_interval_ms: Minimum spacing between request starts.
            clock: Monotonic clock returning seconds.
            sleep: Coroutine function used to wait.
        """
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must not be negative.")
        self.state = ThrottleState(min_interval_ms=min_interval_ms)
        self._clock = clock
        self._sleep = sleep
        logger.info(f"Throttle initialized: min interval {min_interval_ms}ms")

    @property
    def min_interval_seconds(self) -> float:
        return self.state.min_interval_ms / 1000.0

    def get_wait_time(self) -> float:
        """Estimates the time needed before the next request can start."""
        last = self.state.last_request_timestamp
        if last is None:
            return 0.0
        return max(0.0, last + self.min_interval_seconds - self._clock())

    def reserve(self) -> float:
        """Claims the next start slot and returns how long to wait for it."""
        now = self._clock()
        last = self.state.last_request_timestamp
        start = now if last is None else max(now, last + self.min_interval_seconds)
        self.state.last_request_timestamp = start
        return start - now

    async def acquire(self) -> float:
        """Waits until the caller may start its request. Returns the wait."""
        wait_time = self.reserve()
        if wait_time > 0:
            logger.debug(f"Throttling request for {wait_time:.3f} seconds.")
            await self._sleep(wait_time)
        return wait_time

    def reset(self) -> None:
        self.state.last_request_timestamp = None
