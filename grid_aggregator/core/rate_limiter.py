import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Single-lane admission gate.

    Successive ``admit()`` calls return at least ``interval_ms`` apart,
    measured between admission times. Work done by the caller after an
    admission counts towards the next interval, so slow requests are not
    penalised twice.
    """

    def __init__(
        self,
        interval_ms: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval_ms < 0:
            raise ValueError("interval_ms must be >= 0")

        self._interval = interval_ms / 1000
        self._clock = clock
        self._sleep = sleep
        self._last_admission: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def interval_ms(self) -> int:
        return round(self._interval * 1000)

    @property
    def last_admission(self) -> Optional[float]:
        return self._last_admission

    async def admit(self) -> None:
        # check, wait and record under one lock so concurrent callers queue up
        async with self._lock:
            if self._last_admission is not None:
                elapsed = self._clock() - self._last_admission
                # event loop timers may fire marginally early; re-check after waking
                while elapsed < self._interval:
                    wait = self._interval - elapsed
                    logger.debug("Rate limit: waiting %.3fs before next request", wait)
                    await self._sleep(wait)
                    elapsed = self._clock() - self._last_admission

            self._last_admission = self._clock()

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        await self.admit()
        return await fn()
