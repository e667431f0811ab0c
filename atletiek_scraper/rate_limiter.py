"""Token bucket limiting the rate of upstream requests."""

import asyncio
import time
from collections.abc import Callable

import structlog

logger = structlog.get_logger(__name__)


class TokenBucket:
    """Admits requests while tokens are available.

    Tokens are added in whole ticks: every ``refill_interval`` seconds
    ``refill_amount`` tokens are added, up to ``capacity``. Waiting callers
    are served in arrival order.
    """

    def __init__(
        self,
        capacity: int = 2,
        refill_amount: int = 1,
        refill_interval: float = 1.0,
        initial_tokens: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1 or refill_amount < 1 or refill_interval <= 0:
            raise ValueError("capacity, refill amount and interval must be positive")

        self.capacity = capacity
        self.refill_amount = refill_amount
        self.refill_interval = refill_interval
        self._clock = clock
        self._tokens = min(max(initial_tokens, 0), capacity)
        self._last_refill = clock()
        # asyncio.Lock wakes its waiters in FIFO order
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> int:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        ticks = int((now - self._last_refill) // self.refill_interval)
        if ticks <= 0:
            return
        self._tokens = min(self.capacity, self._tokens + ticks * self.refill_amount)
        self._last_refill += ticks * self.refill_interval

    def try_acquire(self) -> bool:
        """Takes a token without waiting.

        Returns:
            False if no token is available or other callers are waiting.
        """
        if self._lock.locked():
            return False
        self._refill()
        if self._tokens < 1:
            return False
        self._tokens -= 1
        return True

    async def acquire(self) -> None:
        """Waits until a token is available and takes it."""
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                delay = self._last_refill + self.refill_interval - self._clock()
                logger.debug("rate_limit_wait", delay=round(max(delay, 0.0), 3))
                await asyncio.sleep(max(delay, 0.0))
