import asyncio
import time

import pytest

from atletiek_scraper.rate_limiter import TokenBucket


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestTryAcquire:
    def test_starts_empty(self) -> None:
        bucket = TokenBucket(clock=FakeClock())
        assert bucket.tokens == 0
        assert bucket.try_acquire() is False

    def test_refills_in_whole_ticks(self) -> None:
        clock = FakeClock()
        bucket = TokenBucket(refill_interval=1.0, clock=clock)

        clock.now += 0.5
        assert bucket.try_acquire() is False
        clock.now += 0.5
        assert bucket.try_acquire() is True
        assert bucket.try_acquire() is False

    def test_never_exceeds_capacity(self) -> None:
        """Test that an idle bucket admits at most a burst of capacity."""
        clock = FakeClock()
        bucket = TokenBucket(capacity=2, clock=clock)

        clock.now += 60
        assert bucket.tokens == 2
        assert bucket.try_acquire() is True
        assert bucket.try_acquire() is True
        assert bucket.try_acquire() is False

    def test_partial_ticks_carry_over(self) -> None:
        clock = FakeClock()
        bucket = TokenBucket(capacity=5, refill_amount=2, refill_interval=1.0, clock=clock)

        clock.now += 1.5
        assert bucket.tokens == 2
        clock.now += 0.5
        assert bucket.tokens == 4

    def test_initial_tokens_are_capped(self) -> None:
        bucket = TokenBucket(capacity=2, initial_tokens=10, clock=FakeClock())
        assert bucket.tokens == 2

    @pytest.mark.parametrize(
        "kwargs",
        [{"capacity": 0}, {"refill_amount": 0}, {"refill_interval": 0}],
    )
    def test_invalid_parameters(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ValueError):
            TokenBucket(**kwargs)  # type: ignore[arg-type]


class TestAcquire:
    @pytest.mark.asyncio
    async def test_available_token_is_immediate(self) -> None:
        bucket = TokenBucket(initial_tokens=1)
        await asyncio.wait_for(bucket.acquire(), timeout=0.5)
        assert bucket.try_acquire() is False

    @pytest.mark.asyncio
    async def test_waits_for_refill(self) -> None:
        bucket = TokenBucket(capacity=2, refill_interval=0.05)
        started = time.monotonic()
        for _ in range(3):
            await bucket.acquire()
        assert time.monotonic() - started >= 0.14

    @pytest.mark.asyncio
    async def test_waiters_are_served_in_order(self) -> None:
        bucket = TokenBucket(capacity=1, refill_interval=0.02)
        order: list[int] = []

        async def waiter(number: int) -> None:
            await bucket.acquire()
            order.append(number)

        await asyncio.gather(*(waiter(n) for n in range(3)))
        assert order == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_try_acquire_does_not_jump_the_queue(self) -> None:
        bucket = TokenBucket(capacity=1, refill_interval=0.05)
        waiting = asyncio.create_task(bucket.acquire())
        await asyncio.sleep(0)

        assert bucket.try_acquire() is False
        await asyncio.wait_for(waiting, timeout=1.0)


class TestConcurrentCallers:
    @pytest.mark.asyncio
    async def test_third_caller_waits_for_next_tick(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a burst of capacity is admitted and the rest waits a tick."""
        real_sleep = asyncio.sleep

        async def frozen_sleep(delay: float) -> None:
            await real_sleep(0)

        async def settle() -> None:
            for _ in range(50):
                await real_sleep(0)

        monkeypatch.setattr("atletiek_scraper.rate_limiter.asyncio.sleep", frozen_sleep)
        clock = FakeClock()
        bucket = TokenBucket(capacity=2, refill_amount=1, refill_interval=1.0, clock=clock)
        admitted: list[int] = []

        async def caller(number: int) -> None:
            await bucket.acquire()
            admitted.append(number)

        tasks = [asyncio.create_task(caller(n)) for n in range(3)]
        await settle()
        assert admitted == []

        clock.now += 2.0
        await settle()
        assert admitted == [0, 1]
        assert not tasks[2].done()

        clock.now += 0.5
        await settle()
        assert admitted == [0, 1]

        clock.now += 0.5
        await settle()
        assert admitted == [0, 1, 2]
        await asyncio.gather(*tasks)
