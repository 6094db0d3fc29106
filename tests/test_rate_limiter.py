import asyncio

import pytest

from piscan.data.rate_limiter import THROTTLE_WINDOW_SEC, RateLimiter


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_unseen_host_does_not_wait():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)
    assert limiter.wait_time("api.etherscan.io") == 0.0
    asyncio.run(limiter.await_turn("api.etherscan.io"))
    assert clock.sleeps == []


def test_second_call_waits_for_remaining_window():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)

    async def run():
        stamps = []
        for _ in range(2):
            async with limiter.turn("api.etherscan.io"):
                stamps.append(clock.now)
            clock.now += 1.0
        return stamps

    first, second = asyncio.run(run())
    assert second - first >= THROTTLE_WINDOW_SEC - 1e-9
    assert clock.sleeps == [pytest.approx(THROTTLE_WINDOW_SEC - 1.0)]


def test_hosts_are_throttled_independently():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)
    limiter.record("a.example")
    assert limiter.wait_time("b.example") == 0.0
    assert limiter.wait_time("a.example") == pytest.approx(THROTTLE_WINDOW_SEC)


def test_failed_request_still_consumes_slot():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)

    async def failing():
        async with limiter.turn("api.etherscan.io"):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(failing())
    assert limiter.last_queried("api.etherscan.io") == clock.now
    assert limiter.wait_time("api.etherscan.io") == pytest.approx(THROTTLE_WINDOW_SEC)


def test_in_flight_request_blocks_concurrent_caller():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)
    release = asyncio.Event()
    sent = []

    async def slow_request():
        async with limiter.turn("api.etherscan.io"):
            sent.append(clock.now)
            await release.wait()

    async def quick_request():
        async with limiter.turn("api.etherscan.io"):
            sent.append(clock.now)
        release.set()

    async def run():
        first = asyncio.create_task(slow_request())
        await asyncio.sleep(0)
        await quick_request()
        await first

    asyncio.run(run())
    assert sent[1] - sent[0] >= THROTTLE_WINDOW_SEC - 1e-9


def test_cancelled_waiter_does_not_take_the_slot():
    limiter = RateLimiter(window_sec=5.0)

    async def run():
        limiter.record("api.etherscan.io")
        before = limiter.last_queried("api.etherscan.io")
        entered = []

        async def waiter():
            async with limiter.turn("api.etherscan.io"):
                entered.append(True)

        task = asyncio.create_task(waiter())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return before, entered

    before, entered = asyncio.run(run())
    assert entered == []
    assert limiter.last_queried("api.etherscan.io") == before
