import asyncio

import pytest

from conftest import FakeRedis
from shared.limits import RedisRateLimiter
from shared.redis_client import RedisClient


def test_fixed_window_counts_per_client():
    r = FakeRedis()
    limiter = RedisRateLimiter(r, per_minute=2, clock=lambda: 125.0)

    async def scenario():
        return [await limiter.check("ip:1", "search") for _ in range(3)] + [await limiter.check("ip:2", "search")]

    first, second, third, other = asyncio.run(scenario())

    assert (first.allowed, second.allowed, third.allowed, other.allowed) == (True, True, False, True)
    assert first.remaining == 1 and third.remaining == 0
    assert first.reset_in_seconds == 55
    assert r.expiries == {"rl:ip:1:search:2": 75, "rl:ip:2:search:2": 75}


def test_new_window_resets_count():
    now = [59.0]
    limiter = RedisRateLimiter(FakeRedis(), per_minute=1, clock=lambda: now[0])

    async def scenario():
        a = await limiter.check("ip:1", "search")
        now[0] = 60.0
        b = await limiter.check("ip:1", "search")
        return a, b

    a, b = asyncio.run(scenario())
    assert a.allowed and b.allowed


def test_non_positive_limit_rejected():
    with pytest.raises(ValueError):
        RedisRateLimiter(FakeRedis(), per_minute=0)


def test_unreachable_redis_pings_false():
    client = RedisClient.from_url("redis://127.0.0.1:1/0", timeout_s=0.2)

    async def scenario():
        try:
            return await client.ping()
        finally:
            await client.close()

    assert asyncio.run(scenario()) is False
