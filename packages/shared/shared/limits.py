from __future__ import annotations

import time
from dataclasses import dataclass

import redis.asyncio as redis


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    reset_in_seconds: int


class RedisRateLimiter:
    """
    Fixed-window rate limiter.
    Key: rl:{client}:{tool}:{epoch_minute}
    """

    WINDOW_SECONDS = 60
    # keys outlive their window slightly so a late INCR never resurrects a fresh counter
    KEY_TTL_SECONDS = 75

    def __init__(self, r: redis.Redis, per_minute: int, *, clock=time.time):
        if per_minute <= 0:
            raise ValueError("per_minute must be positive")
        self.r = r
        self.per_minute = per_minute
        self._clock = clock

    def key_for(self, client_key: str, tool: str, now: int) -> str:
        return f"rl:{client_key}:{tool}:{now // self.WINDOW_SECONDS}"

    async def check(self, client_key: str, tool: str) -> RateLimitResult:
        now = int(self._clock())
        key = self.key_for(client_key, tool, now)

        count = await self.r.incr(key)
        if count == 1:
            await self.r.expire(key, self.KEY_TTL_SECONDS)

        return RateLimitResult(
            allowed=count <= self.per_minute,
            remaining=max(self.per_minute - count, 0),
            limit=self.per_minute,
            reset_in_seconds=self.WINDOW_SECONDS - (now % self.WINDOW_SECONDS),
        )
