from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis

from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RedisConfig:
    url: str
    socket_timeout: float = 1.0
    socket_connect_timeout: float = 1.0
    health_check_interval: int = 15


class RedisClient:
    """
    Lazily connected async Redis client.
    Only the search rate limiter talks to it; a dead server must never fail a request.
    """

    def __init__(self, cfg: RedisConfig):
        self._cfg = cfg
        self._client: Optional[redis.Redis] = None

    @classmethod
    def from_url(cls, url: str, *, timeout_s: float = 1.0) -> "RedisClient":
        return cls(RedisConfig(url=url, socket_timeout=timeout_s, socket_connect_timeout=timeout_s))

    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self._cfg.url,
                decode_responses=True,
                socket_timeout=self._cfg.socket_timeout,
                socket_connect_timeout=self._cfg.socket_connect_timeout,
                health_check_interval=self._cfg.health_check_interval,
            )
        return self._client

    async def ping(self) -> bool:
        """True when the server answers; connection problems are logged, not raised."""
        try:
            return bool(await self.client().ping())
        except (redis.RedisError, OSError) as e:
            logger.warning("redis_ping_failed url=%s err=%r", self._cfg.url, e)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
