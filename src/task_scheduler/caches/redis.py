import json
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from task_scheduler.exceptions import CacheUnavailableError
from .protocol import CacheStore


class RedisCacheStore(CacheStore):
    """
    Cache store backed by Redis. ``add`` maps to ``SET key value NX EX ttl``.
    """
    atomic_add = True

    def __init__(self, redis_client: Redis):
        self._redis = redis_client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        return cls(Redis.from_url(url))

    async def get(self, key: str, default: Any = None) -> Any:
        try:
            val = await self._redis.get(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise CacheUnavailableError(f"Redis unavailable: {e}") from e
        if val is None:
            return default
        return json.loads(val)

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            await self._redis.set(key, json.dumps(value), ex=ttl)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise CacheUnavailableError(f"Redis unavailable: {e}") from e

    async def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            stored = await self._redis.set(key, json.dumps(value), ex=ttl, nx=True)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise CacheUnavailableError(f"Redis unavailable: {e}") from e
        return bool(stored)

    async def forget(self, key: str) -> bool:
        try:
            deleted = await self._redis.delete(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise CacheUnavailableError(f"Redis unavailable: {e}") from e
        return deleted > 0

    async def close(self) -> None:
        await self._redis.aclose()
