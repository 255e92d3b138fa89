import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from task_scheduler.caches import create_cache_store
from task_scheduler.caches.redis import RedisCacheStore
from task_scheduler.exceptions import CacheUnavailableError
from task_scheduler.mutex import MutexStore


@pytest.fixture(scope="function")
def redis():
    redis = MagicMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.aclose = AsyncMock()
    return redis


@pytest.fixture(scope="function")
def store(redis) -> RedisCacheStore:
    return RedisCacheStore(redis)


@pytest.mark.asyncio
async def test_get_decodes_json(store, redis):
    redis.get.return_value = json.dumps({"a": 1}).encode()
    assert await store.get("key") == {"a": 1}
    redis.get.return_value = None
    assert await store.get("key", "default") == "default"


@pytest.mark.asyncio
async def test_put_sets_expiry(store, redis):
    await store.put("key", True, 30)
    redis.set.assert_awaited_once_with("key", "true", ex=30)


@pytest.mark.asyncio
async def test_add_uses_set_nx(store, redis):
    assert await store.add("key", True, 30) is True
    redis.set.assert_awaited_once_with("key", "true", ex=30, nx=True)
    redis.set.return_value = None
    assert await store.add("key", True, 30) is False


@pytest.mark.asyncio
async def test_forget(store, redis):
    assert await store.forget("key") is True
    redis.delete.return_value = 0
    assert await store.forget("key") is False


@pytest.mark.asyncio
async def test_connection_error_fails_mutex_closed(store, redis):
    redis.set.side_effect = RedisConnectionError("connection refused")
    with pytest.raises(CacheUnavailableError):
        await store.add("key", True, 30)
    assert await MutexStore(store).acquire("identity", 30) is False


@pytest.mark.asyncio
async def test_close(store, redis):
    await store.close()
    redis.aclose.assert_awaited_once()


def test_create_cache_store_redis():
    store = create_cache_store("redis://localhost:6379/0")
    assert isinstance(store, RedisCacheStore)
