from typing import Optional

from task_scheduler.clock import Clock
from task_scheduler.exceptions import SchedulerError
from .protocol import CacheStore
from .memory import InMemoryCacheStore


def create_cache_store(url: str, clock: Optional[Clock] = None) -> CacheStore:
    """
    Build a cache store from a URL.

    ``memory://`` gives a process-local store, ``redis://`` and ``rediss://``
    a Redis store, anything else is treated as an async SQLAlchemy URL
    (``sqlite+aiosqlite:///cache.db``, ``postgresql+asyncpg://...``).
    """
    if url.startswith("memory://"):
        return InMemoryCacheStore(clock)
    if url.startswith(("redis://", "rediss://", "unix://")):
        from .redis import RedisCacheStore
        return RedisCacheStore.from_url(url)
    from sqlalchemy.exc import ArgumentError

    from .sqlalchemy import SqlAlchemyCacheStore
    try:
        return SqlAlchemyCacheStore(url, clock)
    except (ArgumentError, ImportError) as e:
        raise SchedulerError(f"Invalid cache URL '{url}': {e}") from e


__all__ = ["CacheStore", "InMemoryCacheStore", "create_cache_store"]
