import logging

from task_scheduler.caches.protocol import CacheStore
from task_scheduler.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)


class MutexStore:
    """
    Cache-backed lock keyed by a task's mutex identity.

    The lock fails closed: when the cache cannot be reached ``acquire`` answers
    False, so a task that must run on one host is skipped everywhere rather
    than run on several hosts at once. Held records are never refreshed; their
    TTL is what frees the lock of a holder that crashed before releasing it,
    and ``clear-cache`` is the manual way out for a stuck lock.
    """

    def __init__(self, cache: CacheStore, prefix: str = ""):
        self.cache = cache
        self.prefix = prefix
        self._warned_non_atomic = False

    def _key(self, identity: str) -> str:
        return f"{self.prefix}{identity}"

    async def exists(self, identity: str) -> bool:
        try:
            return await self.cache.get(self._key(identity)) is not None
        except CacheUnavailableError as e:
            logger.warning("Could not check mutex %s: %s", identity, e)
            return False

    async def acquire(self, identity: str, ttl: int) -> bool:
        """
        Create the mutex record for ``ttl`` seconds. True iff this call created it.
        """
        key = self._key(identity)
        try:
            if getattr(self.cache, "atomic_add", False):
                return await self.cache.add(key, True, ttl)
            return await self._acquire_non_atomic(key, ttl)
        except CacheUnavailableError as e:
            logger.warning("Mutex %s treated as held, cache unavailable: %s", identity, e)
            return False

    async def _acquire_non_atomic(self, key: str, ttl: int) -> bool:
        if not self._warned_non_atomic:
            logger.warning(
                "Cache store %s has no atomic add; concurrent hosts may both acquire the same mutex",
                type(self.cache).__name__,
            )
            self._warned_non_atomic = True
        if await self.cache.get(key) is not None:
            return False
        await self.cache.put(key, True, ttl)
        return True

    async def release(self, identity: str) -> bool:
        """
        Delete the mutex record. True iff this call removed it.
        """
        try:
            return await self.cache.forget(self._key(identity))
        except CacheUnavailableError as e:
            logger.warning("Could not release mutex %s, it will expire on its own: %s", identity, e)
            return False
