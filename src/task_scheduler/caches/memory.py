from typing import Any, Dict, Optional, Tuple

from task_scheduler.clock import Clock, SystemClock
from .protocol import CacheStore


class InMemoryCacheStore(CacheStore):
    """
    Process-local cache store.

    WARNING: records live in this process only, so it coordinates nothing across
    hosts or separate CLI invocations. Use it for tests and single-process runs.
    """
    atomic_add = True

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or SystemClock()
        self.items: Dict[str, Tuple[Any, Optional[float]]] = {}

    def _now(self) -> float:
        return self.clock.now().timestamp()

    def _live(self, key: str) -> bool:
        item = self.items.get(key)
        if item is None:
            return False
        _, expires_at = item
        if expires_at is not None and expires_at <= self._now():
            del self.items[key]
            return False
        return True

    def _expiry(self, ttl: Optional[int]) -> Optional[float]:
        return self._now() + ttl if ttl is not None else None

    async def get(self, key: str, default: Any = None) -> Any:
        if not self._live(key):
            return default
        return self.items[key][0]

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self.items[key] = (value, self._expiry(ttl))

    async def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if self._live(key):
            return False
        self.items[key] = (value, self._expiry(ttl))
        return True

    async def forget(self, key: str) -> bool:
        return self.items.pop(key, None) is not None

    async def close(self) -> None:
        pass
