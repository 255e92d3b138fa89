from typing import Any, Optional, Protocol


class CacheStore(Protocol):
    """
    Key/value store with per-key expiry shared by every host of a deployment.

    Implementations raise ``CacheUnavailableError`` when the backend cannot be
    reached. ``atomic_add`` tells whether ``add`` is a real check-and-set.
    """
    atomic_add: bool

    async def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key`` or ``default`` when missing or expired."""
        ...

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds (forever when None)."""
        ...

    async def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store ``value`` only if ``key`` is absent. Return True if this call stored it."""
        ...

    async def forget(self, key: str) -> bool:
        """Delete ``key``. Return True if something was deleted."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        ...
