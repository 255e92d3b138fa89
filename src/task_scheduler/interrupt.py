import logging
from typing import Optional

from task_scheduler.caches.protocol import CacheStore
from task_scheduler.clock import Clock, SystemClock, seconds_until_end_of_minute
from task_scheduler.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)

INTERRUPT_KEY = "schedule:interrupt"


class InterruptFlag:
    """
    Operator request to stop the repeat loop of the tick currently running.

    The flag lives until the end of the minute it was raised in, so it can never
    outlast the tick it was meant for.
    """

    def __init__(self, cache: CacheStore, clock: Optional[Clock] = None, prefix: str = ""):
        self.cache = cache
        self.clock: Clock = clock or SystemClock()
        self.key = f"{prefix}{INTERRUPT_KEY}"

    async def signal(self) -> None:
        await self.cache.put(self.key, True, seconds_until_end_of_minute(self.clock.now()))

    async def is_signaled(self) -> bool:
        try:
            return bool(await self.cache.get(self.key, False))
        except CacheUnavailableError as e:
            logger.warning("Could not read the interrupt flag: %s", e)
            return False

    async def clear(self) -> None:
        try:
            await self.cache.forget(self.key)
        except CacheUnavailableError as e:
            logger.warning("Could not clear the interrupt flag: %s", e)
