import asyncio
import time
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Protocol


class Clock(Protocol):
    """
    Source of time for every timing decision made by the scheduler.
    """

    def now(self, tz: Optional[tzinfo] = None) -> datetime:
        """Return the current time, converted to ``tz`` when given (UTC otherwise)."""
        ...

    def monotonic(self) -> float:
        """Return a monotonic reading in seconds, used for runtimes."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for ``seconds``."""
        ...


class SystemClock(Clock):
    def now(self, tz: Optional[tzinfo] = None) -> datetime:
        current = datetime.now(timezone.utc)
        return current.astimezone(tz) if tz is not None else current

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def start_of_minute(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


def end_of_minute(moment: datetime) -> datetime:
    return start_of_minute(moment) + timedelta(seconds=59, microseconds=999999)


def seconds_until_end_of_minute(moment: datetime) -> int:
    """
    Whole seconds left in the minute containing ``moment``, never less than one
    so that a record written in the last second still gets a positive TTL.
    """
    remaining = (end_of_minute(moment) - moment).total_seconds()
    return max(1, int(remaining) + 1)
