from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from task_scheduler.caches.memory import InMemoryCacheStore
from task_scheduler.domain.events import LifecycleEvent
from task_scheduler.interrupt import InterruptFlag
from task_scheduler.lifecycle import LifecycleBus
from task_scheduler.mutex import MutexStore


class FakeClock:
    """Clock that only moves when told to; ``sleep`` advances it."""

    def __init__(self, start: datetime):
        self.current = start
        self.elapsed = 0.0
        self.sleeps: List[float] = []

    def now(self, tz=None) -> datetime:
        return self.current.astimezone(tz) if tz is not None else self.current

    def monotonic(self) -> float:
        return self.elapsed

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.elapsed += seconds


class EventRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    def of(self, event_type) -> list:
        return [event for event in self.events if isinstance(event, event_type)]


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture(scope="function")
def cache(clock) -> InMemoryCacheStore:
    return InMemoryCacheStore(clock)


@pytest.fixture(scope="function")
def mutex(cache) -> MutexStore:
    return MutexStore(cache)


@pytest.fixture(scope="function")
def interrupt(cache, clock) -> InterruptFlag:
    return InterruptFlag(cache, clock)


@pytest.fixture(scope="function")
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture(scope="function")
def bus(recorder) -> LifecycleBus:
    bus = LifecycleBus()
    bus.subscribe(LifecycleEvent, recorder)
    return bus
