from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from task_scheduler.listing import NO_TASKS, ScheduleLister, humanize_delta
from task_scheduler.schedule import Schedule

UTC = ZoneInfo("UTC")


@pytest.fixture(scope="function")
def lister(mutex, clock) -> ScheduleLister:
    return ScheduleLister(mutex=mutex, clock=clock)


@pytest.mark.parametrize("seconds, expected", [
    (0, "1 second from now"),
    (1, "1 second from now"),
    (15, "15 seconds from now"),
    (60, "1 minute from now"),
    (300, "5 minutes from now"),
    (3600 * 5 + 120, "5 hours from now"),
    (86400 * 2, "2 days from now"),
    (-120, "2 minutes ago"),
])
def test_humanize_delta(seconds, expected):
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert humanize_delta(now + timedelta(seconds=seconds), now) == expected


@pytest.mark.asyncio
async def test_empty_schedule(lister):
    assert await lister.lines([]) == [NO_TASKS]


@pytest.mark.asyncio
async def test_lines_pad_expressions_and_show_next_due(lister):
    schedule = Schedule(timezone="UTC")
    schedule.exec("./hourly.sh").hourly()
    schedule.exec("./often.sh").every_five_minutes()

    lines = await lister.lines(schedule.tasks, UTC, width=80)

    assert lines[0] == "" and lines[-1] == ""
    assert lines[1].startswith("  0   * * * *  ./hourly.sh ")
    assert lines[1].endswith("Next Due: 1 hour from now")
    assert lines[2].startswith("  */5 * * * *  ./often.sh ")
    assert lines[2].endswith("Next Due: 5 minutes from now")
    assert len(lines[1]) == len(lines[2])


@pytest.mark.asyncio
async def test_repeatable_task_due_on_next_repeat_second(lister, clock):
    schedule = Schedule(timezone="UTC")
    schedule.exec("./poll.sh").every_fifteen_seconds()
    clock.advance(20)

    lines = await lister.lines(schedule.tasks, UTC, width=80)

    assert "15s " in lines[1]
    assert lines[1].endswith("Next Due: 10 seconds from now")


@pytest.mark.parametrize("expression, repeat_seconds, second, expected", [
    ("0 * * * *", 15, 50, datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)),
    ("* * * * *", 25, 30, datetime(2024, 1, 1, 12, 1, tzinfo=timezone.utc)),
    ("* * * * *", 15, 30, datetime(2024, 1, 1, 12, 0, 45, tzinfo=timezone.utc)),
])
def test_next_due_skips_periods_past_the_minute(lister, expression, repeat_seconds, second, expected):
    task = Schedule(timezone="UTC").exec("./poll.sh").cron(expression).every_seconds(repeat_seconds)
    now = datetime(2024, 1, 1, 12, 0, second, tzinfo=timezone.utc)

    next_due = lister.next_due(task, now)

    assert next_due == expected
    assert lister.evaluator.repeat_slot(task, next_due) == next_due


@pytest.mark.asyncio
async def test_mutex_marker(lister, mutex):
    schedule = Schedule(timezone="UTC")
    task = schedule.exec("./backup.sh").on_one_host()
    await mutex.acquire(task.mutex_identity, 60)

    lines = await lister.lines(schedule.tasks, UTC, width=80)

    assert "Has Mutex › Next Due:" in lines[1]


@pytest.mark.asyncio
async def test_sort_by_next_and_verbose(lister):
    schedule = Schedule(timezone="UTC")
    schedule.exec("./daily.sh").daily().name("nightly cleanup")
    schedule.exec("./minutely.sh")

    lines = await lister.lines(schedule.tasks, UTC, sort_by_next=True, verbose=True, width=80)

    assert "./minutely.sh" in lines[1]
    assert lines[1].endswith("Next Due: 2024-01-01 12:01:00 +00:00")
    assert "./daily.sh" in lines[2]
    assert lines[2].endswith("Next Due: 2024-01-02 00:00:00 +00:00")
    assert lines[3].strip() == "⇁ nightly cleanup"


@pytest.mark.asyncio
async def test_callbacks_show_their_location(lister):
    def cleanup():
        pass

    schedule = Schedule(timezone="UTC")
    schedule.call(cleanup)

    lines = await lister.lines(schedule.tasks, UTC, width=120)

    assert "Closure at: " in lines[1]
    assert "test_listing.py:" in lines[1]
