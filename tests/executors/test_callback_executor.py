import pytest

from task_scheduler.domain.task import CallbackCommand, Task
from task_scheduler.executors.callback import CallbackExecutor


@pytest.mark.asyncio
async def test_parameters_are_passed_as_keywords():
    received = {}

    def job(days: int, dry_run: bool = False):
        received.update(days=days, dry_run=dry_run)

    task = Task(command=CallbackCommand(callback=job, parameters={"days": 7, "dry_run": True}))
    assert await CallbackExecutor().async_execute(task) == 0
    assert received == {"days": 7, "dry_run": True}


@pytest.mark.asyncio
async def test_coroutine_callbacks_are_awaited():
    async def job():
        return False

    assert await CallbackExecutor().async_execute(Task(command=CallbackCommand(callback=job))) == 1


@pytest.mark.asyncio
async def test_exceptions_propagate():
    def job():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await CallbackExecutor().async_execute(Task(command=CallbackCommand(callback=job)))
