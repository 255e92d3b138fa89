import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from task_scheduler.clock import Clock, SystemClock, end_of_minute, seconds_until_end_of_minute
from task_scheduler.cron import CronEvaluator
from task_scheduler.domain.events import (
    BackgroundTaskFinished,
    TaskFailed,
    TaskFinished,
    TaskRanElsewhere,
    TaskSkipped,
    TaskStarting,
)
from task_scheduler.domain.filters import FilterContext
from task_scheduler.domain.run import RunOutcome, TaskOutcome, TickResult
from task_scheduler.domain.task import Task
from task_scheduler.executor_factory import TaskExecutorFactory
from task_scheduler.executors.shell import BackgroundDispatcher
from task_scheduler.hooks import HookRunner
from task_scheduler.interrupt import InterruptFlag
from task_scheduler.lifecycle import LifecycleBus
from task_scheduler.mutex import MutexStore
from task_scheduler.schedule import Schedule

logger = logging.getLogger(__name__)


def _never_in_maintenance() -> bool:
    return False


class ScheduleRunner:
    """
    Runs one tick of a schedule: the due tasks of the current minute, then the
    extra firings of sub-minute repeatable tasks until the minute ends.

    A tick never raises because of a task. Every task outcome is published on
    the lifecycle bus and collected in the returned ``TickResult``.
    """

    def __init__(
        self,
        schedule: Schedule,
        mutex: MutexStore,
        interrupt: InterruptFlag,
        bus: Optional[LifecycleBus] = None,
        clock: Optional[Clock] = None,
        executor_factory: Optional[TaskExecutorFactory] = None,
        dispatcher: Optional[BackgroundDispatcher] = None,
        hooks: Optional[HookRunner] = None,
        evaluator: Optional[CronEvaluator] = None,
        environment: str = "production",
        is_down_for_maintenance: Callable[[], bool] = _never_in_maintenance,
        poll_interval: float = 0.1,
    ):
        self.schedule = schedule
        self.mutex = mutex
        self.interrupt = interrupt
        self.bus = bus or LifecycleBus()
        self.clock: Clock = clock or SystemClock()
        self.executor_factory = executor_factory or TaskExecutorFactory.default()
        self.dispatcher = dispatcher or BackgroundDispatcher()
        self.hooks = hooks or HookRunner()
        self.evaluator = evaluator or CronEvaluator()
        self.environment = environment
        self.is_down_for_maintenance = is_down_for_maintenance
        self.poll_interval = poll_interval

    async def run(self) -> TickResult:
        started_at = self.clock.now()
        result = TickResult(started_at=started_at)
        await self.interrupt.clear()

        due = self.schedule.due_tasks(
            self.evaluator, started_at, self.environment, self.is_down_for_maintenance()
        )
        fired: Dict[int, datetime] = {}
        for task in due:
            if task.is_repeatable:
                fired[id(task)] = self.evaluator.current_slot(task, started_at)
            await self._consider(task, started_at, result)

        repeatable = [task for task in due if task.is_repeatable]
        if repeatable:
            await self._repeat(repeatable, started_at, fired, result)

        if not result.ran:
            logger.info("No scheduled commands are ready to run.")
        return result

    async def _repeat(
        self,
        tasks: List[Task],
        started_at: datetime,
        fired: Dict[int, datetime],
        result: TickResult,
    ) -> None:
        deadline = end_of_minute(started_at)
        entered_maintenance = False
        while True:
            for task in tasks:
                if await self.interrupt.is_signaled():
                    logger.info("Schedule interrupted, no more repeated runs this minute")
                    return
                now = self.clock.now()
                if now > deadline:
                    return
                slot = self.evaluator.repeat_slot(task, now)
                if slot is None or fired.get(id(task)) == slot:
                    continue
                # once maintenance starts it sticks for the rest of the tick
                entered_maintenance = entered_maintenance or self.is_down_for_maintenance()
                if entered_maintenance and not task.even_in_maintenance_mode:
                    continue
                fired[id(task)] = slot
                await self._consider(task, now, result)
            if self.clock.now() > deadline:
                return
            await self.clock.sleep(self.poll_interval)

    async def _consider(self, task: Task, now: datetime, result: TickResult) -> TaskOutcome:
        """
        Apply filters and mutexes to a due task, then run it.
        """
        context = FilterContext(task=task, now=now, environment=self.environment)
        if not await task.filters_pass(context):
            await self.bus.publish(TaskSkipped(task=task, reason="filters", occurred_at=now))
            return result.record(self._outcome(task, RunOutcome.SKIPPED))

        if task.uses_mutex:
            if not await self.mutex.acquire(task.mutex_identity, self._mutex_ttl(task, now)):
                if task.run_on_one_host:
                    await self.bus.publish(TaskRanElsewhere(task=task, occurred_at=now))
                    return result.record(self._outcome(task, RunOutcome.RAN_ELSEWHERE))
                await self.bus.publish(TaskSkipped(task=task, reason="overlapping", occurred_at=now))
                return result.record(self._outcome(task, RunOutcome.OVERLAPPING))

        return result.record(await self._execute(task))

    def _mutex_ttl(self, task: Task, now: datetime) -> int:
        """
        A one-host claim covers the scheduled minute. A background run or an
        overlap guard holds the mutex until released, bounded by ``expires_after``.
        """
        ttl = seconds_until_end_of_minute(now) if task.run_on_one_host else 0
        if task.run_in_background or task.without_overlapping:
            ttl = max(ttl, task.expires_after * 60)
        return ttl

    async def _execute(self, task: Task) -> TaskOutcome:
        await self.bus.publish(TaskStarting(task=task, occurred_at=self.clock.now()))
        started = self.clock.monotonic()
        try:
            await self.hooks.run(task.before_hooks, task)
            if task.run_in_background:
                pid = self.dispatcher.dispatch(task)
                logger.debug("Dispatched [%s] as process %s", task.summary, pid)
                return self._outcome(task, RunOutcome.DISPATCHED)

            error: Optional[Exception] = None
            try:
                task.exit_code = await self.executor_factory.get_executor(task).async_execute(task)
            except Exception as e:
                task.exit_code = 1
                error = e
            # after hooks see the failure exit code before the error propagates
            await self.hooks.run(task.after_hooks, task)
            if error is not None:
                raise error
        except Exception as e:
            runtime = round(self.clock.monotonic() - started, 2)
            await self._release(task)
            logger.exception("Scheduled task [%s] failed", task.summary)
            await self.bus.publish(TaskFailed(task=task, exception=e, occurred_at=self.clock.now()))
            return self._outcome(task, RunOutcome.FAILED, runtime=runtime, error=str(e))

        runtime = round(self.clock.monotonic() - started, 2)
        await self._release(task)
        await self.bus.publish(
            TaskFinished(task=task, runtime=runtime, exit_code=task.exit_code, occurred_at=self.clock.now())
        )
        return self._outcome(task, RunOutcome.FINISHED, runtime=runtime)

    async def _release(self, task: Task) -> None:
        if task.uses_mutex:
            await self.mutex.release(task.mutex_identity)

    def _outcome(self, task: Task, outcome: RunOutcome, **kwargs) -> TaskOutcome:
        return TaskOutcome(
            summary=task.summary,
            mutex_identity=task.mutex_identity,
            outcome=outcome,
            exit_code=task.exit_code if outcome in (RunOutcome.FINISHED, RunOutcome.FAILED) else None,
            **kwargs,
        )

    async def run_task(self, task: Task) -> TickResult:
        """
        Run a single task right away, ignoring its schedule, filters and mutexes.
        """
        result = TickResult(started_at=self.clock.now())
        result.record(await self._execute(task))
        return result

    async def finish(self, identity: str, exit_code: int) -> int:
        """
        Complete the background run of the tasks with mutex identity ``identity``.

        Releases the mutex, sets the exit code and runs the after hooks. A
        completion reported twice is handled once: for tasks that hold a mutex,
        only the report whose release removed the record goes on to complete
        the run. Returns the number of tasks completed.
        """
        tasks = self.schedule.find(identity)
        if not tasks:
            logger.info("No scheduled task matches %s", identity)
            return 0

        claimed = True
        if any(task.uses_mutex for task in tasks):
            claimed = await self.mutex.release(identity)

        finished = 0
        for task in tasks:
            if task.uses_mutex and not claimed:
                logger.info("Background run of [%s] already finished", task.summary)
                continue
            task.exit_code = exit_code
            await self.hooks.run(task.after_hooks, task)
            await self.bus.publish(
                BackgroundTaskFinished(task=task, exit_code=exit_code, occurred_at=self.clock.now())
            )
            finished += 1
        return finished
