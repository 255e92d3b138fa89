import inspect
import os
import shutil
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, List, Optional, Sequence

from task_scheduler.clock import Clock, SystemClock, start_of_minute
from task_scheduler.cron import CronEvaluator
from task_scheduler.domain.task import Task
from task_scheduler.mutex import MutexStore

NO_TASKS = "No scheduled tasks have been defined."

_UNITS = (
    ("year", 365 * 86400),
    ("month", 30 * 86400),
    ("week", 7 * 86400),
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def humanize_delta(target: datetime, now: datetime) -> str:
    """
    Relative description of ``target`` seen from ``now``, such as
    ``5 minutes from now`` or ``2 hours ago``, in the largest whole unit.
    """
    seconds = (target - now).total_seconds()
    suffix = "from now" if seconds >= 0 else "ago"
    seconds = abs(seconds)
    for unit, size in _UNITS:
        if seconds >= size:
            count = int(seconds // size)
            break
    else:
        unit, count = "second", 1
    plural = "" if count == 1 else "s"
    return f"{count} {unit}{plural} {suffix}"


def callback_location(callback: Callable[..., Any]) -> str:
    code = getattr(callback, "__code__", None)
    if code is None:
        return f"{type(callback).__module__}.{type(callback).__qualname__}.__call__"
    path = inspect.getsourcefile(callback) or code.co_filename
    try:
        path = os.path.relpath(path)
    except ValueError:
        pass
    return f"{path}:{code.co_firstlineno}"


class ScheduleLister:
    """
    Renders the ``list`` command output: one line per task with its padded
    expression, repeat interval, command, mutex marker and next due time.
    """

    def __init__(
        self,
        evaluator: Optional[CronEvaluator] = None,
        mutex: Optional[MutexStore] = None,
        clock: Optional[Clock] = None,
    ):
        self.evaluator = evaluator or CronEvaluator()
        self.mutex = mutex
        self.clock: Clock = clock or SystemClock()

    def next_due(self, task: Task, now: datetime) -> datetime:
        """
        Next time the task is due. Inside the due minute of a repeatable task
        this is its next repeat second.
        """
        next_run = self.evaluator.next_run(task, now, inclusive=False)
        if not task.is_repeatable:
            return next_run
        local = now.astimezone(task.tzinfo)
        minute = start_of_minute(local)
        if self.evaluator.previous_run(task, local) != minute:
            return next_run
        step = task.repeat_seconds
        candidate = (local.second // step + 1) * step
        # a period that would run past the minute is never started
        if candidate + step > 60:
            return next_run
        return minute + timedelta(seconds=candidate)

    @staticmethod
    def format_due(next_due: datetime, now: datetime, verbose: bool) -> str:
        if verbose:
            return f"{next_due:%Y-%m-%d %H:%M:%S} {next_due.isoformat()[-6:]}"
        return humanize_delta(next_due, now)

    @staticmethod
    def command_for_display(task: Task) -> str:
        if task.is_callback:
            return f"Closure at: {callback_location(task.command.callback)}"
        return task.command.command

    @staticmethod
    def repeat_expression(task: Task) -> str:
        return f"{task.repeat_seconds}s " if task.is_repeatable else ""

    @staticmethod
    def expression_spacing(tasks: Sequence[Task]) -> List[int]:
        rows = [[len(part) for part in task.expression.split()] for task in tasks]
        return [max(row[i] for row in rows if len(row) > i) for i in range(max(len(row) for row in rows))]

    @staticmethod
    def format_expression(expression: str, spacing: List[int]) -> str:
        parts = expression.split()
        return " ".join(
            (parts[i] if i < len(parts) else "").ljust(length) for i, length in enumerate(spacing)
        )

    async def lines(
        self,
        tasks: Sequence[Task],
        timezone: Optional[tzinfo] = None,
        sort_by_next: bool = False,
        verbose: bool = False,
        width: Optional[int] = None,
    ) -> List[str]:
        if not tasks:
            return [NO_TASKS]

        width = width or shutil.get_terminal_size().columns
        now = self.clock.now()
        display_tz = timezone or datetime.now().astimezone().tzinfo
        spacing = self.expression_spacing(tasks)
        repeat_spacing = max(len(self.repeat_expression(task)) for task in tasks)

        due = [(task, self.next_due(task, now).astimezone(display_tz)) for task in tasks]
        if sort_by_next:
            due.sort(key=lambda pair: pair[1])

        lines = [""]
        for task, next_due in due:
            expression = self.format_expression(task.expression, spacing)
            repeat = self.repeat_expression(task).ljust(repeat_spacing)
            command = self.command_for_display(task)
            command = f"{command} " if len(command) > 1 else ""
            label = "Next Due:"
            when = self.format_due(next_due, now, verbose)
            has_mutex = "Has Mutex › " if self.mutex and await self.mutex.exists(task.mutex_identity) else ""
            dots = "." * max(width - len(expression + repeat + command + label + when + has_mutex) - 8, 0)
            lines.append(f"  {expression} {repeat} {command}{dots} {has_mutex}{label} {when}")
            if verbose and task.description and len(task.description) > 1:
                lines.append(f"  {' ' * (len(expression) + 2)}⇁ {task.description}")
        lines.append("")
        return lines
