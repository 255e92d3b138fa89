from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from croniter import CroniterBadDateError, croniter

from task_scheduler.clock import start_of_minute
from task_scheduler.exceptions import InvalidScheduleError

if TYPE_CHECKING:
    from task_scheduler.domain.task import Task


def validate_expression(expression: str) -> str:
    """
    Validate a cron expression and return it normalised.

    Five-field expressions and croniter macros (``@hourly``, ``@daily``...) are
    accepted. Expressions with a seconds field are rejected, sub-minute
    scheduling is expressed with ``repeat_seconds`` instead.
    """
    normalised = " ".join(expression.split())
    fields = normalised.split(" ")
    if not normalised.startswith("@"):
        if len(fields) == 6:
            raise InvalidScheduleError("Unsupported cron expression with seconds")
        elif len(fields) != 5:
            raise InvalidScheduleError(f"Invalid cron expression '{expression}'")
    if not croniter.is_valid(normalised):
        raise InvalidScheduleError(f"Invalid cron expression '{expression}'")
    try:
        croniter(normalised).get_next(datetime)
    except CroniterBadDateError as e:
        raise InvalidScheduleError(f"Cron expression '{expression}' never matches a date") from e
    return normalised


class CronEvaluator:
    """
    Computes due-ness and occurrences of task schedules.

    Every computation happens in the task's own timezone, at minute granularity
    for the cron expression and whole-second granularity for repeat intervals.
    Returned datetimes are aware and expressed in the task's timezone.
    """

    validate = staticmethod(validate_expression)

    def _local(self, task: "Task", moment: datetime) -> datetime:
        return moment.astimezone(task.tzinfo)

    def _matches(self, expression: str, minute: datetime) -> bool:
        return croniter(expression, minute - timedelta(seconds=1)).get_next(datetime) == minute

    def is_due(self, task: "Task", now: datetime) -> bool:
        """
        True when the minute containing ``now`` matches the task's expression.
        """
        return self._matches(task.expression, start_of_minute(self._local(task, now)))

    def next_run(self, task: "Task", after: datetime, inclusive: bool = True) -> datetime:
        """
        First occurrence at or after ``after``; strictly after when ``inclusive`` is False.
        """
        local = self._local(task, after)
        if inclusive and local == start_of_minute(local) and self._matches(task.expression, local):
            return local
        return croniter(task.expression, local).get_next(datetime)

    def previous_run(self, task: "Task", at_or_before: datetime) -> datetime:
        """
        Latest occurrence at or before ``at_or_before``.
        """
        minute = start_of_minute(self._local(task, at_or_before))
        if self._matches(task.expression, minute):
            return minute
        return croniter(task.expression, minute).get_prev(datetime)

    def repeat_slot(self, task: "Task", now: datetime) -> Optional[datetime]:
        """
        The repeat period of a repeatable task that starts exactly at ``now``.

        Returns None unless the task's previous due minute is the current one
        and ``now`` sits on a whole multiple of ``repeat_seconds`` from the start
        of that minute. Periods that would run past the minute boundary are
        dropped.
        """
        if not task.is_repeatable:
            return None
        local = self._local(task, now)
        minute = start_of_minute(local)
        if self.previous_run(task, local) != minute:
            return None
        elapsed = local.second
        if elapsed % task.repeat_seconds != 0 or elapsed + task.repeat_seconds > 60:
            return None
        return minute + timedelta(seconds=elapsed)

    def should_repeat_now(self, task: "Task", now: datetime) -> bool:
        return self.repeat_slot(task, now) is not None

    def current_slot(self, task: "Task", now: datetime) -> datetime:
        """
        Start of the repeat period containing ``now``; the minute itself for
        non-repeatable tasks.
        """
        local = self._local(task, now)
        minute = start_of_minute(local)
        if not task.is_repeatable:
            return minute
        return minute + timedelta(seconds=local.second // task.repeat_seconds * task.repeat_seconds)
