from .task import Task, CommandType, ShellCommand, CallbackCommand
from .filters import FilterContext, TimeWindowFilter
from .hooks import CallbackHook, PingHook, HookCondition
from .events import (
    LifecycleEvent,
    TaskSkipped,
    TaskRanElsewhere,
    TaskStarting,
    TaskFinished,
    TaskFailed,
    BackgroundTaskFinished,
)
from .run import RunOutcome, TaskOutcome, TickResult

__all__ = [
    "Task", "CommandType", "ShellCommand", "CallbackCommand",
    "FilterContext", "TimeWindowFilter",
    "CallbackHook", "PingHook", "HookCondition",
    "LifecycleEvent", "TaskSkipped", "TaskRanElsewhere", "TaskStarting",
    "TaskFinished", "TaskFailed", "BackgroundTaskFinished",
    "RunOutcome", "TaskOutcome", "TickResult",
]
