import hashlib
from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from task_scheduler.cron import validate_expression
from task_scheduler.exceptions import InvalidScheduleError
from .filters import Filter, FilterContext, TimeWindowFilter, check
from .hooks import CallbackHook, HookCondition, PingHook

MUTEX_PREFIX = "task-scheduler/schedule-"


class CommandType(str, Enum):
    SHELL = "shell"
    CALLBACK = "callback"


class BaseCommand(BaseModel, ABC):
    """
    Base class for the executable part of a task.
    """
    type: CommandType

    @abstractmethod
    def summary(self) -> str:
        pass

    @abstractmethod
    def identity(self) -> str:
        """Text that identifies the command across processes and hosts."""
        pass


class ShellCommand(BaseCommand):
    """
    A command line handed to the system shell.
    """
    type: CommandType = CommandType.SHELL
    command: str = Field(..., min_length=1, description="Shell command line")

    def summary(self) -> str:
        return self.command

    def identity(self) -> str:
        return self.command


class CallbackCommand(BaseCommand):
    """
    An in-process callable, invoked with ``parameters`` as keyword arguments.
    """
    type: CommandType = CommandType.CALLBACK
    callback: Callable[..., Any] = Field(..., description="Callable to invoke")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Keyword arguments for the callable")

    def summary(self) -> str:
        return "Callback"

    def identity(self) -> str:
        module = getattr(self.callback, "__module__", None) or ""
        name = getattr(self.callback, "__qualname__", None) or type(self.callback).__qualname__
        return f"{module}.{name}"


class Task(BaseModel):
    """
    A unit of scheduled work: what to run, when to run it and how.

    Tasks are assembled once per process by the schedule definition and only
    read by the runner. Fluent helpers return the task itself so definitions can
    be chained, e.g. ``schedule.exec("backup.sh").daily_at("02:30").on_one_host()``.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    command: Union[ShellCommand, CallbackCommand] = Field(..., description="Shell command or callback")
    expression: str = Field("* * * * *", description="Cron expression")
    timezone: Optional[str] = Field(None, description="IANA timezone the expression is evaluated in; system timezone when unset")
    description: Optional[str] = Field(None, description="Human readable name")
    repeat_seconds: Optional[int] = Field(None, ge=1, le=60, description="Sub-minute repeat interval")
    run_on_one_host: bool = Field(False, description="Run on a single host per scheduled minute")
    run_in_background: bool = Field(False, description="Run as a detached process")
    even_in_maintenance_mode: bool = Field(False, description="Run while the application is down for maintenance")
    without_overlapping: bool = Field(False, description="Skip while a previous run still holds the mutex")
    expires_after: int = Field(1440, ge=1, description="Minutes after which a held mutex expires on its own")
    environments: List[str] = Field(default_factory=list, description="Environments the task runs in; all when empty")
    filters: List[Filter] = Field(default_factory=list)
    rejects: List[Filter] = Field(default_factory=list)
    before_hooks: List[Union[CallbackHook, PingHook]] = Field(default_factory=list)
    after_hooks: List[Union[CallbackHook, PingHook]] = Field(default_factory=list)
    output: Optional[str] = Field(None, description="File receiving the command output")
    append_output: bool = False
    user: Optional[str] = Field(None, description="System user the shell command runs as")
    exit_code: Optional[int] = Field(None, description="Exit code of the latest run")

    @field_validator("expression")
    def check_expression(cls, v: str) -> str:
        return validate_expression(v)

    @field_validator("timezone")
    def check_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise InvalidScheduleError(f"Unknown timezone '{v}'")
        return v

    @model_validator(mode="after")
    def check_options(self) -> "Task":
        if self.is_callback:
            if self.run_in_background:
                raise InvalidScheduleError("Scheduled callbacks can not be run in the background.")
            if (self.run_on_one_host or self.without_overlapping) and not self.description:
                raise InvalidScheduleError(
                    "A scheduled callback needs a name to run on one host or without overlapping. "
                    "Use name() before on_one_host() or prevent_overlapping()."
                )
        return self

    @property
    def is_callback(self) -> bool:
        return self.command.type == CommandType.CALLBACK

    @property
    def is_repeatable(self) -> bool:
        return self.repeat_seconds is not None

    @property
    def uses_mutex(self) -> bool:
        return self.run_on_one_host or self.without_overlapping

    @property
    def tzinfo(self) -> tzinfo:
        if self.timezone:
            return ZoneInfo(self.timezone)
        return datetime.now().astimezone().tzinfo

    @property
    def mutex_identity(self) -> str:
        source = self.description if self.is_callback and self.description else self.command.identity()
        digest = hashlib.sha1(f"{self.expression}{source}".encode("utf-8")).hexdigest()
        return f"{MUTEX_PREFIX}{digest}"

    @property
    def summary(self) -> str:
        return self.description or self.command.summary()

    def runs_in_environment(self, environment: str) -> bool:
        return not self.environments or environment in self.environments

    async def filters_pass(self, context: FilterContext) -> bool:
        for predicate in self.filters:
            if not await check(predicate, context):
                return False
        for predicate in self.rejects:
            if await check(predicate, context):
                return False
        return True

    # Frequencies

    def cron(self, expression: str) -> "Task":
        self.expression = expression
        return self

    def every_minute(self) -> "Task":
        return self.cron("* * * * *")

    def every_five_minutes(self) -> "Task":
        return self.cron("*/5 * * * *")

    def hourly(self) -> "Task":
        return self.cron("0 * * * *")

    def hourly_at(self, minute: int) -> "Task":
        return self.cron(f"{minute} * * * *")

    def daily(self) -> "Task":
        return self.cron("0 0 * * *")

    def daily_at(self, at: str) -> "Task":
        hour, _, minute = at.partition(":")
        return self.cron(f"{int(minute or 0)} {int(hour)} * * *")

    def weekly(self) -> "Task":
        return self.cron("0 0 * * 0")

    def monthly(self) -> "Task":
        return self.cron("0 0 1 * *")

    def every_seconds(self, seconds: int) -> "Task":
        self.repeat_seconds = seconds
        return self

    def every_fifteen_seconds(self) -> "Task":
        return self.every_seconds(15)

    def in_timezone(self, timezone: str) -> "Task":
        self.timezone = timezone
        return self

    # Execution policy

    def name(self, description: str) -> "Task":
        self.description = description
        return self

    def on_one_host(self) -> "Task":
        self.run_on_one_host = True
        return self

    def in_background(self) -> "Task":
        self.run_in_background = True
        return self

    def run_in_maintenance(self) -> "Task":
        self.even_in_maintenance_mode = True
        return self

    def prevent_overlapping(self, expires_after: int = 1440) -> "Task":
        self.expires_after = expires_after
        self.without_overlapping = True
        return self

    def in_environments(self, *environments: str) -> "Task":
        self.environments = list(environments)
        return self

    def when(self, predicate: Filter) -> "Task":
        self.filters.append(predicate)
        return self

    def skip(self, predicate: Filter) -> "Task":
        self.rejects.append(predicate)
        return self

    def between(self, start: str, end: str) -> "Task":
        return self.when(TimeWindowFilter(start=start, end=end))

    def unless_between(self, start: str, end: str) -> "Task":
        return self.when(TimeWindowFilter(start=start, end=end, inverted=True))

    # Hooks

    def before(self, callback: Callable[..., Any]) -> "Task":
        self.before_hooks.append(CallbackHook(callback=callback))
        return self

    def after(self, callback: Callable[..., Any]) -> "Task":
        self.after_hooks.append(CallbackHook(callback=callback))
        return self

    def on_success(self, callback: Callable[..., Any]) -> "Task":
        self.after_hooks.append(CallbackHook(callback=callback, condition=HookCondition.SUCCESS))
        return self

    def on_failure(self, callback: Callable[..., Any]) -> "Task":
        self.after_hooks.append(CallbackHook(callback=callback, condition=HookCondition.FAILURE))
        return self

    def ping_before(self, url: str) -> "Task":
        self.before_hooks.append(PingHook(url=url))
        return self

    def then_ping(self, url: str) -> "Task":
        self.after_hooks.append(PingHook(url=url))
        return self

    def ping_on_success(self, url: str) -> "Task":
        self.after_hooks.append(PingHook(url=url, condition=HookCondition.SUCCESS))
        return self

    def ping_on_failure(self, url: str) -> "Task":
        self.after_hooks.append(PingHook(url=url, condition=HookCondition.FAILURE))
        return self

    # Output

    def send_output_to(self, path: str, append: bool = False) -> "Task":
        self.output = path
        self.append_output = append
        return self

    def append_output_to(self, path: str) -> "Task":
        return self.send_output_to(path, append=True)

    def as_user(self, user: str) -> "Task":
        self.user = user
        return self

    @property
    def readable_string(self) -> str:
        text = f"[{self.expression}] {self.summary}"
        if self.repeat_seconds:
            text += f" every {self.repeat_seconds}s"
        if self.run_on_one_host:
            text += " (one host)"
        if self.run_in_background:
            text += " (background)"
        return text
