import importlib
import shlex
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from task_scheduler.cron import CronEvaluator
from task_scheduler.domain.task import CallbackCommand, ShellCommand, Task
from task_scheduler.exceptions import ScheduleLoadError


def compile_parameters(parameters: Dict[str, Any]) -> str:
    """
    Render ``{"--force": True, "--limit": 10, "path": "/tmp/x y"}`` as
    ``--force --limit=10 '/tmp/x y'``. Keys starting with a dash are options,
    other keys only name positional values.
    """
    parts = []
    for key, value in parameters.items():
        if key.startswith("-"):
            if value is True:
                parts.append(key)
            elif value is not False and value is not None:
                parts.append(f"{key}={shlex.quote(str(value))}")
        else:
            parts.append(shlex.quote(str(value)))
    return " ".join(parts)


class Schedule:
    """
    Ordered registry of the tasks of one process invocation.

    Tasks are validated when registered, a malformed expression raises here
    and never reaches the runner. Registration order is the execution order.
    """

    def __init__(self, timezone: Optional[str] = None):
        self.timezone = timezone
        self._tasks: List[Task] = []

    def add(self, task: Task) -> Task:
        if task.timezone is None and self.timezone is not None:
            task.timezone = self.timezone
        self._tasks.append(task)
        return task

    def call(self, callback: Callable[..., Any], parameters: Optional[Dict[str, Any]] = None) -> Task:
        return self.add(Task(command=CallbackCommand(callback=callback, parameters=parameters or {})))

    def exec(self, command: str, parameters: Optional[Dict[str, Any]] = None) -> Task:
        if parameters:
            command = f"{command} {compile_parameters(parameters)}"
        return self.add(Task(command=ShellCommand(command=command)))

    @property
    def tasks(self) -> Tuple[Task, ...]:
        return tuple(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def due_tasks(
        self,
        evaluator: CronEvaluator,
        now: datetime,
        environment: str = "production",
        maintenance: bool = False,
    ) -> List[Task]:
        return [
            task
            for task in self._tasks
            if (task.even_in_maintenance_mode or not maintenance)
            and task.runs_in_environment(environment)
            and evaluator.is_due(task, now)
        ]

    def find(self, identity: str) -> List[Task]:
        return [task for task in self._tasks if task.mutex_identity == identity]

    def find_by_summary(self, summary: str) -> List[Task]:
        return [task for task in self._tasks if task.summary == summary]


def load_schedule(path: str) -> Schedule:
    """
    Import a schedule from ``package.module:attribute``.

    The attribute may be a ``Schedule`` or a callable returning one.
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ScheduleLoadError(f"Schedule path '{path}' must look like 'package.module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ScheduleLoadError(f"Could not import schedule module '{module_name}': {e}") from e
    except Exception as e:
        raise ScheduleLoadError(f"Schedule module '{module_name}' failed to load: {e}") from e
    try:
        target = getattr(module, attribute)
    except AttributeError as e:
        raise ScheduleLoadError(f"Module '{module_name}' has no attribute '{attribute}'") from e
    if callable(target) and not isinstance(target, Schedule):
        try:
            target = target()
        except Exception as e:
            raise ScheduleLoadError(f"Building the schedule from '{path}' failed: {e}") from e
    if not isinstance(target, Schedule):
        raise ScheduleLoadError(f"'{path}' is not a Schedule")
    return target
