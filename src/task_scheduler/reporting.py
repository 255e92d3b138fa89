import sys
from typing import Optional, TextIO

from task_scheduler.domain.events import (
    LifecycleEvent,
    TaskFailed,
    TaskFinished,
    TaskRanElsewhere,
    TaskStarting,
)
from task_scheduler.lifecycle import LifecycleBus


class ConsoleReporter:
    """
    Prints one line per started task and its result, the way the ``run`` and
    ``test`` commands show progress to an operator.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def attach(self, bus: LifecycleBus) -> "ConsoleReporter":
        bus.subscribe(LifecycleEvent, self)
        return self

    def _write(self, line: str) -> None:
        print(line, file=self.stream)

    def __call__(self, event: LifecycleEvent) -> None:
        task = event.task
        if isinstance(event, TaskStarting):
            stamp = event.occurred_at.astimezone(task.tzinfo).strftime("%Y-%m-%d %H:%M:%S")
            suffix = " in background" if task.run_in_background else ""
            self._write(f"  {stamp} Running [{task.summary}]{suffix}")
        elif isinstance(event, TaskFinished):
            status = "DONE" if event.exit_code in (None, 0) else "FAIL"
            self._write(f"  {status} {event.runtime:.2f}s")
        elif isinstance(event, TaskFailed):
            self._write(f"  FAIL {event.exception}")
        elif isinstance(event, TaskRanElsewhere):
            self._write(f"  Skipping [{task.summary}], as command already run on another server.")
