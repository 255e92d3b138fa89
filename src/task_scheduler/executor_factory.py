from typing import Dict, Optional

from task_scheduler.domain.task import CommandType, Task
from task_scheduler.executors.callback import CallbackExecutor
from task_scheduler.executors.command_builder import CommandBuilder
from task_scheduler.executors.protocol import TaskExecutor
from task_scheduler.executors.shell import ShellExecutor


class TaskExecutorFactory:
    """
    Factory class mapping command types to executors.
    """
    def __init__(self):
        self._executors: Dict[CommandType, TaskExecutor] = {}

    @classmethod
    def default(cls, builder: Optional[CommandBuilder] = None) -> "TaskExecutorFactory":
        factory = cls()
        factory.register(ShellExecutor(builder))
        factory.register(CallbackExecutor())
        return factory

    @property
    def supported_commands(self) -> Dict[CommandType, TaskExecutor]:
        return dict(self._executors)

    def register(self, executor: TaskExecutor) -> None:
        """
        Register an executor for the command type it supports.

        Args:
            executor (TaskExecutor): The executor to register.
        """
        command_type: CommandType = executor.supported_command()
        if command_type in self._executors:
            raise ValueError(f"An executor for command type '{command_type.value}' is already registered")
        self._executors[command_type] = executor

    def get_executor(self, task: Task) -> TaskExecutor:
        """
        Get the executor for a task's command.

        Args:
            task (Task): The task about to run.

        Returns:
            TaskExecutor: The registered executor.

        Raises:
            KeyError: If no executor is registered for the command type.
        """
        command_type = task.command.type
        if command_type not in self._executors:
            raise KeyError(f"No executor registered for command type '{command_type.value}'")
        return self._executors[command_type]
