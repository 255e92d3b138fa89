from typing import Protocol

from task_scheduler.domain.task import CommandType, Task


class TaskExecutor(Protocol):
    """
    Protocol class for task executors.
    """

    async def async_execute(self, task: Task) -> int:
        """
        Run the task's command to completion.

        Args:
            task (Task): The task to be executed.

        Returns:
            int: The exit code of the run, 0 on success.
        """
        ...

    @staticmethod
    def supported_command() -> CommandType:
        """
        Return the command type this executor runs.
        """
        ...
