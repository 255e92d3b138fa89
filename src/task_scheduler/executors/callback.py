import inspect

from task_scheduler.domain.task import CommandType, Task
from task_scheduler.executors.protocol import TaskExecutor


class CallbackExecutor(TaskExecutor):
    """
    Calls in-process callbacks. A callback returning ``False`` counts as exit
    code 1; exceptions are left to the caller.
    """

    @staticmethod
    def supported_command() -> CommandType:
        return CommandType.CALLBACK

    async def async_execute(self, task: Task) -> int:
        result = task.command.callback(**task.command.parameters)
        if inspect.isawaitable(result):
            result = await result
        return 1 if result is False else 0
