import asyncio
import logging
import shlex
import subprocess
import sys
from typing import Optional

from task_scheduler.domain.task import CommandType, Task
from task_scheduler.executors.command_builder import CommandBuilder
from task_scheduler.executors.protocol import TaskExecutor

logger = logging.getLogger(__name__)


def default_finish_command(schedule: Optional[str] = None) -> str:
    command = f"{shlex.quote(sys.executable)} -m task_scheduler"
    if schedule:
        command += f" --schedule {shlex.quote(schedule)}"
    return f"{command} finish"


class ShellExecutor(TaskExecutor):
    """
    Runs shell tasks in the foreground and waits for their exit code.
    """

    def __init__(self, builder: Optional[CommandBuilder] = None):
        self.builder = builder or CommandBuilder()

    @staticmethod
    def supported_command() -> CommandType:
        return CommandType.SHELL

    async def async_execute(self, task: Task) -> int:
        command = self.builder.build_foreground_command(task)
        logger.debug("Running shell command: %s", command)
        process = await asyncio.create_subprocess_shell(command)
        return await process.wait()


class BackgroundDispatcher:
    """
    Starts shell tasks as detached processes.

    The process is put in its own session so it survives the scheduler process;
    its completion comes back through the finish command carrying the task's
    mutex identity and exit status.
    """

    def __init__(self, finish_command: Optional[str] = None, builder: Optional[CommandBuilder] = None):
        self.finish_command = finish_command or default_finish_command()
        self.builder = builder or CommandBuilder()

    def dispatch(self, task: Task) -> int:
        if task.command.type != CommandType.SHELL:
            raise ValueError("Only shell commands can run in the background")
        command = self.builder.build_background_command(task, self.finish_command)
        logger.debug("Dispatching background command: %s", command)
        process = subprocess.Popen(
            command,
            shell=True,
            start_new_session=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return process.pid
