import os
import shlex
from typing import Optional

from task_scheduler.domain.task import Task


class CommandBuilder:
    """
    Turns a shell task into the command line handed to ``sh``.

    Foreground lines redirect the command output to the task's output file.
    Background lines wrap the command in a subshell that reports its exit status
    through the finish command once the command is done.
    """

    def __init__(self, default_output: str = os.devnull):
        self.default_output = default_output

    def output_for(self, task: Task) -> str:
        return task.output or self.default_output

    def build_command(self, task: Task, finish_command: Optional[str] = None) -> str:
        if task.run_in_background:
            if not finish_command:
                raise ValueError("A finish command is required to build a background command")
            return self.build_background_command(task, finish_command)
        return self.build_foreground_command(task)

    def build_foreground_command(self, task: Task) -> str:
        redirect = " >> " if task.append_output else " > "
        output = shlex.quote(self.output_for(task))
        return self.ensure_correct_user(task, f"{task.command.command}{redirect}{output} 2>&1")

    def build_background_command(self, task: Task, finish_command: str) -> str:
        redirect = " >> " if task.append_output else " > "
        output = shlex.quote(self.output_for(task))
        finished = f"{finish_command} {shlex.quote(task.mutex_identity)}"
        return self.ensure_correct_user(
            task,
            f'({task.command.command}{redirect}{output} 2>&1 ; {finished} "$?") > '
            f"{shlex.quote(self.default_output)} 2>&1",
        )

    def ensure_correct_user(self, task: Task, command: str) -> str:
        if task.user and os.name != "nt":
            return f"sudo -u {shlex.quote(task.user)} -- sh -c {shlex.quote(command)}"
        return command
