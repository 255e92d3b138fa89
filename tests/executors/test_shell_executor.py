import os
import shlex
import sys
from unittest.mock import patch

import pytest

from task_scheduler.domain.task import CallbackCommand, ShellCommand, Task
from task_scheduler.executors.command_builder import CommandBuilder
from task_scheduler.executors.shell import BackgroundDispatcher, ShellExecutor, default_finish_command


def shell(command: str) -> Task:
    return Task(command=ShellCommand(command=command), timezone="UTC")


@pytest.fixture(scope="function")
def builder() -> CommandBuilder:
    return CommandBuilder()


def test_foreground_command(builder):
    task = shell("./report.sh --daily")
    assert builder.build_foreground_command(task) == f"./report.sh --daily > {shlex.quote(os.devnull)} 2>&1"


def test_foreground_command_appends_output(builder):
    task = shell("./report.sh").append_output_to("var/log/report log")
    assert builder.build_foreground_command(task) == "./report.sh >> 'var/log/report log' 2>&1"


def test_background_command_reports_exit_status(builder):
    task = shell("./backup.sh").send_output_to("/tmp/backup.log").in_background()
    command = builder.build_command(task, "python -m task_scheduler finish")
    assert command == (
        f"(./backup.sh > /tmp/backup.log 2>&1 ; python -m task_scheduler finish {task.mutex_identity} \"$?\") "
        f"> {shlex.quote(os.devnull)} 2>&1"
    )


def test_background_command_needs_finish_command(builder):
    with pytest.raises(ValueError):
        builder.build_command(shell("./backup.sh").in_background())


@pytest.mark.skipif(os.name == "nt", reason="sudo wrapping is POSIX only")
def test_command_as_user(builder):
    task = shell("whoami").as_user("deploy")
    command = builder.build_foreground_command(task)
    assert command.startswith("sudo -u deploy -- sh -c ")
    assert "whoami" in command


def test_default_finish_command():
    command = default_finish_command("app.tasks:schedule")
    assert command == f"{shlex.quote(sys.executable)} -m task_scheduler --schedule app.tasks:schedule finish"


@pytest.mark.asyncio
@pytest.mark.skipif(os.name == "nt", reason="needs a POSIX shell")
async def test_shell_executor_returns_exit_code(tmp_path):
    output = tmp_path / "out.log"
    executor = ShellExecutor()
    assert await executor.async_execute(shell("echo hello").send_output_to(str(output))) == 0
    assert output.read_text().strip() == "hello"
    assert await executor.async_execute(shell("exit 3")) == 3


def test_dispatcher_starts_detached_process():
    task = shell("./backup.sh").in_background()
    dispatcher = BackgroundDispatcher("finish")
    with patch("task_scheduler.executors.shell.subprocess.Popen") as popen:
        popen.return_value.pid = 99
        assert dispatcher.dispatch(task) == 99
    args, kwargs = popen.call_args
    assert args[0].startswith("(./backup.sh")
    assert kwargs["shell"] is True
    assert kwargs["start_new_session"] is True


def test_dispatcher_rejects_callbacks():
    task = Task(command=CallbackCommand(callback=print))
    with pytest.raises(ValueError, match="Only shell commands"):
        BackgroundDispatcher("finish").dispatch(task)
