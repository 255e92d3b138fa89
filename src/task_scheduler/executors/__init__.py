from .protocol import TaskExecutor
from .command_builder import CommandBuilder
from .shell import ShellExecutor, BackgroundDispatcher, default_finish_command
from .callback import CallbackExecutor

__all__ = ["TaskExecutor", "CommandBuilder", "ShellExecutor", "BackgroundDispatcher", "CallbackExecutor",
           "default_finish_command"]
