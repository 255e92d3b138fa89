from abc import ABC
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field


class HookCondition(str, Enum):
    ALWAYS = "always"
    SUCCESS = "success"
    FAILURE = "failure"


class BaseHook(BaseModel, ABC):
    """
    Base class for work attached before or after a task run.
    """
    condition: HookCondition = Field(HookCondition.ALWAYS, description="Exit status the hook is restricted to")

    def applies(self, exit_code: Optional[int]) -> bool:
        if self.condition == HookCondition.SUCCESS:
            return exit_code == 0
        if self.condition == HookCondition.FAILURE:
            return exit_code is not None and exit_code != 0
        return True


class CallbackHook(BaseHook):
    """
    Calls ``callback(task)``; coroutine functions are awaited.
    """
    callback: Callable[..., Any] = Field(..., description="Callable invoked with the task")


class PingHook(BaseHook):
    """
    Issues an HTTP GET against ``url``.
    """
    url: str = Field(..., description="URL to ping")
