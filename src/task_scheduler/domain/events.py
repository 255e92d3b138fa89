from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .task import Task


class LifecycleEvent(BaseModel):
    """
    Base class for notifications published while a task moves through a tick.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    task: Task = Field(..., description="The task the event is about")
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TaskSkipped(LifecycleEvent):
    reason: str = Field("filters", description="Why the task did not run")


class TaskRanElsewhere(LifecycleEvent):
    """The one-host mutex for this task is held by another host."""


class TaskStarting(LifecycleEvent):
    pass


class TaskFinished(LifecycleEvent):
    runtime: float = Field(..., description="Seconds spent running the task")
    exit_code: Optional[int] = None


class TaskFailed(LifecycleEvent):
    exception: BaseException = Field(..., description="The error raised by the task")


class BackgroundTaskFinished(LifecycleEvent):
    exit_code: int = Field(..., description="Exit code reported by the detached process")
