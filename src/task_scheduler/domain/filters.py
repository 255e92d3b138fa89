import inspect
from datetime import datetime, time
from typing import TYPE_CHECKING, Any, Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from .task import Task


class FilterContext(BaseModel):
    """
    What a filter predicate gets to look at when deciding whether a due task runs.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    task: Any = Field(..., description="The task being evaluated")
    now: datetime = Field(..., description="Evaluation instant")
    environment: str = Field(..., description="Name of the running environment")


Filter = Callable[[FilterContext], Any]


class TimeWindowFilter(BaseModel):
    """
    Passes when the task-local time of day falls inside ``[start, end]``.

    A window whose end is before its start wraps past midnight. ``inverted``
    turns the filter into "unless between".
    """
    start: time
    end: time
    inverted: bool = False

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_clock_time(cls, v: Any) -> Any:
        if isinstance(v, str):
            hour, _, minute = v.partition(":")
            return time(int(hour), int(minute or 0))
        return v

    def __call__(self, context: FilterContext) -> bool:
        task: "Task" = context.task
        local = context.now.astimezone(task.tzinfo).time().replace(second=0, microsecond=0)
        if self.start <= self.end:
            inside = self.start <= local <= self.end
        else:
            inside = local >= self.start or local <= self.end
        return not inside if self.inverted else inside


async def check(predicate: Filter, context: FilterContext) -> bool:
    result = predicate(context)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)
