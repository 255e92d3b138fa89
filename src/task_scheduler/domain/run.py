from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RunOutcome(str, Enum):
    SKIPPED = "skipped"
    OVERLAPPING = "overlapping"
    RAN_ELSEWHERE = "ran_elsewhere"
    DISPATCHED = "dispatched"
    FINISHED = "finished"
    FAILED = "failed"


class TaskOutcome(BaseModel):
    """
    What happened to one task during a tick.
    """
    summary: str
    mutex_identity: str
    outcome: RunOutcome
    exit_code: Optional[int] = None
    runtime: Optional[float] = None
    error: Optional[str] = None

    @property
    def executed(self) -> bool:
        return self.outcome in (RunOutcome.DISPATCHED, RunOutcome.FINISHED, RunOutcome.FAILED)


class TickResult(BaseModel):
    """
    Summary of one scheduler tick.
    """
    started_at: datetime
    outcomes: List[TaskOutcome] = Field(default_factory=list)

    @property
    def ran(self) -> bool:
        return any(outcome.executed for outcome in self.outcomes)

    def record(self, outcome: TaskOutcome) -> TaskOutcome:
        self.outcomes.append(outcome)
        return outcome

    def count(self, outcome: RunOutcome) -> int:
        return sum(1 for item in self.outcomes if item.outcome == outcome)
