"""
Task Scheduling Engine

This module defines the core concepts and components of a cron-style scheduler
meant to be invoked once a minute on every host of a deployment.

Core Concepts:

Task:
    A Task is a unit of scheduled work: a shell command or an in-process callback,
    a cron expression and the policies that govern its execution (one host,
    background, maintenance mode, sub-minute repetition, filters and hooks).

Tick:
    A Tick is one invocation of the runner. It executes the tasks due in the
    current minute and, for repeatable tasks, keeps firing them on their repeat
    seconds until the minute is over or an operator interrupts it.

Mutex:
    A Mutex is a record in a cache shared by all hosts. The host that creates it
    is the one that runs a "one host" task for that minute.

Relationships:
    - A Schedule holds Tasks in registration order.
    - A Tick runs zero or more Tasks, and may run a repeatable Task several times.
"""

from .schedule import Schedule, load_schedule
from .domain import Task
from .runner import ScheduleRunner

__all__ = ["Schedule", "load_schedule", "Task", "ScheduleRunner"]
