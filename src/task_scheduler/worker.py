import asyncio
import logging
import shlex
import sys
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from task_scheduler.clock import Clock, SystemClock, start_of_minute

logger = logging.getLogger(__name__)

Spawn = Callable[[str], Awaitable[Any]]


def default_run_command(schedule: Optional[str] = None, run_output_file: Optional[str] = None) -> str:
    command = f"{shlex.quote(sys.executable)} -m task_scheduler"
    if schedule:
        command += f" --schedule {shlex.quote(schedule)}"
    command += " run"
    if run_output_file:
        command += f" >> {shlex.quote(run_output_file)} 2>&1"
    return command


async def spawn_shell(command: str) -> asyncio.subprocess.Process:
    # stdout/stderr are inherited, so the run output shows up in the worker's
    return await asyncio.create_subprocess_shell(command)


class ScheduleWorker:
    """
    Long-running alternative to a cron entry: starts a ``run`` process at the
    first poll of every new minute.
    """

    def __init__(
        self,
        command: str,
        clock: Optional[Clock] = None,
        poll_interval: float = 0.1,
        spawn: Spawn = spawn_shell,
    ):
        self.command = command
        self.clock: Clock = clock or SystemClock()
        self.poll_interval = poll_interval
        self.spawn = spawn
        self.running: List[Any] = []

    async def work(self, max_iterations: Optional[int] = None) -> int:
        """
        Poll until cancelled, or for ``max_iterations`` polls. Returns the number
        of ``run`` processes started.
        """
        logger.info("Running scheduled tasks every minute.")
        last_started: Optional[datetime] = None
        started = 0
        iterations = 0
        while max_iterations is None or iterations < max_iterations:
            await self.clock.sleep(self.poll_interval)
            now = self.clock.now()
            minute = start_of_minute(now)
            if now.second == 0 and minute != last_started:
                logger.debug("Starting scheduler run for %s", minute.isoformat())
                self.running.append(await self.spawn(self.command))
                last_started = minute
                started += 1
            self.running = [process for process in self.running if getattr(process, "returncode", None) is None]
            iterations += 1
        return started
