import argparse
import asyncio
import logging
import sys
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from task_scheduler.caches import CacheStore, create_cache_store
from task_scheduler.clock import Clock, SystemClock
from task_scheduler.config import SchedulerSettings, get_settings
from task_scheduler.exceptions import SchedulerError, ScheduleLoadError
from task_scheduler.executor_factory import TaskExecutorFactory
from task_scheduler.executors import BackgroundDispatcher, CommandBuilder, default_finish_command
from task_scheduler.interrupt import InterruptFlag
from task_scheduler.lifecycle import LifecycleBus, LoggingSubscriber
from task_scheduler.listing import ScheduleLister
from task_scheduler.mutex import MutexStore
from task_scheduler.reporting import ConsoleReporter
from task_scheduler.runner import ScheduleRunner
from task_scheduler.schedule import Schedule, load_schedule
from task_scheduler.worker import ScheduleWorker, default_run_command

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-scheduler",
        description="Run, list and control scheduled tasks",
    )
    parser.add_argument(
        "--schedule",
        default=None,
        help="Import path of the schedule, 'package.module:attribute' (default: $TASK_SCHEDULER_SCHEDULE)",
    )
    parser.add_argument(
        "--cache-url",
        default=None,
        help="Shared cache URL: memory://, redis://... or an async SQLAlchemy URL",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Verbose output and DEBUG logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("run", help="Run the tasks that are due now")

    list_parser = commands.add_parser("list", help="List all scheduled tasks")
    list_parser.add_argument("--timezone", default=None, help="Timezone the times are displayed in")
    list_parser.add_argument("--next", action="store_true", default=False, help="Sort tasks by their next due time")

    commands.add_parser("interrupt", help="Stop the repeat loop of the run in progress")

    finish_parser = commands.add_parser("finish", help="Complete a background task run")
    finish_parser.add_argument("identity", help="Mutex identity of the finished task")
    finish_parser.add_argument("code", nargs="?", type=int, default=0, help="Exit code of the task")

    commands.add_parser("clear-cache", help="Delete the cached mutexes of the scheduled tasks")

    test_parser = commands.add_parser("test", help="Run one scheduled task now")
    test_parser.add_argument("--name", default=None, help="Summary of the task to run")

    work_parser = commands.add_parser("work", help="Start a run every minute until stopped")
    work_parser.add_argument("--run-output-file", default=None, help="File the run output is appended to")
    return parser


def resolve_settings(args: argparse.Namespace, settings: Optional[SchedulerSettings] = None) -> SchedulerSettings:
    settings = settings or get_settings()
    overrides = {}
    if args.schedule:
        overrides["schedule"] = args.schedule
    if args.cache_url:
        overrides["cache_url"] = args.cache_url
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    return settings.model_copy(update=overrides) if overrides else settings


class SchedulerApp:
    """
    Wires settings, schedule, cache and runner together for one CLI invocation.
    """

    def __init__(
        self,
        settings: SchedulerSettings,
        cache: Optional[CacheStore] = None,
        clock: Optional[Clock] = None,
        schedule: Optional[Schedule] = None,
        out=None,
    ):
        self.settings = settings
        self.clock: Clock = clock or SystemClock()
        self.cache = cache or create_cache_store(settings.cache_url, self.clock)
        self._schedule = schedule
        self.out = out or sys.stdout
        self.mutex = MutexStore(self.cache, settings.cache_prefix)
        self.interrupt_flag = InterruptFlag(self.cache, self.clock, settings.cache_prefix)

    def echo(self, line: str = "") -> None:
        print(line, file=self.out)

    @property
    def schedule(self) -> Schedule:
        if self._schedule is None:
            if not self.settings.schedule:
                raise ScheduleLoadError("No schedule configured, pass --schedule or set TASK_SCHEDULER_SCHEDULE")
            self._schedule = load_schedule(self.settings.schedule)
            if self._schedule.timezone is None and self.settings.timezone:
                for task in self._schedule.tasks:
                    if task.timezone is None:
                        task.timezone = self.settings.timezone
        return self._schedule

    def build_runner(self) -> ScheduleRunner:
        bus = LifecycleBus()
        LoggingSubscriber().attach(bus)
        ConsoleReporter(self.out).attach(bus)
        builder = CommandBuilder(self.settings.output)
        finish_command = self.settings.finish_command or default_finish_command(self.settings.schedule)
        return ScheduleRunner(
            schedule=self.schedule,
            mutex=self.mutex,
            interrupt=self.interrupt_flag,
            bus=bus,
            clock=self.clock,
            executor_factory=TaskExecutorFactory.default(builder),
            dispatcher=BackgroundDispatcher(finish_command, builder),
            environment=self.settings.environment,
            is_down_for_maintenance=self.settings.is_down_for_maintenance,
            poll_interval=self.settings.poll_interval,
        )

    async def run(self) -> int:
        result = await self.build_runner().run()
        if not result.ran:
            self.echo("No scheduled commands are ready to run.")
        else:
            self.echo()
        return 0

    async def list_tasks(self, timezone: Optional[str] = None, sort_by_next: bool = False, verbose: bool = False) -> int:
        display_tz = None
        name = timezone or self.settings.timezone
        if name:
            try:
                display_tz = ZoneInfo(name)
            except (ZoneInfoNotFoundError, ValueError):
                raise SchedulerError(f"Unknown timezone '{name}'")
        lister = ScheduleLister(mutex=self.mutex, clock=self.clock)
        for line in await lister.lines(self.schedule.tasks, display_tz, sort_by_next, verbose):
            self.echo(line)
        return 0

    async def interrupt(self) -> int:
        await self.interrupt_flag.signal()
        self.echo("Broadcasting schedule interrupt signal.")
        return 0

    async def finish(self, identity: str, code: int) -> int:
        await self.build_runner().finish(identity, code)
        return 0

    async def clear_cache(self) -> int:
        cleared = False
        for task in self.schedule.tasks:
            if await self.mutex.exists(task.mutex_identity):
                self.echo(f"Deleting mutex for [{task.summary}]")
                await self.mutex.release(task.mutex_identity)
                cleared = True
        if not cleared:
            self.echo("No mutex files were found.")
        return 0

    async def test(self, name: Optional[str] = None) -> int:
        tasks = self.schedule.tasks
        if not tasks:
            self.echo("No scheduled commands have been defined.")
            return 0
        matches = self.schedule.find_by_summary(name) if name else []
        if not matches:
            if name:
                self.echo("No matching scheduled command found.")
            self.echo("Scheduled commands:")
            for task in tasks:
                self.echo(f"  {task.summary}")
            return 0
        await self.build_runner().run_task(matches[0])
        return 0

    async def work(self, run_output_file: Optional[str] = None) -> int:
        command = default_run_command(self.settings.schedule, run_output_file)
        worker = ScheduleWorker(command, self.clock)
        await worker.work()
        return 0

    async def close(self) -> None:
        await self.cache.close()


async def dispatch(app: SchedulerApp, args: argparse.Namespace) -> int:
    try:
        if args.command == "run":
            return await app.run()
        if args.command == "list":
            return await app.list_tasks(args.timezone, args.next, args.verbose)
        if args.command == "interrupt":
            return await app.interrupt()
        if args.command == "finish":
            return await app.finish(args.identity, args.code)
        if args.command == "clear-cache":
            return await app.clear_cache()
        if args.command == "test":
            return await app.test(args.name)
        if args.command == "work":
            return await app.work(args.run_output_file)
        raise SchedulerError(f"Unknown command '{args.command}'")
    finally:
        await app.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = resolve_settings(args)
    except ValueError as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 1
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(dispatch(SchedulerApp(settings), args))
    except SchedulerError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
