import inspect
import logging
from typing import Any, Callable, Dict, List, Type

from task_scheduler.domain.events import (
    BackgroundTaskFinished,
    LifecycleEvent,
    TaskFailed,
    TaskFinished,
    TaskRanElsewhere,
    TaskSkipped,
    TaskStarting,
)

logger = logging.getLogger(__name__)

Handler = Callable[[LifecycleEvent], Any]


class LifecycleBus:
    """
    Publish/subscribe notifier for task lifecycle events.

    Handlers subscribe to an event class and receive that class and its
    subclasses, in subscription order. Coroutine handlers are awaited. A handler
    that raises is logged and does not stop the other handlers or the tick.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[LifecycleEvent], List[Handler]] = {}

    def subscribe(self, event_type: Type[LifecycleEvent], handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def handlers_for(self, event: LifecycleEvent) -> List[Handler]:
        return [
            handler
            for event_type, handlers in self._handlers.items()
            if isinstance(event, event_type)
            for handler in handlers
        ]

    async def publish(self, event: LifecycleEvent) -> None:
        for handler in self.handlers_for(event):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Lifecycle handler %r failed on %s", handler, type(event).__name__)


class LoggingSubscriber:
    """
    Writes every lifecycle event to the log.
    """

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def attach(self, bus: LifecycleBus) -> "LoggingSubscriber":
        bus.subscribe(LifecycleEvent, self)
        return self

    def __call__(self, event: LifecycleEvent) -> None:
        summary = event.task.summary
        if isinstance(event, TaskSkipped):
            self.log.info("Skipped [%s] (%s)", summary, event.reason)
        elif isinstance(event, TaskRanElsewhere):
            self.log.info("Skipped [%s], already run on another host", summary)
        elif isinstance(event, TaskStarting):
            self.log.info("Starting [%s]", summary)
        elif isinstance(event, TaskFinished):
            self.log.info("Finished [%s] in %.2fs with exit code %s", summary, event.runtime, event.exit_code)
        elif isinstance(event, TaskFailed):
            self.log.error("Failed [%s]: %s", summary, event.exception)
        elif isinstance(event, BackgroundTaskFinished):
            self.log.info("Background run of [%s] finished with exit code %s", summary, event.exit_code)
