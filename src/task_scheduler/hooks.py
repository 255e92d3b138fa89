import asyncio
import inspect
import logging
from typing import Iterable, Optional, Union

import aiohttp

from task_scheduler.domain.hooks import CallbackHook, PingHook
from task_scheduler.domain.task import Task

logger = logging.getLogger(__name__)


class HookRunner:
    """
    Runs the before/after hooks of a task.

    Callback hooks receive the task and may be coroutines; their exceptions
    propagate. Pings are plain HTTP GETs whose failures are only logged, a
    monitoring endpoint being down must not fail the task.
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def run(self, hooks: Iterable[Union[CallbackHook, PingHook]], task: Task) -> None:
        for hook in hooks:
            if not hook.applies(task.exit_code):
                continue
            if isinstance(hook, PingHook):
                await self.ping(hook.url)
            else:
                result = hook.callback(task)
                if inspect.isawaitable(result):
                    await result

    async def ping(self, url: str) -> Optional[int]:
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.get(url) as response:
                    return response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Ping to %s failed: %s", url, e)
            return None
