"""
In-process scheduler that runs sync callbacks on a fixed frequency.
"""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from ..exceptions import ConfigurationError
from ..models.config import TaskSchedule

logger = logging.getLogger(__name__)


class TaskRunner(ABC):
    """Invokes a zero-argument callback on a cadence, never overlapping with itself."""

    @abstractmethod
    def run(self, id: str, fn: Callable[[], Any]) -> None:
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass


class LocalTaskRunner(TaskRunner):
    """
    Asyncio task runner for frequency-based schedules.

    Each invocation is awaited (with the schedule's timeout) before the next
    one is scheduled, so a task never runs concurrently with itself.
    """

    def __init__(self, schedule: TaskSchedule, sleep: Callable[[float], Any] = asyncio.sleep):
        if schedule.frequency is None:
            raise ConfigurationError("The local task runner only supports frequency-based schedules")
        if not schedule.frequency:
            raise ConfigurationError("Schedule frequency must be greater than zero")
        self.schedule = schedule
        self._sleep = sleep
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def task_ids(self):
        return list(self._tasks)

    def run(self, id: str, fn: Callable[[], Any]) -> None:
        """Start running ``fn`` on the schedule. Must be called with a running event loop."""
        if id in self._tasks:
            raise ConfigurationError(f"Task {id} is already scheduled")
        self._tasks[id] = asyncio.create_task(self._run_loop(id, fn), name=f"task-runner:{id}")
        logger.info(f"Scheduled task {id} every {self.schedule.frequency.total_seconds()}s")

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_loop(self, id: str, fn: Callable[[], Any]) -> None:
        frequency = self.schedule.frequency.total_seconds()
        if self.schedule.initial_delay:
            await self._sleep(self.schedule.initial_delay.total_seconds())

        while True:
            started = time.monotonic()
            await self.invoke(id, fn)
            elapsed = time.monotonic() - started
            await self._sleep(max(frequency - elapsed, 0))

    async def invoke(self, id: str, fn: Callable[[], Any]) -> Optional[Any]:
        """Run one tick of ``fn``; failures and timeouts are logged, not raised."""
        timeout = self.schedule.timeout.total_seconds() if self.schedule.timeout else None
        try:
            result = fn()
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout)
            return result
        except asyncio.TimeoutError:
            logger.error(f"Task {id} timed out after {timeout}s")
        except Exception as e:
            logger.error(f"Task {id} failed: {e}", exc_info=True)
        return None
