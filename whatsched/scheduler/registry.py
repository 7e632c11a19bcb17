"""TaskRegistry: the single-active-task store and runner launcher."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING

from whatsched.errors import TaskConflictError, TaskValidationError
from whatsched.scheduler.clock import SystemClock
from whatsched.scheduler.engine import TaskRunner
from whatsched.scheduler.models import Task, make_task_id

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable

    from whatsched.scheduler.clock import Clock
    from whatsched.scheduler.models import TaskRequest

logger = logging.getLogger(__name__)


def validate_request(request: TaskRequest) -> None:
    """Raise TaskValidationError if *request* cannot become a task.

    Window ordering (end after start) is not checked: an
    inverted window is accepted and its runner completes without sending.
    """
    if not request.chat_name.strip():
        raise TaskValidationError("Chat name is empty")
    if not request.message.strip():
        raise TaskValidationError("Message is empty")
    if request.interval <= 0:
        raise TaskValidationError(f"Invalid interval: {request.interval}")
    if request.random_delay < 0:
        raise TaskValidationError(f"Invalid random delay: {request.random_delay}")
    if request.random_delay > request.interval:
        raise TaskValidationError(
            f"Random delay ({request.random_delay} min) must not exceed "
            f"the interval ({request.interval} min)"
        )
    if request.start_time is None:
        raise TaskValidationError("Invalid start time")
    if request.end_time is None:
        raise TaskValidationError("Invalid end time")


class TaskRegistry:
    """Holds the active task (at most one) and owns its runner.

    The map lock is held only while the dict is read or changed; runners
    wait and send without it.

    Args:
        send: Async callable ``(chat_name, text)`` handed to every runner.
        clock: Time source for runners (wall clock if omitted).
        rng: Random source for jitter (module ``random`` if omitted).
    """

    def __init__(
        self,
        send: Callable[[str, str], Awaitable[object]],
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._send = send
        self._clock = clock or SystemClock()
        self._rng = rng
        self._lock = threading.Lock()
        self._tasks: dict[str, Task] = {}
        self._runners: dict[str, asyncio.Task] = {}

    # -- Queries ---------------------------------------------------------------

    def get_current(self) -> Task | None:
        """Return the active task, or None."""
        with self._lock:
            return next(iter(self._tasks.values()), None)

    def list_tasks(self) -> list[Task]:
        with self._lock:
            return list(self._tasks.values())

    # -- Mutations -------------------------------------------------------------

    def add(self, request: TaskRequest, *, replace: bool = True) -> str:
        """Create a task from *request* and start its runner.

        With ``replace=True`` any active task is cancelled and removed first.
        With ``replace=False`` an active task makes this raise
        TaskConflictError instead, before the request is validated. A request
        that fails validation raises TaskValidationError and leaves the
        registry untouched.

        Must be called from the event loop thread.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            existing = next(iter(self._tasks.values()), None)
            if existing is not None and not replace:
                raise TaskConflictError(existing)

            validate_request(request)

            if existing is not None:
                existing.cancel_token.cancel()
                del self._tasks[existing.id]
                logger.info("Stopped existing task %s to replace it", existing.id)

            task = Task(
                id=make_task_id(),
                chat_name=request.chat_name.strip(),
                message=request.message.strip(),
                interval=request.interval,
                random_delay=request.random_delay,
                start_time=request.start_time,
                end_time=request.end_time,
            )
            self._tasks[task.id] = task

            runner = TaskRunner(
                task, self._send, self._clock, on_exit=self._discard, rng=self._rng
            )
            self._runners[task.id] = loop.create_task(
                runner.run(), name=f"runner-{task.id}"
            )

        logger.info(
            "Added task %s for chat '%s' (interval: %d min, random delay: %d min)",
            task.id,
            task.chat_name,
            task.interval,
            task.random_delay,
        )
        return task.id

    def stop(self, task_id: str) -> bool:
        """Cancel and remove a task. Returns False if *task_id* is unknown."""
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                logger.warning("Attempt to stop unknown task: %s", task_id)
                return False
            task.cancel_token.cancel()
        logger.info("Task %s stopped (chat: %s)", task_id, task.chat_name)
        return True

    async def shutdown(self) -> None:
        """Cancel every task and wait for the runners to finish."""
        with self._lock:
            for task in self._tasks.values():
                task.cancel_token.cancel()
            self._tasks.clear()
            runners = list(self._runners.values())
        if runners:
            await asyncio.gather(*runners, return_exceptions=True)
            logger.info("Stopped %d task runner(s)", len(runners))

    # -- Internal --------------------------------------------------------------

    def _discard(self, task: Task) -> None:
        """Runner exit hook: drop the task if it is still the registered one."""
        with self._lock:
            if self._tasks.get(task.id) is task:
                del self._tasks[task.id]
            self._runners.pop(task.id, None)
