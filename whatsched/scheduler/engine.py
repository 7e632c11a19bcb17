"""TaskRunner: the repeat-send loop for one scheduled task."""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from whatsched.errors import GatewayError
from whatsched.scheduler.timing import draw_jitter, next_fire_time

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable

    from whatsched.scheduler.clock import Clock
    from whatsched.scheduler.models import Task

logger = logging.getLogger(__name__)

_DISPLAY_FORMAT = "%H:%M:%S %d.%m.%Y"


class RunState(enum.StrEnum):
    VALIDATING = "validating"
    WAITING = "waiting"
    SENDING = "sending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskRunner:
    """Drives one task from validation to completion or cancellation.

    Fire targets sit on a fixed grid anchored at the task's start time:
    each target is the previous one plus the interval, regardless of jitter
    or how long a send took. The only suspension points are the wait for the
    next target and the jitter wait, and both end early on cancellation.

    Args:
        task: The task to run.
        send: Async callable ``(chat_name, text)`` that delivers one message.
        clock: Time source and cancellable delay.
        on_exit: Called with the task once the loop ends, whatever the reason.
        rng: Random source for jitter draws (module ``random`` if omitted).
    """

    def __init__(
        self,
        task: Task,
        send: Callable[[str, str], Awaitable[object]],
        clock: Clock,
        on_exit: Callable[[Task], None] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._task = task
        self._send = send
        self._clock = clock
        self._on_exit = on_exit
        self._rng = rng
        self.state = RunState.VALIDATING
        self.sends = 0

    @property
    def task(self) -> Task:
        return self._task

    async def run(self) -> RunState:
        """Run the loop; always reports the exit to ``on_exit``."""
        task = self._task
        logger.info("Starting scheduler for task %s (chat: %s)", task.id, task.chat_name)
        try:
            self.state = await self._run()
        except Exception:
            logger.exception("Scheduler for task %s crashed", task.id)
            self.state = RunState.COMPLETED
        finally:
            if self._on_exit is not None:
                self._on_exit(task)
        return self.state

    async def _run(self) -> RunState:
        task = self._task
        now = self._clock.now()

        if now > task.end_time:
            logger.info(
                "Task %s window ended before its first send (chat: %s)", task.id, task.chat_name
            )
            return RunState.COMPLETED
        if task.interval < 1:
            logger.error(
                "Invalid interval for task %s: %d (must be at least 1 minute)",
                task.id,
                task.interval,
            )
            return RunState.COMPLETED
        if task.random_delay > task.interval:
            logger.error(
                "Random delay for task %s exceeds its interval (%d > %d)",
                task.id,
                task.random_delay,
                task.interval,
            )
            return RunState.COMPLETED

        target = next_fire_time(task.start_time, task.interval_delta, now)
        if target != task.start_time:
            logger.info(
                "Start time is in the past; next send scheduled for %s",
                target.astimezone().strftime(_DISPLAY_FORMAT),
            )

        while True:
            if target > task.end_time:
                logger.info("Task %s finished: window ended (chat: %s)", task.id, task.chat_name)
                return RunState.COMPLETED

            self.state = RunState.WAITING
            if await self._wait_until(target):
                logger.info("Scheduler stopped for task %s", task.id)
                return RunState.CANCELLED

            self.state = RunState.SENDING
            outcome = await self._fire()
            if outcome is not None:
                return outcome

            target += task.interval_delta

    async def _wait_until(self, target: datetime) -> bool:
        """Sleep until *target*. Returns True if cancelled."""
        remaining = (target - self._clock.now()).total_seconds()
        if remaining > 0:
            minutes = int(remaining // 60)
            if minutes > 0:
                logger.info(
                    "Next send in %d minute(s) (%s)",
                    minutes,
                    target.astimezone().strftime(_DISPLAY_FORMAT),
                )
            else:
                logger.info("Next send in %d second(s)", int(remaining))
        return await self._clock.wait(remaining, self._task.cancel_token)

    async def _fire(self) -> RunState | None:
        """Apply jitter, then send once. Returns a terminal state or None to continue."""
        task = self._task
        token = task.cancel_token

        jitter = draw_jitter(task.random_delay, self._rng)
        if jitter > 0:
            logger.info("Random delay for task %s: %d minute(s)", task.id, jitter)
            if await self._clock.wait(timedelta(minutes=jitter).total_seconds(), token):
                logger.info("Scheduler stopped for task %s during random delay", task.id)
                return RunState.CANCELLED
            if self._clock.now() > task.end_time:
                logger.info(
                    "Task %s finished: window ended during random delay (chat: %s)",
                    task.id,
                    task.chat_name,
                )
                return RunState.COMPLETED

        if token.cancelled:
            logger.info("Scheduler stopped for task %s", task.id)
            return RunState.CANCELLED

        logger.info("Sending message for task %s to '%s'", task.id, task.chat_name)
        try:
            await self._send(task.chat_name, task.message)
        except GatewayError as exc:
            logger.error("Failed to send message for task %s: %s", task.id, exc)
        except Exception:
            logger.exception("Failed to send message for task %s", task.id)
        else:
            self.sends += 1
            logger.info("Message for task %s sent successfully", task.id)
        return None
