"""Clock abstraction and cancellation token used by task runners."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Protocol


class CancelToken:
    """One-shot cancellation signal owned by a single task.

    ``cancel()`` may be called any number of times; only the first call has
    an effect. Must be created and cancelled on the event loop thread.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()


class Clock(Protocol):
    """Supplies the current time and a cancellable delay."""

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...

    async def wait(self, seconds: float, token: CancelToken) -> bool:
        """Sleep for *seconds* unless *token* fires first.

        Returns True if the wait ended because of cancellation.
        """
        ...


class SystemClock:
    """Wall-clock time with asyncio timers."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    async def wait(self, seconds: float, token: CancelToken) -> bool:
        if token.cancelled:
            return True
        try:
            await asyncio.wait_for(token.wait(), timeout=max(seconds, 0.0))
        except TimeoutError:
            return False
        return True
