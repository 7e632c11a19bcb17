"""Shared test fixtures."""

from unittest.mock import AsyncMock

import pytest

from tests.fakes import T0, FakeClock, FixedRandom
from whatsched.scheduler.registry import TaskRegistry


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture
def send() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
async def registry(send: AsyncMock, clock: FakeClock):
    """A registry on the fake clock with jitter pinned to zero."""
    reg = TaskRegistry(send=send, clock=clock, rng=FixedRandom(0))
    yield reg
    await reg.shutdown()
