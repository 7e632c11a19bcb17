"""Tests for TaskRegistry: single-active-task store."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from tests.fakes import T0, FakeClock, settle
from whatsched.errors import TaskConflictError, TaskValidationError
from whatsched.scheduler.models import TaskRequest
from whatsched.scheduler.registry import TaskRegistry


def _request(**overrides) -> TaskRequest:
    fields = {
        "chat_name": "  Family  ",
        "message": " Dinner at 7\n",
        "interval": 10,
        "random_delay": 2,
        "start_time": T0 + timedelta(minutes=10),
        "end_time": T0 + timedelta(hours=2),
    }
    fields.update(overrides)
    return TaskRequest(**fields)


# -- add / get_current ---------------------------------------------------------


async def test_add_then_get_current_returns_trimmed_fields(registry: TaskRegistry) -> None:
    task_id = registry.add(_request())

    task = registry.get_current()
    assert task is not None
    assert task.id == task_id
    assert task.chat_name == "Family"
    assert task.message == "Dinner at 7"
    assert task.interval == 10
    assert task.random_delay == 2
    assert task.start_time == T0 + timedelta(minutes=10)
    assert task.end_time == T0 + timedelta(hours=2)
    assert registry.list_tasks() == [task]


async def test_empty_registry(registry: TaskRegistry) -> None:
    assert registry.get_current() is None
    assert registry.list_tasks() == []


async def test_task_ids_are_unique(registry: TaskRegistry) -> None:
    first = registry.add(_request())
    second = registry.add(_request())
    assert first != second


@pytest.mark.parametrize(
    "overrides",
    [
        {"chat_name": "   "},
        {"message": ""},
        {"interval": 0},
        {"interval": -5},
        {"random_delay": -1},
        {"interval": 5, "random_delay": 10},
        {"start_time": None},
        {"end_time": None},
    ],
)
async def test_invalid_request_leaves_existing_task_untouched(
    registry: TaskRegistry, overrides: dict
) -> None:
    existing_id = registry.add(_request())
    existing = registry.get_current()

    with pytest.raises(TaskValidationError):
        registry.add(_request(**overrides))

    assert registry.get_current() is existing
    assert registry.get_current().id == existing_id
    assert existing.cancel_token.cancelled is False


async def test_jitter_above_interval_is_rejected(registry: TaskRegistry) -> None:
    with pytest.raises(TaskValidationError, match="must not exceed"):
        registry.add(_request(interval=5, random_delay=10))
    assert registry.get_current() is None


async def test_inverted_window_is_accepted(registry: TaskRegistry) -> None:
    task_id = registry.add(
        _request(start_time=T0 + timedelta(hours=2), end_time=T0 + timedelta(hours=1))
    )
    assert task_id.startswith("task_")


# -- Replacement ---------------------------------------------------------------


async def test_add_replaces_active_task(
    registry: TaskRegistry, send: AsyncMock, clock: FakeClock
) -> None:
    registry.add(_request(chat_name="Old chat"))
    old = registry.get_current()

    new_id = registry.add(_request(chat_name="New chat"))
    await settle()

    assert old.cancel_token.cancelled is True
    assert [t.id for t in registry.list_tasks()] == [new_id]

    await clock.advance(minutes=45)

    chats = {call.args[0] for call in send.call_args_list}
    assert chats == {"New chat"}
    # The old runner's exit must not remove its replacement.
    assert registry.get_current().id == new_id


async def test_add_without_replace_conflicts(registry: TaskRegistry) -> None:
    registry.add(_request())
    existing = registry.get_current()

    with pytest.raises(TaskConflictError) as excinfo:
        registry.add(_request(chat_name="Other"), replace=False)

    assert excinfo.value.existing is existing
    assert registry.get_current() is existing
    assert existing.cancel_token.cancelled is False


async def test_add_without_replace_when_empty(registry: TaskRegistry) -> None:
    task_id = registry.add(_request(), replace=False)
    assert registry.get_current().id == task_id


async def test_conflict_is_reported_before_validation(registry: TaskRegistry) -> None:
    registry.add(_request())
    existing = registry.get_current()

    with pytest.raises(TaskConflictError) as excinfo:
        registry.add(_request(interval=5, random_delay=10), replace=False)

    assert excinfo.value.existing is existing
    assert registry.get_current() is existing


def test_add_outside_event_loop_registers_nothing(send: AsyncMock, clock: FakeClock) -> None:
    registry = TaskRegistry(send=send, clock=clock)

    with pytest.raises(RuntimeError):
        registry.add(_request())

    assert registry.get_current() is None
    assert registry._runners == {}


# -- stop ----------------------------------------------------------------------


async def test_stop_unknown_id_is_idempotent(registry: TaskRegistry) -> None:
    registry.add(_request())
    current = registry.get_current()

    assert registry.stop("task_missing") is False
    assert registry.stop("task_missing") is False
    assert registry.get_current() is current


async def test_stop_existing_task(registry: TaskRegistry, send: AsyncMock, clock: FakeClock) -> None:
    task_id = registry.add(_request())
    task = registry.get_current()

    assert registry.stop(task_id) is True
    assert registry.get_current() is None
    assert task.cancel_token.cancelled is True

    await clock.advance(minutes=30)
    send.assert_not_called()
    assert registry.stop(task_id) is False


# -- Runner lifecycle ----------------------------------------------------------


async def test_runner_removes_task_when_window_ends(
    registry: TaskRegistry, send: AsyncMock, clock: FakeClock
) -> None:
    registry.add(
        _request(
            random_delay=0,
            start_time=T0 + timedelta(minutes=10),
            end_time=T0 + timedelta(minutes=25),
        )
    )

    await clock.advance(minutes=30)

    assert send.call_count == 2
    assert registry.get_current() is None


async def test_expired_task_is_removed_without_sending(
    registry: TaskRegistry, send: AsyncMock
) -> None:
    registry.add(
        _request(start_time=T0 - timedelta(hours=2), end_time=T0 - timedelta(hours=1))
    )
    await settle()

    assert registry.get_current() is None
    send.assert_not_called()


async def test_shutdown_cancels_running_task(send: AsyncMock, clock: FakeClock) -> None:
    registry = TaskRegistry(send=send, clock=clock)
    registry.add(_request())
    task = registry.get_current()
    await settle()

    await registry.shutdown()

    assert task.cancel_token.cancelled is True
    assert registry.get_current() is None
    assert registry._runners == {}
