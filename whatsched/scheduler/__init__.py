"""Scheduled task system: models, timing, the runner loop and the registry."""

from whatsched.scheduler.clock import CancelToken, Clock, SystemClock
from whatsched.scheduler.engine import RunState, TaskRunner
from whatsched.scheduler.models import Task, TaskRequest
from whatsched.scheduler.registry import TaskRegistry

__all__ = [
    "CancelToken",
    "Clock",
    "SystemClock",
    "RunState",
    "Task",
    "TaskRequest",
    "TaskRegistry",
    "TaskRunner",
]
