"""Task data model, request model and the timestamp wire format."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field, field_validator

from whatsched.scheduler.clock import CancelToken

# Wire format for start_time / end_time, e.g. "2025-06-01T09:00:00.000Z".
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def parse_timestamp(value: str) -> datetime:
    """Parse a ``YYYY-MM-DDTHH:MM:SS.sssZ`` string into an aware UTC datetime.

    Raises ValueError for any other shape, including missing milliseconds.
    """
    if len(value) != 24 or value[19] != ".":
        msg = f"Invalid timestamp {value!r}, expected YYYY-MM-DDTHH:MM:SS.sssZ"
        raise ValueError(msg)
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the wire format (UTC, millisecond precision)."""
    utc = value.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


class TaskRequest(BaseModel):
    """JSON body accepted by ``/schedule`` and ``/replace-task``.

    Only the shape is checked here. Business rules (non-empty fields,
    interval and jitter bounds, timestamps present) are enforced by
    ``TaskRegistry.add`` so every entry point gets the same validation.
    """

    chat_name: str = Field(default="", description="Contact, group or phone number")
    message: str = Field(default="", description="Text sent verbatim on each fire")
    interval: int = Field(default=0, description="Minutes between fires")
    random_delay: int = Field(default=0, description="Max random extra minutes per fire")
    start_time: datetime | None = Field(default=None, description="Window start (UTC)")
    end_time: datetime | None = Field(default=None, description="Window end (UTC)")

    @field_validator("chat_name", "message", mode="after")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_time(cls, value: Any) -> datetime | None:
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=UTC)
        if isinstance(value, str):
            return parse_timestamp(value)
        msg = f"Invalid timestamp: {value!r}"
        raise ValueError(msg)


@dataclass(frozen=True)
class Task:
    """One scheduled recurring send.

    Attributes:
        id: Unique identifier (``task_<hex>``), assigned by the registry.
        chat_name: Recipient: contact name, group name or phone number.
        message: Text sent on each fire.
        interval: Minutes between scheduled fires (>= 1).
        random_delay: Upper bound, inclusive, of the random extra minutes
            added before each send (0 <= random_delay <= interval).
        start_time: Window start; anchors the fire grid.
        end_time: Window end; no sends are attempted after it.
        cancel_token: Cancellation signal observed by this task's runner only.
    """

    id: str
    chat_name: str
    message: str
    interval: int
    random_delay: int
    start_time: datetime
    end_time: datetime
    cancel_token: CancelToken = field(default_factory=CancelToken, repr=False, compare=False)

    @property
    def interval_delta(self) -> timedelta:
        return timedelta(minutes=self.interval)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSON API."""
        return {
            "id": self.id,
            "chat_name": self.chat_name,
            "message": self.message,
            "interval": self.interval,
            "random_delay": self.random_delay,
            "start_time": format_timestamp(self.start_time),
            "end_time": format_timestamp(self.end_time),
        }


def make_task_id() -> str:
    """Generate a new task ID."""
    return f"task_{uuid.uuid4().hex}"
