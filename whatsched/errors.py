"""Error taxonomy shared by the scheduler, the gateway and the HTTP layer.

Every error carries a short machine-readable ``code`` so the API can tell a
UI *why* something failed ("chat not found" vs "timed out" vs "not
authorized") without parsing message text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from whatsched.scheduler.models import Task


class WhatschedError(Exception):
    """Base class for all application errors."""

    code = "error"


# -- Scheduling ----------------------------------------------------------------


class TaskValidationError(WhatschedError):
    """A task request (or a test-send request) failed validation."""

    code = "validation_error"


class TaskConflictError(WhatschedError):
    """A new task was requested without replacement while one is active."""

    code = "conflict"

    def __init__(self, existing: Task) -> None:
        super().__init__(f"Task {existing.id} is already active")
        self.existing = existing


class TaskNotFoundError(WhatschedError):
    code = "not_found"


# -- Messaging gateway ---------------------------------------------------------


class GatewayError(WhatschedError):
    """Base class for failures talking to the messaging network."""

    code = "transport_error"


class TransportError(GatewayError):
    """Network failure or an unexpected response from the bridge."""


class SendTimeoutError(TransportError):
    code = "timeout"


class NotAuthorizedError(TransportError):
    code = "unauthorized"


class RecipientNotFoundError(GatewayError):
    """The chat name did not resolve to any known address."""

    code = "chat_not_found"

    def __init__(self, chat_name: str) -> None:
        super().__init__(
            f"Chat '{chat_name}' not found. Check the chat name or phone number"
        )
        self.chat_name = chat_name


class GatewayInitError(GatewayError):
    """The messaging session could not be established at startup."""

    code = "init_failed"
