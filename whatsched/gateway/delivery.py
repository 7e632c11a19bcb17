"""MessageSender: resolve a chat name and deliver one message."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from whatsched.errors import RecipientNotFoundError, TaskValidationError

if TYPE_CHECKING:
    from whatsched.gateway.base import Gateway

logger = logging.getLogger(__name__)


class MessageSender:
    """Delivers text to a chat by name through a Gateway.

    Used both by task runners and by the immediate test-send endpoint.
    Errors propagate as GatewayError subclasses so callers can tell a
    missing chat from a timeout or an authorization problem.
    """

    def __init__(self, gateway: Gateway) -> None:
        self._gateway = gateway

    async def send_message(self, chat_name: str, text: str) -> str:
        """Send *text* to *chat_name*. Returns the resolved address."""
        chat_name = chat_name.strip()
        text = text.strip()
        if not chat_name:
            raise TaskValidationError("Chat name must not be empty")
        if not text:
            raise TaskValidationError("Message must not be empty")

        if not self._gateway.is_connected():
            await self._gateway.ensure_connected()

        address = await self._gateway.resolve_recipient(chat_name)
        if address is None:
            raise RecipientNotFoundError(chat_name)

        logger.info("Sending message to '%s' (%s)", chat_name, address)
        await self._gateway.send(address, text)
        logger.info("Message delivered to '%s' (%s)", chat_name, address)
        return address

    async def send_test_message(self, chat_name: str, text: str) -> str:
        logger.info("Sending test message to '%s'", chat_name)
        return await self.send_message(chat_name, text)
