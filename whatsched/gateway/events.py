"""Connection events raised by gateways and their handlers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connected:
    session: str


@dataclass(frozen=True)
class Disconnected:
    session: str
    reason: str = ""


@dataclass(frozen=True)
class PairingRequired:
    session: str


GatewayEvent = Connected | Disconnected | PairingRequired


def _on_connected(event: Connected) -> None:
    logger.info("WhatsApp connection established (session=%s)", event.session)


def _on_disconnected(event: Disconnected) -> None:
    logger.warning(
        "WhatsApp disconnected (session=%s%s)",
        event.session,
        f", reason={event.reason}" if event.reason else "",
    )


def _on_pairing_required(event: PairingRequired) -> None:
    logger.info("WhatsApp session %s is not authorized; scan the QR code", event.session)


_HANDLERS: dict[type, Callable] = {
    Connected: _on_connected,
    Disconnected: _on_disconnected,
    PairingRequired: _on_pairing_required,
}


def dispatch_event(event: GatewayEvent) -> None:
    """Route *event* to the handler registered for its kind."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        logger.debug("Unhandled gateway event: %r", event)
        return
    handler(event)
