"""Messaging gateway: contract, WhatsApp bridge client and delivery."""

from whatsched.gateway.base import Contact, Gateway, GatewayStatus
from whatsched.gateway.bridge import BridgeGateway
from whatsched.gateway.delivery import MessageSender

__all__ = [
    "BridgeGateway",
    "Contact",
    "Gateway",
    "GatewayStatus",
    "MessageSender",
]
