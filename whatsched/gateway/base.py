"""Gateway protocol: what the scheduler needs from a messaging network client."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Contact:
    """A known chat on the messaging network.

    Attributes:
        address: Network address, e.g. ``"15551234567@c.us"``.
        full_name: Display name as saved in the address book ("" if none).
    """

    address: str
    full_name: str = ""


@dataclass(frozen=True)
class GatewayStatus:
    """Snapshot of the messaging session."""

    initialized: bool
    authorized: bool
    connected: bool
    qr_code: str | None = None


@runtime_checkable
class Gateway(Protocol):
    """Protocol that every messaging client must satisfy."""

    def is_connected(self) -> bool:
        """True if the session is currently usable for sending."""
        ...

    async def ensure_connected(self) -> None:
        """Reconnect if needed. Raises GatewayError on failure."""
        ...

    async def resolve_recipient(self, name: str) -> str | None:
        """Map a chat name or phone number to an address, or None."""
        ...

    async def send(self, address: str, text: str) -> None:
        """Send *text* to *address*. Raises a GatewayError subclass on failure."""
        ...

    async def refresh_status(self) -> GatewayStatus:
        """Query and return the current session status."""
        ...
