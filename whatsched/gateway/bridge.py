"""WhatsApp gateway backed by a WAHA-compatible HTTP bridge, using aiohttp.

The bridge owns the WhatsApp device session and its credential store; this
client only drives it over HTTP:

- ``GET  /api/sessions/{session}``             session status and ``me``
- ``POST /api/sessions/{session}/start``       (re)connect the session
- ``GET  /api/{session}/auth/qr?format=raw``   pairing QR payload
- ``GET  /api/contacts/all?session={session}`` known contacts
- ``POST /api/sendText``                       send a text message
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from whatsched.config import settings
from whatsched.errors import (
    GatewayError,
    GatewayInitError,
    NotAuthorizedError,
    RecipientNotFoundError,
    SendTimeoutError,
    TransportError,
)
from whatsched.gateway.base import Contact, GatewayStatus
from whatsched.gateway.events import (
    Connected,
    Disconnected,
    GatewayEvent,
    PairingRequired,
    dispatch_event,
)
from whatsched.gateway.resolve import match_contact, phone_address

logger = logging.getLogger(__name__)

STATUS_WORKING = "WORKING"
STATUS_SCAN_QR = "SCAN_QR_CODE"


class BridgeGateway:
    """Gateway implementation for a WAHA-compatible WhatsApp HTTP API.

    Args:
        base_url: Bridge root URL (default from settings).
        api_key: Sent as ``X-Api-Key`` when non-empty (default from settings).
        session: Bridge session name (default from settings).
        send_timeout: Seconds allowed for each bridge request (default 30).
        on_event: Receives connection events (logged by default).
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        session: str | None = None,
        send_timeout: float | None = None,
        on_event=dispatch_event,
    ) -> None:
        self._base_url = (base_url or settings.bridge_url).rstrip("/")
        self._api_key = settings.bridge_api_key if api_key is None else api_key
        self._session_name = session or settings.bridge_session
        self._send_timeout = send_timeout or settings.send_timeout_seconds
        self._on_event = on_event
        self._http: aiohttp.ClientSession | None = None
        self._status = GatewayStatus(initialized=False, authorized=False, connected=False)

    # -- HTTP plumbing ---------------------------------------------------------

    def _get_http(self) -> aiohttp.ClientSession:
        """Return (and lazily create) the shared aiohttp session."""
        if self._http is None or self._http.closed:
            headers = {"X-Api-Key": self._api_key} if self._api_key else {}
            self._http = aiohttp.ClientSession(headers=headers)
        return self._http

    async def close(self) -> None:
        if self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        allow_missing: bool = False,
        not_found: GatewayError | None = None,
    ) -> Any:
        """Call the bridge and return the decoded body.

        On 404 raises *not_found* if given, or returns None when
        *allow_missing* is set. Other HTTP and network failures are mapped
        onto the gateway error types.
        """
        url = f"{self._base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self._send_timeout)
        session = self._get_http()
        try:
            async with session.request(
                method, url, json=json, params=params, timeout=timeout
            ) as resp:
                if resp.status in (401, 403):
                    raise NotAuthorizedError(
                        "Not authorized in WhatsApp. Please scan the QR code again"
                    )
                if resp.status == 404 and not_found is not None:
                    raise not_found
                if resp.status == 404 and allow_missing:
                    return None
                if resp.status >= 400:
                    body = await resp.text()
                    msg = f"Bridge returned {resp.status} for {method} {path}: {body[:200]}"
                    raise TransportError(msg)
                if resp.content_type == "application/json":
                    return await resp.json()
                return await resp.text()
        except TimeoutError as exc:
            msg = "Timed out talking to WhatsApp. Check the internet connection and try again"
            raise SendTimeoutError(msg) from exc
        except aiohttp.ClientError as exc:
            msg = f"WhatsApp bridge unreachable: {exc}"
            raise TransportError(msg) from exc

    # -- Status ----------------------------------------------------------------

    @property
    def status(self) -> GatewayStatus:
        """Last known status (no network call)."""
        return self._status

    def is_connected(self) -> bool:
        return self._status.connected

    async def refresh_status(self) -> GatewayStatus:
        """Query the bridge and update the cached status."""
        try:
            data = await self._request(
                "GET", f"/api/sessions/{self._session_name}", allow_missing=True
            )
        except GatewayError as exc:
            logger.warning("Could not read WhatsApp session status: %s", exc)
            self._set_status(
                GatewayStatus(
                    initialized=self._status.initialized,
                    authorized=self._status.authorized,
                    connected=False,
                )
            )
            return self._status

        if not isinstance(data, dict):
            status = GatewayStatus(initialized=True, authorized=False, connected=False)
        else:
            state = str(data.get("status", ""))
            connected = state == STATUS_WORKING
            qr_code = await self._fetch_qr() if state == STATUS_SCAN_QR else None
            status = GatewayStatus(
                initialized=True,
                authorized=connected or bool(data.get("me")),
                connected=connected,
                qr_code=qr_code,
            )
        self._set_status(status)
        return status

    def _set_status(self, status: GatewayStatus) -> None:
        previous, self._status = self._status, status
        events: list[GatewayEvent] = []
        if status.connected and not previous.connected:
            events.append(Connected(self._session_name))
        elif previous.connected and not status.connected:
            events.append(Disconnected(self._session_name))
        if status.qr_code and not previous.qr_code:
            events.append(PairingRequired(self._session_name))
        for event in events:
            self._on_event(event)

    async def _fetch_qr(self) -> str | None:
        try:
            data = await self._request(
                "GET",
                f"/api/{self._session_name}/auth/qr",
                params={"format": "raw"},
                allow_missing=True,
            )
        except GatewayError as exc:
            logger.warning("Could not fetch pairing QR code: %s", exc)
            return None
        if isinstance(data, dict):
            return data.get("value") or None
        return None

    # -- Connection ------------------------------------------------------------

    async def _start_session(self) -> None:
        try:
            await self._request("POST", f"/api/sessions/{self._session_name}/start")
        except NotAuthorizedError:
            raise
        except TransportError as exc:
            # Already-started sessions are reported as errors by some bridges;
            # the status poll that follows decides whether this mattered.
            logger.debug("Session start request failed: %s", exc)

    async def _wait_until_working(self, timeout: float, poll: float) -> GatewayStatus:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            status = await self.refresh_status()
            if status.connected or loop.time() >= deadline:
                return status
            await asyncio.sleep(poll)

    async def connect(
        self,
        pairing_timeout: float | None = None,
        poll: float | None = None,
    ) -> None:
        """Bring the session up at startup, waiting for QR pairing if needed.

        Raises GatewayInitError if the session cannot be established.
        """
        pairing_timeout = pairing_timeout or settings.pairing_timeout_seconds
        poll = poll or settings.pairing_poll_seconds

        status = await self.refresh_status()
        if not status.initialized:
            msg = f"WhatsApp bridge at {self._base_url} is unreachable"
            raise GatewayInitError(msg)

        if not status.connected:
            await self._start_session()
            if not status.authorized:
                logger.info("Client not authorized. Scan the QR code in the UI: %s", settings.ui_url)
            status = await self._wait_until_working(pairing_timeout, poll)

        if not status.connected:
            msg = "Could not establish a WhatsApp connection"
            raise GatewayInitError(msg)
        logger.info("WhatsApp client connected | UI: %s", settings.ui_url)

    async def ensure_connected(self) -> None:
        """Reconnect lazily; raises NotAuthorizedError or TransportError."""
        if self.is_connected():
            return
        status = await self.refresh_status()
        if status.connected:
            return
        logger.warning("Client not connected, trying to reconnect...")
        await self._start_session()
        status = await self._wait_until_working(self._send_timeout, settings.pairing_poll_seconds)
        if status.connected:
            return
        if not status.authorized:
            raise NotAuthorizedError("Not authorized in WhatsApp. Please scan the QR code again")
        raise TransportError("Could not reconnect to WhatsApp")

    # -- Messaging -------------------------------------------------------------

    def _mark_disconnected(self) -> None:
        """Drop the cached connected flag after a failed bridge call."""
        if self._status.connected:
            self._set_status(
                GatewayStatus(
                    initialized=self._status.initialized,
                    authorized=self._status.authorized,
                    connected=False,
                )
            )

    async def list_contacts(self) -> list[Contact]:
        try:
            data = await self._request(
                "GET", "/api/contacts/all", params={"session": self._session_name}
            )
        except TransportError:
            self._mark_disconnected()
            raise
        contacts: list[Contact] = []
        for item in data or []:
            address = item.get("id")
            if isinstance(address, dict):
                address = address.get("_serialized")
            if not address:
                continue
            contacts.append(Contact(address=str(address), full_name=item.get("name") or ""))
        return contacts

    async def resolve_recipient(self, name: str) -> str | None:
        """Phone number → direct address; otherwise exact contact match."""
        address = phone_address(name)
        if address is not None:
            logger.debug("Built address from phone number: %s", address)
            return address

        logger.debug("Looking up '%s' in contacts", name)
        address = match_contact(name, await self.list_contacts())
        if address is not None:
            logger.debug("Found contact '%s': %s", name, address)
        return address

    async def send(self, address: str, text: str) -> None:
        payload = {"session": self._session_name, "chatId": address, "text": text}
        try:
            await self._request(
                "POST", "/api/sendText", json=payload, not_found=RecipientNotFoundError(address)
            )
        except TransportError:
            # The next send goes through ensure_connected() and restarts the session.
            self._mark_disconnected()
            raise
        logger.info("Message sent to %s (%d chars)", address, len(text))
