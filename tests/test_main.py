"""Tests for the process entry point wiring."""

import webbrowser
from unittest.mock import AsyncMock, MagicMock, patch

from whatsched.errors import GatewayInitError
from whatsched.main import _open_browser, run


def _patched_components(connect_error: Exception | None = None):
    gateway = MagicMock()
    gateway.connect = AsyncMock(side_effect=connect_error)
    gateway.close = AsyncMock()
    server = MagicMock()
    server.start = AsyncMock()
    server.stop = AsyncMock()
    return gateway, server


async def test_run_exits_when_gateway_init_fails() -> None:
    gateway, server = _patched_components(GatewayInitError("bridge down"))
    with (
        patch("whatsched.main.BridgeGateway", return_value=gateway),
        patch("whatsched.main.WebServer", return_value=server),
        patch("whatsched.main._open_browser") as open_browser,
    ):
        code = await run()

    assert code == 1
    server.start.assert_awaited_once()
    server.stop.assert_awaited_once()
    gateway.close.assert_awaited_once()
    open_browser.assert_called_once()


def test_open_browser_failure_is_logged(caplog) -> None:
    with patch("whatsched.main.webbrowser.open", side_effect=webbrowser.Error("no display")):
        _open_browser("http://localhost:8080")
    assert "Could not open the browser" in caplog.text


def test_open_browser_success(caplog) -> None:
    with patch("whatsched.main.webbrowser.open", return_value=True):
        _open_browser("http://localhost:8080")
    assert "Could not open the browser" not in caplog.text
