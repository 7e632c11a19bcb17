"""whatsched entry point."""

import asyncio
import contextlib
import logging
import signal
import sys
import webbrowser

from whatsched.config import settings
from whatsched.errors import GatewayInitError
from whatsched.gateway.bridge import BridgeGateway
from whatsched.gateway.delivery import MessageSender
from whatsched.scheduler.registry import TaskRegistry
from whatsched.web.server import WebServer

logger = logging.getLogger(__name__)


def _open_browser(url: str) -> None:
    logger.info("Opening browser... | UI: %s", url)
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error:
        opened = False
    if not opened:
        logger.warning("Could not open the browser automatically; visit %s", url)


async def run() -> int:
    """Wire the components, serve until interrupted, then tear down.

    Returns the process exit code.
    """
    gateway = BridgeGateway()
    sender = MessageSender(gateway)
    registry = TaskRegistry(send=sender.send_message)
    server = WebServer(registry, sender, gateway)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM)
    for sig in signals:
        # Windows event loops do not support signal handlers.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await server.start()
        if settings.open_browser:
            _open_browser(settings.ui_url)

        try:
            await gateway.connect()
        except GatewayInitError:
            logger.exception("WhatsApp initialization failed")
            await server.stop()
            await gateway.close()
            return 1

        await stop.wait()

        logger.info("Shutting down...")
        await registry.shutdown()
        await server.stop()
        await gateway.close()
        return 0
    finally:
        for sig in signals:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)


def main() -> None:
    """Start the scheduler service."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
