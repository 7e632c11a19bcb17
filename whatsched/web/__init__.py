"""HTTP API and web UI."""

from whatsched.web.server import WebServer

__all__ = ["WebServer"]
