"""Quiet access logger: records failures and state-changing requests only."""

from __future__ import annotations

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger


class QuietAccessLogger(AbstractAccessLogger):
    """Skip successful GETs (the UI polls ``/tasks`` and ``/status``)."""

    def log(self, request: web.BaseRequest, response: web.StreamResponse, time: float) -> None:
        if response.status < 400 and request.method == "GET":
            return
        self.logger.info(
            "%3d | %8.1fms | %15s | %-7s %s",
            response.status,
            time * 1000,
            request.remote or "-",
            request.method,
            request.path,
        )
