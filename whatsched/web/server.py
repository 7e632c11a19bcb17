"""HTTP API and UI shell for the scheduler.

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop so the server
shares the event loop with the task runners.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pydantic
from aiohttp import web

from whatsched.config import settings
from whatsched.errors import (
    GatewayError,
    TaskConflictError,
    TaskNotFoundError,
    TaskValidationError,
    WhatschedError,
)
from whatsched.gateway.base import Gateway
from whatsched.gateway.delivery import MessageSender
from whatsched.scheduler.models import TaskRequest
from whatsched.scheduler.registry import TaskRegistry
from whatsched.web.access_log import QuietAccessLogger

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

REGISTRY_KEY = web.AppKey("registry", TaskRegistry)
SENDER_KEY = web.AppKey("sender", MessageSender)
GATEWAY_KEY = web.AppKey("gateway", Gateway)


def _error(exc: WhatschedError | None, error: str, status: int, **extra: Any) -> web.Response:
    body: dict[str, Any] = {"error": error, "code": exc.code if exc else "validation_error"}
    body.update(extra)
    return web.json_response(body, status=status)


async def _read_task_request(request: web.Request) -> TaskRequest | web.Response:
    """Parse the body into a TaskRequest, or build the 400 response."""
    try:
        payload = await request.json()
    except ValueError:
        return _error(None, "Invalid JSON", 400)
    try:
        return TaskRequest.model_validate(payload)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        return _error(None, f"Invalid JSON: {field}: {first.get('msg')}", 400)


# -- UI & status ---------------------------------------------------------------


async def _index(request: web.Request) -> web.FileResponse:
    """GET / — serve the UI shell."""
    return web.FileResponse(TEMPLATES_DIR / "index.html")


async def _qr(request: web.Request) -> web.Response:
    """GET /qr — pairing/connection snapshot for the UI."""
    status = await request.app[GATEWAY_KEY].refresh_status()
    if not status.authorized:
        if status.qr_code:
            return web.json_response({"qr": status.qr_code, "authorized": False})
        qr = "Waiting for QR code" if status.initialized else "Client not initialized"
        return web.json_response({"qr": qr, "authorized": False})
    if status.connected:
        return web.json_response(
            {"qr": "QR code already scanned", "authorized": True, "connected": True}
        )
    return web.json_response(
        {"qr": "QR code scanned, but the connection is lost", "authorized": True, "connected": False}
    )


async def _status(request: web.Request) -> web.Response:
    """GET /status — detailed client status."""
    status = await request.app[GATEWAY_KEY].refresh_status()
    if not status.initialized:
        message = "Client not initialized"
    elif not status.authorized:
        message = "QR code authorization required"
    elif not status.connected:
        message = "Connection lost, reconnection required"
    else:
        message = "Ready"
    return web.json_response(
        {
            "initialized": status.initialized,
            "authorized": status.authorized,
            "connected": status.connected,
            "message": message,
        }
    )


# -- Tasks ---------------------------------------------------------------------


async def _schedule(request: web.Request) -> web.Response:
    """POST /schedule — create a task only if none is active."""
    parsed = await _read_task_request(request)
    if isinstance(parsed, web.Response):
        return parsed

    try:
        task_id = request.app[REGISTRY_KEY].add(parsed, replace=False)
    except TaskConflictError as exc:
        return _error(
            exc,
            "A task is already active",
            409,
            existing_task=exc.existing.to_dict(),
            message="Do you want to replace the existing task?",
        )
    except TaskValidationError as exc:
        return _error(exc, f"Failed to add task: {exc}", 400)
    return web.json_response({"message": "Task added", "task_id": task_id})


async def _replace_task(request: web.Request) -> web.Response:
    """POST /replace-task — unconditionally replace the active task."""
    parsed = await _read_task_request(request)
    if isinstance(parsed, web.Response):
        return parsed

    try:
        task_id = request.app[REGISTRY_KEY].add(parsed, replace=True)
    except TaskValidationError as exc:
        return _error(exc, f"Failed to replace task: {exc}", 400)
    return web.json_response({"message": "Task replaced", "task_id": task_id})


async def _tasks(request: web.Request) -> web.Response:
    """GET /tasks — list the active task (zero or one)."""
    tasks = request.app[REGISTRY_KEY].list_tasks()
    return web.json_response([task.to_dict() for task in tasks])


async def _stop(request: web.Request) -> web.Response:
    """POST /stop/{id} — cancel a task by id."""
    task_id = request.match_info["task_id"]
    if request.app[REGISTRY_KEY].stop(task_id):
        return web.json_response({"message": "Task stopped"})
    return _error(TaskNotFoundError(task_id), "Task not found", 404)


# -- Test send -----------------------------------------------------------------


class SendTestRequest(pydantic.BaseModel):
    chat_name: str = ""
    message: str = ""


async def _test_send(request: web.Request) -> web.Response:
    """POST /test — one-off immediate send, bypassing the scheduler."""
    try:
        body = SendTestRequest.model_validate(await request.json())
    except (ValueError, pydantic.ValidationError) as exc:
        return _error(None, str(exc), 400)

    try:
        await request.app[SENDER_KEY].send_test_message(body.chat_name, body.message)
    except (GatewayError, TaskValidationError) as exc:
        logger.error("Test message to '%s' failed: %s", body.chat_name, exc)
        return _error(
            exc,
            str(exc),
            500,
            success=False,
            message="Failed to send test message",
        )

    return web.json_response(
        {
            "success": True,
            "message": "Test message sent successfully",
            "chat": body.chat_name,
            "text": body.message,
        }
    )


def _create_web_app(
    registry: TaskRegistry,
    sender: MessageSender,
    gateway: Gateway,
) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application()
    app[REGISTRY_KEY] = registry
    app[SENDER_KEY] = sender
    app[GATEWAY_KEY] = gateway

    app.router.add_get("/", _index)
    app.router.add_get("/qr", _qr)
    app.router.add_get("/status", _status)
    app.router.add_post("/schedule", _schedule)
    app.router.add_post("/replace-task", _replace_task)
    app.router.add_get("/tasks", _tasks)
    app.router.add_post("/stop/{task_id}", _stop)
    app.router.add_post("/test", _test_send)
    return app


class WebServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        registry: TaskRegistry,
        sender: MessageSender,
        gateway: Gateway,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self.host = host or settings.web_host
        self.port = settings.web_port if port is None else port
        self._app = _create_web_app(registry, sender, gateway)
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for API and UI requests."""
        self._runner = web.AppRunner(self._app, access_log_class=QuietAccessLogger)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Server listening on %s:%d | UI: %s", self.host, self.port, settings.ui_url)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Server stopped")
