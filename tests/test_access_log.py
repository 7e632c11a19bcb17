"""Tests for the quiet access logger."""

import logging
from unittest.mock import MagicMock

import pytest

from whatsched.web.access_log import QuietAccessLogger


def _entry(method: str, status: int) -> tuple[MagicMock, MagicMock]:
    request = MagicMock(method=method, path="/schedule", remote="127.0.0.1")
    response = MagicMock(status=status)
    return request, response


@pytest.fixture
def access_logger() -> QuietAccessLogger:
    return QuietAccessLogger(logging.getLogger("whatsched.access"), "%a")


def test_successful_get_is_skipped(access_logger: QuietAccessLogger, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="whatsched.access"):
        access_logger.log(*_entry("GET", 200), 0.01)
    assert caplog.records == []


@pytest.mark.parametrize(("method", "status"), [("POST", 200), ("GET", 404), ("POST", 409)])
def test_logged_requests(
    access_logger: QuietAccessLogger, caplog, method: str, status: int
) -> None:
    with caplog.at_level(logging.INFO, logger="whatsched.access"):
        access_logger.log(*_entry(method, status), 0.0125)

    message = caplog.records[-1].getMessage()
    assert message.startswith(f"{status} |")
    assert "12.5ms" in message
    assert "127.0.0.1" in message
    assert message.endswith(f"{method:<7} /schedule")
