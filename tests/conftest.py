"""
Pytest configuration and shared fixtures for WsQueue tests.
"""

import logging
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import structlog

from wsqueue.client import WebSocketClient
from wsqueue.transport.mock import MockTransport


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Drop handlers installed by setup_logging so tests don't leak log files."""
    yield
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        handler.close()
    root_logger.handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def transport() -> MockTransport:
    """Mock transport that accepts every connection immediately."""
    return MockTransport(auto_accept=True)


@pytest.fixture
def client(transport: MockTransport) -> WebSocketClient:
    """Client wired to the mock transport."""
    return WebSocketClient(transport=transport)

