"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
WsQueue, a product of Garudex Labs

WsQueue - Queue-backed asynchronous WebSocket client

Send synchronously, receive one message at a time with ``await``, and get a
single terminal record when the connection ends.
"""

from wsqueue._version import __version__
from wsqueue.client import ConnectionState, WebSocketClient
from wsqueue.exceptions import (
    ConnectionError,
    NotConnectedError,
    TerminatedError,
    WsQueueError,
)
from wsqueue.transport.base import CloseEvent, ErrorEvent

__all__ = [
    "__version__",
    "WebSocketClient",
    "ConnectionState",
    "CloseEvent",
    "ErrorEvent",
    "WsQueueError",
    "ConnectionError",
    "NotConnectedError",
    "TerminatedError",
]
