"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
WsQueue, a product of Garudex Labs

Message transports.
"""

from wsqueue.transport.base import (
    BaseTransport,
    CloseEvent,
    ErrorEvent,
    ReadyState,
    TransportEvent,
    TransportEventType,
)
from wsqueue.transport.mock import MockTransport
from wsqueue.transport.ws import WebSocketTransport

__all__ = [
    "BaseTransport",
    "CloseEvent",
    "ErrorEvent",
    "ReadyState",
    "TransportEvent",
    "TransportEventType",
    "MockTransport",
    "WebSocketTransport",
]
