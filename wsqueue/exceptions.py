"""
Exception hierarchy for WsQueue.

All custom exceptions inherit from WsQueueError base class.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from wsqueue.transport.base import TerminalEvent


class WsQueueError(Exception):
    """Base exception for all WsQueue errors."""
    pass


# Client Errors
class ClientError(WsQueueError):
    """Base exception for errors raised by the connection adapter."""
    pass


class ConnectionError(ClientError):
    """Raised when the transport reports an error before the connection opens."""

    def __init__(self, message: str, error: Optional[BaseException] = None):
        super().__init__(message)
        self.error = error


class NotConnectedError(ClientError):
    """
    Raised when an operation needs an open connection and there is none.

    ``event`` holds the terminal record of the previous connection, or None
    if the client was never connected.
    """

    def __init__(self, event: Optional["TerminalEvent"] = None, message: Optional[str] = None):
        if message is None:
            message = "Not connected." if event is None else f"Not connected: {event}"
        super().__init__(message)
        self.event = event


class TerminatedError(NotConnectedError):
    """
    Raised to receivers once the connection has terminated.

    Delivered to every receiver waiting when the connection ends and to
    every later receive that finds the buffer empty. ``event`` holds the
    terminal record (a CloseEvent or ErrorEvent).
    """

    def __init__(self, event: "TerminalEvent"):
        super().__init__(event, f"Connection terminated: {event}")


# Transport Errors
class TransportError(WsQueueError):
    """Base exception for transport-level misuse."""
    pass


class UnknownHandleError(TransportError):
    """Raised when a transport is given a handle it did not create."""
    pass


class HandleNotOpenError(TransportError):
    """Raised when sending on a handle that is not open."""
    pass


# Configuration Errors
class ConfigurationError(WsQueueError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass

