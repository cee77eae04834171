"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
WsQueue, a product of Garudex Labs

Transport base class and event data structures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Union

Message = Union[str, bytes]


class ReadyState(str, Enum):
    """Ready state of a transport handle."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class TransportEventType(str, Enum):
    """Events a transport delivers to its listener."""
    OPEN = "open"
    MESSAGE = "message"
    CLOSE = "close"
    ERROR = "error"


@dataclass(frozen=True)
class CloseEvent:
    """Terminal record for a connection that closed."""
    code: int
    reason: str = ""
    was_clean: bool = True

    def __str__(self) -> str:
        clean = "clean" if self.was_clean else "unclean"
        if self.reason:
            return f"closed with code {self.code} ({clean}): {self.reason}"
        return f"closed with code {self.code} ({clean})"


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal record for a connection that ended with a transport error."""
    error: BaseException

    def __str__(self) -> str:
        return f"transport error: {self.error!r}"


TerminalEvent = Union[CloseEvent, ErrorEvent]


@dataclass(frozen=True)
class TransportEvent:
    """A single event emitted by a transport handle.

    ``data`` depends on ``type``: the negotiated sub-protocol (or None) for
    OPEN, the payload for MESSAGE, a CloseEvent for CLOSE and the exception
    for ERROR.
    """
    type: TransportEventType
    data: Any = None


TransportListener = Callable[[TransportEvent], None]


class BaseTransport(ABC):
    """Abstract base for message transports.

    A transport opens handles and reports what happens to them through a
    listener. Exactly one of OPEN or ERROR is delivered before any MESSAGE
    or CLOSE, and nothing is delivered after a CLOSE or a post-open ERROR.
    Listeners are always called on the event loop thread.
    """

    @abstractmethod
    def open(
        self,
        url: str,
        protocols: Optional[Sequence[str]],
        listener: TransportListener,
    ) -> Any:
        """Begin opening a connection and return its handle."""
        ...

    @abstractmethod
    def send(self, handle: Any, data: Message) -> None:
        """Send one message on an open handle without waiting."""
        ...

    @abstractmethod
    def close(self, handle: Any, code: Optional[int] = None, reason: Optional[str] = None) -> None:
        """Start the close handshake; a CLOSE event follows eventually."""
        ...

    @abstractmethod
    def ready_state(self, handle: Any) -> ReadyState:
        """Current ready state of the handle."""
        ...
