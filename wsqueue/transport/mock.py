"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
WsQueue, a product of Garudex Labs

Mock transport for local testing.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Tuple

from wsqueue.exceptions import HandleNotOpenError, UnknownHandleError
from wsqueue.logging_config import get_logger
from wsqueue.transport.base import (
    BaseTransport,
    CloseEvent,
    Message,
    ReadyState,
    TransportEvent,
    TransportEventType,
    TransportListener,
)

logger = get_logger(__name__)

# Close code reported when close() is called without one.
NO_STATUS_RECEIVED = 1005


class MockHandle:
    """Handle returned by ``MockTransport.open``."""

    def __init__(
        self,
        url: str,
        protocols: List[str],
        listener: TransportListener,
    ) -> None:
        self.url = url
        self.protocols = protocols
        self.listener = listener
        self.state = ReadyState.CONNECTING
        self.sent: List[Message] = []
        self.close_requests: List[Tuple[Optional[int], Optional[str]]] = []

    def __repr__(self) -> str:
        return f"MockHandle(url={self.url!r}, state={self.state.value})"


class MockTransport(BaseTransport):
    """In-memory transport for unit tests.

    Nothing happens on its own: the test drives the remote side through
    ``accept``, ``fail``, ``deliver``, ``remote_close`` and ``remote_error``.
    Every event is dispatched with ``loop.call_soon``, so it reaches the
    listener on a later loop iteration, as a real socket would.

    Args:
        auto_accept: Accept every handle as soon as it is opened.
        auto_close: Complete the close handshake when ``close`` is called.

    Example::

        transport = MockTransport(auto_accept=True)
        client = WebSocketClient(transport=transport)
        await client.connect("ws://example")
        transport.deliver("hello")
        assert await client.receive() == "hello"
    """

    def __init__(self, auto_accept: bool = False, auto_close: bool = True) -> None:
        self.auto_accept = auto_accept
        self.auto_close = auto_close
        self._handles: List[MockHandle] = []

    # -- BaseTransport ------------------------------------------------------

    def open(
        self,
        url: str,
        protocols: Optional[Sequence[str]],
        listener: TransportListener,
    ) -> MockHandle:
        handle = MockHandle(url, list(protocols or []), listener)
        self._handles.append(handle)
        logger.debug("mock_open", url=url, protocols=handle.protocols)
        if self.auto_accept:
            self.accept(handle)
        return handle

    def send(self, handle: MockHandle, data: Message) -> None:
        self._check(handle)
        if handle.state is not ReadyState.OPEN:
            raise HandleNotOpenError(f"Cannot send on {handle!r}")
        handle.sent.append(data)

    def close(
        self,
        handle: MockHandle,
        code: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        self._check(handle)
        if handle.state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return
        handle.state = ReadyState.CLOSING
        handle.close_requests.append((code, reason))
        if self.auto_close:
            event = CloseEvent(
                code=code if code is not None else NO_STATUS_RECEIVED,
                reason=reason or "",
                was_clean=True,
            )
            self._dispatch(handle, TransportEvent(TransportEventType.CLOSE, event), ReadyState.CLOSED)

    def ready_state(self, handle: MockHandle) -> ReadyState:
        self._check(handle)
        return handle.state

    # -- Remote side --------------------------------------------------------

    @property
    def handles(self) -> List[MockHandle]:
        """All handles opened so far, oldest first."""
        return list(self._handles)

    @property
    def last_handle(self) -> MockHandle:
        """The most recently opened handle."""
        if not self._handles:
            raise UnknownHandleError("No handle has been opened")
        return self._handles[-1]

    @property
    def sent(self) -> List[Message]:
        """Messages sent on the most recent handle."""
        return list(self.last_handle.sent)

    def accept(self, handle: Optional[MockHandle] = None, protocol: Optional[str] = None) -> None:
        """Complete the opening handshake."""
        handle = self._resolve(handle)
        self._dispatch(handle, TransportEvent(TransportEventType.OPEN, protocol), ReadyState.OPEN)

    def fail(self, error: BaseException, handle: Optional[MockHandle] = None) -> None:
        """Fail the opening handshake with ``error``."""
        handle = self._resolve(handle)
        self._dispatch(handle, TransportEvent(TransportEventType.ERROR, error), ReadyState.CLOSED)

    def deliver(self, data: Message, handle: Optional[MockHandle] = None) -> None:
        """Deliver one inbound message."""
        handle = self._resolve(handle)
        self._dispatch(handle, TransportEvent(TransportEventType.MESSAGE, data))

    def remote_close(
        self,
        code: int = 1000,
        reason: str = "",
        clean: bool = True,
        handle: Optional[MockHandle] = None,
    ) -> None:
        """Close the connection from the remote side."""
        handle = self._resolve(handle)
        event = CloseEvent(code=code, reason=reason, was_clean=clean)
        self._dispatch(handle, TransportEvent(TransportEventType.CLOSE, event), ReadyState.CLOSED)

    def remote_error(self, error: BaseException, handle: Optional[MockHandle] = None) -> None:
        """End an open connection with a transport error."""
        handle = self._resolve(handle)
        self._dispatch(handle, TransportEvent(TransportEventType.ERROR, error), ReadyState.CLOSED)

    # -- Internals ----------------------------------------------------------

    def _check(self, handle: MockHandle) -> None:
        if not any(handle is h for h in self._handles):
            raise UnknownHandleError(f"Handle {handle!r} was not opened by this transport")

    def _resolve(self, handle: Optional[MockHandle]) -> MockHandle:
        if handle is None:
            return self.last_handle
        self._check(handle)
        return handle

    def _dispatch(
        self,
        handle: MockHandle,
        event: TransportEvent,
        new_state: Optional[ReadyState] = None,
    ) -> None:
        loop = asyncio.get_running_loop()
        loop.call_soon(self._fire, handle, event, new_state)

    def _fire(
        self,
        handle: MockHandle,
        event: TransportEvent,
        new_state: Optional[ReadyState],
    ) -> None:
        if handle.state is ReadyState.CLOSED:
            # A closed handle never reports anything else.
            logger.debug("mock_event_dropped", url=handle.url, event=event.type.value)
            return
        if handle.state is ReadyState.CLOSING and event.type is TransportEventType.OPEN:
            # Closed by the caller before the handshake finished.
            return
        if new_state is not None:
            handle.state = new_state
        handle.listener(event)
