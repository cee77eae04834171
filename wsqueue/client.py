"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
WsQueue, a product of Garudex Labs

Queue-backed asynchronous WebSocket client.

Turns the callbacks of a message transport into a pull interface::

    client = WebSocketClient()
    await client.connect("ws://www.example.com/")
    client.send("Hello!")              # send is synchronous
    print(await client.receive())      # receive is asynchronous
    await client.disconnect()

Inbound messages with no waiting receiver are buffered; receivers with no
buffered message wait in a queue. At most one of the two queues is non-empty
at any time. When the connection ends, every waiting receiver fails with the
terminal record and so does every later receive once the buffer is drained.
"""

from __future__ import annotations

import asyncio
import contextvars
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, Optional, Sequence, Union

from wsqueue.config.settings import WsQueueConfig
from wsqueue.exceptions import ConnectionError, NotConnectedError, TerminatedError
from wsqueue.logging_config import (
    get_logger,
    log_connection_closed,
    log_connection_failed,
    log_connection_opened,
    set_correlation_id,
)
from wsqueue.transport.base import (
    BaseTransport,
    CloseEvent,
    ErrorEvent,
    Message,
    ReadyState,
    TerminalEvent,
    TransportEvent,
    TransportEventType,
)

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Connection lifecycle states."""
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class WebSocketClient:
    """Asynchronous, queue-backed WebSocket client.

    All methods must be called from the event loop that owns the client.

    Args:
        transport: Transport used to open connections. Defaults to a
            ``WebSocketTransport`` with default settings.
        protocols: Default sub-protocols offered by ``connect``.
    """

    def __init__(
        self,
        transport: Optional[BaseTransport] = None,
        protocols: Optional[Sequence[str]] = None,
    ) -> None:
        if transport is None:
            from wsqueue.transport.ws import WebSocketTransport
            transport = WebSocketTransport()
        self._transport = transport
        self._protocols = list(protocols or [])

        self._state = ConnectionState.IDLE
        self._handle: Any = None
        self._url: Optional[str] = None
        self._protocol: Optional[str] = None
        self._correlation_id: Optional[str] = None
        self._logger = logger
        # Bumped on every connect and abort; events tagged with an older
        # generation belong to a superseded handle and are dropped.
        self._generation = 0
        self._opened: Optional[asyncio.Future] = None
        self._closed: Optional[asyncio.Future] = None

        self._handlers: Dict[TransportEventType, Callable[[Any], None]] = {
            TransportEventType.OPEN: self._handle_open,
            TransportEventType.MESSAGE: self._handle_message,
            TransportEventType.CLOSE: self._handle_close,
            TransportEventType.ERROR: self._handle_error,
        }

        self._reset()

    @classmethod
    def from_config(cls, config: WsQueueConfig) -> "WebSocketClient":
        """Build a client backed by a ``WebSocketTransport`` from configuration."""
        from wsqueue.transport.ws import WebSocketTransport
        return cls(
            transport=WebSocketTransport.from_config(config.transport),
            protocols=config.client.subprotocols,
        )

    # -- Queries ------------------------------------------------------------

    @property
    def connected(self) -> bool:
        """Whether a connection is currently open."""
        # A close folded into the record leaves the transport side untouched.
        return (
            self._state is ConnectionState.OPEN
            and self._handle is not None
            and self._transport.ready_state(self._handle) is ReadyState.OPEN
        )

    @property
    def data_available(self) -> int:
        """Number of buffered messages that ``receive`` returns without waiting."""
        return len(self._messages)

    @property
    def pending_receivers(self) -> int:
        """Number of ``receive`` calls waiting for a message."""
        return sum(1 for waiter in self._receivers if not waiter.done())

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def close_event(self) -> Optional[TerminalEvent]:
        """Terminal record of the current connection, None while it lives."""
        return self._close_event

    @property
    def url(self) -> Optional[str]:
        return self._url

    @property
    def protocol(self) -> Optional[str]:
        """Sub-protocol negotiated by the current connection."""
        return self._protocol

    @property
    def correlation_id(self) -> Optional[str]:
        """Id attached to every log event of the latest connection attempt."""
        return self._correlation_id

    # -- Operations ---------------------------------------------------------

    async def connect(
        self,
        url: str,
        protocols: Optional[Union[str, Sequence[str]]] = None,
    ) -> None:
        """
        Open a connection to ``url`` and wait until it is established.

        Any existing connection is disconnected first. Can be called again
        to reconnect to any url.

        Args:
            url: WebSocket URL to connect to.
            protocols: Sub-protocol or list of sub-protocols to offer.
                Defaults to the protocols given to the constructor.

        Raises:
            ConnectionError: If the transport fails before the connection opens.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN, ConnectionState.CLOSING):
            await self.disconnect()
        self._reset()

        if protocols is None:
            protocols = self._protocols
        elif isinstance(protocols, str):
            protocols = [protocols]

        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        self._opened = loop.create_future()
        self._closed = loop.create_future()
        self._url = url
        self._state = ConnectionState.CONNECTING
        opened = self._opened

        # Tasks the transport starts inherit the id through this context
        # without it leaking into the caller's.
        context = contextvars.copy_context()
        self._correlation_id = context.run(set_correlation_id)
        self._logger = logger.bind(correlation_id=self._correlation_id)

        self._logger.debug("connecting", url=url, protocols=list(protocols))
        try:
            self._handle = context.run(
                self._transport.open,
                url,
                list(protocols),
                lambda event: self._dispatch(generation, event),
            )
        except Exception as e:
            self._handle = None
            self._state = ConnectionState.CLOSED
            self._closed.set_result(None)
            log_connection_failed(self._logger, url, reason=repr(e))
            raise ConnectionError(f"Failed to open connection to {url}: {e}", e) from e

        try:
            await opened
        except asyncio.CancelledError:
            if generation == self._generation and self._state is ConnectionState.CONNECTING:
                self._abort_connect()
            raise

    def send(self, data: Message) -> None:
        """
        Send one message through the connection.

        Raises:
            NotConnectedError: If no connection is open. Carries the terminal
                record of the last connection, if any.
        """
        if not self.connected:
            raise NotConnectedError(self._close_event)

        self._transport.send(self._handle, data)

    async def receive(self) -> Message:
        """
        Receive the next message.

        Returns immediately if a message is buffered. Otherwise waits for the
        next message to arrive. Concurrent calls are served in call order.

        Raises:
            NotConnectedError: If nothing is buffered and no connection is open.
            TerminatedError: If the connection has ended or ends while waiting.
        """
        if self._messages:
            return self._messages.popleft()

        if not self.connected:
            if self._close_event is not None:
                raise TerminatedError(self._close_event)
            raise NotConnectedError()

        waiter: asyncio.Future = asyncio.get_running_loop().create_future()
        self._receivers.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter in self._receivers:
                self._receivers.remove(waiter)
            elif waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                # Matched to a message just before the caller cancelled.
                self._requeue(waiter.result())
            raise

    async def disconnect(
        self,
        code: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Optional[TerminalEvent]:
        """
        Close the connection and wait until the transport reports it closed.

        Never raises. A connection that is still being established is
        aborted, and the pending ``connect`` raises ``ConnectionError``.

        Args:
            code: Close code sent to the peer.
            reason: Close reason sent to the peer.

        Returns:
            The terminal record, or None if there never was a connection.
        """
        if self._state is ConnectionState.CONNECTING:
            self._abort_connect()
            return self._close_event

        if self._state is ConnectionState.CLOSING and self._closed is not None:
            return await asyncio.shield(self._closed)

        if not self.connected:
            return self._close_event

        self._state = ConnectionState.CLOSING
        closed = self._closed
        self._logger.debug("disconnecting", url=self._url, code=code, reason=reason)
        try:
            self._transport.close(self._handle, code, reason)
        except Exception as e:
            self._logger.warning("close_failed", url=self._url, error=repr(e))
            self._terminate(ErrorEvent(e))

        return await asyncio.shield(closed)

    # -- Context manager and iteration ---------------------------------------

    async def __aenter__(self) -> "WebSocketClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def __aiter__(self) -> "WebSocketClient":
        return self

    async def __anext__(self) -> Message:
        try:
            return await self.receive()
        except NotConnectedError:
            raise StopAsyncIteration

    # -- Event handling ------------------------------------------------------

    def _dispatch(self, generation: int, event: TransportEvent) -> None:
        if generation != self._generation:
            self._logger.debug("stale_event_dropped", event=event.type.value)
            return
        self._handlers[event.type](event.data)

    def _handle_open(self, protocol: Optional[str]) -> None:
        if self._opened is None or self._opened.done():
            return
        self._state = ConnectionState.OPEN
        self._protocol = protocol
        log_connection_opened(self._logger, self._url, protocol=protocol)
        self._opened.set_result(None)

    def _handle_message(self, data: Message) -> None:
        if self._close_event is not None:
            return
        if not self._hand_off(data):
            self._messages.append(data)

    def _handle_close(self, event: CloseEvent) -> None:
        if self._state is ConnectionState.CONNECTING:
            self._fail_connect(f"Connection to {self._url} closed before opening: {event}", None)
            return
        self._terminate(event)

    def _handle_error(self, error: BaseException) -> None:
        if self._state is ConnectionState.CONNECTING:
            self._fail_connect(f"Failed to connect to {self._url}: {error}", error)
            return
        self._terminate(ErrorEvent(error))

    def _terminate(self, event: TerminalEvent) -> None:
        if self._close_event is not None:
            return
        self._close_event = event
        self._state = ConnectionState.CLOSED

        # The socket is dead; no more messages can arrive for the waiters.
        failed = self.pending_receivers
        while self._receivers:
            waiter = self._receivers.popleft()
            if not waiter.done():
                waiter.set_exception(TerminatedError(event))

        if isinstance(event, CloseEvent):
            log_connection_closed(
                self._logger, self._url, event.code, event.reason, event.was_clean,
                pending_receivers=failed,
            )
        else:
            log_connection_closed(
                self._logger, self._url, None, repr(event.error), False,
                pending_receivers=failed,
            )

        if self._closed is not None and not self._closed.done():
            self._closed.set_result(event)

    def _fail_connect(self, message: str, error: Optional[BaseException]) -> None:
        self._state = ConnectionState.CLOSED
        log_connection_failed(self._logger, self._url, reason=repr(error) if error else message)
        if self._opened is not None and not self._opened.done():
            exc = ConnectionError(message, error)
            exc.__cause__ = error
            self._opened.set_exception(exc)
        if self._closed is not None and not self._closed.done():
            self._closed.set_result(None)

    def _abort_connect(self) -> None:
        handle = self._handle
        self._generation += 1
        self._fail_connect(f"Connection attempt to {self._url} was aborted", None)
        if handle is not None:
            try:
                self._transport.close(handle)
            except Exception as e:
                self._logger.warning("close_failed", url=self._url, error=repr(e))

    def _hand_off(self, data: Message) -> bool:
        # A waiter cancelled by its caller stays queued until its task resumes.
        while self._receivers:
            waiter = self._receivers.popleft()
            if not waiter.done():
                waiter.set_result(data)
                return True
        return False

    def _requeue(self, data: Message) -> None:
        if not self._hand_off(data):
            self._messages.appendleft(data)

    def _reset(self) -> None:
        self._messages: Deque[Message] = deque()
        self._receivers: Deque[asyncio.Future] = deque()
        self._close_event: Optional[TerminalEvent] = None
        self._protocol = None
