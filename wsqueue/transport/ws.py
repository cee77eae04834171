"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
WsQueue, a product of Garudex Labs

WebSocket transport built on the ``websockets`` library (default).
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, List, Optional, Sequence, Set, Tuple

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from wsqueue.config.settings import TransportConfig
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

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
INTERNAL_ERROR = 1011


class WebSocketHandle:
    """Handle returned by ``WebSocketTransport.open``.

    Owns the connection task, the outbound queue drained by the writer task
    and the close request, if any.
    """

    def __init__(self, url: str, protocols: List[str], listener: TransportListener) -> None:
        self.url = url
        self.protocols = protocols
        self.listener = listener
        self.state = ReadyState.CONNECTING
        self.connection: Optional[ClientConnection] = None
        self.outbound: asyncio.Queue = asyncio.Queue()
        self.close_requested: Optional[Tuple[int, str]] = None
        self.close_error: Optional[BaseException] = None
        self.task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"WebSocketHandle(url={self.url!r}, state={self.state.value})"


class WebSocketTransport(BaseTransport):
    """WebSocket transport using ``websockets.asyncio.client``.

    Each handle runs one task that performs the handshake, then reads frames
    in order and reports them to the listener. Text frames arrive as ``str``
    and binary frames as ``bytes``.

    Args:
        open_timeout: Handshake timeout in seconds.
        close_timeout: Close handshake timeout in seconds.
        ping_interval: Keepalive ping interval in seconds, None to disable.
        ping_timeout: Pong deadline in seconds, None to disable.
        max_size: Maximum inbound message size in bytes, None for no limit.
    """

    def __init__(
        self,
        open_timeout: float = 10.0,
        close_timeout: float = 10.0,
        ping_interval: Optional[float] = 20.0,
        ping_timeout: Optional[float] = 20.0,
        max_size: Optional[int] = 2 ** 20,
    ) -> None:
        self._open_timeout = open_timeout
        self._close_timeout = close_timeout
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._max_size = max_size
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: TransportConfig) -> "WebSocketTransport":
        """Build a transport from the ``transport`` configuration section."""
        return cls(
            open_timeout=config.open_timeout,
            close_timeout=config.close_timeout,
            ping_interval=config.ping_interval,
            ping_timeout=config.ping_timeout,
            max_size=config.max_size,
        )

    # -- BaseTransport ------------------------------------------------------

    def open(
        self,
        url: str,
        protocols: Optional[Sequence[str]],
        listener: TransportListener,
    ) -> WebSocketHandle:
        handle = WebSocketHandle(url, list(protocols or []), listener)
        handle.task = self._spawn(self._run(handle))
        return handle

    def send(self, handle: WebSocketHandle, data: Message) -> None:
        self._check(handle)
        if handle.state is not ReadyState.OPEN:
            raise HandleNotOpenError(f"Cannot send on {handle!r}")
        if not isinstance(data, (str, bytes, bytearray, memoryview)):
            raise TypeError(f"WebSocket payload must be str or bytes-like, got {type(data).__name__}")
        handle.outbound.put_nowait(data)

    def close(
        self,
        handle: WebSocketHandle,
        code: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        self._check(handle)
        if handle.state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return
        handle.state = ReadyState.CLOSING
        handle.close_requested = (
            code if code is not None else NORMAL_CLOSURE,
            reason or "",
        )
        # While connecting, the connection task closes right after the handshake.
        if handle.connection is not None:
            self._spawn(self._close_connection(handle, handle.connection))

    def ready_state(self, handle: WebSocketHandle) -> ReadyState:
        self._check(handle)
        return handle.state

    # -- Connection task ----------------------------------------------------

    async def _run(self, handle: WebSocketHandle) -> None:
        try:
            connection = await connect(
                handle.url,
                subprotocols=handle.protocols or None,
                open_timeout=self._open_timeout,
                close_timeout=self._close_timeout,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_timeout,
                max_size=self._max_size,
            )
        except Exception as e:
            logger.debug("handshake_failed", url=handle.url, error=repr(e))
            self._finish(handle, TransportEvent(TransportEventType.ERROR, e))
            return

        handle.connection = connection

        if handle.close_requested is not None:
            await self._close_connection(handle, connection)
            self._finish(handle, self._closed_event(handle, connection))
            return

        handle.state = ReadyState.OPEN
        handle.listener(TransportEvent(TransportEventType.OPEN, connection.subprotocol))

        writer = asyncio.get_running_loop().create_task(self._write_loop(handle, connection))
        try:
            async for message in connection:
                handle.listener(TransportEvent(TransportEventType.MESSAGE, message))
        except ConnectionClosed:
            pass
        except Exception as e:
            logger.warning("transport_read_failed", url=handle.url, error=repr(e), exc_info=True)
            await connection.close(INTERNAL_ERROR)
            self._finish(handle, TransportEvent(TransportEventType.ERROR, e))
            return
        finally:
            writer.cancel()

        await connection.wait_closed()
        self._finish(handle, self._closed_event(handle, connection))

    async def _close_connection(self, handle: WebSocketHandle, connection: ClientConnection) -> None:
        code, reason = handle.close_requested
        try:
            await connection.close(code, reason)
        except Exception as e:
            # websockets rejects reserved codes and reasons over 123 bytes
            # before sending anything; the socket is still open.
            logger.warning("close_rejected", url=handle.url, code=code, error=repr(e))
            handle.close_error = e
            await connection.close()

    async def _write_loop(self, handle: WebSocketHandle, connection: ClientConnection) -> None:
        while True:
            data = await handle.outbound.get()
            try:
                await connection.send(data)
            except ConnectionClosed:
                # The reader reports the close.
                return

    # -- Internals ----------------------------------------------------------

    @staticmethod
    def _describe_close(connection: ClientConnection) -> CloseEvent:
        protocol = connection.protocol
        code = protocol.close_code
        return CloseEvent(
            code=int(code) if code is not None else ABNORMAL_CLOSURE,
            reason=protocol.close_reason or "",
            was_clean=protocol.close_rcvd is not None and protocol.close_sent is not None,
        )

    @classmethod
    def _closed_event(cls, handle: WebSocketHandle, connection: ClientConnection) -> TransportEvent:
        if handle.close_error is not None:
            return TransportEvent(TransportEventType.ERROR, handle.close_error)
        return TransportEvent(TransportEventType.CLOSE, cls._describe_close(connection))

    @staticmethod
    def _finish(handle: WebSocketHandle, event: TransportEvent) -> None:
        handle.state = ReadyState.CLOSED
        handle.listener(event)

    @staticmethod
    def _check(handle: Any) -> None:
        if not isinstance(handle, WebSocketHandle):
            raise UnknownHandleError(f"Handle {handle!r} was not opened by a WebSocketTransport")

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
