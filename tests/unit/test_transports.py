"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
WsQueue, a product of Garudex Labs

Tests for the transport implementations.
"""

import asyncio

import pytest
from websockets.exceptions import ProtocolError

from wsqueue.config import TransportConfig
from wsqueue.exceptions import HandleNotOpenError, UnknownHandleError
from wsqueue.transport.base import (
    BaseTransport,
    CloseEvent,
    ErrorEvent,
    ReadyState,
    TransportEvent,
    TransportEventType,
)
from wsqueue.transport.mock import MockTransport
from wsqueue.transport.ws import WebSocketHandle, WebSocketTransport


async def _settle(rounds: int = 3) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class Recorder:
    """Listener that keeps every event it is given."""

    def __init__(self):
        self.events = []

    def __call__(self, event: TransportEvent) -> None:
        self.events.append(event)

    @property
    def types(self):
        return [event.type for event in self.events]


class FakeProtocol:
    def __init__(self):
        self.close_code = None
        self.close_reason = None
        self.close_rcvd = None
        self.close_sent = None


class FakeConnection:
    """Stands in for a websockets ClientConnection in close tests."""

    def __init__(self, reject_first=False):
        self.reject_first = reject_first
        self.calls = []
        self.protocol = FakeProtocol()

    async def close(self, code=1000, reason=""):
        self.calls.append((code, reason))
        if self.reject_first and len(self.calls) == 1:
            raise ProtocolError("invalid status code")
        self.protocol.close_code = code
        self.protocol.close_reason = reason
        self.protocol.close_rcvd = self.protocol.close_sent = (code, reason)


class TestEvents:
    def test_close_event_str(self):
        assert str(CloseEvent(1000, "bye")) == "closed with code 1000 (clean): bye"
        assert str(CloseEvent(1006, was_clean=False)) == "closed with code 1006 (unclean)"

    def test_error_event_str(self):
        assert "OSError" in str(ErrorEvent(OSError("reset")))

    def test_terminal_records_are_frozen(self):
        event = CloseEvent(1000)
        with pytest.raises(AttributeError):
            event.code = 1001

    def test_transports_implement_base(self):
        assert issubclass(MockTransport, BaseTransport)
        assert issubclass(WebSocketTransport, BaseTransport)


class TestMockTransport:
    @pytest.mark.asyncio
    async def test_open_records_handle(self):
        transport = MockTransport()
        recorder = Recorder()

        handle = transport.open("ws://example.test/", ["chat"], recorder)

        assert transport.last_handle is handle
        assert handle.url == "ws://example.test/"
        assert handle.protocols == ["chat"]
        assert transport.ready_state(handle) is ReadyState.CONNECTING
        await _settle()
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_auto_accept_dispatches_open_later(self):
        transport = MockTransport(auto_accept=True)
        recorder = Recorder()

        handle = transport.open("ws://example.test/", None, recorder)
        # Delivered on a later loop iteration, never synchronously.
        assert recorder.events == []

        await _settle()
        assert recorder.types == [TransportEventType.OPEN]
        assert transport.ready_state(handle) is ReadyState.OPEN

    @pytest.mark.asyncio
    async def test_events_keep_order(self):
        transport = MockTransport(auto_accept=True)
        recorder = Recorder()
        transport.open("ws://example.test/", None, recorder)

        transport.deliver("a")
        transport.deliver(b"b")
        transport.remote_close(1000, "bye")
        await _settle()

        assert recorder.types == [
            TransportEventType.OPEN,
            TransportEventType.MESSAGE,
            TransportEventType.MESSAGE,
            TransportEventType.CLOSE,
        ]
        assert [e.data for e in recorder.events[1:3]] == ["a", b"b"]
        assert recorder.events[3].data == CloseEvent(1000, "bye", True)

    @pytest.mark.asyncio
    async def test_nothing_delivered_after_close(self):
        transport = MockTransport(auto_accept=True)
        recorder = Recorder()
        transport.open("ws://example.test/", None, recorder)

        transport.remote_close()
        transport.deliver("ghost")
        await _settle()

        assert recorder.types == [TransportEventType.OPEN, TransportEventType.CLOSE]

    @pytest.mark.asyncio
    async def test_send_requires_open_handle(self):
        transport = MockTransport()
        handle = transport.open("ws://example.test/", None, Recorder())

        with pytest.raises(HandleNotOpenError):
            transport.send(handle, "too early")

        transport.accept()
        await _settle()
        transport.send(handle, "hello")
        assert transport.sent == ["hello"]

    @pytest.mark.asyncio
    async def test_close_completes_handshake(self):
        transport = MockTransport(auto_accept=True)
        recorder = Recorder()
        handle = transport.open("ws://example.test/", None, recorder)
        await _settle()

        transport.close(handle)
        assert transport.ready_state(handle) is ReadyState.CLOSING
        await _settle()

        assert transport.ready_state(handle) is ReadyState.CLOSED
        assert recorder.events[-1].data == CloseEvent(1005, "", True)

    @pytest.mark.asyncio
    async def test_close_twice_is_harmless(self):
        transport = MockTransport(auto_accept=True)
        recorder = Recorder()
        handle = transport.open("ws://example.test/", None, recorder)
        await _settle()

        transport.close(handle, 1000, "one")
        transport.close(handle, 1000, "two")
        await _settle()

        assert handle.close_requests == [(1000, "one")]
        assert recorder.types.count(TransportEventType.CLOSE) == 1

    @pytest.mark.asyncio
    async def test_close_while_connecting_suppresses_open(self):
        transport = MockTransport(auto_close=False)
        recorder = Recorder()
        handle = transport.open("ws://example.test/", None, recorder)

        transport.close(handle)
        transport.accept()
        await _settle()

        assert recorder.events == []
        assert transport.ready_state(handle) is ReadyState.CLOSING

    def test_unknown_handle_rejected(self):
        transport = MockTransport()
        other = MockTransport()

        with pytest.raises(UnknownHandleError):
            transport.ready_state(object())
        with pytest.raises(UnknownHandleError):
            transport.last_handle
        with pytest.raises(UnknownHandleError):
            other.close(object())


class TestWebSocketTransport:
    def test_from_config(self):
        config = TransportConfig(
            open_timeout=2.0,
            close_timeout=1.0,
            ping_interval=None,
            ping_timeout=None,
            max_size=None,
        )
        transport = WebSocketTransport.from_config(config)

        assert transport._open_timeout == 2.0
        assert transport._close_timeout == 1.0
        assert transport._ping_interval is None
        assert transport._ping_timeout is None
        assert transport._max_size is None

    def test_rejects_foreign_handle(self):
        transport = WebSocketTransport()
        with pytest.raises(UnknownHandleError):
            transport.ready_state("not-a-handle")

    @pytest.mark.asyncio
    async def test_send_requires_open_handle(self):
        transport = WebSocketTransport()
        handle = WebSocketHandle("ws://example.test/", [], Recorder())

        with pytest.raises(HandleNotOpenError):
            transport.send(handle, "too early")

    @pytest.mark.asyncio
    async def test_send_rejects_non_bytes_payload(self):
        transport = WebSocketTransport()
        handle = WebSocketHandle("ws://example.test/", [], Recorder())
        handle.state = ReadyState.OPEN

        with pytest.raises(TypeError):
            transport.send(handle, {"not": "a frame"})
        assert handle.outbound.empty()

    @pytest.mark.asyncio
    async def test_send_queues_in_order(self):
        transport = WebSocketTransport()
        handle = WebSocketHandle("ws://example.test/", [], Recorder())
        handle.state = ReadyState.OPEN

        transport.send(handle, "one")
        transport.send(handle, b"two")

        assert handle.outbound.get_nowait() == "one"
        assert handle.outbound.get_nowait() == b"two"

    @pytest.mark.asyncio
    async def test_close_while_connecting_only_marks_closing(self):
        transport = WebSocketTransport()
        handle = WebSocketHandle("ws://example.test/", [], Recorder())

        transport.close(handle, 4000, "bye")

        assert transport.ready_state(handle) is ReadyState.CLOSING
        assert handle.close_requested == (4000, "bye")

    @pytest.mark.asyncio
    async def test_close_defaults_to_normal_closure(self):
        transport = WebSocketTransport()
        handle = WebSocketHandle("ws://example.test/", [], Recorder())

        transport.close(handle)

        assert handle.close_requested == (1000, "")

    @pytest.mark.asyncio
    async def test_unreachable_host_reports_error(self):
        transport = WebSocketTransport(open_timeout=2.0)
        recorder = Recorder()

        # Port 1 on localhost is essentially never listening.
        handle = transport.open("ws://127.0.0.1:1/", None, recorder)
        await asyncio.wait_for(handle.task, timeout=5.0)

        assert recorder.types == [TransportEventType.ERROR]
        assert transport.ready_state(handle) is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_invalid_uri_reports_error(self):
        transport = WebSocketTransport()
        recorder = Recorder()

        handle = transport.open("http://not-a-websocket/", None, recorder)
        await asyncio.wait_for(handle.task, timeout=5.0)

        assert recorder.types == [TransportEventType.ERROR]

    @pytest.mark.asyncio
    async def test_rejected_close_falls_back_and_reports_error(self):
        transport = WebSocketTransport()
        handle = WebSocketHandle("ws://example.test/", [], Recorder())
        connection = FakeConnection(reject_first=True)
        handle.close_requested = (1005, "x")

        await transport._close_connection(handle, connection)

        assert connection.calls == [(1005, "x"), (1000, "")]
        assert isinstance(handle.close_error, ProtocolError)
        event = transport._closed_event(handle, connection)
        assert event.type is TransportEventType.ERROR
        assert event.data is handle.close_error

    @pytest.mark.asyncio
    async def test_accepted_close_reports_close_event(self):
        transport = WebSocketTransport()
        handle = WebSocketHandle("ws://example.test/", [], Recorder())
        connection = FakeConnection()
        handle.close_requested = (4000, "bye")

        await transport._close_connection(handle, connection)

        assert connection.calls == [(4000, "bye")]
        assert handle.close_error is None
        event = transport._closed_event(handle, connection)
        assert event.type is TransportEventType.CLOSE
        assert event.data == CloseEvent(4000, "bye", True)
