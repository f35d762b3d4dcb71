"""Unit tests for the WebSocket transport adapter.

Tests cover:
- Handshake header construction
- Exception translation in WebSocketChannel.send()/receive()
- open_channel() connect arguments, failure mapping, and cleanup
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from websockets import exceptions as ws_exceptions

from cosyvoice_streamer.api.transport import (
    DATA_INSPECTION_HEADER,
    WebSocketChannel,
    build_headers,
    open_channel,
)
from cosyvoice_streamer.errors import (
    ChannelClosedError,
    ConnectionFailedError,
    SessionPhase,
    TransmissionError,
)


class TestBuildHeaders:

    def test_bearer_and_inspection_headers(self):
        headers = build_headers("sk-123")
        assert headers["Authorization"] == "bearer sk-123"
        assert headers[DATA_INSPECTION_HEADER] == "enable"

    def test_inspection_header_can_be_disabled(self):
        headers = build_headers("sk-123", data_inspection=False)
        assert DATA_INSPECTION_HEADER not in headers
        assert headers["Authorization"] == "bearer sk-123"


class TestWebSocketChannel:

    def test_receive_returns_text_and_binary(self):
        connection = AsyncMock()
        connection.recv.side_effect = ['{"header": {}}', b"\x00\x01"]
        channel = WebSocketChannel(connection)

        async def _run():
            return [await channel.receive(), await channel.receive()]

        assert asyncio.run(_run()) == ['{"header": {}}', b"\x00\x01"]

    def test_clean_close_is_reported_as_clean(self):
        connection = AsyncMock()
        connection.recv.side_effect = ws_exceptions.ConnectionClosedOK(None, None)
        with pytest.raises(ChannelClosedError) as exc_info:
            asyncio.run(WebSocketChannel(connection).receive())
        assert exc_info.value.clean is True

    def test_abnormal_close_is_reported_as_error(self):
        connection = AsyncMock()
        connection.recv.side_effect = ws_exceptions.ConnectionClosedError(None, None)
        with pytest.raises(ChannelClosedError) as exc_info:
            asyncio.run(WebSocketChannel(connection).receive())
        assert exc_info.value.clean is False
        assert exc_info.value.phase is SessionPhase.RECEIVE

    def test_os_error_on_receive_is_an_error_close(self):
        connection = AsyncMock()
        connection.recv.side_effect = ConnectionResetError("reset by peer")
        with pytest.raises(ChannelClosedError) as exc_info:
            asyncio.run(WebSocketChannel(connection).receive())
        assert exc_info.value.clean is False

    def test_send_passes_text_through(self):
        connection = AsyncMock()
        asyncio.run(WebSocketChannel(connection).send('{"a": 1}'))
        connection.send.assert_awaited_once_with('{"a": 1}')

    def test_send_on_closed_connection_raises_transmission_error(self):
        connection = AsyncMock()
        connection.send.side_effect = ws_exceptions.ConnectionClosedError(None, None)
        with pytest.raises(TransmissionError):
            asyncio.run(WebSocketChannel(connection).send("{}"))


class TestOpenChannel:

    def test_connects_with_headers_and_closes_on_exit(self):
        connection = AsyncMock()

        async def _run():
            async with open_channel("wss://example.test/ws", "sk-abc") as channel:
                assert isinstance(channel, WebSocketChannel)

        with patch(
            "cosyvoice_streamer.api.transport.connect",
            new=AsyncMock(return_value=connection),
        ) as connect_mock:
            asyncio.run(_run())

        args, kwargs = connect_mock.call_args
        assert args == ("wss://example.test/ws",)
        assert kwargs["additional_headers"] == {
            "Authorization": "bearer sk-abc",
            DATA_INSPECTION_HEADER: "enable",
        }
        connection.close.assert_awaited_once()

    def test_closes_connection_when_body_raises(self):
        connection = AsyncMock()

        async def _run():
            async with open_channel("wss://example.test/ws", "sk-abc"):
                raise RuntimeError("boom")

        with patch(
            "cosyvoice_streamer.api.transport.connect",
            new=AsyncMock(return_value=connection),
        ):
            with pytest.raises(RuntimeError):
                asyncio.run(_run())

        connection.close.assert_awaited_once()

    @pytest.mark.parametrize(
        "error",
        [
            ConnectionRefusedError("connection refused"),
            ws_exceptions.InvalidURI("not-a-url", "scheme isn't ws or wss"),
            asyncio.TimeoutError(),
        ],
    )
    def test_connect_failures_raise_connection_failed(self, error):
        async def _run():
            async with open_channel("wss://example.test/ws", "sk-secret"):
                pass

        with patch(
            "cosyvoice_streamer.api.transport.connect",
            new=AsyncMock(side_effect=error),
        ):
            with pytest.raises(ConnectionFailedError) as exc_info:
                asyncio.run(_run())

        assert exc_info.value.endpoint == "wss://example.test/ws"
        assert exc_info.value.phase is SessionPhase.CONNECT
        assert "sk-secret" not in str(exc_info.value)
