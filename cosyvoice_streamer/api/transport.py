"""WebSocket channel acquisition and the send/receive adapter.

WHY: The protocol core only needs two things from the network: "send this
text frame" and "give me the next frame". Hiding the websockets library
behind a small adapter lets the receiver loop and sender sequencer be
tested with scripted fakes and keeps library exceptions out of the state
machine.

HOW: open_channel() is an async context manager around
websockets.asyncio.client.connect(). It always attaches the bearer
Authorization header and, unless disabled, the DashScope data inspection
header. The yielded WebSocketChannel translates library exceptions into
TransmissionError (send) and ChannelClosedError (receive), distinguishing
a clean close handshake from an abnormal one.

RULES:
- One routine builds every connection; headers are never assembled elsewhere
- Connection/handshake failures raise ConnectionFailedError
- The credential never appears in log lines or exception messages
- The receiver only calls receive(); the sender only calls send()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Dict, Protocol, Union

from websockets import exceptions as ws_exceptions
from websockets.asyncio.client import ClientConnection, connect

from cosyvoice_streamer.errors import (
    ChannelClosedError,
    ConnectionFailedError,
    TransmissionError,
)

logger = logging.getLogger(__name__)

Frame = Union[str, bytes]

DATA_INSPECTION_HEADER = "X-DashScope-DataInspection"

_OPEN_TIMEOUT_S = 30.0
_PING_INTERVAL_S = 30.0
_PING_TIMEOUT_S = 10.0


class InboundChannel(Protocol):
    """Read half of a channel, owned by the receiver loop."""

    async def receive(self) -> Frame:
        ...


class OutboundChannel(Protocol):
    """Write half of a channel, owned by the sender sequencer."""

    async def send(self, text: str) -> None:
        ...


def build_headers(api_key: str, data_inspection: bool = True) -> Dict[str, str]:
    """Return the handshake headers for a DashScope WebSocket connection."""
    headers = {"Authorization": "bearer {}".format(api_key)}
    if data_inspection:
        headers[DATA_INSPECTION_HEADER] = "enable"
    return headers


class WebSocketChannel:
    """Adapter exposing a websockets connection as send()/receive().

    RULES:
    - receive() returns str for text frames and bytes for binary frames
    - receive() raises ChannelClosedError(clean=...) once the peer is gone
    - send() raises TransmissionError on any transport failure
    """

    def __init__(self, connection: ClientConnection) -> None:
        self._connection = connection

    async def send(self, text: str) -> None:
        try:
            await self._connection.send(text)
        except ws_exceptions.ConnectionClosed as e:
            raise TransmissionError("Connection closed while sending: {}".format(e)) from e
        except OSError as e:
            raise TransmissionError("Transport error while sending: {}".format(e)) from e

    async def receive(self) -> Frame:
        try:
            return await self._connection.recv()
        except ws_exceptions.ConnectionClosedOK as e:
            raise ChannelClosedError("Connection closed: {}".format(e), clean=True) from e
        except ws_exceptions.ConnectionClosedError as e:
            raise ChannelClosedError("Connection lost: {}".format(e), clean=False) from e
        except OSError as e:
            raise ChannelClosedError("Transport error while receiving: {}".format(e), clean=False) from e

    async def close(self) -> None:
        await self._connection.close()


@contextlib.asynccontextmanager
async def open_channel(
    endpoint: str,
    api_key: str,
    *,
    data_inspection: bool = True,
) -> AsyncIterator[WebSocketChannel]:
    """Open an authenticated WebSocket channel to the synthesis service.

    WHY: Every session starts with the same handshake. Collapsing it into
    one routine guarantees the authentication and inspection headers are
    always present.

    HOW: Connects with websockets, wraps the connection in a
    WebSocketChannel, and closes it when the context exits.

    RULES:
    - Raises ConnectionFailedError for handshake rejections (e.g. HTTP 401),
      invalid URIs, DNS/socket errors, and open timeouts
    - The connection is closed on exit, even when the body raised

    Args:
        endpoint: WebSocket URL of the inference endpoint.
        api_key: DashScope API key, sent as a bearer token.
        data_inspection: Whether to send the data inspection header.

    Yields:
        A connected WebSocketChannel.
    """
    logger.info("Connecting to %s", endpoint)
    try:
        connection = await connect(
            endpoint,
            additional_headers=build_headers(api_key, data_inspection),
            open_timeout=_OPEN_TIMEOUT_S,
            ping_interval=_PING_INTERVAL_S,
            ping_timeout=_PING_TIMEOUT_S,
            max_size=None,
        )
    except (ws_exceptions.WebSocketException, OSError, asyncio.TimeoutError) as e:
        raise ConnectionFailedError(
            "Failed to connect to {}: {}".format(endpoint, e),
            endpoint=endpoint,
        ) from e

    logger.info("WebSocket connected")
    channel = WebSocketChannel(connection)
    try:
        yield channel
    finally:
        await channel.close()
        logger.debug("WebSocket closed")
