"""Shared fakes and fixtures for the cosyvoice_streamer test suite.

WHY: The receiver loop, sender sequencer, and session orchestrator all talk
to a channel. Tests need a channel whose inbound frames and outbound
failures are scripted, so protocol behavior can be checked without a
network.

HOW: FakeChannel implements the same send()/receive() surface as
WebSocketChannel on top of an asyncio.Queue. Frames can be preloaded, or
produced by a responder callable that plays the server's side for every
command sent. make_connect() wraps a FakeChannel in an async context
manager with the same signature as open_channel().

RULES:
- CLOSE_CLEAN / CLOSE_ERROR sentinels in the inbound queue end the stream
- send() never suspends, so a sender runs until its next real await
- Every sent command is recorded as raw JSON text in channel.sent
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import pytest

from cosyvoice_streamer.core.readiness import ReadinessSignal
from cosyvoice_streamer.errors import ChannelClosedError, TransmissionError

CLOSE_CLEAN = object()
CLOSE_ERROR = object()

Responder = Callable[[Dict[str, Any]], List[Any]]


def event_frame(event: str, task_id: str = "server-task", **header: Any) -> str:
    """Build an inbound text frame carrying a lifecycle event."""
    header_fields = {"event": event, "task_id": task_id}
    header_fields.update(header)
    return json.dumps({"header": header_fields, "payload": {}})


class FakeChannel:
    """Scripted channel standing in for WebSocketChannel."""

    def __init__(
        self,
        frames: Iterable[Any] = (),
        responder: Optional[Responder] = None,
        fail_on: Optional[str] = None,
        log: Optional[List[str]] = None,
    ) -> None:
        self._inbound: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self._inbound.put_nowait(frame)
        self._responder = responder
        self._fail_on = fail_on
        self.sent: List[str] = []
        self.log = log if log is not None else []
        self.readiness: Optional[ReadinessSignal] = None
        self.ready_at_send: List[tuple] = []

    @property
    def sent_commands(self) -> List[Dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    @property
    def sent_actions(self) -> List[str]:
        return [cmd["header"]["action"] for cmd in self.sent_commands]

    @property
    def pending_frames(self) -> int:
        return self._inbound.qsize()

    def push(self, frame: Any) -> None:
        self._inbound.put_nowait(frame)

    async def send(self, text: str) -> None:
        command = json.loads(text)
        action = command["header"]["action"]
        if action == self._fail_on:
            # The transport died: the inbound side ends too.
            self.push(CLOSE_ERROR)
            raise TransmissionError("simulated transport failure")
        self.sent.append(text)
        self.log.append("send:{}".format(action))
        if self.readiness is not None:
            self.ready_at_send.append((action, self.readiness.is_ready))
        if self._responder is not None:
            for frame in self._responder(command):
                self.push(frame)

    async def receive(self) -> Union[str, bytes]:
        frame = await self._inbound.get()
        if frame is CLOSE_CLEAN:
            raise ChannelClosedError("closed by peer", clean=True)
        if frame is CLOSE_ERROR:
            raise ChannelClosedError("connection reset", clean=False)
        return frame


def tts_server(
    audio_per_text: Optional[Callable[[int], bytes]] = None,
    fail_message: Optional[str] = None,
    start: bool = True,
) -> Responder:
    """Responder that behaves like the synthesis service.

    RULES:
    - run-task -> task-started (or task-failed when fail_message is set,
      or nothing at all when start is False)
    - continue-task -> result-generated followed by one audio frame
    - finish-task -> task-finished
    """
    audio_per_text = audio_per_text or (lambda n: "audio-{}|".format(n).encode())
    counter = {"n": 0}

    def respond(command: Dict[str, Any]) -> List[Any]:
        action = command["header"]["action"]
        task_id = command["header"]["task_id"]
        if action == "run-task":
            if fail_message is not None:
                return [event_frame("task-failed", task_id, error_message=fail_message)]
            return [event_frame("task-started", task_id)] if start else []
        if action == "continue-task":
            counter["n"] += 1
            return [event_frame("result-generated", task_id), audio_per_text(counter["n"])]
        if action == "finish-task":
            return [event_frame("task-finished", task_id)]
        return []

    return respond


def make_connect(channel: Optional[FakeChannel] = None, error: Optional[Exception] = None):
    """Return an open_channel replacement that yields channel or raises error."""
    calls: List[Dict[str, Any]] = []

    @contextlib.asynccontextmanager
    async def connect(endpoint: str, api_key: str, *, data_inspection: bool = True):
        calls.append({
            "endpoint": endpoint,
            "api_key": api_key,
            "data_inspection": data_inspection,
        })
        if error is not None:
            raise error
        yield channel

    connect.calls = calls
    return connect


@pytest.fixture
def output_file(tmp_path):
    """Path of a not-yet-existing audio output file."""
    return tmp_path / "output.mp3"
