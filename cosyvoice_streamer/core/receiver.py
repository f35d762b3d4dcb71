"""Receiver loop: demultiplexes events and audio from the inbound channel.

WHY: The server interleaves JSON lifecycle events and binary audio frames
on one connection. Something has to own the read half, route each frame to
the right place, tell the sender when the task has started, and decide
when the session is over, all without blocking the sender.

HOW: ReceiverLoop.run() pulls frames until it reaches STOPPED. Binary
frames go to AudioSink.append(); text frames go through decode_event().
task-started resolves the ReadinessSignal, task-finished/task-failed stop
the loop, and the channel closing stops it with a clean or error reason.
The outcome is returned as a ReceiverResult instead of being raised, so the
orchestrator can weigh it against the sender's outcome.

RULES:
- States: AWAITING_FRAME -> DISPATCHING -> AWAITING_FRAME ... -> STOPPED
- Malformed text frames are logged and counted; the loop continues
- Unrecognized events are logged and counted; the loop continues
- A sink failure stops the loop; frames after it are not consumed
- If the loop exits before task-started, for any reason including an
  unexpected exception or cancellation, the readiness signal is abandoned
  so a waiting sender wakes up
- The loop never calls into the sender
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from cosyvoice_streamer.api.events import decode_event
from cosyvoice_streamer.api.models import EventKind, LifecycleEvent
from cosyvoice_streamer.api.transport import InboundChannel
from cosyvoice_streamer.core.readiness import ReadinessSignal
from cosyvoice_streamer.core.sink import AudioSink
from cosyvoice_streamer.errors import ChannelClosedError, EventDecodeError, SinkError, StreamerError

logger = logging.getLogger(__name__)


class ReceiverState(str, enum.Enum):
    AWAITING_FRAME = "awaiting-frame"
    DISPATCHING = "dispatching"
    STOPPED = "stopped"


class StopReason(str, enum.Enum):
    """Why the receiver loop stopped.

    RULES:
    - finished / task_failed: the server sent a terminal lifecycle event
    - clean_close: the server closed the connection without an error
    - error_close: the connection dropped or the transport failed
    - sink_error: writing audio to the output file failed
    """

    FINISHED = "finished"
    TASK_FAILED = "task_failed"
    CLEAN_CLOSE = "clean_close"
    ERROR_CLOSE = "error_close"
    SINK_ERROR = "sink_error"


@dataclass
class ReceiverResult:
    """Summary of one receiver loop run."""

    reason: StopReason
    terminal_event: Optional[LifecycleEvent] = None
    error: Optional[StreamerError] = None
    frames_received: int = 0
    decode_failures: int = 0
    unrecognized_events: int = 0


class ReceiverLoop:
    """Owns the read half of the channel for one session."""

    def __init__(
        self,
        channel: InboundChannel,
        sink: AudioSink,
        readiness: ReadinessSignal,
    ) -> None:
        self._channel = channel
        self._sink = sink
        self._readiness = readiness
        self.state = ReceiverState.AWAITING_FRAME
        self._result: Optional[ReceiverResult] = None
        self._frames_received = 0
        self._decode_failures = 0
        self._unrecognized_events = 0

    async def run(self) -> ReceiverResult:
        """Consume frames until a terminal event, a sink error, or channel close."""
        interrupted = "receiver stopped unexpectedly"
        try:
            while self.state is not ReceiverState.STOPPED:
                try:
                    frame = await self._channel.receive()
                except ChannelClosedError as e:
                    if e.clean:
                        logger.info("Server closed the connection")
                        self._stop(StopReason.CLEAN_CLOSE)
                    else:
                        logger.error("Received error from WebSocket: %s", e)
                        self._stop(StopReason.ERROR_CLOSE, error=e)
                    break

                self._frames_received += 1
                self.state = ReceiverState.DISPATCHING
                if isinstance(frame, (bytes, bytearray, memoryview)):
                    self._handle_binary(bytes(frame))
                else:
                    self._handle_text(frame)
                if self.state is ReceiverState.DISPATCHING:
                    self.state = ReceiverState.AWAITING_FRAME
        except asyncio.CancelledError:
            interrupted = "receiver cancelled"
            raise
        finally:
            self.state = ReceiverState.STOPPED
            # The sender may be parked on the signal; wake it on every exit path.
            if not self._readiness.is_ready:
                self._readiness.abandon(
                    self._describe_stop() if self._result is not None else interrupted
                )

        assert self._result is not None
        return self._result

    # ------------------------------------------------------------------
    # Frame handlers
    # ------------------------------------------------------------------

    def _handle_binary(self, data: bytes) -> None:
        try:
            self._sink.append(data)
        except SinkError as e:
            logger.error("Failed to write binary data to file: %s", e)
            self._stop(StopReason.SINK_ERROR, error=e)
            return
        logger.debug("Wrote %d bytes of audio", len(data))

    def _handle_text(self, text: str) -> None:
        try:
            event = decode_event(text)
        except EventDecodeError as e:
            self._decode_failures += 1
            logger.warning("Failed to handle event: %s (frame: %r)", e, e.raw)
            return

        if event.kind is EventKind.STARTED:
            logger.info("Received task-started event")
            self._readiness.set_ready()
        elif event.kind is EventKind.PROGRESS:
            logger.debug("Received %s event", event.name)
        elif event.kind is EventKind.FINISHED:
            logger.info("Task finished")
            self._stop(StopReason.FINISHED, event=event)
        elif event.kind is EventKind.FAILED:
            logger.error("Task failed: %s", event.error_message)
            self._stop(StopReason.TASK_FAILED, event=event)
        else:
            self._unrecognized_events += 1
            logger.warning("Unexpected event: %s", event.raw)

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _stop(
        self,
        reason: StopReason,
        event: Optional[LifecycleEvent] = None,
        error: Optional[StreamerError] = None,
    ) -> None:
        self.state = ReceiverState.STOPPED
        self._result = ReceiverResult(
            reason=reason,
            terminal_event=event,
            error=error,
            frames_received=self._frames_received,
            decode_failures=self._decode_failures,
            unrecognized_events=self._unrecognized_events,
        )

    def _describe_stop(self) -> str:
        assert self._result is not None
        if self._result.terminal_event is not None and self._result.terminal_event.error_message:
            return "{} ({})".format(self._result.reason.value, self._result.terminal_event.error_message)
        if self._result.error is not None:
            return "{} ({})".format(self._result.reason.value, self._result.error)
        return self._result.reason.value
