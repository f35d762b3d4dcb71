"""Session orchestrator: wires transport, sink, receiver, and sender.

WHY: A synthesis session has a fixed choreography: connect, clear the
output file, start listening, send the commands, wait for the server to
finish, then decide what happened. Scattering that across callers (CLI,
tests, library users) would duplicate the ordering rules and the outcome
logic. run_session() is the single place that knows both.

HOW: Opens a channel through the injected connect routine, resets the
AudioSink, spawns ReceiverLoop.run() as an asyncio task, runs the
SenderSequencer in the calling coroutine, then joins the receiver (bounded
by the session timeout). The receiver's result and the sender's error are
combined into either a SessionReport or a raised StreamerError.

RULES:
- Connection failure: nothing is reset, no task is spawned
- Reset failure: no task is spawned, no command is sent
- The receiver task is always joined (or cancelled and joined) before
  run_session returns or raises
- A server task-failed event is a completed run: SessionReport with
  outcome FAILED, never an exception
- Every other failure raises the StreamerError naming the failing phase
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncContextManager, List, Optional

from cosyvoice_streamer.api.transport import open_channel
from cosyvoice_streamer.config import SessionSettings, SynthesisParameters, normalize_timeout
from cosyvoice_streamer.core.readiness import ReadinessSignal
from cosyvoice_streamer.core.receiver import ReceiverLoop, ReceiverResult, StopReason
from cosyvoice_streamer.core.sender import SenderSequencer
from cosyvoice_streamer.core.sink import AudioSink
from cosyvoice_streamer.errors import (
    ChannelClosedError,
    ReadinessAbandonedError,
    ReadinessTimeoutError,
    ReceiveError,
    SessionTimeoutError,
    StreamerError,
    TransmissionError,
    UnexpectedCloseError,
)

logger = logging.getLogger(__name__)

ChannelFactory = Callable[..., AsyncContextManager[Any]]

# How long the receiver may keep draining after the sender has failed.
_DRAIN_AFTER_SENDER_FAILURE_S = 5.0


class TaskOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SessionReport:
    """Result of a session that reached a terminal task event.

    RULES:
    - outcome SUCCEEDED: the server sent task-finished
    - outcome FAILED: the server sent task-failed; error_message holds its
      text or the unknown-reason sentinel
    - bytes_written is the size of the output file after the session
    """

    task_id: str
    outcome: TaskOutcome
    output_path: Path
    bytes_written: int = 0
    fragments_written: int = 0
    texts_sent: int = 0
    error_message: Optional[str] = None
    decode_failures: int = 0
    unrecognized_events: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome is TaskOutcome.SUCCEEDED


async def run_session(
    texts: Iterable[str],
    *,
    api_key: str,
    output_path: Path | str,
    parameters: Optional[SynthesisParameters] = None,
    settings: Optional[SessionSettings] = None,
    connect: ChannelFactory = open_channel,
    on_status: Optional[Callable[[str], None]] = None,
) -> SessionReport:
    """Synthesize texts into output_path over one duplex session.

    Args:
        texts: Text units, streamed to the server in this order.
        api_key: DashScope API key.
        output_path: File that receives the audio; truncated first.
        parameters: Synthesis parameters for run-task (config defaults if None).
        settings: Endpoint and timeouts (config defaults if None).
        connect: Channel factory, open_channel unless injected for tests.
        on_status: Optional callback for human-readable progress lines.

    Returns:
        SessionReport with outcome SUCCEEDED or FAILED.

    Raises:
        ConnectionFailedError, SinkError, TransmissionError,
        ReadinessTimeoutError, ReadinessAbandonedError, ReceiveError,
        UnexpectedCloseError, SessionTimeoutError.
    """
    settings = settings or SessionSettings()
    units: List[str] = list(texts)
    sink = AudioSink(output_path)
    readiness = ReadinessSignal()

    if on_status:
        on_status("Connecting to {}...".format(settings.endpoint))

    async with connect(
        settings.endpoint,
        api_key,
        data_inspection=settings.data_inspection,
    ) as channel:
        sink.reset()
        if on_status:
            on_status("Cleared output file {}".format(sink.path))

        receiver = ReceiverLoop(channel, sink, readiness)
        sender = SenderSequencer(
            channel,
            readiness,
            parameters=parameters,
            ready_timeout=normalize_timeout(settings.ready_timeout),
        )
        receiver_task = asyncio.create_task(receiver.run())

        sender_error: Optional[StreamerError] = None
        try:
            if on_status:
                on_status("Streaming {} text unit(s)...".format(len(units)))
            await sender.run(units)
        except (TransmissionError, ReadinessTimeoutError, ReadinessAbandonedError) as e:
            sender_error = e
            if not isinstance(e, ReadinessAbandonedError):
                logger.error("Sender aborted: %s", e)
        except BaseException:
            await _cancel_and_join(receiver_task)
            raise

        join_timeout = normalize_timeout(settings.session_timeout)
        if sender_error is not None:
            join_timeout = min(join_timeout or _DRAIN_AFTER_SENDER_FAILURE_S, _DRAIN_AFTER_SENDER_FAILURE_S)
        elif on_status:
            on_status("Waiting for the server to finish...")

        result = await _join_receiver(receiver_task, join_timeout)

    report = _decide_outcome(
        result=result,
        sender_error=sender_error,
        task_id=sender.task_id or "",
        sink=sink,
        texts_sent=sender.texts_sent,
        session_timeout=join_timeout,
    )
    logger.info(
        "Task %s %s: %d bytes in %d fragment(s) written to %s",
        report.task_id,
        report.outcome.value,
        report.bytes_written,
        report.fragments_written,
        report.output_path,
    )
    return report


async def _join_receiver(
    task: asyncio.Task,
    timeout: Optional[float],
) -> Optional[ReceiverResult]:
    """Wait for the receiver task; cancel it and return None on timeout."""
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()
    logger.warning("Receiver did not stop within %ss, cancelling it", timeout)
    await _cancel_and_join(task)
    return None


async def _cancel_and_join(task: asyncio.Task) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


def _decide_outcome(
    result: Optional[ReceiverResult],
    sender_error: Optional[StreamerError],
    task_id: str,
    sink: AudioSink,
    texts_sent: int,
    session_timeout: Optional[float],
) -> SessionReport:
    """Combine the receiver result and sender error into one outcome.

    RULES (checked in order):
    - task-failed from the server -> SessionReport(FAILED)
    - sender error other than abandonment -> raise it
    - receiver cancelled on timeout -> SessionTimeoutError
    - sink or transport error in the receiver -> raise it
    - clean close without a terminal event -> UnexpectedCloseError
    - task-finished with a complete sender -> SessionReport(SUCCEEDED)
    - anything left (abandonment) -> raise the sender error
    """

    def _report(outcome: TaskOutcome, error_message: Optional[str] = None) -> SessionReport:
        return SessionReport(
            task_id=task_id,
            outcome=outcome,
            output_path=sink.path,
            bytes_written=sink.bytes_written,
            fragments_written=sink.fragments_written,
            texts_sent=texts_sent,
            error_message=error_message,
            decode_failures=result.decode_failures if result else 0,
            unrecognized_events=result.unrecognized_events if result else 0,
        )

    if result is not None and result.reason is StopReason.TASK_FAILED:
        assert result.terminal_event is not None
        return _report(TaskOutcome.FAILED, result.terminal_event.error_message)

    if sender_error is not None and not isinstance(sender_error, ReadinessAbandonedError):
        raise sender_error

    if result is None:
        raise SessionTimeoutError(
            "Task {} did not finish within {}s".format(task_id, session_timeout)
        )

    if result.error is not None:
        if isinstance(result.error, ChannelClosedError):
            raise ReceiveError(
                "Connection lost before the task finished: {}".format(result.error.message)
            ) from result.error
        raise result.error

    if result.reason is StopReason.CLEAN_CLOSE:
        raise UnexpectedCloseError("Server closed the connection before the task finished")

    if result.reason is StopReason.FINISHED and sender_error is None:
        return _report(TaskOutcome.SUCCEEDED)

    assert sender_error is not None
    raise sender_error
