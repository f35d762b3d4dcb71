"""Error taxonomy for a streaming synthesis session.

WHY: A session can fail in several distinct phases (configuration,
connection, sink reset, command transmission, readiness wait, receive,
audio write). The CLI must tell the user which phase failed, and the
orchestrator must tell local, absorbable problems (a malformed event) apart
from fatal ones. Typed exceptions make both decisions explicit.

HOW: Every exception derives from StreamerError and carries a SessionPhase.
Subclasses fix their phase so raise sites only pass a message. Exceptions
that double as standard categories also inherit the stdlib type
(MissingCredentialError is a ValueError, ReadinessTimeoutError and
SessionTimeoutError are TimeoutErrors).

RULES:
- Server-reported task failure is NOT an exception; it is a SessionReport
  with outcome FAILED
- EventDecodeError is absorbed by the receiver loop, never propagated
- Every other error propagates to the session orchestrator
- No retry logic lives anywhere in this package
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Optional


class SessionPhase(str, enum.Enum):
    """Phase of a session in which an error surfaced.

    RULES:
    - Values are short lowercase words, printed verbatim by the CLI
    """

    CONFIGURE = "configure"
    CONNECT = "connect"
    RESET = "reset"
    SEND = "send"
    READY = "ready"
    RECEIVE = "receive"
    WRITE = "write"
    COMPLETE = "complete"


class StreamerError(Exception):
    """Base class for all session errors.

    RULES:
    - phase identifies where the session failed
    - Subclasses set a class-level default phase
    """

    phase: SessionPhase = SessionPhase.COMPLETE

    def __init__(self, message: str, phase: Optional[SessionPhase] = None) -> None:
        super().__init__(message)
        self.message = message
        if phase is not None:
            self.phase = phase


class MissingCredentialError(StreamerError, ValueError):
    """Raised when DASHSCOPE_API_KEY is missing or empty.

    RULES:
    - Raised before any network or file activity
    """

    phase = SessionPhase.CONFIGURE


class ConnectionFailedError(StreamerError):
    """Raised when the WebSocket channel cannot be established.

    RULES:
    - The output file has not been touched when this is raised
    - endpoint is kept for diagnostics (never the credential)
    """

    phase = SessionPhase.CONNECT

    def __init__(self, message: str, endpoint: str = "") -> None:
        super().__init__(message)
        self.endpoint = endpoint


class SinkError(StreamerError):
    """Raised when the audio output file cannot be reset or appended to.

    RULES:
    - phase is RESET for truncation failures, WRITE for append failures
    - path names the output file
    """

    phase = SessionPhase.WRITE

    def __init__(
        self,
        message: str,
        path: Path | str,
        phase: Optional[SessionPhase] = None,
    ) -> None:
        super().__init__(message, phase)
        self.path = Path(path)


class TransmissionError(StreamerError):
    """Raised when a command cannot be sent over the channel.

    RULES:
    - action is the protocol action being sent ("run-task", ...), or ""
      when raised by the transport before the sequencer annotates it
    """

    phase = SessionPhase.SEND

    def __init__(self, message: str, action: str = "") -> None:
        super().__init__(message)
        self.action = action


class ReadinessTimeoutError(StreamerError, TimeoutError):
    """Raised when task-started does not arrive within the ready timeout."""

    phase = SessionPhase.READY


class ReadinessAbandonedError(StreamerError):
    """Raised when the receiver stopped before the server signalled readiness."""

    phase = SessionPhase.READY


class ChannelClosedError(StreamerError):
    """Raised by the transport when the inbound side of the channel ends.

    RULES:
    - clean=True for a normal close handshake, False for an abnormal close
      or transport failure
    """

    phase = SessionPhase.RECEIVE

    def __init__(self, message: str, clean: bool) -> None:
        super().__init__(message)
        self.clean = clean


class ReceiveError(StreamerError):
    """Raised by the orchestrator when the receiver stopped on a transport error."""

    phase = SessionPhase.RECEIVE


class UnexpectedCloseError(StreamerError):
    """Raised when the server closed cleanly without a terminal task event."""

    phase = SessionPhase.RECEIVE


class SessionTimeoutError(StreamerError, TimeoutError):
    """Raised when the task does not complete within the session timeout."""

    phase = SessionPhase.COMPLETE


class EventDecodeError(StreamerError):
    """Raised when a text frame is not a JSON object.

    RULES:
    - Local and non-fatal: the receiver loop logs it and keeps going
    - raw holds (a prefix of) the offending frame for the log line
    """

    phase = SessionPhase.RECEIVE

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw
