"""One-shot readiness signal shared by the receiver and the sender.

WHY: The sender may only stream text after the server has answered
run-task with task-started, but the two halves run as separate tasks and
must not call each other. Polling a flag in a sleep loop adds latency and
spins; a one-shot notification wakes the sender as soon as the receiver
sees the event.

HOW: Wraps an asyncio.Event. The receiver calls set_ready() on
task-started, or abandon() when it stops without ever seeing it. The
sender awaits wait(), which returns once ready, raises
ReadinessAbandonedError if abandoned, and raises ReadinessTimeoutError
when an optional deadline passes first.

RULES:
- Transitions are one-shot: pending -> ready, or pending -> abandoned
- Once ready, the signal never reverts; a later abandon() is ignored
- The receiver is the only writer, the sender the only waiter
- All calls happen on the same event loop
"""

from __future__ import annotations

import asyncio
from typing import Optional

from cosyvoice_streamer.errors import ReadinessAbandonedError, ReadinessTimeoutError


class ReadinessSignal:
    """Monotonic ready/abandoned notification for one session."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._ready = False
        self._abandon_reason: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_abandoned(self) -> bool:
        return self._abandon_reason is not None

    @property
    def abandon_reason(self) -> Optional[str]:
        return self._abandon_reason

    def set_ready(self) -> None:
        """Mark the server as ready. Idempotent; ignored after abandon()."""
        if self._event.is_set():
            return
        self._ready = True
        self._event.set()

    def abandon(self, reason: str) -> None:
        """Wake the waiter without readiness. Ignored once resolved."""
        if self._event.is_set():
            return
        self._abandon_reason = reason
        self._event.set()

    async def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the signal resolves.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely.

        Raises:
            ReadinessTimeoutError: The deadline passed before resolution.
            ReadinessAbandonedError: The receiver stopped before task-started.
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            raise ReadinessTimeoutError(
                "Server did not start the task within {:g}s".format(timeout)
            ) from None

        if not self._ready:
            raise ReadinessAbandonedError(
                "Receiver stopped before the task started: {}".format(self._abandon_reason)
            )
