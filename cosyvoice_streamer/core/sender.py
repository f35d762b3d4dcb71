"""Sender sequencer: run-task, wait for readiness, continue-task*, finish-task.

WHY: The server rejects text sent before it has started the task, and it
does not reorder out-of-order input. The sender therefore has to follow a
strict linear script and pause between the first and second step until the
receiver reports task-started.

HOW: run() generates the task identity, sends run-task, awaits the
ReadinessSignal, sends one continue-task per text unit in the given order,
then sends finish-task. Every transmission goes through _transmit(), which
annotates transport failures with the action that failed.

RULES:
- Exactly one run-task, N continue-task (input order), one finish-task
- No continue-task is sent before the readiness signal resolves as ready
- The first failure aborts the sequence; nothing is retried
- The same task_id is used in every command of the session
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import List, Optional

from cosyvoice_streamer.api.commands import (
    build_continue_task_command,
    build_finish_task_command,
    build_run_task_command,
    new_task_id,
)
from cosyvoice_streamer.api.models import TaskCommand
from cosyvoice_streamer.api.transport import OutboundChannel
from cosyvoice_streamer.config import SynthesisParameters
from cosyvoice_streamer.core.readiness import ReadinessSignal
from cosyvoice_streamer.errors import TransmissionError

logger = logging.getLogger(__name__)


class SenderSequencer:
    """Owns the write half of the channel for one session.

    RULES:
    - task_id is None until run() has generated it
    - texts_sent counts continue-task commands actually transmitted
    """

    def __init__(
        self,
        channel: OutboundChannel,
        readiness: ReadinessSignal,
        parameters: Optional[SynthesisParameters] = None,
        ready_timeout: Optional[float] = None,
    ) -> None:
        self._channel = channel
        self._readiness = readiness
        self._parameters = parameters or SynthesisParameters()
        self._ready_timeout = ready_timeout
        self.task_id: Optional[str] = None
        self.texts_sent = 0

    async def run(self, texts: Iterable[str]) -> str:
        """Drive one task from run-task to finish-task.

        Args:
            texts: Text units to synthesize, sent in this order.

        Returns:
            The task identity used for every command.

        Raises:
            TransmissionError: A command could not be sent.
            ReadinessTimeoutError: task-started did not arrive in time.
            ReadinessAbandonedError: The receiver stopped before task-started.
        """
        units: List[str] = list(texts)
        self.task_id = new_task_id()

        await self._transmit(build_run_task_command(self.task_id, self._parameters))
        logger.info("Sent run-task for task %s, waiting for task-started", self.task_id)

        await self._readiness.wait(self._ready_timeout)

        for text in units:
            await self._transmit(build_continue_task_command(self.task_id, text))
            self.texts_sent += 1

        await self._transmit(build_finish_task_command(self.task_id))
        logger.info("Sent %d text unit(s) and finish-task", self.texts_sent)
        return self.task_id

    async def _transmit(self, command: TaskCommand) -> None:
        try:
            await self._channel.send(command.to_json())
        except TransmissionError as e:
            raise TransmissionError(
                "Failed to send {} command: {}".format(command.action.value, e.message),
                action=command.action.value,
            ) from e
        logger.debug("Sent %s command", command.action.value)
