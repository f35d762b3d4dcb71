"""Command encoder for the run-task / continue-task / finish-task protocol.

WHY: A session is three kinds of command sharing one task identity. Keeping
their construction in pure functions makes the exact wire shape easy to
test and keeps the sender sequencer free of dict literals.

HOW: Each builder returns a TaskCommand. The run-task payload is derived
from a SynthesisParameters value; continue-task wraps one text unit;
finish-task carries an empty input object.

RULES:
- No I/O and no side effects in this module
- task_group/task/function are fixed for speech synthesis
- Identity consistency across commands is the caller's responsibility
"""

from __future__ import annotations

import uuid
from pathlib import Path

from cosyvoice_streamer.api.models import TaskAction, TaskCommand
from cosyvoice_streamer.config import SynthesisParameters

TASK_GROUP = "audio"
TASK = "tts"
FUNCTION = "SpeechSynthesizer"

COMMAND_SCHEMA_PATH = Path(__file__).with_name("command_schema.json")
"""JSON Schema describing every command this module builds."""


def new_task_id() -> str:
    """Return a fresh task identity (UUID4 string)."""
    return str(uuid.uuid4())


def build_run_task_command(
    task_id: str,
    parameters: SynthesisParameters | None = None,
) -> TaskCommand:
    """Build the run-task command that opens a synthesis task.

    RULES:
    - parameters defaults to SynthesisParameters() (config defaults)
    - input is an empty object; text arrives via continue-task

    Args:
        task_id: Identity shared by every command of the session.
        parameters: Model and synthesis settings.

    Returns:
        The run-task TaskCommand.
    """
    params = parameters or SynthesisParameters()
    payload = {
        "task_group": TASK_GROUP,
        "task": TASK,
        "function": FUNCTION,
        "model": params.model,
        "parameters": {
            "text_type": params.text_type,
            "voice": params.voice,
            "format": params.audio_format,
            "sample_rate": params.sample_rate,
            "volume": params.volume,
            "rate": params.rate,
            "pitch": params.pitch,
        },
        "input": {},
    }
    return TaskCommand(action=TaskAction.RUN, task_id=task_id, payload=payload)


def build_continue_task_command(task_id: str, text: str) -> TaskCommand:
    """Build a continue-task command carrying one text unit."""
    return TaskCommand(
        action=TaskAction.CONTINUE,
        task_id=task_id,
        payload={"input": {"text": text}},
    )


def build_finish_task_command(task_id: str) -> TaskCommand:
    """Build the finish-task command that ends the input stream."""
    return TaskCommand(
        action=TaskAction.FINISH,
        task_id=task_id,
        payload={"input": {}},
    )
