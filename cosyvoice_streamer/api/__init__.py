"""Wire protocol package — commands, events, and the WebSocket transport.

WHY: The session core should not know about JSON shapes or the websockets
library. This package owns both: models.py and commands.py describe what
goes out, events.py classifies what comes in, transport.py moves frames.

RULES:
- All WebSocket calls go through transport.py (no direct websockets usage elsewhere)
- Authentication is a bearer token header built in one place
"""

from cosyvoice_streamer.api.commands import (
    build_continue_task_command,
    build_finish_task_command,
    build_run_task_command,
    new_task_id,
)
from cosyvoice_streamer.api.events import UNKNOWN_FAILURE_REASON, classify_event, decode_event
from cosyvoice_streamer.api.models import EventKind, LifecycleEvent, TaskAction, TaskCommand

__all__ = [
    "EventKind",
    "LifecycleEvent",
    "TaskAction",
    "TaskCommand",
    "UNKNOWN_FAILURE_REASON",
    "build_continue_task_command",
    "build_finish_task_command",
    "build_run_task_command",
    "classify_event",
    "decode_event",
    "new_task_id",
]
