"""Wire-level dataclasses for the duplex synthesis protocol.

WHY: The service speaks JSON in both directions: commands go out as
{header, payload} objects and lifecycle events come back with an event
name in their header. Typed dataclasses make both shapes explicit and keep
dict-walking out of the protocol state machine.

HOW: TaskCommand is a frozen dataclass serialized with to_dict()/to_json().
EventKind is the closed set of lifecycle events the client reacts to, and
LifecycleEvent is the classified form of one inbound text frame.

RULES:
- streaming is always "duplex" for every command
- TaskCommand is never mutated after construction; to_dict() returns a copy
- EventKind.UNRECOGNIZED covers every event name the client does not know
- Only FAILED events carry an error_message relevant to control flow
"""

from __future__ import annotations

import copy
import enum
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

STREAMING_MODE = "duplex"


class TaskAction(str, enum.Enum):
    """Actions a client can send in a command header."""

    RUN = "run-task"
    CONTINUE = "continue-task"
    FINISH = "finish-task"


class EventKind(str, enum.Enum):
    """Lifecycle events the receiver loop distinguishes.

    RULES:
    - started: server accepts continue-task commands from now on
    - progress: informational (result-generated), audio arrives separately
    - finished / failed: terminal, the receiver loop stops after them
    - unrecognized: anything else, logged but never treated as failure
    """

    STARTED = "started"
    PROGRESS = "progress"
    FINISHED = "finished"
    FAILED = "failed"
    UNRECOGNIZED = "unrecognized"

    @property
    def is_terminal(self) -> bool:
        return self in (EventKind.FINISHED, EventKind.FAILED)


@dataclass(frozen=True)
class TaskCommand:
    """One outbound command: header plus action-specific payload.

    RULES:
    - action is one of the TaskAction values
    - task_id is identical for every command of a session
    - payload is deep-copied on serialization so callers cannot alias it
    """

    action: TaskAction
    task_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    streaming: str = STREAMING_MODE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": {
                "action": self.action.value,
                "task_id": self.task_id,
                "streaming": self.streaming,
            },
            "payload": copy.deepcopy(self.payload),
        }

    def to_json(self) -> str:
        """Serialize to the text frame sent over the channel."""
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass(frozen=True)
class LifecycleEvent:
    """A classified inbound status event.

    RULES:
    - name is the raw header.event string ("" when absent)
    - error_message is set only for FAILED events (server text or sentinel)
    - task_id is the server-echoed header.task_id, when present
    - raw keeps the decoded message for diagnostics
    """

    kind: EventKind
    name: str = ""
    error_message: Optional[str] = None
    task_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.kind.is_terminal
