"""Event classifier for inbound text frames.

WHY: The receiver loop only needs to know which lifecycle event a frame
represents and, for failures, the server's error text. Classifying in a
pure function keeps the loop small and lets the mapping be tested on its
own.

HOW: decode_event() parses the JSON text and hands the resulting dict to
classify_event(), which looks up header.event in a fixed table.

RULES:
- classify_event is total: every dict maps to exactly one EventKind
- classify_event has no side effects; flipping readiness is the loop's job
- A missing or non-string task-failed error_message becomes
  UNKNOWN_FAILURE_REASON; a present string (even empty) is kept as is
- Non-JSON text, JSON nested too deeply to parse, or JSON that is not an
  object raises EventDecodeError
"""

from __future__ import annotations

import json
from typing import Any, Dict

from cosyvoice_streamer.api.models import EventKind, LifecycleEvent
from cosyvoice_streamer.errors import EventDecodeError

UNKNOWN_FAILURE_REASON = "Unknown reason caused the task failure"

EVENT_KINDS: Dict[str, EventKind] = {
    "task-started": EventKind.STARTED,
    "result-generated": EventKind.PROGRESS,
    "task-finished": EventKind.FINISHED,
    "task-failed": EventKind.FAILED,
}

# Longest prefix of a malformed frame kept for log lines.
_RAW_PREVIEW_CHARS = 200


def classify_event(message: Dict[str, Any]) -> LifecycleEvent:
    """Map a decoded event message to a LifecycleEvent.

    Args:
        message: The decoded JSON object of one text frame.

    Returns:
        The classified event. Unknown or missing event names yield
        EventKind.UNRECOGNIZED.
    """
    header = message.get("header")
    if not isinstance(header, dict):
        header = {}

    name = header.get("event")
    if not isinstance(name, str):
        name = ""

    kind = EVENT_KINDS.get(name, EventKind.UNRECOGNIZED)

    error_message = None
    if kind is EventKind.FAILED:
        error_message = header.get("error_message")
        if not isinstance(error_message, str):
            error_message = UNKNOWN_FAILURE_REASON

    task_id = header.get("task_id")
    return LifecycleEvent(
        kind=kind,
        name=name,
        error_message=error_message,
        task_id=task_id if isinstance(task_id, str) else None,
        raw=message,
    )


def decode_event(text: str) -> LifecycleEvent:
    """Parse a text frame and classify it.

    Raises:
        EventDecodeError: If the text is not a JSON object.
    """
    try:
        message = json.loads(text)
    except (ValueError, RecursionError) as e:
        raise EventDecodeError(
            "Malformed event frame: {}".format(e),
            raw=text[:_RAW_PREVIEW_CHARS],
        ) from e

    if not isinstance(message, dict):
        raise EventDecodeError(
            "Event frame is not a JSON object (got {})".format(type(message).__name__),
            raw=text[:_RAW_PREVIEW_CHARS],
        )

    return classify_event(message)
