"""Session core: sink, readiness signal, receiver loop, sender sequencer.

WHY: The state machine of a duplex task lives here, independent of the
CLI and of the concrete transport. Each piece is testable with scripted
fake channels.

HOW: sink.py persists audio, readiness.py carries the task-started
notification, receiver.py and sender.py own the two halves of the
channel, session.py wires them together.

RULES:
- receiver and sender communicate only through ReadinessSignal and the channel
- session.run_session is the only place that decides overall success
"""

from cosyvoice_streamer.core.session import SessionReport, TaskOutcome, run_session

__all__ = ["SessionReport", "TaskOutcome", "run_session"]
