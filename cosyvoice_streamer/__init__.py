"""CosyVoice duplex streaming client — text in, audio file out.

WHY: DashScope's CosyVoice synthesis runs over a duplex WebSocket task
protocol: the client opens a task, streams text, and receives status
events interleaved with binary audio. This package implements that
protocol as a small, testable library plus a command-line front-end.

HOW: Two layers — api (wire models, command encoder, event classifier,
WebSocket transport) and core (audio sink, readiness signal, receiver
loop, sender sequencer, session orchestrator). The CLI and library
callers go through core.session.run_session().

RULES:
- One task per connection
- The protocol core never retries; retry policy belongs to callers
"""

__version__ = "0.1.0"
