"""Append-only audio sink backed by one output file.

WHY: Synthesized audio arrives as a sequence of opaque binary frames. The
output file must end up holding exactly their concatenation in arrival
order, starting from an empty file, even if the session fails midway.

HOW: reset() creates or truncates the file once, before the session
starts. append() opens the file in append mode and writes each fragment in
full. Counters record how much audio reached disk for the session report.

RULES:
- reset() must be called before the first append() (orchestrator's job)
- append() never reorders, deduplicates, or buffers fragments
- Any OSError is wrapped in SinkError (phase RESET or WRITE)
- A short write is a failure, not a partial success
- Exactly one writer per sink; no locking
"""

from __future__ import annotations

import logging
from pathlib import Path

from cosyvoice_streamer.errors import SessionPhase, SinkError

logger = logging.getLogger(__name__)


class AudioSink:
    """One append-only output file for a synthesis session."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.bytes_written = 0
        self.fragments_written = 0

    def reset(self) -> None:
        """Create the file, or truncate it to zero length if it exists."""
        try:
            with open(self.path, "wb"):
                pass
        except OSError as e:
            raise SinkError(
                "Failed to clear output file {}: {}".format(self.path, e),
                path=self.path,
                phase=SessionPhase.RESET,
            ) from e
        self.bytes_written = 0
        self.fragments_written = 0
        logger.debug("Cleared output file %s", self.path)

    def append(self, data: bytes) -> None:
        """Append one binary fragment to the file.

        Raises:
            SinkError: If the file cannot be opened or the write is short.
        """
        try:
            with open(self.path, "ab") as f:
                written = f.write(data)
        except OSError as e:
            raise SinkError(
                "Failed to write audio to {}: {}".format(self.path, e),
                path=self.path,
            ) from e

        if written != len(data):
            raise SinkError(
                "Short write to {}: {} of {} bytes".format(self.path, written, len(data)),
                path=self.path,
            )

        self.bytes_written += written
        self.fragments_written += 1
