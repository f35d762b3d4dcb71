"""Command-line interface for the CosyVoice streaming client.

WHY: Users need a simple way to turn text into an audio file from the
terminal without writing asyncio code. The CLI wires configuration,
logging, input loading, and the session orchestrator behind one command.

HOW: Uses argparse for the text sources, output path, synthesis
parameters, endpoint, and timeouts. Logging verbosity is a flag instead of
a separate program variant. The session runs via asyncio.run(). Status
lines and diagnostics go to stderr; nothing is written to stdout.

RULES:
- Text sources: --text (repeatable) and --text-file (one unit per
  non-blank line); without either the demo lines are synthesized
- The API key is checked before any file or network activity
- Exit codes: 0 success, 1 fatal failure, 3 server-reported task failure,
  130 on Ctrl-C
- Fatal failures print the failing phase; task failures print the
  server's message
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cosyvoice_streamer.config import (
    DASHSCOPE_WS_URL,
    DEFAULT_DATA_INSPECTION,
    DEFAULT_FORMAT,
    DEFAULT_MODEL,
    DEFAULT_PITCH,
    DEFAULT_RATE,
    DEFAULT_READY_TIMEOUT_S,
    DEFAULT_SAMPLE_RATE,
    DEFAULT_SESSION_TIMEOUT_S,
    DEFAULT_TEXT_TYPE,
    DEFAULT_TEXTS,
    DEFAULT_VOICE,
    DEFAULT_VOLUME,
    SessionSettings,
    SynthesisParameters,
    default_output_path,
    load_api_key,
    parse_number,
)
from cosyvoice_streamer.core.session import SessionReport, run_session
from cosyvoice_streamer.errors import StreamerError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_TASK_FAILED = 3
EXIT_INTERRUPTED = 130


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.

    RULES:
    - All status messages go to stderr
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def configure_logging(verbosity: int) -> None:
    """Configure root logging on stderr.

    RULES:
    - verbosity < 0: WARNING, 0: INFO, > 0: DEBUG (per-frame detail)
    """
    if verbosity > 0:
        level = logging.DEBUG
    elif verbosity < 0:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def load_texts(texts: Optional[List[str]], text_file: Optional[str]) -> List[str]:
    """Collect text units from --text values and a --text-file.

    RULES:
    - --text values come first, in the order given
    - --text-file contributes one unit per non-blank line (stripped)
    - With neither source, DEFAULT_TEXTS is returned

    Raises:
        OSError: If text_file cannot be read.
    """
    units: List[str] = list(texts or [])
    if text_file:
        content = Path(text_file).read_text(encoding="utf-8")
        units.extend(line.strip() for line in content.splitlines() if line.strip())
    if not units and not text_file:
        units = list(DEFAULT_TEXTS)
    return units


async def _run(args: argparse.Namespace) -> int:
    """Run one session for the parsed arguments and return the exit code."""
    try:
        api_key = load_api_key()
    except StreamerError as e:
        print("Error [{}]: {}".format(e.phase.value, e), file=sys.stderr)
        return EXIT_FAILURE

    try:
        units = load_texts(args.text, args.text_file)
    except OSError as e:
        print("Error: Cannot read text file: {}".format(e), file=sys.stderr)
        return EXIT_FAILURE

    parameters = SynthesisParameters(
        model=args.model,
        text_type=args.text_type,
        voice=args.voice,
        audio_format=args.format,
        sample_rate=args.sample_rate,
        volume=args.volume,
        rate=args.rate,
        pitch=args.pitch,
    )
    settings = SessionSettings(
        endpoint=args.endpoint,
        ready_timeout=args.ready_timeout,
        session_timeout=args.session_timeout,
        data_inspection=args.data_inspection,
    )
    output_path = Path(args.output or default_output_path(args.format))

    try:
        report = await run_session(
            units,
            api_key=api_key,
            output_path=output_path,
            parameters=parameters,
            settings=settings,
            on_status=_status,
        )
    except StreamerError as e:
        print("Error [{}]: {}".format(e.phase.value, e), file=sys.stderr)
        return EXIT_FAILURE

    return _summarize(report)


def _summarize(report: SessionReport) -> int:
    if report.succeeded:
        _status("")
        _status("Done! Wrote {:,} bytes to {}".format(report.bytes_written, report.output_path))
        return EXIT_OK

    _status("Task failed: {}".format(report.error_message))
    if report.bytes_written:
        _status("  Partial audio ({:,} bytes) left in {}".format(
            report.bytes_written, report.output_path,
        ))
    return EXIT_TASK_FAILED


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable; tests can inspect the parser without running a session.
    """
    parser = argparse.ArgumentParser(
        prog="cosyvoice_streamer",
        description="Synthesize speech with DashScope CosyVoice over a duplex "
                    "WebSocket session and save the audio to a file.",
    )

    parser.add_argument(
        "--text",
        action="append",
        default=None,
        help="Text unit to synthesize. Can be specified multiple times; "
             "units are sent in order.",
    )
    parser.add_argument(
        "--text-file",
        default=None,
        help="Path to a UTF-8 file with one text unit per line.",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output audio file (default: output.<format>).",
    )

    synthesis = parser.add_argument_group("synthesis parameters")
    synthesis.add_argument("--model", default=DEFAULT_MODEL, help="Model name (default: %(default)s).")
    synthesis.add_argument("--voice", default=DEFAULT_VOICE, help="Voice name (default: %(default)s).")
    synthesis.add_argument("--format", default=DEFAULT_FORMAT, help="Audio format (default: %(default)s).")
    synthesis.add_argument(
        "--sample-rate", type=int, default=DEFAULT_SAMPLE_RATE,
        help="Sample rate in Hz (default: %(default)s).",
    )
    synthesis.add_argument("--volume", type=int, default=DEFAULT_VOLUME, help="Volume 0-100 (default: %(default)s).")
    synthesis.add_argument("--rate", type=parse_number, default=DEFAULT_RATE, help="Speech rate (default: %(default)s).")
    synthesis.add_argument("--pitch", type=parse_number, default=DEFAULT_PITCH, help="Pitch (default: %(default)s).")
    synthesis.add_argument(
        "--text-type", default=DEFAULT_TEXT_TYPE,
        help="Input text type, e.g. PlainText or SSML (default: %(default)s).",
    )

    session = parser.add_argument_group("session")
    session.add_argument("--endpoint", default=DASHSCOPE_WS_URL, help="WebSocket endpoint (default: %(default)s).")
    session.add_argument(
        "--ready-timeout", type=float, default=DEFAULT_READY_TIMEOUT_S,
        help="Seconds to wait for task-started; 0 waits forever (default: %(default)s).",
    )
    session.add_argument(
        "--session-timeout", type=float, default=DEFAULT_SESSION_TIMEOUT_S,
        help="Seconds to wait for the task to finish; 0 waits forever (default: %(default)s).",
    )
    session.add_argument(
        "--data-inspection",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_DATA_INSPECTION,
        help="Send the X-DashScope-DataInspection header (default: %(default)s).",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", dest="verbosity", action="store_const", const=1, default=0,
        help="Log every frame and command.",
    )
    verbosity.add_argument(
        "-q", "--quiet", dest="verbosity", action="store_const", const=-1,
        help="Only log warnings and errors.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    - Always exits via sys.exit with one of the EXIT_* codes
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbosity)
    try:
        code = asyncio.run(_run(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        code = EXIT_INTERRUPTED
    sys.exit(code)


if __name__ == "__main__":
    main()
