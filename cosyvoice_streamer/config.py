"""Configuration constants, synthesis defaults, and .env loading.

WHY: The synthesis parameters, endpoint, and timeouts used to be literals
inside the send routine. Centralizing them here turns them into a
documented configuration surface that the CLI, tests, and library callers
can override without touching protocol logic.

HOW: python-dotenv loads the .env file on import. Every default is a
module-level constant read with os.getenv(), falling back to the string in
ENV_DEFAULTS, the one place a default value is written down.
SynthesisParameters and SessionSettings are frozen dataclasses whose
defaults come from those constants; their from_env() constructors re-read
the environment for callers that change it at runtime. load_api_key()
gives a clear error when the credential is missing.

RULES:
- The API key is loaded from DASHSCOPE_API_KEY, never hardcoded
- A missing key raises MissingCredentialError before any network activity
- A timeout of 0 (or a negative value) means "wait indefinitely"
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from cosyvoice_streamer.errors import MissingCredentialError

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Endpoint and credential
# ---------------------------------------------------------------------------

DEFAULT_WS_URL = "wss://dashscope.aliyuncs.com/api-ws/v1/inference/"
API_KEY_ENV_VAR = "DASHSCOPE_API_KEY"

# Fallback for every setting, as the string an environment variable would hold.
ENV_DEFAULTS: dict[str, str] = {
    "DASHSCOPE_WS_URL": DEFAULT_WS_URL,
    "COSYVOICE_MODEL": "cosyvoice-v1",
    "COSYVOICE_TEXT_TYPE": "PlainText",
    "COSYVOICE_VOICE": "longxiaochun",
    "COSYVOICE_FORMAT": "mp3",
    "COSYVOICE_SAMPLE_RATE": "22050",
    "COSYVOICE_VOLUME": "50",
    "COSYVOICE_RATE": "1",
    "COSYVOICE_PITCH": "1",
    "COSYVOICE_READY_TIMEOUT": "30",
    "COSYVOICE_SESSION_TIMEOUT": "300",
    "COSYVOICE_DATA_INSPECTION": "true",
}


def _env(name: str) -> str:
    return os.getenv(name, ENV_DEFAULTS[name])


def parse_number(text: str) -> float | int:
    """Parse a rate or pitch value; whole numbers stay int so "1" is sent as 1, not 1.0."""
    value = float(text)
    return int(value) if value.is_integer() else value


def _env_flag(name: str) -> bool:
    return _env(name).strip().lower() == "true"


DASHSCOPE_WS_URL = _env("DASHSCOPE_WS_URL")

# ---------------------------------------------------------------------------
# Synthesis defaults (run-task parameters)
# ---------------------------------------------------------------------------

DEFAULT_MODEL = _env("COSYVOICE_MODEL")
DEFAULT_TEXT_TYPE = _env("COSYVOICE_TEXT_TYPE")
DEFAULT_VOICE = _env("COSYVOICE_VOICE")
DEFAULT_FORMAT = _env("COSYVOICE_FORMAT")
DEFAULT_SAMPLE_RATE = int(_env("COSYVOICE_SAMPLE_RATE"))
DEFAULT_VOLUME = int(_env("COSYVOICE_VOLUME"))
DEFAULT_RATE = parse_number(_env("COSYVOICE_RATE"))
DEFAULT_PITCH = parse_number(_env("COSYVOICE_PITCH"))

# ---------------------------------------------------------------------------
# Session defaults
# ---------------------------------------------------------------------------

DEFAULT_READY_TIMEOUT_S = float(_env("COSYVOICE_READY_TIMEOUT"))
DEFAULT_SESSION_TIMEOUT_S = float(_env("COSYVOICE_SESSION_TIMEOUT"))
DEFAULT_DATA_INSPECTION = _env_flag("COSYVOICE_DATA_INSPECTION")

DEFAULT_TEXTS: tuple[str, ...] = (
    "床前明月光",
    "疑是地上霜",
    "举头望明月",
    "低头思故乡",
)
"""Demo input synthesized when the caller supplies no text."""


def default_output_path(audio_format: str = DEFAULT_FORMAT) -> str:
    """Return the default output filename for an audio format, e.g. output.mp3."""
    return "output.{}".format(audio_format)


def normalize_timeout(value: Optional[float]) -> Optional[float]:
    """Map a configured timeout to what asyncio expects.

    RULES:
    - None, 0 and negative values all mean "no deadline" and return None
    - Positive values are returned as float seconds
    """
    if value is None or value <= 0:
        return None
    return float(value)


@dataclass(frozen=True)
class SynthesisParameters:
    """Model selection and synthesis parameters sent with run-task.

    WHY: The server needs the voice, audio format, and prosody settings
    once, at the start of the task. Holding them in one immutable value
    keeps the command encoder pure.

    RULES:
    - Field values are passed through to the server unvalidated
    - audio_format is serialized as "format" on the wire
    - rate and pitch keep whole numbers as int (the defaults go out as 1),
      fractional values as float
    """

    model: str = DEFAULT_MODEL
    text_type: str = DEFAULT_TEXT_TYPE
    voice: str = DEFAULT_VOICE
    audio_format: str = DEFAULT_FORMAT
    sample_rate: int = DEFAULT_SAMPLE_RATE
    volume: int = DEFAULT_VOLUME
    rate: float | int = DEFAULT_RATE
    pitch: float | int = DEFAULT_PITCH

    @classmethod
    def from_env(cls) -> SynthesisParameters:
        """Build parameters from the current environment, falling back to defaults."""
        return cls(
            model=_env("COSYVOICE_MODEL"),
            text_type=_env("COSYVOICE_TEXT_TYPE"),
            voice=_env("COSYVOICE_VOICE"),
            audio_format=_env("COSYVOICE_FORMAT"),
            sample_rate=int(_env("COSYVOICE_SAMPLE_RATE")),
            volume=int(_env("COSYVOICE_VOLUME")),
            rate=parse_number(_env("COSYVOICE_RATE")),
            pitch=parse_number(_env("COSYVOICE_PITCH")),
        )


@dataclass(frozen=True)
class SessionSettings:
    """Connection and timing settings for one session.

    RULES:
    - ready_timeout bounds the wait for task-started (None = forever)
    - session_timeout bounds the wait for the receiver after the sender is
      done (None = forever)
    - data_inspection toggles the X-DashScope-DataInspection header
    """

    endpoint: str = DASHSCOPE_WS_URL
    ready_timeout: Optional[float] = DEFAULT_READY_TIMEOUT_S
    session_timeout: Optional[float] = DEFAULT_SESSION_TIMEOUT_S
    data_inspection: bool = DEFAULT_DATA_INSPECTION

    @classmethod
    def from_env(cls) -> SessionSettings:
        """Build settings from the current environment, falling back to defaults."""
        return cls(
            endpoint=_env("DASHSCOPE_WS_URL"),
            ready_timeout=float(_env("COSYVOICE_READY_TIMEOUT")),
            session_timeout=float(_env("COSYVOICE_SESSION_TIMEOUT")),
            data_inspection=_env_flag("COSYVOICE_DATA_INSPECTION"),
        )


def load_api_key() -> str:
    """Load the DashScope API key from the environment.

    WHY: Every session needs the credential; loading it from the
    environment (via .env) keeps it out of source code and shell history.

    HOW: Reads DASHSCOPE_API_KEY from os.environ (populated by python-dotenv).

    RULES:
    - Raises MissingCredentialError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv(API_KEY_ENV_VAR, "").strip()
    if not key:
        raise MissingCredentialError(
            "DashScope API key not configured. "
            "Set {} in the environment or in a .env file.".format(API_KEY_ENV_VAR)
        )
    return key
