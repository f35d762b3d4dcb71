"""Tests for the command encoder and the TaskCommand wire model.

WHY: The server accepts only the exact {header, payload} shapes it
documents. A renamed field or a missing "duplex" marker would make every
session fail at the first command.

HOW: Builds each command kind, validates it against the bundled JSON
Schema with jsonschema, and checks the action-specific payload fields.

RULES:
- Every command must validate against command_schema.json
- Commands are pure values; serializing never exposes mutable internals
"""

from __future__ import annotations

import json
import uuid

import jsonschema
import pytest

from cosyvoice_streamer.api.commands import (
    COMMAND_SCHEMA_PATH,
    build_continue_task_command,
    build_finish_task_command,
    build_run_task_command,
    new_task_id,
)
from cosyvoice_streamer.api.models import TaskAction
from cosyvoice_streamer.config import SynthesisParameters

TASK_ID = "5b3c7c1e-2f8a-4a53-9d7a-6f1c0d1e2a3b"


@pytest.fixture(scope="module")
def command_schema():
    with open(COMMAND_SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


class TestSchemaConformance:
    """Every built command validates against command_schema.json."""

    def test_run_task_validates(self, command_schema):
        cmd = build_run_task_command(TASK_ID)
        jsonschema.validate(instance=json.loads(cmd.to_json()), schema=command_schema)

    def test_continue_task_validates(self, command_schema):
        cmd = build_continue_task_command(TASK_ID, "床前明月光")
        jsonschema.validate(instance=json.loads(cmd.to_json()), schema=command_schema)

    def test_finish_task_validates(self, command_schema):
        cmd = build_finish_task_command(TASK_ID)
        jsonschema.validate(instance=json.loads(cmd.to_json()), schema=command_schema)

    def test_schema_rejects_wrong_streaming_mode(self, command_schema):
        data = build_finish_task_command(TASK_ID).to_dict()
        data["header"]["streaming"] = "out"
        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate(instance=data, schema=command_schema)


class TestRunTaskCommand:
    """build_run_task_command carries model selection and synthesis parameters."""

    def test_header(self):
        header = build_run_task_command(TASK_ID).to_dict()["header"]
        assert header == {"action": "run-task", "task_id": TASK_ID, "streaming": "duplex"}

    def test_default_payload_matches_documented_defaults(self):
        payload = build_run_task_command(TASK_ID).to_dict()["payload"]
        assert payload["task_group"] == "audio"
        assert payload["task"] == "tts"
        assert payload["function"] == "SpeechSynthesizer"
        assert payload["model"] == "cosyvoice-v1"
        assert payload["input"] == {}
        assert payload["parameters"] == {
            "text_type": "PlainText",
            "voice": "longxiaochun",
            "format": "mp3",
            "sample_rate": 22050,
            "volume": 50,
            "rate": 1,
            "pitch": 1,
        }

    def test_custom_parameters(self):
        params = SynthesisParameters(
            model="cosyvoice-v2",
            voice="longwan",
            audio_format="wav",
            sample_rate=16000,
            volume=80,
            rate=1.2,
            pitch=0.9,
        )
        payload = build_run_task_command(TASK_ID, params).to_dict()["payload"]
        assert payload["model"] == "cosyvoice-v2"
        assert payload["parameters"]["voice"] == "longwan"
        assert payload["parameters"]["format"] == "wav"
        assert payload["parameters"]["sample_rate"] == 16000
        assert payload["parameters"]["volume"] == 80
        assert payload["parameters"]["rate"] == 1.2
        assert payload["parameters"]["pitch"] == 0.9

    def test_whole_rate_and_pitch_go_out_as_integers(self, monkeypatch):
        monkeypatch.setenv("COSYVOICE_RATE", "1.0")
        monkeypatch.setenv("COSYVOICE_PITCH", "2")
        text = build_run_task_command(TASK_ID, SynthesisParameters.from_env()).to_json()
        parameters = json.loads(text)["payload"]["parameters"]

        assert '"rate": 1,' in text
        assert type(parameters["rate"]) is int
        assert type(parameters["pitch"]) is int


class TestContinueAndFinish:

    def test_continue_carries_one_text_unit(self):
        cmd = build_continue_task_command(TASK_ID, "疑是地上霜")
        assert cmd.action is TaskAction.CONTINUE
        assert cmd.to_dict() == {
            "header": {"action": "continue-task", "task_id": TASK_ID, "streaming": "duplex"},
            "payload": {"input": {"text": "疑是地上霜"}},
        }

    def test_finish_has_empty_input(self):
        cmd = build_finish_task_command(TASK_ID)
        assert cmd.to_dict() == {
            "header": {"action": "finish-task", "task_id": TASK_ID, "streaming": "duplex"},
            "payload": {"input": {}},
        }

    def test_non_ascii_text_is_sent_unescaped(self):
        text = build_continue_task_command(TASK_ID, "举头望明月").to_json()
        assert "举头望明月" in text


class TestImmutability:

    def test_to_dict_returns_independent_copy(self):
        cmd = build_run_task_command(TASK_ID)
        first = cmd.to_dict()
        first["payload"]["parameters"]["voice"] = "tampered"
        assert cmd.to_dict()["payload"]["parameters"]["voice"] == "longxiaochun"

    def test_command_is_frozen(self):
        cmd = build_finish_task_command(TASK_ID)
        with pytest.raises(AttributeError):
            cmd.task_id = "other"  # type: ignore[misc]


class TestTaskId:

    def test_new_task_id_is_uuid4(self):
        value = new_task_id()
        assert uuid.UUID(value).version == 4

    def test_new_task_ids_are_unique(self):
        assert len({new_task_id() for _ in range(100)}) == 100
