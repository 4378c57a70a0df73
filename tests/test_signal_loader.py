from __future__ import annotations

import json
from pathlib import Path

import pytest

from autoedit.errors import InvalidInputError
from autoedit.ingest.signal_loader import load_raw_signal, signal_from_payload


def _payload() -> dict:
    return {
        "total_duration": 4.0,
        "audio": {
            "timestamps": [0, 1, 2, 3, 4],
            "energy": [0.1, 0.5, 0.9, 0.4, 0.0],
            "transcription": [{"start_time": 0.5, "end_time": 2.0, "text": "kick off"}],
        },
        "video": {"scene_changes": [2.0]},
    }


def test_load_raw_signal_reads_extractor_contract(tmp_path: Path) -> None:
    path = tmp_path / "match_01.json"
    path.write_text(json.dumps(_payload()), encoding="utf-8")

    loaded = load_raw_signal(path)

    assert loaded.source_id == "match_01"
    assert loaded.signal.total_duration == 4.0
    assert loaded.signal.audio_energy == (0.1, 0.5, 0.9, 0.4, 0.0)
    assert loaded.signal.speech_intervals[0].text == "kick off"
    assert loaded.signal.scene_changes == (2.0,)


def test_source_id_prefers_argument_then_payload(tmp_path: Path) -> None:
    path = tmp_path / "signal.json"
    path.write_text(json.dumps({**_payload(), "source_id": "cam-a"}), encoding="utf-8")

    assert load_raw_signal(path).source_id == "cam-a"
    assert load_raw_signal(path, source_id="override").source_id == "override"


def test_absent_optional_sections_stay_unknown() -> None:
    signal = signal_from_payload({"total_duration": 3.0, "audio": {"timestamps": [0.0], "energy": [0.3]}})

    assert signal.speech_intervals is None
    assert signal.scene_changes is None


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Signal file not found"):
        load_raw_signal(tmp_path / "missing.json")


def test_invalid_json_raises_invalid_input(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(InvalidInputError, match="not valid JSON"):
        load_raw_signal(path)


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"audio": {}}, "total_duration"),
        ([], "JSON object"),
        ({"total_duration": "long"}, "malformed"),
        ({"total_duration": 2.0, "audio": {"transcription": [{"start_time": 0.0}]}}, "end_time"),
        ({"total_duration": 2.0, "audio": [0.5]}, "must be objects"),
    ],
)
def test_malformed_payload_raises_invalid_input(payload: object, message: str) -> None:
    with pytest.raises(InvalidInputError, match=message):
        signal_from_payload(payload)
