from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from autoedit.errors import InvalidInputError
from autoedit.models import RawSignal, SpeechInterval

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoadedSignal:
    source_id: str
    signal: RawSignal
    path: Path


def load_raw_signal(path: str | Path, *, source_id: str | None = None) -> LoadedSignal:
    """Load a signal extractor artifact (JSON) into a RawSignal.

    The source id comes from the argument, then the payload's ``source_id``,
    then the file stem.
    """

    resolved_path = Path(path).expanduser().resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f"Signal file not found: {resolved_path}")

    try:
        payload = json.loads(resolved_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Signal file {resolved_path} is not valid JSON: {exc}") from exc

    signal = signal_from_payload(payload)
    resolved_id = source_id or str(payload.get("source_id") or resolved_path.stem)
    logger.debug("Loaded signal %s from %s (%.1fs)", resolved_id, resolved_path, signal.total_duration)
    return LoadedSignal(source_id=resolved_id, signal=signal, path=resolved_path)


def signal_from_payload(payload: Any) -> RawSignal:
    """Validate the extractor JSON contract and build a RawSignal from it."""

    if not isinstance(payload, dict):
        raise InvalidInputError("Signal payload must be a JSON object.")

    audio = payload.get("audio") or {}
    video = payload.get("video") or {}
    if not isinstance(audio, dict) or not isinstance(video, dict):
        raise InvalidInputError("Signal 'audio' and 'video' sections must be objects.")

    try:
        total_duration = float(payload["total_duration"])
        timestamps = [float(value) for value in audio.get("timestamps", [])]
        energy = [float(value) for value in audio.get("energy", [])]

        transcription = audio.get("transcription")
        speech_intervals = (
            tuple(
                SpeechInterval(
                    start=float(row["start_time"]),
                    end=float(row["end_time"]),
                    text=str(row.get("text", "")),
                )
                for row in transcription
            )
            if transcription is not None
            else None
        )

        scene_changes_raw = video.get("scene_changes")
        scene_changes = (
            tuple(float(value) for value in scene_changes_raw) if scene_changes_raw is not None else None
        )
    except KeyError as exc:
        raise InvalidInputError(f"Signal payload is missing required field {exc}.") from exc
    except (AttributeError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Signal payload has a malformed value: {exc}") from exc

    return RawSignal(
        audio_timestamps=tuple(timestamps),
        audio_energy=tuple(energy),
        total_duration=total_duration,
        speech_intervals=speech_intervals,
        scene_changes=scene_changes,
    )
