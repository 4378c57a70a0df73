from __future__ import annotations

import logging
import math

import numpy as np

from autoedit.errors import InvalidInputError
from autoedit.models import NormalizedTimeline, RawSignal, SpeechInterval, TimePoint

logger = logging.getLogger(__name__)

DEFAULT_STEP_SECONDS = 1.0
DEFAULT_SCENE_CHANGE_TOLERANCE = 0.5


def normalize_signal(
    signal: RawSignal,
    *,
    step: float = DEFAULT_STEP_SECONDS,
    scene_change_tolerance: float = DEFAULT_SCENE_CHANGE_TOLERANCE,
) -> NormalizedTimeline:
    """Align raw audio/speech/scene signals onto one fixed-step timeline.

    Samples run from 0 to ``ceil(total_duration)`` (in ``step`` increments). Each
    point takes the first energy sample recorded at or after it, falling back to
    the last sample past the end and to 0 when no samples exist.
    """

    _validate_signal(signal)
    if step <= 0:
        raise InvalidInputError(f"Sampling step must be positive, got {step}.")

    timestamps = np.asarray(signal.audio_timestamps, dtype=np.float64)
    energy = np.asarray(signal.audio_energy, dtype=np.float64)
    speech = signal.speech_intervals or ()
    scene_changes = signal.scene_changes or ()

    sample_count = int(math.ceil(signal.total_duration / step))
    times = [round(index * step, 6) for index in range(sample_count + 1)]
    energy_values = _energy_at(times, timestamps=timestamps, energy=energy)

    time_points = tuple(
        TimePoint(
            time=time,
            audio_energy=energy_values[idx],
            is_speech=_is_speech(time, speech),
            is_scene_change=_is_scene_change(time, scene_changes, scene_change_tolerance),
        )
        for idx, time in enumerate(times)
    )

    logger.debug(
        "Normalized %d time points over %.3fs (%d energy samples, %d speech intervals, %d scene changes)",
        len(time_points),
        signal.total_duration,
        len(timestamps),
        len(speech),
        len(scene_changes),
    )

    return NormalizedTimeline(
        time_points=time_points,
        total_duration=float(signal.total_duration),
        transcript=tuple(speech),
        has_speech_data=signal.speech_intervals is not None,
        has_scene_data=signal.scene_changes is not None,
    )


def validate_timeline(timeline: NormalizedTimeline) -> None:
    """Raise InvalidInputError when a timeline breaks its ordering/value invariants."""

    if not math.isfinite(timeline.total_duration) or timeline.total_duration < 0:
        raise InvalidInputError(f"Timeline total_duration must be finite and >= 0, got {timeline.total_duration}.")
    if not timeline.time_points:
        raise InvalidInputError("Timeline has no time points.")
    if timeline.time_points[0].time != 0:
        raise InvalidInputError(f"Timeline must start at time 0, got {timeline.time_points[0].time}.")

    previous = -math.inf
    for point in timeline.time_points:
        if not math.isfinite(point.time) or point.time <= previous:
            raise InvalidInputError(f"Timeline points must be strictly ascending; got {point.time} after {previous}.")
        if not math.isfinite(point.audio_energy) or not 0.0 <= point.audio_energy <= 1.0:
            raise InvalidInputError(f"Audio energy at {point.time}s must be within [0, 1], got {point.audio_energy}.")
        previous = point.time


def _validate_signal(signal: RawSignal) -> None:
    if not math.isfinite(signal.total_duration) or signal.total_duration < 0:
        raise InvalidInputError(f"total_duration must be finite and >= 0, got {signal.total_duration}.")

    if len(signal.audio_timestamps) != len(signal.audio_energy):
        raise InvalidInputError(
            "Audio timestamps and energy samples differ in length "
            f"({len(signal.audio_timestamps)} vs {len(signal.audio_energy)})."
        )

    previous = -math.inf
    for timestamp in signal.audio_timestamps:
        if not math.isfinite(timestamp) or timestamp < previous:
            raise InvalidInputError("Audio timestamps must be finite and sorted ascending.")
        previous = timestamp

    for value in signal.audio_energy:
        if not math.isfinite(value) or not 0.0 <= value <= 1.0:
            raise InvalidInputError(f"Audio energy samples must be normalized to [0, 1], got {value}.")

    for interval in signal.speech_intervals or ():
        if not (math.isfinite(interval.start) and math.isfinite(interval.end)) or interval.end < interval.start:
            raise InvalidInputError(f"Invalid speech interval [{interval.start}, {interval.end}].")

    for change in signal.scene_changes or ():
        if not math.isfinite(change):
            raise InvalidInputError(f"Scene change timestamps must be finite, got {change}.")


def _energy_at(times: list[float], *, timestamps: np.ndarray, energy: np.ndarray) -> list[float]:
    if len(timestamps) == 0:
        return [0.0 for _ in times]

    indices = np.searchsorted(timestamps, np.asarray(times, dtype=np.float64), side="left")
    indices = np.minimum(indices, len(energy) - 1)
    return [float(energy[idx]) for idx in indices]


def _is_speech(time: float, speech: tuple[SpeechInterval, ...]) -> bool:
    return any(interval.start <= time <= interval.end for interval in speech)


def _is_scene_change(time: float, scene_changes: tuple[float, ...], tolerance: float) -> bool:
    return any(abs(change - time) < tolerance for change in scene_changes)
