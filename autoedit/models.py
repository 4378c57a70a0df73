from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Literal

from autoedit.errors import ConfigurationError

Mood = Literal["energetic", "calm", "neutral"]
TransitionType = Literal["cut", "fade"]

MOODS: tuple[str, ...] = ("energetic", "calm", "neutral")


@dataclass(frozen=True, slots=True)
class SpeechInterval:
    """A detected speech span, optionally with its transcript text."""

    start: float
    end: float
    text: str = ""


@dataclass(frozen=True, slots=True)
class RawSignal:
    """Per-media signal data as handed over by the upstream extractor."""

    audio_timestamps: tuple[float, ...]
    audio_energy: tuple[float, ...]
    total_duration: float
    speech_intervals: tuple[SpeechInterval, ...] | None = None
    scene_changes: tuple[float, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "audio_timestamps", tuple(float(ts) for ts in self.audio_timestamps))
        object.__setattr__(self, "audio_energy", tuple(float(value) for value in self.audio_energy))
        if self.speech_intervals is not None:
            object.__setattr__(self, "speech_intervals", tuple(self.speech_intervals))
        if self.scene_changes is not None:
            object.__setattr__(self, "scene_changes", tuple(float(ts) for ts in self.scene_changes))


@dataclass(frozen=True, slots=True)
class TimePoint:
    time: float
    audio_energy: float
    is_speech: bool
    is_scene_change: bool


@dataclass(frozen=True, slots=True)
class NormalizedTimeline:
    """Fixed-step view of one source, sorted by time and starting at zero."""

    time_points: tuple[TimePoint, ...]
    total_duration: float
    transcript: tuple[SpeechInterval, ...] = ()
    has_speech_data: bool = False
    has_scene_data: bool = False

    def points_between(self, start: float, end: float) -> list[TimePoint]:
        """Return points with ``start <= time < end``."""

        return [point for point in self.time_points if start <= point.time < end]


@dataclass(frozen=True, slots=True)
class DecisionTrace:
    """Append-only audit trail for one segment.

    Traces are never edited in place: every ``with_*`` call returns a new trace
    holding a copy of the previous entries plus the new one.
    """

    reasons: tuple[str, ...] = ()
    weights: Mapping[str, float] = field(default_factory=dict)
    rejected_because: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "reasons", tuple(self.reasons))
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))
        if self.rejected_because is not None:
            object.__setattr__(self, "rejected_because", tuple(self.rejected_because))

    @property
    def rejected(self) -> bool:
        return bool(self.rejected_because)

    def with_reason(self, reason: str) -> DecisionTrace:
        return replace(self, reasons=(*self.reasons, reason))

    def with_weight(self, name: str, value: float) -> DecisionTrace:
        if name in self.weights:
            raise ValueError(f"Weight '{name}' is already recorded in this trace.")
        return replace(self, weights={**self.weights, name: value})

    def with_rejection(self, reason: str) -> DecisionTrace:
        return replace(self, rejected_because=(*(self.rejected_because or ()), reason))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reasons": list(self.reasons),
            "weights": dict(self.weights),
        }
        if self.rejected_because is not None:
            payload["rejected_because"] = list(self.rejected_because)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> DecisionTrace:
        rejected = payload.get("rejected_because")
        return cls(
            reasons=tuple(str(reason) for reason in payload.get("reasons", [])),
            weights={str(key): float(value) for key, value in payload.get("weights", {}).items()},
            rejected_because=tuple(str(reason) for reason in rejected) if rejected is not None else None,
        )


@dataclass(frozen=True, slots=True)
class Segment:
    id: str
    source_id: str
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
        }


@dataclass(frozen=True, slots=True)
class ScoredSegment(Segment):
    """A segment with its bounded 0-100 score and the trace explaining it."""

    score: float = 0.0
    explain: DecisionTrace = field(default_factory=DecisionTrace)

    def with_trace(self, explain: DecisionTrace) -> ScoredSegment:
        return replace(self, explain=explain)

    def to_dict(self) -> dict[str, Any]:
        return {
            **Segment.to_dict(self),
            "score": self.score,
            "explain": self.explain.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Empirically chosen constants, overridable per run."""

    silence_threshold: float = 0.1
    scene_change_tolerance: float = 0.5
    overflow_factor: float = 1.05
    early_stop_ratio: float = 0.9
    tie_break_threshold: float = 5.0
    sample_step: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.silence_threshold <= 1.0:
            raise ConfigurationError("silence_threshold must be within [0, 1].")
        if self.scene_change_tolerance < 0:
            raise ConfigurationError("scene_change_tolerance must not be negative.")
        if self.overflow_factor < 1.0:
            raise ConfigurationError("overflow_factor must be at least 1.0.")
        if self.early_stop_ratio <= 0:
            raise ConfigurationError("early_stop_ratio must be positive.")
        if self.tie_break_threshold < 0:
            raise ConfigurationError("tie_break_threshold must not be negative.")
        if self.sample_step <= 0:
            raise ConfigurationError("sample_step must be positive.")


@dataclass(frozen=True, slots=True)
class UserConfig:
    """Per-run editing preferences. Invalid combinations fail at construction."""

    target_duration: float
    min_segment_duration: float
    max_segment_duration: float
    keywords: tuple[str, ...] = ()
    mood: Mood = "neutral"
    thresholds: Thresholds = field(default_factory=Thresholds)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", tuple(str(keyword) for keyword in self.keywords))
        if not math.isfinite(self.target_duration) or self.target_duration <= 0:
            raise ConfigurationError(f"target_duration must be positive, got {self.target_duration}.")
        if not math.isfinite(self.min_segment_duration) or self.min_segment_duration <= 0:
            raise ConfigurationError(f"min_segment_duration must be positive, got {self.min_segment_duration}.")
        if not math.isfinite(self.max_segment_duration):
            raise ConfigurationError(f"max_segment_duration must be finite, got {self.max_segment_duration}.")
        if self.min_segment_duration > self.max_segment_duration:
            raise ConfigurationError(
                "min_segment_duration "
                f"({self.min_segment_duration}) exceeds max_segment_duration ({self.max_segment_duration})."
            )
        if self.mood not in MOODS:
            raise ConfigurationError(f"Unsupported mood '{self.mood}'. Expected one of: {', '.join(MOODS)}.")


@dataclass(frozen=True, slots=True)
class Transition:
    type: TransitionType
    duration: float = 0.0


@dataclass(frozen=True, slots=True)
class Resolution:
    width: int = 1920
    height: int = 1080


@dataclass(frozen=True, slots=True)
class Branding:
    """References to branding assets; the renderer resolves them."""

    intro: str | None = None
    outro: str | None = None
    watermark: str | None = None
    music: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any((self.intro, self.outro, self.watermark, self.music))


@dataclass(frozen=True, slots=True)
class PlanOptions:
    """Output-side settings the plan builder needs besides the user config."""

    fps: int = 30
    resolution: Resolution = field(default_factory=Resolution)
    fade_duration: float = 0.5
    transition: Transition | None = None
    branding: Branding | None = None
    mood_music: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Clip:
    segment_id: str
    source_id: str
    start: float
    end: float
    score: float = 0.0
    volume: float = 1.0
    transition_after: Transition | None = None

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class PlanMetadata:
    total_duration: float
    fps: int
    resolution: Resolution
    target_duration: float
    mood: str
    strategy: str


@dataclass(frozen=True, slots=True)
class EditPlan:
    """Renderer-facing output: ordered clips plus the full decision audit trail."""

    clips: tuple[Clip, ...]
    metadata: PlanMetadata
    decision_trace: Mapping[str, DecisionTrace]
    branding: Branding | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "clips", tuple(self.clips))
        object.__setattr__(self, "decision_trace", MappingProxyType(dict(self.decision_trace)))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "clips": [_clip_to_dict(clip) for clip in self.clips],
            "metadata": {
                "total_duration": self.metadata.total_duration,
                "fps": self.metadata.fps,
                "resolution": {
                    "width": self.metadata.resolution.width,
                    "height": self.metadata.resolution.height,
                },
                "target_duration": self.metadata.target_duration,
                "mood": self.metadata.mood,
                "strategy": self.metadata.strategy,
            },
            "decision_trace": {
                segment_id: trace.to_dict() for segment_id, trace in self.decision_trace.items()
            },
        }
        if self.branding is not None:
            payload["branding"] = {
                "intro": self.branding.intro,
                "outro": self.branding.outro,
                "watermark": self.branding.watermark,
                "music": self.branding.music,
            }
        return payload


def _clip_to_dict(clip: Clip) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "segment_id": clip.segment_id,
        "source_id": clip.source_id,
        "start": clip.start,
        "end": clip.end,
        "score": clip.score,
        "volume": clip.volume,
    }
    if clip.transition_after is not None:
        payload["transition_after"] = {
            "type": clip.transition_after.type,
            "duration": clip.transition_after.duration,
        }
    return payload
