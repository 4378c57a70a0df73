from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Literal, Protocol

from autoedit.errors import InvalidInputError
from autoedit.features.normalizer import validate_timeline
from autoedit.models import (
    DecisionTrace,
    NormalizedTimeline,
    ScoredSegment,
    Segment,
    TimePoint,
    UserConfig,
)

logger = logging.getLogger(__name__)

BASE_SCORE = 50.0
ENERGY_WEIGHT = 30.0
KEYWORD_BOOST = 20.0
DENSITY_WEIGHT = 20.0
SILENCE_PENALTY = 20.0
DEFAULT_REASON_THRESHOLD = 5.0
ESTIMATED_KEYWORD_SEED = 0.7

FeatureSource = Literal["transcript", "measured", "estimate", "none"]


class Scorer(Protocol):
    """Scoring strategy: a bounded 0-100 score plus the trace explaining it."""

    name: str

    def score(
        self,
        segment: Segment,
        timeline: NormalizedTimeline,
        config: UserConfig,
    ) -> tuple[float, DecisionTrace]: ...


@dataclass(frozen=True, slots=True)
class SegmentFeatures:
    """Signal-derived features for one segment, with where each one came from."""

    mean_energy: float
    point_count: int
    keyword_hits: tuple[str, ...]
    keyword_source: FeatureSource
    density: float
    density_source: FeatureSource


@dataclass(frozen=True, slots=True)
class DirectorScorer:
    """Default rule set: energy, keyword and density bonuses, silence penalty."""

    base_score: float = BASE_SCORE
    energy_weight: float = ENERGY_WEIGHT
    keyword_boost: float = KEYWORD_BOOST
    density_weight: float = DENSITY_WEIGHT
    silence_penalty: float = SILENCE_PENALTY
    reason_threshold: float = DEFAULT_REASON_THRESHOLD
    name: str = "director"

    def score(
        self,
        segment: Segment,
        timeline: NormalizedTimeline,
        config: UserConfig,
    ) -> tuple[float, DecisionTrace]:
        features = extract_segment_features(segment, timeline, config.keywords)
        silence_threshold = config.thresholds.silence_threshold

        contributions = {
            "audio_energy": features.mean_energy * self.energy_weight,
            "keyword_match": self.keyword_boost if features.keyword_hits else 0.0,
            "content_density": features.density * self.density_weight,
            "silence_penalty": -self.silence_penalty if features.mean_energy < silence_threshold else 0.0,
        }
        narration = {
            "audio_energy": f"Audio energy averages {features.mean_energy:.2f}",
            "keyword_match": _keyword_reason(features),
            "content_density": f"Content density {features.density:.2f} ({features.density_source})",
            "silence_penalty": (
                f"Mean energy {features.mean_energy:.2f} is below the silence threshold {silence_threshold:.2f}"
            ),
        }
        return assemble_score(
            base=self.base_score,
            contributions=contributions,
            narration=narration,
            reason_threshold=self.reason_threshold,
        )


def score_segment(
    segment: Segment,
    timeline: NormalizedTimeline,
    config: UserConfig,
    scorer: Scorer | None = None,
) -> ScoredSegment:
    """Score one segment with the given strategy (director rules by default)."""

    validate_timeline(timeline)
    return _score_validated(segment, timeline, config, scorer or DirectorScorer())


def score_segments(
    segments: list[Segment],
    timeline: NormalizedTimeline,
    config: UserConfig,
    scorer: Scorer | None = None,
) -> list[ScoredSegment]:
    validate_timeline(timeline)
    active = scorer or DirectorScorer()
    scored = [_score_validated(segment, timeline, config, active) for segment in segments]

    if scored:
        logger.debug(
            "Scored %d segments with %s strategy; mean score %.2f",
            len(scored),
            active.name,
            sum(item.score for item in scored) / len(scored),
        )
    return scored


def assemble_score(
    *,
    base: float,
    contributions: dict[str, float],
    narration: dict[str, str],
    reason_threshold: float,
) -> tuple[float, DecisionTrace]:
    """Sum named contributions onto a base score and record them in a new trace.

    Every contribution is kept under its key in ``weights``; only those whose
    magnitude reaches ``reason_threshold`` are narrated into ``reasons``.
    """

    trace = DecisionTrace().with_weight("base", base)
    total = base

    for key, raw_value in contributions.items():
        value = round(raw_value, 4)
        trace = trace.with_weight(key, value)
        total += value
        if abs(value) >= reason_threshold:
            trace = trace.with_reason(f"{narration[key]} ({value:+.1f})")

    score = round(_clamp(total), 4)
    if score != round(total, 4):
        trace = trace.with_reason(f"Raw score {total:.1f} clamped to {score:.1f}")
    return score, trace


def extract_segment_features(
    segment: Segment,
    timeline: NormalizedTimeline,
    keywords: tuple[str, ...],
) -> SegmentFeatures:
    """Derive scoring features from the timeline points covering a segment.

    Keyword presence comes from transcript text when the extractor supplied any,
    and content density from speech/scene flags when those were supplied. Missing
    features fall back to a seed computed from the segment's own start and
    duration, so repeated calls always agree.
    """

    points = _covering_points(segment, timeline)
    point_count = len(points)
    mean_energy = sum(point.audio_energy for point in points) / point_count if point_count else 0.0
    seed = deterministic_seed(segment)

    usable_keywords = tuple(keyword for keyword in keywords if keyword.strip())
    if not usable_keywords:
        keyword_hits: tuple[str, ...] = ()
        keyword_source: FeatureSource = "none"
    elif any(interval.text.strip() for interval in timeline.transcript):
        keyword_hits = _transcript_keyword_hits(segment, timeline, usable_keywords)
        keyword_source = "transcript"
    else:
        keyword_hits = usable_keywords if seed > ESTIMATED_KEYWORD_SEED else ()
        keyword_source = "estimate"

    ratios: list[float] = []
    if point_count and timeline.has_speech_data:
        ratios.append(sum(1 for point in points if point.is_speech) / point_count)
    if point_count and timeline.has_scene_data:
        ratios.append(sum(1 for point in points if point.is_scene_change) / point_count)

    if ratios:
        density = sum(ratios) / len(ratios)
        density_source: FeatureSource = "measured"
    else:
        density = 1.0 - seed
        density_source = "estimate"

    return SegmentFeatures(
        mean_energy=mean_energy,
        point_count=point_count,
        keyword_hits=keyword_hits,
        keyword_source=keyword_source,
        density=density,
        density_source=density_source,
    )


def deterministic_seed(segment: Segment) -> float:
    """Pseudo-random value in [0, 1) that depends only on start time and duration."""

    return ((segment.start_time * 13 + segment.duration * 7) % 100) / 100


def _covering_points(segment: Segment, timeline: NormalizedTimeline) -> list[TimePoint]:
    points = timeline.points_between(segment.start_time, segment.end_time)
    if points:
        return points

    # segment narrower than the sampling step: use the sample it falls after
    preceding = [point for point in timeline.time_points if point.time <= segment.start_time]
    return preceding[-1:]


def _transcript_keyword_hits(
    segment: Segment,
    timeline: NormalizedTimeline,
    keywords: tuple[str, ...],
) -> tuple[str, ...]:
    text = " ".join(
        interval.text.lower()
        for interval in timeline.transcript
        if interval.start < segment.end_time and interval.end >= segment.start_time
    )
    return tuple(keyword for keyword in keywords if keyword.lower() in text)


def _keyword_reason(features: SegmentFeatures) -> str:
    matched = ", ".join(repr(keyword) for keyword in features.keyword_hits)
    if features.keyword_source == "estimate":
        return f"Keyword presence estimated for {matched}"
    return f"Transcript mentions {matched}"


def _score_validated(
    segment: Segment,
    timeline: NormalizedTimeline,
    config: UserConfig,
    scorer: Scorer,
) -> ScoredSegment:
    if segment.duration <= 0:
        raise InvalidInputError(f"Segment {segment.id} has non-positive duration {segment.duration}.")

    score, trace = scorer.score(segment, timeline, config)
    if not math.isfinite(score) or not 0.0 <= score <= 100.0:
        raise InvalidInputError(f"Scorer '{scorer.name}' produced out-of-range score {score} for {segment.id}.")

    return ScoredSegment(
        id=segment.id,
        source_id=segment.source_id,
        start_time=segment.start_time,
        end_time=segment.end_time,
        score=score,
        explain=trace,
    )


def _clamp(value: float, minimum: float = 0.0, maximum: float = 100.0) -> float:
    return max(minimum, min(maximum, value))
