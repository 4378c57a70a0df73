from __future__ import annotations

import logging
import math

from autoedit.errors import ConfigurationError
from autoedit.features.normalizer import validate_timeline
from autoedit.models import NormalizedTimeline, Segment

logger = logging.getLogger(__name__)

DEFAULT_SILENCE_THRESHOLD = 0.1


def build_segments(
    timeline: NormalizedTimeline,
    min_duration: float,
    max_duration: float,
    source_id: str,
    *,
    silence_threshold: float = DEFAULT_SILENCE_THRESHOLD,
) -> list[Segment]:
    """Cut a normalized timeline into contiguous candidate segments.

    Pipeline:
    1) detect cut points on silence or scene changes, never closer than min_duration
    2) close the timeline at total_duration, merging an undersized tail backwards
    3) split intervals longer than max_duration into equal-width chunks

    The result covers ``[0, total_duration]`` exactly once. Ids are derived from
    ``source_id`` and an ordinal so identical input always yields identical ids.
    """

    _validate_bounds(min_duration, max_duration)
    validate_timeline(timeline)

    if timeline.total_duration <= 0:
        return []

    cuts = _find_cut_points(timeline, min_duration=min_duration, silence_threshold=silence_threshold)
    segments = _assemble_segments(cuts, source_id=source_id, max_duration=max_duration)

    logger.debug(
        "Built %d segments for %s from %d cut points (min=%.2fs, max=%.2fs)",
        len(segments),
        source_id,
        len(cuts),
        min_duration,
        max_duration,
    )
    return segments


def split_long_segments(segments: list[Segment], max_length: float) -> list[Segment]:
    """Split every segment longer than ``max_length`` into equal-width parts.

    Parts keep the parent's source and get ``{parent_id}_p{k}`` ids.
    """

    if not math.isfinite(max_length) or max_length <= 0:
        raise ConfigurationError(f"Split length must be positive, got {max_length}.")

    result: list[Segment] = []
    for segment in segments:
        if segment.duration <= max_length:
            result.append(segment)
            continue
        for part, (start, end) in enumerate(_equal_chunks(segment.start_time, segment.end_time, max_length)):
            result.append(
                Segment(
                    id=f"{segment.id}_p{part}",
                    source_id=segment.source_id,
                    start_time=start,
                    end_time=end,
                )
            )
    return result


def _validate_bounds(min_duration: float, max_duration: float) -> None:
    if not (math.isfinite(min_duration) and math.isfinite(max_duration)):
        raise ConfigurationError(f"Segment duration bounds must be finite, got {min_duration} and {max_duration}.")
    if min_duration <= 0:
        raise ConfigurationError(f"min_duration must be positive, got {min_duration}.")
    if max_duration <= 0:
        raise ConfigurationError(f"max_duration must be positive, got {max_duration}.")
    if min_duration > max_duration:
        raise ConfigurationError(f"min_duration ({min_duration}) exceeds max_duration ({max_duration}).")


def _find_cut_points(
    timeline: NormalizedTimeline,
    *,
    min_duration: float,
    silence_threshold: float,
) -> list[float]:
    total = timeline.total_duration
    cuts = [0.0]
    last_cut = 0.0

    for point in timeline.time_points:
        # cuts at 0 or at/after the end would create empty segments
        if not 0 < point.time < total:
            continue
        if point.time - last_cut < min_duration:
            continue
        if point.audio_energy < silence_threshold or point.is_scene_change:
            cuts.append(point.time)
            last_cut = point.time

    if total - last_cut >= min_duration or len(cuts) == 1:
        cuts.append(total)
    else:
        cuts[-1] = total

    return cuts


def _assemble_segments(cuts: list[float], *, source_id: str, max_duration: float) -> list[Segment]:
    segments: list[Segment] = []
    ordinal = 0

    for start, end in zip(cuts, cuts[1:]):
        for chunk_start, chunk_end in _equal_chunks(start, end, max_duration):
            segments.append(
                Segment(
                    id=f"{source_id}_seg_{ordinal}",
                    source_id=source_id,
                    start_time=chunk_start,
                    end_time=chunk_end,
                )
            )
            ordinal += 1

    return segments


def _equal_chunks(start: float, end: float, max_length: float) -> list[tuple[float, float]]:
    duration = end - start
    if duration <= max_length:
        return [(start, end)]

    chunk_count = math.ceil(duration / max_length)
    width = duration / chunk_count
    bounds = [start + idx * width for idx in range(chunk_count)] + [end]
    return list(zip(bounds, bounds[1:]))
