from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Protocol

from autoedit.errors import InvalidInputError
from autoedit.models import DecisionTrace, ScoredSegment, UserConfig

logger = logging.getLogger(__name__)

EPSILON = 1e-6


@dataclass(frozen=True, slots=True)
class SelectionResult:
    """Accepted segments in time order plus the final trace of every candidate."""

    selected: tuple[ScoredSegment, ...]
    traces: Mapping[str, DecisionTrace]
    accumulated_duration: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "selected", tuple(self.selected))
        object.__setattr__(self, "traces", MappingProxyType(dict(self.traces)))


class Selector(Protocol):
    name: str

    def select_with_traces(self, scored: list[ScoredSegment], config: UserConfig) -> SelectionResult: ...


def chronological(segments: list[ScoredSegment]) -> list[ScoredSegment]:
    return sorted(segments, key=lambda segment: (segment.start_time, segment.source_id, segment.id))


def initial_traces(scored: list[ScoredSegment]) -> dict[str, DecisionTrace]:
    traces: dict[str, DecisionTrace] = {}
    for segment in chronological(scored):
        if segment.id in traces:
            raise InvalidInputError(f"Duplicate segment id '{segment.id}' in selection input.")
        traces[segment.id] = segment.explain
    return traces


def filter_eligible(
    scored: list[ScoredSegment],
    config: UserConfig,
    traces: dict[str, DecisionTrace],
) -> list[ScoredSegment]:
    """Drop segments outside the configured duration band, explaining each drop."""

    eligible: list[ScoredSegment] = []
    for segment in scored:
        if segment.duration < config.min_segment_duration - EPSILON:
            traces[segment.id] = traces[segment.id].with_rejection(
                f"Duration {segment.duration:.1f}s is below the minimum segment duration "
                f"{config.min_segment_duration:.1f}s"
            )
        elif segment.duration > config.max_segment_duration + EPSILON:
            traces[segment.id] = traces[segment.id].with_rejection(
                f"Duration {segment.duration:.1f}s exceeds the maximum segment duration "
                f"{config.max_segment_duration:.1f}s"
            )
        else:
            eligible.append(segment)
    return eligible


def greedy_fill(
    ordered: list[ScoredSegment],
    traces: dict[str, DecisionTrace],
    *,
    target_duration: float,
    overflow_factor: float,
    early_stop_ratio: float,
    label: str,
) -> tuple[list[ScoredSegment], float]:
    """Accept candidates in order while the running total stays within the overflow limit.

    Scanning stops once the total reaches ``target_duration * early_stop_ratio``;
    candidates left unevaluated are annotated as such.
    """

    limit = target_duration * overflow_factor
    stop_at = target_duration * early_stop_ratio
    accepted: list[ScoredSegment] = []
    accumulated = 0.0

    for position, segment in enumerate(ordered):
        if accumulated + segment.duration <= limit + EPSILON:
            accumulated += segment.duration
            accepted.append(segment)
            traces[segment.id] = traces[segment.id].with_reason(
                f"Selected by {label} (accumulated: {accumulated:.1f}s of {target_duration:.1f}s target)"
            )
        else:
            traces[segment.id] = traces[segment.id].with_rejection(
                f"Skipped by {label}: adding {segment.duration:.1f}s to {accumulated:.1f}s "
                f"would exceed the {limit:.1f}s limit"
            )

        if accumulated + EPSILON >= stop_at:
            for remaining in ordered[position + 1 :]:
                traces[remaining.id] = traces[remaining.id].with_rejection(
                    f"Not evaluated: {label} stopped at {accumulated:.1f}s "
                    f"(early-stop threshold {stop_at:.1f}s reached)"
                )
            break

    return accepted, accumulated


def log_short_content(eligible: list[ScoredSegment], target_duration: float, label: str) -> None:
    available = sum(segment.duration for segment in eligible)
    if available < target_duration:
        logger.info(
            "%s: only %.1fs of eligible content for a %.1fs target; every eligible segment can be accepted",
            label,
            available,
            target_duration,
        )


def build_result(
    accepted: list[ScoredSegment],
    traces: dict[str, DecisionTrace],
    accumulated: float,
) -> SelectionResult:
    selected = [segment.with_trace(traces[segment.id]) for segment in chronological(accepted)]
    return SelectionResult(selected=tuple(selected), traces=traces, accumulated_duration=accumulated)
