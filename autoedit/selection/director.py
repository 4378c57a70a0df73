"""Director selection: mood-aware ordering and greedy fill to a target duration.

Steps:
1. drop segments outside the min/max duration band
2. order by score; near-ties (within the tie-break threshold of a group leader)
   are ordered by duration according to mood
3. greedily accept within ``target * overflow_factor``, stopping at
   ``target * early_stop_ratio``
4. return accepted segments in time order, annotating unselected neighbours
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from autoedit.models import DecisionTrace, ScoredSegment, UserConfig
from autoedit.selection.greedy import (
    SelectionResult,
    Selector,
    build_result,
    chronological,
    filter_eligible,
    greedy_fill,
    initial_traces,
    log_short_content,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DirectorSelector:
    name: str = "director"

    def select_with_traces(self, scored: list[ScoredSegment], config: UserConfig) -> SelectionResult:
        traces = initial_traces(scored)
        eligible = filter_eligible(scored, config, traces)
        log_short_content(eligible, config.target_duration, label="Director")

        groups = tie_groups(eligible, config.thresholds.tie_break_threshold)
        ordered = order_groups(groups, config.mood)
        _annotate_tie_breaks(groups, config, traces)

        accepted, accumulated = greedy_fill(
            ordered,
            traces,
            target_duration=config.target_duration,
            overflow_factor=config.thresholds.overflow_factor,
            early_stop_ratio=config.thresholds.early_stop_ratio,
            label="Director",
        )
        _annotate_neighbours(scored, {segment.id for segment in accepted}, traces)

        logger.info(
            "Director selected %d of %d segments (%.1fs of %.1fs target, mood=%s)",
            len(accepted),
            len(scored),
            accumulated,
            config.target_duration,
            config.mood,
        )
        return build_result(accepted, traces, accumulated)


def select_segments(
    scored: list[ScoredSegment],
    config: UserConfig,
    selector: Selector | None = None,
) -> list[ScoredSegment]:
    """Return the accepted subset in chronological order (director rules by default)."""

    active = selector or DirectorSelector()
    return list(active.select_with_traces(scored, config).selected)


def order_by_preference(segments: list[ScoredSegment], config: UserConfig) -> list[ScoredSegment]:
    """Order candidates by score, settling near-ties by duration according to mood."""

    return order_groups(tie_groups(segments, config.thresholds.tie_break_threshold), config.mood)


def tie_groups(segments: list[ScoredSegment], threshold: float) -> list[list[ScoredSegment]]:
    """Split the score ranking into groups of candidates within ``threshold`` of the group leader."""

    ranked = sorted(segments, key=lambda segment: (-segment.score, segment.start_time, segment.id))
    groups: list[list[ScoredSegment]] = []
    for segment in ranked:
        if groups and groups[-1][0].score - segment.score < threshold:
            groups[-1].append(segment)
        else:
            groups.append([segment])
    return groups


def order_groups(groups: list[list[ScoredSegment]], mood: str) -> list[ScoredSegment]:
    ordered: list[ScoredSegment] = []
    for group in groups:
        if mood == "energetic":
            ordered.extend(sorted(group, key=lambda segment: segment.duration))
        elif mood == "calm":
            ordered.extend(sorted(group, key=lambda segment: -segment.duration))
        else:
            ordered.extend(group)
    return ordered


def _annotate_tie_breaks(
    groups: list[list[ScoredSegment]],
    config: UserConfig,
    traces: dict[str, DecisionTrace],
) -> None:
    if config.mood == "neutral":
        return

    preference = "shorter" if config.mood == "energetic" else "longer"
    for group in groups:
        if len(group) < 2:
            continue
        leader = group[0]
        for segment in group:
            traces[segment.id] = traces[segment.id].with_reason(
                f"Score within {config.thresholds.tie_break_threshold:.1f} points of {leader.id}; "
                f"{config.mood} mood prefers {preference} segments"
            )


def _annotate_neighbours(
    scored: list[ScoredSegment],
    selected_ids: set[str],
    traces: dict[str, DecisionTrace],
) -> None:
    timeline = chronological(scored)
    for index, segment in enumerate(timeline):
        if segment.id not in selected_ids:
            continue

        neighbours = (
            ("Preceding", timeline[index - 1] if index > 0 else None),
            ("Following", timeline[index + 1] if index + 1 < len(timeline) else None),
        )
        for label, neighbour in neighbours:
            if neighbour is None or neighbour.id in selected_ids:
                continue
            traces[segment.id] = traces[segment.id].with_reason(
                f"{label} segment {neighbour.id} (score {neighbour.score:.1f}) was not selected"
            )
