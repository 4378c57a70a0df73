from __future__ import annotations

import logging
from collections.abc import Mapping

from autoedit.models import (
    Branding,
    Clip,
    DecisionTrace,
    EditPlan,
    PlanMetadata,
    PlanOptions,
    ScoredSegment,
    Transition,
    UserConfig,
)

logger = logging.getLogger(__name__)


def build_edit_plan(
    selected: list[ScoredSegment],
    config: UserConfig,
    *,
    options: PlanOptions | None = None,
    traces: Mapping[str, DecisionTrace] | None = None,
    strategy: str = "director",
) -> EditPlan:
    """Turn selected segments into the renderer-facing edit plan.

    Clips map 1:1 to segments in time order; every clip but the last gets the
    resolved transition. ``traces`` (usually the selector's full trace map,
    rejected candidates included) is carried into ``decision_trace``; selected
    segments missing from it contribute their own trace.
    """

    resolved = options or PlanOptions()
    ordered = sorted(selected, key=lambda segment: (segment.start_time, segment.source_id, segment.id))
    transition = resolve_transition(config.mood, resolved)

    clips = tuple(
        Clip(
            segment_id=segment.id,
            source_id=segment.source_id,
            start=segment.start_time,
            end=segment.end_time,
            score=segment.score,
            volume=1.0,
            transition_after=transition if index < len(ordered) - 1 else None,
        )
        for index, segment in enumerate(ordered)
    )

    decision_trace = dict(traces or {})
    for segment in ordered:
        decision_trace.setdefault(segment.id, segment.explain)

    total_duration = sum(clip.duration for clip in clips)
    plan = EditPlan(
        clips=clips,
        metadata=PlanMetadata(
            total_duration=total_duration,
            fps=resolved.fps,
            resolution=resolved.resolution,
            target_duration=config.target_duration,
            mood=config.mood,
            strategy=strategy,
        ),
        decision_trace=decision_trace,
        branding=resolve_branding(config.mood, resolved),
    )

    logger.info(
        "Built edit plan with %d clips (%.1fs, %s transitions, %d traced segments)",
        len(clips),
        total_duration,
        transition.type,
        len(decision_trace),
    )
    return plan


def resolve_transition(mood: str, options: PlanOptions) -> Transition:
    """Explicit transition wins; otherwise calm fades and everything else cuts."""

    if options.transition is not None:
        return options.transition
    if mood == "calm":
        return Transition(type="fade", duration=options.fade_duration)
    return Transition(type="cut", duration=0.0)


def resolve_branding(mood: str, options: PlanOptions) -> Branding | None:
    base = options.branding or Branding()
    music = base.music or options.mood_music.get(mood)
    branding = Branding(intro=base.intro, outro=base.outro, watermark=base.watermark, music=music)
    return None if branding.is_empty else branding
