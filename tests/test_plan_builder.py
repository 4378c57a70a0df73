from __future__ import annotations

import pytest

from autoedit.models import Branding, DecisionTrace, PlanOptions, Resolution, ScoredSegment, Transition, UserConfig
from autoedit.propose.plan_builder import build_edit_plan, resolve_branding, resolve_transition


def _segment(segment_id: str, start: float, duration: float, score: float = 70.0) -> ScoredSegment:
    return ScoredSegment(
        id=segment_id,
        source_id="src",
        start_time=start,
        end_time=start + duration,
        score=score,
        explain=DecisionTrace(reasons=(f"picked {segment_id}",)),
    )


def _config(mood: str = "neutral") -> UserConfig:
    return UserConfig(target_duration=20.0, min_segment_duration=2.0, max_segment_duration=10.0, mood=mood)  # type: ignore[arg-type]


def test_clips_follow_time_order_with_transitions_between() -> None:
    selected = [_segment("b", 10.0, 5.0, score=88.0), _segment("a", 0.0, 4.0)]

    plan = build_edit_plan(selected, _config())

    assert [clip.segment_id for clip in plan.clips] == ["a", "b"]
    assert plan.clips[0].transition_after == Transition(type="cut", duration=0.0)
    assert plan.clips[-1].transition_after is None
    assert plan.clips[1].score == 88.0
    assert all(clip.volume == 1.0 for clip in plan.clips)


def test_total_duration_matches_clip_sum() -> None:
    plan = build_edit_plan([_segment("a", 0.0, 4.0), _segment("b", 10.0, 5.5)], _config())

    assert plan.metadata.total_duration == pytest.approx(9.5)
    assert plan.metadata.target_duration == 20.0


def test_calm_mood_uses_fades() -> None:
    plan = build_edit_plan(
        [_segment("a", 0.0, 4.0), _segment("b", 10.0, 5.0)],
        _config("calm"),
        options=PlanOptions(fade_duration=0.75),
    )

    assert plan.clips[0].transition_after == Transition(type="fade", duration=0.75)


def test_explicit_transition_overrides_mood() -> None:
    options = PlanOptions(transition=Transition(type="fade", duration=1.0))

    assert resolve_transition("energetic", options) == Transition(type="fade", duration=1.0)


def test_decision_trace_keeps_rejected_candidates() -> None:
    rejected = DecisionTrace(reasons=("scored",), rejected_because=("too long",))
    selected = _segment("a", 0.0, 4.0)

    plan = build_edit_plan([selected], _config(), traces={"z": rejected})

    assert set(plan.decision_trace) == {"a", "z"}
    assert plan.decision_trace["z"].rejected_because == ("too long",)
    assert plan.decision_trace["a"] == selected.explain


def test_metadata_carries_output_settings_and_strategy() -> None:
    options = PlanOptions(fps=25, resolution=Resolution(width=1280, height=720))

    plan = build_edit_plan([_segment("a", 0.0, 4.0)], _config("energetic"), options=options, strategy="template")

    assert plan.metadata.fps == 25
    assert plan.metadata.resolution == Resolution(width=1280, height=720)
    assert plan.metadata.mood == "energetic"
    assert plan.metadata.strategy == "template"


def test_empty_selection_produces_empty_plan() -> None:
    plan = build_edit_plan([], _config())

    assert plan.clips == ()
    assert plan.metadata.total_duration == 0
    assert plan.branding is None


def test_branding_music_falls_back_to_mood_track() -> None:
    options = PlanOptions(
        branding=Branding(intro="intro-default", watermark="logo"),
        mood_music={"energetic": "music-upbeat", "calm": "music-calm"},
    )

    branding = resolve_branding("calm", options)

    assert branding == Branding(intro="intro-default", watermark="logo", music="music-calm")


def test_explicit_branding_music_wins_over_mood_track() -> None:
    options = PlanOptions(branding=Branding(music="anthem"), mood_music={"calm": "music-calm"})

    assert resolve_branding("calm", options) == Branding(music="anthem")


def test_plan_serializes_to_renderer_contract() -> None:
    plan = build_edit_plan(
        [_segment("a", 0.0, 4.0), _segment("b", 10.0, 5.0)],
        _config(),
        options=PlanOptions(mood_music={"neutral": "music-bed"}),
    )

    payload = plan.to_dict()

    assert payload["clips"][0]["transition_after"] == {"type": "cut", "duration": 0.0}
    assert "transition_after" not in payload["clips"][1]
    assert payload["metadata"]["resolution"] == {"width": 1920, "height": 1080}
    assert payload["branding"]["music"] == "music-bed"
    assert payload["decision_trace"]["a"]["reasons"] == ["picked a"]
