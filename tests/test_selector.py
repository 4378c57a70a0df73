from __future__ import annotations

import pytest

from autoedit.errors import InvalidInputError
from autoedit.models import DecisionTrace, ScoredSegment, Thresholds, UserConfig
from autoedit.selection.director import DirectorSelector, order_by_preference, select_segments, tie_groups
from autoedit.selection.template_engine import TemplateSelector


def _segment(segment_id: str, score: float, start: float, duration: float) -> ScoredSegment:
    return ScoredSegment(
        id=segment_id,
        source_id="src",
        start_time=start,
        end_time=start + duration,
        score=score,
        explain=DecisionTrace(reasons=(f"scored {segment_id}",)),
    )


def _scenario_segments() -> list[ScoredSegment]:
    return [
        _segment("1", 80.0, 0.0, 10.0),
        _segment("2", 90.0, 10.0, 10.0),
        _segment("3", 50.0, 20.0, 5.0),
    ]


def _config(target: float, *, min_duration: float = 2.0, max_duration: float = 10.0, mood: str = "neutral") -> UserConfig:
    return UserConfig(
        target_duration=target,
        min_segment_duration=min_duration,
        max_segment_duration=max_duration,
        mood=mood,  # type: ignore[arg-type]
    )


def test_fills_target_with_best_fitting_segments() -> None:
    selected = select_segments(_scenario_segments(), _config(15.0))

    assert [segment.id for segment in selected] == ["2", "3"]
    assert sum(segment.duration for segment in selected) == pytest.approx(15.0)


def test_stops_once_early_stop_threshold_is_reached() -> None:
    result = DirectorSelector().select_with_traces(_scenario_segments(), _config(10.0))

    assert [segment.id for segment in result.selected] == ["2"]
    assert any("Not evaluated" in reason for reason in result.traces["1"].rejected_because or ())
    assert any("Not evaluated" in reason for reason in result.traces["3"].rejected_because or ())


def test_segments_below_min_duration_are_filtered_before_selection() -> None:
    result = DirectorSelector().select_with_traces(_scenario_segments(), _config(20.0, min_duration=8.0))

    assert [segment.id for segment in result.selected] == ["1", "2"]
    assert "below the minimum segment duration" in result.traces["3"].rejected_because[0]


def test_segments_above_max_duration_are_rejected() -> None:
    segments = [_segment("long", 99.0, 0.0, 12.0), _segment("ok", 40.0, 12.0, 5.0)]

    result = DirectorSelector().select_with_traces(segments, _config(20.0))

    assert [segment.id for segment in result.selected] == ["ok"]
    assert "exceeds the maximum segment duration" in result.traces["long"].rejected_because[0]


def test_selection_never_exceeds_overflow_limit() -> None:
    segments = [_segment(f"s{idx}", 90.0 - idx, idx * 7.0, 7.0) for idx in range(10)]

    result = DirectorSelector().select_with_traces(segments, _config(30.0, max_duration=7.0))

    assert result.accumulated_duration <= 30.0 * 1.05 + 1e-6
    assert sum(segment.duration for segment in result.selected) == pytest.approx(result.accumulated_duration)


def test_overflow_rejection_is_explained() -> None:
    result = DirectorSelector().select_with_traces(_scenario_segments(), _config(15.0))

    assert "would exceed the 15.8s limit" in result.traces["1"].rejected_because[0]
    assert result.traces["2"].rejected_because is None


def test_selected_segments_are_returned_in_time_order() -> None:
    segments = list(reversed(_scenario_segments()))

    selected = select_segments(segments, _config(25.0))

    starts = [segment.start_time for segment in selected]
    assert starts == sorted(starts)


def test_selection_is_deterministic() -> None:
    first = DirectorSelector().select_with_traces(_scenario_segments(), _config(15.0))
    second = DirectorSelector().select_with_traces(_scenario_segments(), _config(15.0))

    assert first.selected == second.selected
    assert dict(first.traces) == dict(second.traces)


def test_selected_segments_note_unselected_neighbours() -> None:
    result = DirectorSelector().select_with_traces(_scenario_segments(), _config(15.0))

    assert "Preceding segment 1 (score 80.0) was not selected" in result.traces["2"].reasons
    assert not any("was not selected" in reason for reason in result.traces["3"].reasons)


def test_selection_does_not_mutate_input_traces() -> None:
    segments = _scenario_segments()
    before = [segment.explain for segment in segments]

    result = DirectorSelector().select_with_traces(segments, _config(15.0))

    assert [segment.explain for segment in segments] == before
    assert segments[1].explain.reasons == ("scored 2",)
    assert result.selected[0].explain.reasons[0] == "scored 2"
    assert len(result.selected[0].explain.reasons) > 1


def test_empty_input_yields_empty_selection() -> None:
    result = DirectorSelector().select_with_traces([], _config(15.0))

    assert result.selected == ()
    assert result.accumulated_duration == 0.0


def test_short_content_accepts_every_eligible_segment() -> None:
    selected = select_segments(_scenario_segments(), _config(100.0))

    assert [segment.id for segment in selected] == ["1", "2", "3"]


def test_duplicate_ids_are_rejected() -> None:
    segments = [_segment("dup", 80.0, 0.0, 5.0), _segment("dup", 70.0, 5.0, 5.0)]

    with pytest.raises(InvalidInputError, match="Duplicate segment id"):
        DirectorSelector().select_with_traces(segments, _config(10.0))


@pytest.mark.parametrize(("mood", "expected"), [("energetic", ["b"]), ("calm", ["a"]), ("neutral", ["a"])])
def test_mood_breaks_near_ties_by_duration(mood: str, expected: list[str]) -> None:
    segments = [_segment("a", 80.0, 0.0, 8.0), _segment("b", 78.0, 10.0, 3.0)]

    selected = select_segments(segments, _config(8.0, mood=mood))

    assert [segment.id for segment in selected] == expected


def test_tie_break_is_explained_for_non_neutral_moods() -> None:
    segments = [_segment("a", 80.0, 0.0, 8.0), _segment("b", 78.0, 10.0, 3.0)]

    result = DirectorSelector().select_with_traces(segments, _config(8.0, mood="energetic"))

    assert any("energetic mood prefers shorter segments" in reason for reason in result.traces["b"].reasons)


def test_tie_groups_are_anchored_on_group_leader() -> None:
    segments = [_segment("a", 90.0, 0.0, 5.0), _segment("b", 86.0, 5.0, 5.0), _segment("c", 82.0, 10.0, 5.0)]

    groups = tie_groups(segments, 5.0)

    assert [[segment.id for segment in group] for group in groups] == [["a", "b"], ["c"]]


def test_order_by_preference_respects_configured_tie_threshold() -> None:
    segments = [_segment("a", 80.0, 0.0, 8.0), _segment("b", 70.0, 10.0, 3.0)]
    config = UserConfig(
        target_duration=10.0,
        min_segment_duration=2.0,
        max_segment_duration=10.0,
        mood="energetic",
        thresholds=Thresholds(tie_break_threshold=15.0),
    )

    assert [segment.id for segment in order_by_preference(segments, config)] == ["b", "a"]


def test_template_selector_uses_strict_score_order() -> None:
    segments = [_segment("a", 80.0, 0.0, 8.0), _segment("b", 78.0, 10.0, 3.0)]

    result = TemplateSelector(template_name="promo").select_with_traces(segments, _config(8.0, mood="energetic"))

    assert [segment.id for segment in result.selected] == ["a"]
    assert "Selected by template 'promo' (accumulated: 8.0s of 8.0s target)" in result.traces["a"].reasons
    assert not any("was not selected" in reason for reason in result.traces["a"].reasons)


def test_template_selector_uses_its_own_early_stop_ratio() -> None:
    segments = [_segment("a", 90.0, 0.0, 9.0), _segment("b", 80.0, 10.0, 1.0)]

    director = select_segments(segments, _config(10.0))
    template = TemplateSelector().select_with_traces(segments, _config(10.0)).selected

    assert [segment.id for segment in director] == ["a"]
    assert [segment.id for segment in template] == ["a", "b"]
