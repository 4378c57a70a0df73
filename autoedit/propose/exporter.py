from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from autoedit.errors import InvalidInputError
from autoedit.models import (
    Branding,
    Clip,
    DecisionTrace,
    EditPlan,
    PlanMetadata,
    Resolution,
    Transition,
)


def export_edit_plan(plan: EditPlan, output_path: str | Path) -> Path:
    """Write the edit plan JSON contract consumed by the renderer and UI."""

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(plan.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def export_clip_table(plan: EditPlan, output_path: str | Path) -> Path:
    """Write one CSV row per clip with score, confidence and reason summary."""

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fields = [
        "index",
        "segment_id",
        "source_id",
        "start",
        "end",
        "duration",
        "score",
        "confidence",
        "transition_after",
        "reason_summary",
    ]

    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=fields)
        writer.writeheader()
        for idx, clip in enumerate(plan.clips, start=1):
            writer.writerow(
                {
                    "index": idx,
                    "segment_id": clip.segment_id,
                    "source_id": clip.source_id,
                    "start": f"{clip.start:.3f}",
                    "end": f"{clip.end:.3f}",
                    "duration": f"{clip.duration:.3f}",
                    "score": f"{clip.score:.2f}",
                    "confidence": _confidence_label(clip.score),
                    "transition_after": clip.transition_after.type if clip.transition_after else "",
                    "reason_summary": _reason_summary(plan.decision_trace.get(clip.segment_id)),
                }
            )
    return path


def export_final_outputs(
    plan: EditPlan,
    output_dir: str | Path,
    *,
    basename: str = "edit_plan",
) -> dict[str, Path]:
    """Export the plan JSON, the clip CSV and a review manifest side by side."""

    resolved_output_dir = Path(output_dir)
    resolved_output_dir.mkdir(parents=True, exist_ok=True)

    json_path = export_edit_plan(plan, resolved_output_dir / f"{basename}.json")
    csv_path = export_clip_table(plan, resolved_output_dir / f"{basename}.csv")
    review_path = resolved_output_dir / f"{basename}_review.json"
    review_path.write_text(
        json.dumps(generate_review_manifest(plan), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )

    return {
        "json": json_path,
        "csv": csv_path,
        "review": review_path,
    }


def generate_review_manifest(plan: EditPlan) -> dict[str, Any]:
    """Summarize selected clips and rejected alternatives for quick triage."""

    clips: list[dict[str, Any]] = []
    for idx, clip in enumerate(plan.clips, start=1):
        trace = plan.decision_trace.get(clip.segment_id)
        clips.append(
            {
                "index": idx,
                "segment_id": clip.segment_id,
                "source_id": clip.source_id,
                "start": clip.start,
                "end": clip.end,
                "duration": round(clip.duration, 3),
                "score": clip.score,
                "confidence": _confidence_label(clip.score),
                "reason_summary": _reason_summary(trace),
            }
        )

    selected_ids = {clip.segment_id for clip in plan.clips}
    rejected = [
        {
            "segment_id": segment_id,
            "rejected_because": list(trace.rejected_because or ()),
        }
        for segment_id, trace in plan.decision_trace.items()
        if segment_id not in selected_ids and trace.rejected
    ]

    return {
        "total_duration": round(plan.metadata.total_duration, 3),
        "target_duration": plan.metadata.target_duration,
        "strategy": plan.metadata.strategy,
        "clip_count": len(clips),
        "clips": clips,
        "rejected": rejected,
    }


def load_edit_plan(path: str | Path) -> EditPlan:
    """Load an edit plan from the exporter JSON contract."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise InvalidInputError("Edit plan contract must be a JSON object.")

    try:
        clips = [_clip_from_dict(row) for row in payload["clips"]]
        metadata = payload["metadata"]
        resolution = metadata.get("resolution", {})
        branding = payload.get("branding")
        return EditPlan(
            clips=tuple(clips),
            metadata=PlanMetadata(
                total_duration=float(metadata["total_duration"]),
                fps=int(metadata["fps"]),
                resolution=Resolution(width=int(resolution["width"]), height=int(resolution["height"])),
                target_duration=float(metadata.get("target_duration", 0.0)),
                mood=str(metadata.get("mood", "neutral")),
                strategy=str(metadata.get("strategy", "director")),
            ),
            decision_trace={
                str(segment_id): DecisionTrace.from_dict(trace)
                for segment_id, trace in payload.get("decision_trace", {}).items()
            },
            branding=Branding(**branding) if branding is not None else None,
        )
    except KeyError as exc:
        raise InvalidInputError(f"Edit plan is missing required field {exc}.") from exc
    except (AttributeError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Edit plan has a malformed value: {exc}") from exc


def _clip_from_dict(row: dict[str, Any]) -> Clip:
    transition = row.get("transition_after")
    return Clip(
        segment_id=str(row["segment_id"]),
        source_id=str(row["source_id"]),
        start=float(row["start"]),
        end=float(row["end"]),
        score=float(row.get("score", 0.0)),
        volume=float(row.get("volume", 1.0)),
        transition_after=(
            Transition(type=transition["type"], duration=float(transition.get("duration", 0.0)))
            if transition is not None
            else None
        ),
    )


def _confidence_label(score: float) -> str:
    if score >= 80:
        return "high"
    if score >= 60:
        return "medium"
    return "low"


def _reason_summary(trace: DecisionTrace | None) -> str:
    if trace is not None and trace.reasons:
        return "; ".join(trace.reasons)
    return "no strong signals"
