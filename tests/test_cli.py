from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

import autoedit.cli as cli


def _write_signal(path: Path, *, energy_override: float | None = None) -> Path:
    energy = [round(0.3 + (second % 5) / 10, 2) for second in range(41)]
    energy[9] = 0.02
    energy[23] = 0.02
    if energy_override is not None:
        energy[0] = energy_override
    payload = {
        "total_duration": 40.0,
        "audio": {
            "timestamps": list(range(41)),
            "energy": energy,
            "transcription": [{"start_time": 2.0, "end_time": 6.0, "text": "here comes the goal"}],
        },
        "video": {"scene_changes": [15.0, 31.0]},
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _write_config(tmp_path: Path) -> Path:
    config_path = tmp_path / "autoedit.yaml"
    config_path.write_text(
        "pipeline:\n  target_duration: 15\n  min_segment_duration: 2\n  max_segment_duration: 6\n"
        f"  output_dir: {tmp_path / 'outputs'}\n",
        encoding="utf-8",
    )
    return config_path


def test_run_command_shows_progress_and_exports_outputs(tmp_path: Path) -> None:
    signal_path = _write_signal(tmp_path / "match.json")

    result = CliRunner().invoke(
        cli.app,
        ["run", str(signal_path), "--config", str(_write_config(tmp_path)), "--mood", "calm", "-k", "goal"],
    )

    assert result.exit_code == 0, result.output
    assert "[1/3] Load signal..." in result.output
    assert "[3/3] Export outputs done" in result.output
    assert '"status": "ok"' in result.output

    plan_path = tmp_path / "outputs" / "match_edit_plan.json"
    payload = json.loads(plan_path.read_text(encoding="utf-8"))
    assert payload["metadata"]["mood"] == "calm"
    assert payload["metadata"]["total_duration"] <= 15 * 1.05 + 1e-6
    assert (tmp_path / "outputs" / "match_edit_plan.csv").exists()


def test_run_command_prints_clean_error_without_traceback(tmp_path: Path) -> None:
    signal_path = _write_signal(tmp_path / "broken.json", energy_override=3.0)

    result = CliRunner().invoke(cli.app, ["run", str(signal_path), "--config", str(_write_config(tmp_path))])

    assert result.exit_code == 1
    assert "[2/3] Build edit plan failed" in result.output
    assert "Error: Audio energy samples must be normalized" in result.output
    assert "Traceback" not in result.output


def test_run_command_rejects_unknown_mood(tmp_path: Path) -> None:
    signal_path = _write_signal(tmp_path / "match.json")

    result = CliRunner().invoke(
        cli.app,
        ["run", str(signal_path), "--config", str(_write_config(tmp_path)), "--mood", "furious"],
    )

    assert result.exit_code == 1
    assert "Error: Unsupported mood 'furious'" in result.output


def test_run_command_reports_missing_signal_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli.app,
        ["run", str(tmp_path / "nope.json"), "--config", str(_write_config(tmp_path))],
    )

    assert result.exit_code == 1
    assert "[1/3] Load signal failed" in result.output
    assert "Signal file not found" in result.output


def test_run_command_passes_cli_overrides_to_pipeline(tmp_path: Path, monkeypatch) -> None:
    signal_path = _write_signal(tmp_path / "match.json")
    captured: dict[str, object] = {}
    real_run_pipeline = cli.run_pipeline

    def _run_pipeline(signal, config, **kwargs):
        captured["config"] = config
        captured["strategy"] = kwargs["strategy"].name
        return real_run_pipeline(signal, config, **kwargs)

    monkeypatch.setattr(cli, "run_pipeline", _run_pipeline)

    result = CliRunner().invoke(
        cli.app,
        [
            "run",
            str(signal_path),
            "--config",
            str(_write_config(tmp_path)),
            "--target-duration",
            "10",
            "--min-segment",
            "3",
            "--strategy",
            "template",
            "--source-id",
            "cam-b",
        ],
    )

    assert result.exit_code == 0, result.output
    assert captured["config"].target_duration == 10.0
    assert captured["config"].min_segment_duration == 3.0
    assert captured["strategy"] == "template"
    assert (tmp_path / "outputs" / "cam-b_edit_plan.json").exists()


def test_batch_command_plans_every_source(tmp_path: Path) -> None:
    first = _write_signal(tmp_path / "cam_a.json")
    second = _write_signal(tmp_path / "cam_b.json")

    result = CliRunner().invoke(
        cli.app,
        ["batch", str(first), str(second), "--config", str(_write_config(tmp_path)), "--workers", "2"],
    )

    assert result.exit_code == 0, result.output
    assert (tmp_path / "outputs" / "cam_a_edit_plan.json").exists()
    assert (tmp_path / "outputs" / "cam_b_edit_plan.json").exists()


def test_batch_command_exits_non_zero_when_a_source_fails(tmp_path: Path) -> None:
    good = _write_signal(tmp_path / "good.json")
    bad = _write_signal(tmp_path / "bad.json", energy_override=2.0)

    result = CliRunner().invoke(cli.app, ["batch", str(good), str(bad), "--config", str(_write_config(tmp_path))])

    assert result.exit_code == 1
    assert '"status": "partial"' in result.output
    assert (tmp_path / "outputs" / "good_edit_plan.json").exists()
    assert not (tmp_path / "outputs" / "bad_edit_plan.json").exists()


def test_review_command_reexports_saved_plan(tmp_path: Path) -> None:
    signal_path = _write_signal(tmp_path / "match.json")
    runner = CliRunner()
    runner.invoke(cli.app, ["run", str(signal_path), "--config", str(_write_config(tmp_path))])

    result = runner.invoke(
        cli.app,
        [
            "propose",
            "review",
            str(tmp_path / "outputs" / "match_edit_plan.json"),
            "--output-dir",
            str(tmp_path / "review"),
            "--basename",
            "again",
        ],
    )

    assert result.exit_code == 0, result.output
    manifest = json.loads((tmp_path / "review" / "again_review.json").read_text(encoding="utf-8"))
    assert manifest["clip_count"] >= 1


def test_config_show_prints_resolved_settings(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli.app, ["config", "show", "--config", str(_write_config(tmp_path))])

    assert result.exit_code == 0
    assert '"target_duration": 15.0' in result.output
