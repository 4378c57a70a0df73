from __future__ import annotations

import json
import logging
from pathlib import Path
from time import perf_counter
from typing import Callable, TypeVar

import typer

from autoedit.config import Settings, load_settings
from autoedit.ingest.signal_loader import load_raw_signal
from autoedit.logging_config import configure_logging
from autoedit.models import UserConfig
from autoedit.pipeline import BatchJob, run_batch, run_pipeline, strategy_from_settings
from autoedit.propose.exporter import export_final_outputs, load_edit_plan

app = typer.Typer(help="Deterministic auto-edit planner: signals in, explainable edit plan out.")
config_app = typer.Typer(help="Configuration commands.")
propose_app = typer.Typer(help="Edit plan review commands.")

app.add_typer(config_app, name="config")
app.add_typer(propose_app, name="propose")

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_OPTION_HELP = "Path to YAML configuration file."


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path | None) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path or "defaults")
    return settings


def _user_config(
    settings: Settings,
    *,
    target_duration: float | None,
    min_segment: float | None,
    max_segment: float | None,
    keywords: list[str] | None,
    mood: str | None,
) -> UserConfig:
    return settings.to_user_config(
        target_duration=target_duration,
        min_segment_duration=min_segment,
        max_segment_duration=max_segment,
        keywords=tuple(keywords) if keywords else None,
        mood=mood,
    )


def _fail(exc: Exception) -> typer.Exit:
    logger.error("Pipeline failed: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@config_app.command("show")
def show_config(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="AUTOEDIT_CONFIG",
        help=CONFIG_OPTION_HELP,
    )
) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@app.command("run")
def run_command(
    signal_path: Path = typer.Argument(..., help="Signal extractor JSON artifact."),
    source_id: str | None = typer.Option(None, help="Source id. Defaults to the payload's source_id or file stem."),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="AUTOEDIT_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
    target_duration: float | None = typer.Option(None, help="Target edit duration in seconds."),
    min_segment: float | None = typer.Option(None, help="Minimum segment duration in seconds."),
    max_segment: float | None = typer.Option(None, help="Maximum segment duration in seconds."),
    keyword: list[str] | None = typer.Option(None, "--keyword", "-k", help="Priority keyword (repeatable)."),
    mood: str | None = typer.Option(None, help="Edit mood: energetic, calm or neutral."),
    strategy: str | None = typer.Option(None, help="Pipeline strategy: director or template."),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for plan outputs."),
    basename: str | None = typer.Option(None, help="Base filename for exported artifacts."),
) -> None:
    """Build and export an edit plan for one signal file."""

    total_steps = 3
    try:
        settings = _bootstrap(config_path)
        config = _user_config(
            settings,
            target_duration=target_duration,
            min_segment=min_segment,
            max_segment=max_segment,
            keywords=keyword,
            mood=mood,
        )
        pipeline_strategy = strategy_from_settings(settings, strategy)
        plan_options = settings.to_plan_options(pipeline_strategy.name)

        loaded = _run_with_progress(
            1,
            total_steps,
            "Load signal",
            lambda: load_raw_signal(signal_path, source_id=source_id),
        )
        plan = _run_with_progress(
            2,
            total_steps,
            "Build edit plan",
            lambda: run_pipeline(
                loaded.signal,
                config,
                source_id=loaded.source_id,
                strategy=pipeline_strategy,
                plan_options=plan_options,
            ),
        )
        exported = _run_with_progress(
            3,
            total_steps,
            "Export outputs",
            lambda: export_final_outputs(
                plan,
                output_dir or settings.pipeline.output_dir,
                basename=basename or f"{loaded.source_id}_edit_plan",
            ),
        )
    except (OSError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.echo(
        json.dumps(
            {
                "status": "ok",
                "source_id": loaded.source_id,
                "strategy": pipeline_strategy.name,
                "clip_count": len(plan.clips),
                "total_duration": round(plan.metadata.total_duration, 3),
                "outputs": {key: str(path) for key, path in exported.items()},
            },
            indent=2,
        )
    )


@app.command("batch")
def batch_command(
    signal_paths: list[Path] = typer.Argument(..., help="Signal extractor JSON artifacts."),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="AUTOEDIT_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
    strategy: str | None = typer.Option(None, help="Pipeline strategy: director or template."),
    workers: int | None = typer.Option(None, help="Worker threads. Defaults to pipeline.batch_workers."),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for plan outputs."),
) -> None:
    """Plan several sources concurrently; each source gets its own outputs."""

    try:
        settings = _bootstrap(config_path)
        config = settings.to_user_config()
        pipeline_strategy = strategy_from_settings(settings, strategy)
        jobs = [BatchJob(source_id=loaded.source_id, signal=loaded.signal) for loaded in map(load_raw_signal, signal_paths)]

        result = run_batch(
            jobs,
            config,
            strategy=pipeline_strategy,
            plan_options=settings.to_plan_options(pipeline_strategy.name),
            max_workers=workers or settings.pipeline.batch_workers,
        )

        resolved_output_dir = output_dir or settings.pipeline.output_dir
        outputs = {
            source_id: {
                key: str(path)
                for key, path in export_final_outputs(
                    plan, resolved_output_dir, basename=f"{source_id}_edit_plan"
                ).items()
            }
            for source_id, plan in result.plans.items()
        }
    except (OSError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.echo(
        json.dumps(
            {
                "status": "ok" if not result.failures else "partial",
                "completed": list(result.plans),
                "failures": dict(result.failures),
                "cancelled": list(result.cancelled),
                "outputs": outputs,
            },
            indent=2,
        )
    )
    if result.failures:
        raise typer.Exit(code=1)


@propose_app.command("review")
def review_plan(
    plan_path: Path = typer.Argument(..., help="Path to an edit plan JSON contract."),
    output_dir: Path = typer.Option(Path("data/outputs"), "--output-dir", "-o", help="Directory for JSON/CSV/review outputs."),
    basename: str = typer.Option("edit_plan", help="Base filename for exported artifacts."),
) -> None:
    """Re-export a saved plan as JSON, clip CSV and review manifest."""

    try:
        plan = load_edit_plan(plan_path)
        exported = export_final_outputs(plan, output_dir, basename=basename)
    except (OSError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.echo(json.dumps({key: str(path) for key, path in exported.items()}, indent=2))


if __name__ == "__main__":
    app()
