from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from threading import Event
from time import perf_counter
from types import MappingProxyType

from autoedit.config import Settings
from autoedit.errors import AutoEditError, ConfigurationError, PipelineCancelledError
from autoedit.features.normalizer import normalize_signal
from autoedit.models import EditPlan, PlanOptions, RawSignal, UserConfig
from autoedit.propose.plan_builder import build_edit_plan
from autoedit.propose.segment_builder import build_segments, split_long_segments
from autoedit.scoring.heuristic_score import DEFAULT_REASON_THRESHOLD, DirectorScorer, Scorer, score_segments
from autoedit.scoring.template_score import TemplateScorer, TemplateScoringRules
from autoedit.selection.director import DirectorSelector
from autoedit.selection.greedy import Selector
from autoedit.selection.template_engine import DEFAULT_TEMPLATE_EARLY_STOP, TemplateSelector

logger = logging.getLogger(__name__)

STRATEGY_NAMES = ("director", "template")


@dataclass(frozen=True, slots=True)
class PipelineStrategy:
    """A scorer/selector pair plus the optional pre-scoring split length."""

    name: str
    scorer: Scorer
    selector: Selector
    split_length: float | None = None


@dataclass(frozen=True, slots=True)
class BatchJob:
    source_id: str
    signal: RawSignal
    config: UserConfig | None = None
    cancel_event: Event | None = None


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Plans of completed runs; failed and cancelled runs contribute nothing else."""

    plans: Mapping[str, EditPlan]
    failures: Mapping[str, str] = field(default_factory=dict)
    cancelled: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "plans", MappingProxyType(dict(self.plans)))
        object.__setattr__(self, "failures", MappingProxyType(dict(self.failures)))


def resolve_strategy(
    name: str,
    *,
    reason_threshold: float = DEFAULT_REASON_THRESHOLD,
    template_rules: TemplateScoringRules | None = None,
    template_name: str = "default",
    template_early_stop: float = DEFAULT_TEMPLATE_EARLY_STOP,
) -> PipelineStrategy:
    """Map a strategy name (director|template) to its scorer and selector."""

    normalized = name.lower().strip()
    if normalized == "director":
        return PipelineStrategy(
            name="director",
            scorer=DirectorScorer(reason_threshold=reason_threshold),
            selector=DirectorSelector(),
        )

    if normalized == "template":
        rules = template_rules or TemplateScoringRules()
        return PipelineStrategy(
            name="template",
            scorer=TemplateScorer(rules=rules, template_name=template_name, reason_threshold=reason_threshold),
            selector=TemplateSelector(early_stop_ratio=template_early_stop, template_name=template_name),
            split_length=rules.split_length,
        )

    raise ConfigurationError(
        f"Unsupported pipeline strategy '{name}'. Expected one of: {', '.join(STRATEGY_NAMES)}."
    )


def strategy_from_settings(settings: Settings, name: str | None = None) -> PipelineStrategy:
    return resolve_strategy(
        name or settings.scoring.strategy,
        reason_threshold=settings.scoring.reason_threshold,
        template_rules=settings.to_template_rules(),
        template_name=settings.template.name,
        template_early_stop=settings.template.early_stop_ratio,
    )


def run_pipeline(
    signal: RawSignal,
    config: UserConfig,
    *,
    source_id: str,
    strategy: PipelineStrategy | None = None,
    plan_options: PlanOptions | None = None,
    cancel_event: Event | _AnyEvent | None = None,
) -> EditPlan:
    """Run normalize -> segment -> score -> select -> plan for one source.

    ``cancel_event`` is checked between stages; a cancelled run raises
    PipelineCancelledError and returns nothing.
    """

    active = strategy or resolve_strategy("director")
    thresholds = config.thresholds
    started_at = perf_counter()

    _check_cancelled(cancel_event, source_id, "normalize")
    timeline = normalize_signal(
        signal,
        step=thresholds.sample_step,
        scene_change_tolerance=thresholds.scene_change_tolerance,
    )

    _check_cancelled(cancel_event, source_id, "segment")
    segments = build_segments(
        timeline,
        config.min_segment_duration,
        config.max_segment_duration,
        source_id,
        silence_threshold=thresholds.silence_threshold,
    )
    if active.split_length is not None:
        segments = split_long_segments(segments, active.split_length)
    logger.info("[%s] %d candidate segments over %.1fs", source_id, len(segments), timeline.total_duration)

    _check_cancelled(cancel_event, source_id, "score")
    scored = score_segments(segments, timeline, config, active.scorer)

    _check_cancelled(cancel_event, source_id, "select")
    selection = active.selector.select_with_traces(scored, config)

    _check_cancelled(cancel_event, source_id, "plan")
    plan = build_edit_plan(
        list(selection.selected),
        config,
        options=plan_options,
        traces=selection.traces,
        strategy=active.name,
    )

    logger.info(
        "[%s] %s pipeline finished: %d clips, %.1fs in %.3fs",
        source_id,
        active.name,
        len(plan.clips),
        plan.metadata.total_duration,
        perf_counter() - started_at,
    )
    return plan


def run_batch(
    jobs: list[BatchJob],
    config: UserConfig,
    *,
    strategy: PipelineStrategy | None = None,
    plan_options: PlanOptions | None = None,
    max_workers: int = 4,
    cancel_event: Event | None = None,
) -> BatchResult:
    """Run independent pipelines on worker threads.

    Each job owns its whole chain; nothing mutable is shared between jobs. A job
    is cancelled by its own event or by the batch-wide ``cancel_event``.
    """

    source_ids = [job.source_id for job in jobs]
    if len(set(source_ids)) != len(source_ids):
        raise ConfigurationError("Batch source ids must be unique.")

    plans: dict[str, EditPlan] = {}
    failures: dict[str, str] = {}
    cancelled: list[str] = []

    with ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="autoedit") as executor:
        futures = {
            executor.submit(
                run_pipeline,
                job.signal,
                job.config or config,
                source_id=job.source_id,
                strategy=strategy,
                plan_options=plan_options,
                cancel_event=_combine_events(job.cancel_event, cancel_event),
            ): job.source_id
            for job in jobs
        }
        for future in as_completed(futures):
            source_id = futures[future]
            try:
                plans[source_id] = future.result()
            except PipelineCancelledError as exc:
                logger.warning("[%s] run cancelled; partial output discarded (%s)", source_id, exc)
                cancelled.append(source_id)
            except AutoEditError as exc:
                logger.error("[%s] run failed: %s", source_id, exc)
                failures[source_id] = str(exc)

    order = {source_id: index for index, source_id in enumerate(source_ids)}
    return BatchResult(
        plans={source_id: plans[source_id] for source_id in sorted(plans, key=order.__getitem__)},
        failures={source_id: failures[source_id] for source_id in sorted(failures, key=order.__getitem__)},
        cancelled=tuple(sorted(cancelled, key=order.__getitem__)),
    )


class _AnyEvent:
    """Read-only view that reports set when any wrapped event is set."""

    def __init__(self, *events: Event) -> None:
        self._events = events

    def is_set(self) -> bool:
        return any(event.is_set() for event in self._events)


def _combine_events(*events: Event | None) -> Event | _AnyEvent | None:
    present = [event for event in events if event is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return _AnyEvent(*present)


def _check_cancelled(cancel_event: Event | _AnyEvent | None, source_id: str, stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelledError(f"Run for '{source_id}' cancelled before the {stage} stage.")
