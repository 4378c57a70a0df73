from __future__ import annotations

import logging
from dataclasses import dataclass

from autoedit.errors import ConfigurationError
from autoedit.models import ScoredSegment, UserConfig
from autoedit.selection.greedy import (
    SelectionResult,
    build_result,
    filter_eligible,
    greedy_fill,
    initial_traces,
    log_short_content,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_EARLY_STOP = 0.95


@dataclass(frozen=True, slots=True)
class TemplateSelector:
    """Template-engine selection: strict score order, no mood tie-breaks."""

    early_stop_ratio: float = DEFAULT_TEMPLATE_EARLY_STOP
    template_name: str = "default"
    name: str = "template"

    def __post_init__(self) -> None:
        if self.early_stop_ratio <= 0:
            raise ConfigurationError(f"Template early_stop_ratio must be positive, got {self.early_stop_ratio}.")

    def select_with_traces(self, scored: list[ScoredSegment], config: UserConfig) -> SelectionResult:
        traces = initial_traces(scored)
        eligible = filter_eligible(scored, config, traces)
        label = f"template '{self.template_name}'"
        log_short_content(eligible, config.target_duration, label=label)

        # scores equal to three decimals fall back to time order
        ordered = sorted(eligible, key=lambda segment: (-round(segment.score, 3), segment.start_time, segment.id))
        accepted, accumulated = greedy_fill(
            ordered,
            traces,
            target_duration=config.target_duration,
            overflow_factor=config.thresholds.overflow_factor,
            early_stop_ratio=self.early_stop_ratio,
            label=label,
        )

        logger.info(
            "Template '%s' selected %d of %d segments (%.1fs of %.1fs target)",
            self.template_name,
            len(accepted),
            len(scored),
            accumulated,
            config.target_duration,
        )
        return build_result(accepted, traces, accumulated)
