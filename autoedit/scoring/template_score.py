from __future__ import annotations

from dataclasses import dataclass, field

from autoedit.errors import ConfigurationError
from autoedit.models import DecisionTrace, NormalizedTimeline, Segment, UserConfig
from autoedit.scoring.heuristic_score import (
    BASE_SCORE,
    DEFAULT_REASON_THRESHOLD,
    KEYWORD_BOOST,
    SILENCE_PENALTY,
    assemble_score,
    extract_segment_features,
)


@dataclass(frozen=True, slots=True)
class TemplateScoringRules:
    """Boosts and penalties of a template; multipliers scale the director's nominal values."""

    energy_weight: float = 30.0
    high_energy_threshold: float = 0.7
    high_energy_boost: float = 10.0
    keyword_boost: float = 1.0
    silence_penalty: float = 0.5
    split_length: float | None = None

    def __post_init__(self) -> None:
        if self.energy_weight < 0 or self.high_energy_boost < 0:
            raise ConfigurationError("Template energy weight and boost must not be negative.")
        if self.keyword_boost < 0 or self.silence_penalty < 0:
            raise ConfigurationError("Template keyword boost and silence penalty must not be negative.")
        if self.split_length is not None and self.split_length <= 0:
            raise ConfigurationError(f"Template split_length must be positive, got {self.split_length}.")


@dataclass(frozen=True, slots=True)
class TemplateScorer:
    """Configuration-driven scoring used by the template engine strategy."""

    rules: TemplateScoringRules = field(default_factory=TemplateScoringRules)
    template_name: str = "default"
    reason_threshold: float = DEFAULT_REASON_THRESHOLD
    name: str = "template"

    def score(
        self,
        segment: Segment,
        timeline: NormalizedTimeline,
        config: UserConfig,
    ) -> tuple[float, DecisionTrace]:
        rules = self.rules
        features = extract_segment_features(segment, timeline, config.keywords)
        silence_threshold = config.thresholds.silence_threshold
        energetic = features.mean_energy >= rules.high_energy_threshold
        silent = features.mean_energy < silence_threshold

        contributions = {
            "audio_energy": features.mean_energy * rules.energy_weight,
            "high_energy_boost": rules.high_energy_boost if energetic else 0.0,
            "keyword_match": rules.keyword_boost * KEYWORD_BOOST if features.keyword_hits else 0.0,
            "silence_penalty": -rules.silence_penalty * SILENCE_PENALTY if silent else 0.0,
        }
        narration = {
            "audio_energy": f"Audio energy averages {features.mean_energy:.2f}",
            "high_energy_boost": (
                f"Energy {features.mean_energy:.2f} reaches template threshold {rules.high_energy_threshold:.2f}"
            ),
            "keyword_match": "Template keyword boost for " + ", ".join(repr(k) for k in features.keyword_hits),
            "silence_penalty": f"Template silence penalty below energy {silence_threshold:.2f}",
        }

        score, trace = assemble_score(
            base=BASE_SCORE,
            contributions=contributions,
            narration=narration,
            reason_threshold=self.reason_threshold,
        )
        return score, trace.with_reason(f"Scored by template '{self.template_name}'")
