from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from autoedit.errors import ConfigurationError
from autoedit.models import (
    Branding,
    PlanOptions,
    Resolution,
    Thresholds,
    Transition,
    UserConfig,
)
from autoedit.scoring.template_score import TemplateScoringRules

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "AUTOEDIT_"


class PipelineSettings(BaseModel):
    target_duration: float = 30.0
    min_segment_duration: float = 2.0
    max_segment_duration: float = 10.0
    keywords: list[str] = Field(default_factory=list)
    mood: str = "neutral"
    output_dir: Path = Path("data/outputs")
    batch_workers: int = 4


class ThresholdSettings(BaseModel):
    silence_threshold: float = 0.1
    scene_change_tolerance: float = 0.5
    overflow_factor: float = 1.05
    early_stop_ratio: float = 0.9
    tie_break_threshold: float = 5.0
    sample_step: float = 1.0


class ScoringSettings(BaseModel):
    strategy: str = "director"
    reason_threshold: float = 5.0


class TemplateSettings(BaseModel):
    name: str = "default"
    energy_weight: float = 30.0
    high_energy_threshold: float = 0.7
    high_energy_boost: float = 10.0
    keyword_boost: float = 1.0
    silence_penalty: float = 0.5
    split_length: float | None = None
    early_stop_ratio: float = 0.95
    transition: str | None = None
    transition_duration: float = 0.5


class OutputSettings(BaseModel):
    fps: int = 30
    width: int = 1920
    height: int = 1080
    fade_duration: float = 0.5


class BrandingSettings(BaseModel):
    intro: str | None = None
    outro: str | None = None
    watermark: str | None = None
    music: str | None = None
    mood_music: dict[str, str] = Field(
        default_factory=lambda: {"energetic": "music-upbeat", "calm": "music-calm", "neutral": "music-calm"}
    )


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"


class Settings(BaseModel):
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    thresholds: ThresholdSettings = Field(default_factory=ThresholdSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    template: TemplateSettings = Field(default_factory=TemplateSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    branding: BrandingSettings = Field(default_factory=BrandingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def to_user_config(self, **overrides: Any) -> UserConfig:
        """Build the domain UserConfig; ``None`` overrides keep the configured value."""

        values = {
            "target_duration": self.pipeline.target_duration,
            "min_segment_duration": self.pipeline.min_segment_duration,
            "max_segment_duration": self.pipeline.max_segment_duration,
            "keywords": tuple(self.pipeline.keywords),
            "mood": self.pipeline.mood,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return UserConfig(
            **values,
            thresholds=Thresholds(**self.thresholds.model_dump(mode="python")),
        )

    def to_plan_options(self, strategy: str | None = None) -> PlanOptions:
        transition = None
        if (strategy or self.scoring.strategy) == "template" and self.template.transition:
            if self.template.transition not in {"cut", "fade"}:
                raise ConfigurationError(
                    f"Unsupported template transition '{self.template.transition}'. Expected one of: cut, fade."
                )
            duration = self.template.transition_duration if self.template.transition == "fade" else 0.0
            transition = Transition(type=self.template.transition, duration=duration)  # type: ignore[arg-type]

        return PlanOptions(
            fps=self.output.fps,
            resolution=Resolution(width=self.output.width, height=self.output.height),
            fade_duration=self.output.fade_duration,
            transition=transition,
            branding=Branding(
                intro=self.branding.intro,
                outro=self.branding.outro,
                watermark=self.branding.watermark,
                music=self.branding.music,
            ),
            mood_music=dict(self.branding.mood_music),
        )

    def to_template_rules(self) -> TemplateScoringRules:
        return TemplateScoringRules(
            energy_weight=self.template.energy_weight,
            high_energy_threshold=self.template.high_energy_threshold,
            high_energy_boost=self.template.high_energy_boost,
            keyword_boost=self.template.keyword_boost,
            silence_penalty=self.template.silence_penalty,
            split_length=self.template.split_length,
        )


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides.

    A missing file at the default location yields built-in defaults; an
    explicitly requested file must exist.
    """

    explicit_path = config_path or os.getenv(f"{ENV_PREFIX}CONFIG")
    resolved_path = Path(explicit_path or DEFAULT_CONFIG_PATH)
    if explicit_path is None and not resolved_path.exists():
        raw_config: dict[str, Any] = {}
    else:
        raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path):
        return Path(raw_value)
    return raw_value
